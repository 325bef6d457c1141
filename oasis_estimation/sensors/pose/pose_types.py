################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""
Types for the pose update sensor
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from oasis_estimation.math_utils.quat import quat_identity
from oasis_estimation.math_utils.quat import quat_normalize


@dataclass(frozen=True)
class PoseMeasurement:
    """
    Pose of the sensor frame in the world frame

    Fields:
        position_m: Translation p_wp in meters, XYZ order
        orientation_wxyz: Rotation q_wp as a quaternion in [w, x, y, z] order
    """

    position_m: Sequence[float]
    orientation_wxyz: Sequence[float]

    def __post_init__(self) -> None:
        # Private copies, the buffer must not alias caller-owned lists
        object.__setattr__(self, "position_m", tuple(self.position_m))
        object.__setattr__(self, "orientation_wxyz", tuple(self.orientation_wxyz))


@dataclass
class PoseSensorState:
    """
    Pose sensor extrinsic calibration

    Fields:
        p_ip: Translation of the sensor frame in the IMU frame in meters
        q_ip: Rotation of the sensor frame into the IMU frame, [w, x, y, z]
    """

    p_ip: np.ndarray
    q_ip: np.ndarray

    def __post_init__(self) -> None:
        self.p_ip = np.asarray(self.p_ip, dtype=float).reshape(3)
        self.q_ip = quat_normalize(self.q_ip)

    def copy(self) -> PoseSensorState:
        return PoseSensorState(
            p_ip=np.array(self.p_ip, dtype=float),
            q_ip=np.array(self.q_ip, dtype=float),
        )

    def as_dict(self) -> dict[str, list[float]]:
        """Return a JSON-serializable dict representation."""
        return {"p_ip": self.p_ip.tolist(), "q_ip": self.q_ip.tolist()}

    @staticmethod
    def identity() -> PoseSensorState:
        return PoseSensorState(p_ip=np.zeros(3, dtype=float), q_ip=quat_identity())
