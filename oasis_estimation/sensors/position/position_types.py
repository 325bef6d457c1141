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
Types for the position update sensor
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np


@dataclass(frozen=True)
class PositionMeasurement:
    """
    Position of the sensor frame in the world frame

    Fields:
        position_m: Translation p_wp in meters, XYZ order
    """

    position_m: Sequence[float]

    def __post_init__(self) -> None:
        # Private copy, the buffer must not alias a caller-owned list
        object.__setattr__(self, "position_m", tuple(self.position_m))


@dataclass
class PositionSensorState:
    """
    Position sensor lever arm

    Fields:
        p_ip: Translation of the sensor frame in the IMU frame in meters
    """

    p_ip: np.ndarray

    def __post_init__(self) -> None:
        self.p_ip = np.asarray(self.p_ip, dtype=float).reshape(3)

    def copy(self) -> PositionSensorState:
        return PositionSensorState(p_ip=np.array(self.p_ip, dtype=float))

    def as_dict(self) -> dict[str, list[float]]:
        """Return a JSON-serializable dict representation."""
        return {"p_ip": self.p_ip.tolist()}

    @staticmethod
    def zeros() -> PositionSensorState:
        return PositionSensorState(p_ip=np.zeros(3, dtype=float))
