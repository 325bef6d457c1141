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
Core navigation state with error-state bookkeeping
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from oasis_estimation.core.core_config import CoreConfig
from oasis_estimation.math_utils.quat import quat_boxplus
from oasis_estimation.math_utils.quat import quat_identity
from oasis_estimation.math_utils.quat import quat_normalize


@dataclass(frozen=True)
class _CoreStateIndex:
    """
    Slice bookkeeping for the core error-state vector

    Fields:
        p_wi: Position error slice in meters, XYZ order
        v_wi: Velocity error slice in m/s, XYZ order
        theta_wi: Body-frame orientation error slice in radians
        b_w: Gyro bias error slice in rad/s
        b_a: Accel bias error slice in m/s^2
        dim: Core error-state dimension
    """

    p_wi: slice
    v_wi: slice
    theta_wi: slice
    b_w: slice
    b_a: slice
    dim: int


CORE_INDEX: _CoreStateIndex = _CoreStateIndex(
    p_wi=slice(0, 3),
    v_wi=slice(3, 6),
    theta_wi=slice(6, 9),
    b_w=slice(9, 12),
    b_a=slice(12, 15),
    dim=15,
)


@dataclass
class CoreStateType:
    """
    Nominal core navigation state

    Fields:
        p_wi: Position of the IMU in the world frame in meters
        v_wi: Velocity of the IMU in the world frame in m/s
        q_wi: Unit quaternion rotating IMU vectors into the world frame,
            [w, x, y, z] order
        b_w: Gyroscope bias in rad/s
        b_a: Accelerometer bias in m/s^2
    """

    p_wi: np.ndarray
    v_wi: np.ndarray
    q_wi: np.ndarray
    b_w: np.ndarray
    b_a: np.ndarray

    def __post_init__(self) -> None:
        self.p_wi = np.asarray(self.p_wi, dtype=float).reshape(3)
        self.v_wi = np.asarray(self.v_wi, dtype=float).reshape(3)
        self.q_wi = quat_normalize(self.q_wi)
        self.b_w = np.asarray(self.b_w, dtype=float).reshape(3)
        self.b_a = np.asarray(self.b_a, dtype=float).reshape(3)

    def copy(self) -> CoreStateType:
        return CoreStateType(
            p_wi=np.array(self.p_wi, dtype=float),
            v_wi=np.array(self.v_wi, dtype=float),
            q_wi=np.array(self.q_wi, dtype=float),
            b_w=np.array(self.b_w, dtype=float),
            b_a=np.array(self.b_a, dtype=float),
        )

    def boxplus(self, delta: np.ndarray) -> CoreStateType:
        """
        Inject an error-state correction into a copy of the nominal state

        Args:
            delta: Core error-state vector of length 15

        Returns:
            Corrected state with a normalized orientation
        """

        dx: np.ndarray = np.asarray(delta, dtype=float).reshape(CORE_INDEX.dim)
        return CoreStateType(
            p_wi=self.p_wi + dx[CORE_INDEX.p_wi],
            v_wi=self.v_wi + dx[CORE_INDEX.v_wi],
            q_wi=quat_boxplus(self.q_wi, dx[CORE_INDEX.theta_wi]),
            b_w=self.b_w + dx[CORE_INDEX.b_w],
            b_a=self.b_a + dx[CORE_INDEX.b_a],
        )

    def is_finite(self) -> bool:
        values: np.ndarray = np.hstack(
            [self.p_wi, self.v_wi, self.q_wi, self.b_w, self.b_a]
        )
        return bool(np.all(np.isfinite(values)))

    def as_dict(self) -> dict[str, list[float]]:
        """Return a JSON-serializable dict representation."""
        return {
            "p_wi": self.p_wi.tolist(),
            "v_wi": self.v_wi.tolist(),
            "q_wi": self.q_wi.tolist(),
            "b_w": self.b_w.tolist(),
            "b_a": self.b_a.tolist(),
        }

    @staticmethod
    def from_pose(position: np.ndarray, orientation_wxyz: np.ndarray) -> CoreStateType:
        """
        Seed a state at rest with zero biases
        """

        return CoreStateType(
            p_wi=np.asarray(position, dtype=float),
            v_wi=np.zeros(3, dtype=float),
            q_wi=np.asarray(orientation_wxyz, dtype=float),
            b_w=np.zeros(3, dtype=float),
            b_a=np.zeros(3, dtype=float),
        )

    @staticmethod
    def identity() -> CoreStateType:
        return CoreStateType.from_pose(np.zeros(3, dtype=float), quat_identity())


def initial_core_covariance(config: CoreConfig) -> np.ndarray:
    """
    Build the diagonal initial core covariance from configured variances
    """

    variances: np.ndarray = np.hstack(
        [
            np.full(3, config.pos_var, dtype=float),
            np.full(3, config.vel_var, dtype=float),
            np.full(3, config.ang_var, dtype=float),
            np.full(3, config.gyro_bias_var, dtype=float),
            np.full(3, config.accel_bias_var, dtype=float),
        ]
    )
    return np.diag(variances)
