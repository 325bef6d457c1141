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
6-DoF pose update sensor with extrinsic calibration
"""

from __future__ import annotations

import math
from typing import Any
from typing import Optional
from typing import Sequence
from typing import Tuple
from typing import cast

import numpy as np

from oasis_estimation.core.core_errors import InvalidMeasurementError
from oasis_estimation.core.core_state import CORE_INDEX
from oasis_estimation.core.core_state import CoreStateType
from oasis_estimation.math_utils.quat import quat_boxminus
from oasis_estimation.math_utils.quat import quat_boxplus
from oasis_estimation.math_utils.quat import quat_multiply
from oasis_estimation.math_utils.quat import quat_normalize
from oasis_estimation.math_utils.quat import quat_to_rotmat
from oasis_estimation.math_utils.quat import skew_symmetric
from oasis_estimation.sensors.pose.pose_types import PoseMeasurement
from oasis_estimation.sensors.pose.pose_types import PoseSensorState
from oasis_estimation.sensors.sensor_interface import UpdateSensor


# Calibration error-state is [dp_ip(3), dtheta_ip(3)]
_STATE_DIM: int = 6

# Measurement residual is [dp(3), dtheta(3)]
_MEAS_DIM: int = 6

# Default translation sigma for the extrinsic in meters
_DEFAULT_P_IP_SIGMA_M: float = 0.5

# Default rotation sigma for the extrinsic in radians
_DEFAULT_Q_IP_SIGMA_RAD: float = 20.0 * math.pi / 180.0

# Default measurement sigma for position in meters
_DEFAULT_POSITION_SIGMA_M: float = 0.02

# Default measurement sigma for orientation in radians
_DEFAULT_ORIENTATION_SIGMA_RAD: float = 2.0 * math.pi / 180.0


class PoseSensor(UpdateSensor):
    """
    Pose sensor measuring p_wp = p_wi + R_wi p_ip and q_wp = q_wi * q_ip

    The orientation residual is the body-frame rotation error
    log(q_pred^-1 * q_meas), so the orientation rows of H are R_ip^T for the
    core orientation error and identity for the extrinsic rotation error.
    """

    def __init__(
        self, name: str, measurement_std: Optional[Sequence[float]] = None
    ) -> None:
        super().__init__(name, _STATE_DIM, _MEAS_DIM)
        std: np.ndarray = (
            np.asarray(measurement_std, dtype=float).reshape(_MEAS_DIM)
            if measurement_std is not None
            else np.array(
                [_DEFAULT_POSITION_SIGMA_M] * 3 + [_DEFAULT_ORIENTATION_SIGMA_RAD] * 3,
                dtype=float,
            )
        )
        if not np.all(np.isfinite(std)) or np.any(std <= 0.0):
            raise ValueError("measurement_std must be finite and positive")
        self._r: np.ndarray = np.diag(std * std)

    def validate(self, measurement: Any) -> None:
        super().validate(measurement)
        if not isinstance(measurement, PoseMeasurement):
            raise InvalidMeasurementError(
                f"{self.name}: expected PoseMeasurement, "
                f"got {type(measurement).__name__}"
            )
        self.validate_vector("position_m", measurement.position_m, 3)
        q: np.ndarray = self.validate_vector(
            "orientation_wxyz", measurement.orientation_wxyz, 4
        )
        if float(np.linalg.norm(q)) < 1.0e-6:
            raise InvalidMeasurementError(f"{self.name}: orientation has zero norm")

    def predict(
        self, core_state: CoreStateType, calib_state: Any
    ) -> Tuple[np.ndarray, np.ndarray]:
        calib: PoseSensorState = cast(PoseSensorState, calib_state)
        rot_wi: np.ndarray = quat_to_rotmat(core_state.q_wi)
        p_wp: np.ndarray = core_state.p_wi + rot_wi @ calib.p_ip
        q_wp: np.ndarray = quat_normalize(quat_multiply(core_state.q_wi, calib.q_ip))
        return p_wp, q_wp

    def residual(self, measurement: Any, predicted: Any) -> np.ndarray:
        pose: PoseMeasurement = cast(PoseMeasurement, measurement)
        p_pred, q_pred = cast(Tuple[np.ndarray, np.ndarray], predicted)
        p_meas: np.ndarray = np.asarray(pose.position_m, dtype=float)
        q_meas: np.ndarray = quat_normalize(np.asarray(pose.orientation_wxyz))
        return np.hstack([p_meas - p_pred, quat_boxminus(q_meas, q_pred)])

    def jacobian(
        self, core_state: CoreStateType, calib_state: Any
    ) -> Tuple[np.ndarray, np.ndarray]:
        calib: PoseSensorState = cast(PoseSensorState, calib_state)
        rot_wi: np.ndarray = quat_to_rotmat(core_state.q_wi)
        rot_ip: np.ndarray = quat_to_rotmat(calib.q_ip)

        h_core: np.ndarray = np.zeros((_MEAS_DIM, CORE_INDEX.dim), dtype=float)
        h_core[0:3, CORE_INDEX.p_wi] = np.eye(3, dtype=float)
        h_core[0:3, CORE_INDEX.theta_wi] = -rot_wi @ skew_symmetric(calib.p_ip)
        h_core[3:6, CORE_INDEX.theta_wi] = rot_ip.T

        h_calib: np.ndarray = np.zeros((_MEAS_DIM, _STATE_DIM), dtype=float)
        h_calib[0:3, 0:3] = rot_wi
        h_calib[3:6, 3:6] = np.eye(3, dtype=float)
        return h_core, h_calib

    def measurement_noise(self, measurement: Any) -> np.ndarray:
        return np.array(self._r, dtype=float)

    def apply_correction(self, calib_state: Any, delta: np.ndarray) -> PoseSensorState:
        calib: PoseSensorState = cast(PoseSensorState, calib_state)
        dx: np.ndarray = np.asarray(delta, dtype=float).reshape(_STATE_DIM)
        return PoseSensorState(
            p_ip=calib.p_ip + dx[0:3],
            q_ip=quat_boxplus(calib.q_ip, dx[3:6]),
        )

    def default_calibration(self) -> PoseSensorState:
        return PoseSensorState.identity()

    def default_calibration_covariance(self) -> np.ndarray:
        return np.diag(
            [_DEFAULT_P_IP_SIGMA_M**2] * 3 + [_DEFAULT_Q_IP_SIGMA_RAD**2] * 3
        )
