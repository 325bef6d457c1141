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
3-DoF position update sensor with lever-arm calibration
"""

from __future__ import annotations

from typing import Any
from typing import Optional
from typing import Sequence
from typing import Tuple
from typing import cast

import numpy as np

from oasis_estimation.core.core_errors import InvalidMeasurementError
from oasis_estimation.core.core_state import CORE_INDEX
from oasis_estimation.core.core_state import CoreStateType
from oasis_estimation.math_utils.quat import quat_to_rotmat
from oasis_estimation.math_utils.quat import skew_symmetric
from oasis_estimation.sensors.position.position_types import PositionMeasurement
from oasis_estimation.sensors.position.position_types import PositionSensorState
from oasis_estimation.sensors.sensor_interface import UpdateSensor


_STATE_DIM: int = 3
_MEAS_DIM: int = 3

# Default lever-arm sigma in meters
_DEFAULT_P_IP_SIGMA_M: float = 0.5

# Default measurement sigma in meters
_DEFAULT_POSITION_SIGMA_M: float = 0.05


class PositionSensor(UpdateSensor):
    """
    Position sensor measuring p_wp = p_wi + R_wi p_ip
    """

    def __init__(
        self, name: str, measurement_std: Optional[Sequence[float]] = None
    ) -> None:
        super().__init__(name, _STATE_DIM, _MEAS_DIM)
        std: np.ndarray = (
            np.asarray(measurement_std, dtype=float).reshape(_MEAS_DIM)
            if measurement_std is not None
            else np.full(_MEAS_DIM, _DEFAULT_POSITION_SIGMA_M, dtype=float)
        )
        if not np.all(np.isfinite(std)) or np.any(std <= 0.0):
            raise ValueError("measurement_std must be finite and positive")
        self._r: np.ndarray = np.diag(std * std)

    def validate(self, measurement: Any) -> None:
        super().validate(measurement)
        if not isinstance(measurement, PositionMeasurement):
            raise InvalidMeasurementError(
                f"{self.name}: expected PositionMeasurement, "
                f"got {type(measurement).__name__}"
            )
        self.validate_vector("position_m", measurement.position_m, 3)

    def predict(self, core_state: CoreStateType, calib_state: Any) -> np.ndarray:
        calib: PositionSensorState = cast(PositionSensorState, calib_state)
        return core_state.p_wi + quat_to_rotmat(core_state.q_wi) @ calib.p_ip

    def residual(self, measurement: Any, predicted: Any) -> np.ndarray:
        position: PositionMeasurement = cast(PositionMeasurement, measurement)
        return np.asarray(position.position_m, dtype=float) - np.asarray(
            predicted, dtype=float
        )

    def jacobian(
        self, core_state: CoreStateType, calib_state: Any
    ) -> Tuple[np.ndarray, np.ndarray]:
        calib: PositionSensorState = cast(PositionSensorState, calib_state)
        rot_wi: np.ndarray = quat_to_rotmat(core_state.q_wi)

        h_core: np.ndarray = np.zeros((_MEAS_DIM, CORE_INDEX.dim), dtype=float)
        h_core[:, CORE_INDEX.p_wi] = np.eye(3, dtype=float)
        h_core[:, CORE_INDEX.theta_wi] = -rot_wi @ skew_symmetric(calib.p_ip)
        return h_core, rot_wi

    def measurement_noise(self, measurement: Any) -> np.ndarray:
        return np.array(self._r, dtype=float)

    def apply_correction(
        self, calib_state: Any, delta: np.ndarray
    ) -> PositionSensorState:
        calib: PositionSensorState = cast(PositionSensorState, calib_state)
        dx: np.ndarray = np.asarray(delta, dtype=float).reshape(_STATE_DIM)
        return PositionSensorState(p_ip=calib.p_ip + dx)

    def default_calibration(self) -> PositionSensorState:
        return PositionSensorState.zeros()

    def default_calibration_covariance(self) -> np.ndarray:
        return np.eye(_STATE_DIM, dtype=float) * (_DEFAULT_P_IP_SIGMA_M**2)
