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
Barometric height update sensor with lever-arm calibration
"""

from __future__ import annotations

import math
from typing import Any
from typing import Tuple
from typing import cast

import numpy as np

from oasis_estimation.core.core_errors import InvalidMeasurementError
from oasis_estimation.core.core_state import CORE_INDEX
from oasis_estimation.core.core_state import CoreStateType
from oasis_estimation.math_utils.quat import quat_to_rotmat
from oasis_estimation.math_utils.quat import skew_symmetric
from oasis_estimation.sensors.pressure.pressure_conversion import STANDARD_PRESSURE_PA
from oasis_estimation.sensors.pressure.pressure_conversion import (
    STANDARD_TEMPERATURE_K,
)
from oasis_estimation.sensors.pressure.pressure_conversion import pressure_to_height
from oasis_estimation.sensors.pressure.pressure_types import PressureMeasurement
from oasis_estimation.sensors.pressure.pressure_types import PressureSensorState
from oasis_estimation.sensors.sensor_interface import UpdateSensor


_STATE_DIM: int = 3
_MEAS_DIM: int = 1

# Default lever-arm sigma in meters
_DEFAULT_P_IP_SIGMA_M: float = 0.5

# Unit vector selecting the world z axis
_E_Z: np.ndarray = np.array([0.0, 0.0, 1.0], dtype=float)


class PressureSensor(UpdateSensor):
    """
    Pressure sensor measuring the height h = e_z^T (p_wi + R_wi p_ip)

    The pressure reading is converted to height above the reference pressure
    level before the residual is formed.
    """

    def __init__(
        self,
        name: str,
        *,
        height_std_m: float = 0.1,
        reference_pressure_pa: float = STANDARD_PRESSURE_PA,
        reference_temperature_k: float = STANDARD_TEMPERATURE_K,
    ) -> None:
        super().__init__(name, _STATE_DIM, _MEAS_DIM)
        if not math.isfinite(height_std_m) or height_std_m <= 0.0:
            raise ValueError("height_std_m must be finite and positive")
        self._r: np.ndarray = np.array([[height_std_m * height_std_m]], dtype=float)
        self._reference_pressure_pa: float = reference_pressure_pa
        self._reference_temperature_k: float = reference_temperature_k

    def validate(self, measurement: Any) -> None:
        super().validate(measurement)
        if not isinstance(measurement, PressureMeasurement):
            raise InvalidMeasurementError(
                f"{self.name}: expected PressureMeasurement, "
                f"got {type(measurement).__name__}"
            )
        if not math.isfinite(measurement.pressure_pa) or measurement.pressure_pa <= 0.0:
            raise InvalidMeasurementError(f"{self.name}: pressure must be positive")
        if measurement.temperature_k is not None:
            if (
                not math.isfinite(measurement.temperature_k)
                or measurement.temperature_k <= 0.0
            ):
                raise InvalidMeasurementError(
                    f"{self.name}: temperature must be positive kelvin"
                )

    def measured_height(self, measurement: PressureMeasurement) -> float:
        temperature_k: float = (
            measurement.temperature_k
            if measurement.temperature_k is not None
            else self._reference_temperature_k
        )
        return pressure_to_height(
            measurement.pressure_pa,
            reference_pressure_pa=self._reference_pressure_pa,
            temperature_k=temperature_k,
        )

    def predict(self, core_state: CoreStateType, calib_state: Any) -> np.ndarray:
        calib: PressureSensorState = cast(PressureSensorState, calib_state)
        rot_wi: np.ndarray = quat_to_rotmat(core_state.q_wi)
        p_wp: np.ndarray = core_state.p_wi + rot_wi @ calib.p_ip
        return np.array([float(p_wp[2])], dtype=float)

    def residual(self, measurement: Any, predicted: Any) -> np.ndarray:
        pressure: PressureMeasurement = cast(PressureMeasurement, measurement)
        height_m: float = self.measured_height(pressure)
        return np.array([height_m], dtype=float) - np.asarray(predicted, dtype=float)

    def jacobian(
        self, core_state: CoreStateType, calib_state: Any
    ) -> Tuple[np.ndarray, np.ndarray]:
        calib: PressureSensorState = cast(PressureSensorState, calib_state)
        rot_wi: np.ndarray = quat_to_rotmat(core_state.q_wi)

        h_core: np.ndarray = np.zeros((_MEAS_DIM, CORE_INDEX.dim), dtype=float)
        h_core[0, CORE_INDEX.p_wi] = _E_Z
        h_core[0, CORE_INDEX.theta_wi] = -_E_Z @ rot_wi @ skew_symmetric(calib.p_ip)
        h_calib: np.ndarray = (_E_Z @ rot_wi).reshape(_MEAS_DIM, _STATE_DIM)
        return h_core, h_calib

    def measurement_noise(self, measurement: Any) -> np.ndarray:
        return np.array(self._r, dtype=float)

    def apply_correction(
        self, calib_state: Any, delta: np.ndarray
    ) -> PressureSensorState:
        calib: PressureSensorState = cast(PressureSensorState, calib_state)
        dx: np.ndarray = np.asarray(delta, dtype=float).reshape(_STATE_DIM)
        return PressureSensorState(p_ip=calib.p_ip + dx)

    def default_calibration(self) -> PressureSensorState:
        return PressureSensorState.zeros()

    def default_calibration_covariance(self) -> np.ndarray:
        return np.eye(_STATE_DIM, dtype=float) * (_DEFAULT_P_IP_SIGMA_M**2)
