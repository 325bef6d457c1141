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
Sensor roles shared by every estimator plugin

A sensor object is its own handle: buffer entries keep a reference to the
sensor that produced them and CoreLogic dispatches through it. Sensors never
hold estimator state. The only mutable data on a sensor is the optional
calibration prior, which is read once when the estimator seeds its state.
"""

from __future__ import annotations

from typing import Any
from typing import Optional
from typing import Tuple

import numpy as np

from oasis_estimation.core.core_errors import InvalidMeasurementError
from oasis_estimation.core.core_state import CORE_INDEX
from oasis_estimation.core.core_state import CoreStateType
from oasis_estimation.core.core_time import CoreTime
from oasis_estimation.math_utils.linalg import is_psd


class SensorBase:
    """
    Identity and state size common to propagation and update sensors
    """

    def __init__(self, name: str, state_dim: int) -> None:
        if not name:
            raise ValueError("sensor name must be a non-empty string")
        if state_dim < 0:
            raise ValueError("state_dim must be >= 0")
        self._name: str = name
        self._state_dim: int = state_dim

    @property
    def name(self) -> str:
        return self._name

    @property
    def state_dim(self) -> int:
        return self._state_dim

    def validate(self, measurement: Any) -> None:
        """
        Reject malformed payloads by raising InvalidMeasurementError
        """

        if measurement is None:
            raise InvalidMeasurementError(f"{self._name}: measurement is None")

    def validate_vector(self, name: str, value: Any, size: int) -> np.ndarray:
        """
        Convert a payload field to a finite float vector or reject it
        """

        try:
            vec: np.ndarray = np.asarray(value, dtype=float).reshape(size)
        except (TypeError, ValueError) as exc:
            raise InvalidMeasurementError(
                f"{self._name}: {name} must have {size} elements"
            ) from exc
        if not np.all(np.isfinite(vec)):
            raise InvalidMeasurementError(f"{self._name}: {name} must be finite")
        return vec

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r})"


class PropagationSensor(SensorBase):
    """
    Sensor that advances the core state and covariance forward in time

    Implementations must be deterministic: identical inputs produce
    identical outputs, which makes replay reproduce in-order processing.
    """

    def __init__(self, name: str) -> None:
        super().__init__(name, CORE_INDEX.dim)

    def propagate(
        self,
        prev_state: CoreStateType,
        prev_covariance: np.ndarray,
        prev_measurement: Optional[Any],
        prev_timestamp: CoreTime,
        measurement: Any,
        new_timestamp: CoreTime,
    ) -> Tuple[CoreStateType, np.ndarray, np.ndarray]:
        """
        Propagate the core state from prev_timestamp to new_timestamp

        Args:
            prev_state: Core state at prev_timestamp
            prev_covariance: Core covariance at prev_timestamp, 15x15
            prev_measurement: Propagation input valid at prev_timestamp, or
                None directly after initialization
            prev_timestamp: Start of the interval
            measurement: Propagation input valid at new_timestamp
            new_timestamp: End of the interval, >= prev_timestamp

        Returns:
            Tuple of (core state, core covariance, state transition Phi)
        """

        raise NotImplementedError


class UpdateSensor(SensorBase):
    """
    Sensor that corrects the core state and owns calibration state

    Jacobians are taken with respect to the core error state (see
    CORE_INDEX) and the sensor's own calibration error state.
    """

    def __init__(self, name: str, state_dim: int, measurement_dim: int) -> None:
        super().__init__(name, state_dim)
        if measurement_dim < 1:
            raise ValueError("measurement_dim must be >= 1")
        self._measurement_dim: int = measurement_dim
        self._initial_calibration: Optional[Tuple[Any, np.ndarray]] = None

    @property
    def measurement_dim(self) -> int:
        return self._measurement_dim

    def predict(self, core_state: CoreStateType, calib_state: Any) -> Any:
        raise NotImplementedError

    def residual(self, measurement: Any, predicted: Any) -> np.ndarray:
        raise NotImplementedError

    def jacobian(
        self, core_state: CoreStateType, calib_state: Any
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Return (H_core, H_calib) with shapes (m, 15) and (m, state_dim)
        """

        raise NotImplementedError

    def measurement_noise(self, measurement: Any) -> np.ndarray:
        raise NotImplementedError

    def apply_correction(self, calib_state: Any, delta: np.ndarray) -> Any:
        """
        Inject a calibration error-state correction into a copy of calib_state
        """

        raise NotImplementedError

    def default_calibration(self) -> Any:
        raise NotImplementedError

    def default_calibration_covariance(self) -> np.ndarray:
        raise NotImplementedError

    def set_initial_calibration(self, calib_state: Any, covariance: np.ndarray) -> None:
        """
        Provide a soft prior for the calibration state

        Args:
            calib_state: Initial calibration value
            covariance: Calibration covariance, state_dim x state_dim PSD
        """

        cov: np.ndarray = self.check_calibration_covariance(covariance)
        self._initial_calibration = (calib_state, cov)

    def initial_calibration(self) -> Tuple[Any, np.ndarray]:
        """
        Return the calibration prior, falling back to the sensor defaults
        """

        if self._initial_calibration is not None:
            calib_state, covariance = self._initial_calibration
            return calib_state, np.array(covariance, dtype=float)
        return self.default_calibration(), self.default_calibration_covariance()

    def check_calibration_covariance(self, covariance: np.ndarray) -> np.ndarray:
        cov: np.ndarray = np.asarray(covariance, dtype=float)
        if cov.shape != (self.state_dim, self.state_dim):
            raise ValueError(
                f"{self.name}: calibration covariance must be "
                f"{self.state_dim}x{self.state_dim}"
            )
        if not is_psd(cov):
            raise ValueError(f"{self.name}: calibration covariance must be PSD")
        return np.array(cov, dtype=float)
