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
Joint state layout and immutable state snapshots
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any
from typing import Mapping
from typing import Optional
from typing import Sequence

import numpy as np

from oasis_estimation.core.core_state import CORE_INDEX
from oasis_estimation.core.core_state import CoreStateType
from oasis_estimation.core.core_time import CoreTime
from oasis_estimation.sensors.sensor_interface import SensorBase
from oasis_estimation.sensors.sensor_interface import UpdateSensor


class StateLayout:
    """
    Packing of the joint error state

    The core error state occupies the first 15 entries, followed by the
    calibration error state of every update sensor in registration order.
    """

    def __init__(self, update_sensors: Sequence[UpdateSensor]) -> None:
        self._sensors: tuple[UpdateSensor, ...] = tuple(update_sensors)
        self._slices: dict[str, slice] = {}
        start: int = CORE_INDEX.dim
        for sensor in self._sensors:
            if sensor.name in self._slices:
                raise ValueError(f"Duplicate sensor name: {sensor.name}")
            self._slices[sensor.name] = slice(start, start + sensor.state_dim)
            start += sensor.state_dim
        self._total_dim: int = start

    @property
    def core(self) -> slice:
        return slice(0, CORE_INDEX.dim)

    @property
    def total_dim(self) -> int:
        return self._total_dim

    @property
    def update_sensors(self) -> tuple[UpdateSensor, ...]:
        return self._sensors

    def slice_for(self, sensor: SensorBase) -> slice:
        try:
            return self._slices[sensor.name]
        except KeyError as exc:
            raise ValueError(f"Sensor {sensor.name} is not part of the layout") from exc


def _freeze_arrays(value: Any) -> None:
    for attr in vars(value).values():
        if isinstance(attr, np.ndarray):
            attr.flags.writeable = False


@dataclass(frozen=True)
class StateSnapshot:
    """
    Resolved estimator state at one timestamp

    Snapshots are values: the constructor copies its inputs and marks every
    array read-only, so a snapshot never changes after it is written.

    Fields:
        timestamp: Time the snapshot is valid at
        sensor: Sensor whose measurement produced the snapshot
        core_state: Core navigation state
        calibration: Calibration state per update sensor name
        covariance: Joint error-state covariance packed by layout
        layout: Packing of the joint error state
        propagation_input: Propagation measurement valid at timestamp
    """

    timestamp: CoreTime
    sensor: SensorBase
    core_state: CoreStateType
    calibration: Mapping[str, Any]
    covariance: np.ndarray
    layout: StateLayout
    propagation_input: Optional[Any]

    def __post_init__(self) -> None:
        core_state: CoreStateType = self.core_state.copy()
        _freeze_arrays(core_state)

        calibration: dict[str, Any] = {}
        for name, calib_state in self.calibration.items():
            calib_copy: Any = calib_state.copy()
            _freeze_arrays(calib_copy)
            calibration[name] = calib_copy

        covariance: np.ndarray = np.array(self.covariance, dtype=float)
        if covariance.shape != (self.layout.total_dim, self.layout.total_dim):
            raise ValueError("covariance does not match the state layout")
        covariance.flags.writeable = False

        object.__setattr__(self, "core_state", core_state)
        object.__setattr__(self, "calibration", MappingProxyType(calibration))
        object.__setattr__(self, "covariance", covariance)

    @property
    def sensor_state(self) -> Optional[Any]:
        """
        Calibration state of the owning sensor, None for propagation entries
        """

        return self.calibration.get(self.sensor.name)

    def core_covariance(self) -> np.ndarray:
        core: slice = self.layout.core
        return np.array(self.covariance[core, core], dtype=float)

    def calibration_for(self, sensor: SensorBase) -> Any:
        if sensor.name not in self.calibration:
            raise ValueError(f"No calibration state for sensor {sensor.name}")
        return self.calibration[sensor.name]

    def calibration_covariance_for(self, sensor: SensorBase) -> np.ndarray:
        block: slice = self.layout.slice_for(sensor)
        return np.array(self.covariance[block, block], dtype=float)

    def with_calibration_prior(
        self, sensor: UpdateSensor, calib_state: Any, covariance: np.ndarray
    ) -> StateSnapshot:
        """
        Return a copy with the sensor's calibration replaced by a prior

        The prior is uncorrelated with every other state, which is exact as
        long as the sensor has not contributed an update yet.
        """

        block: slice = self.layout.slice_for(sensor)
        joint: np.ndarray = np.array(self.covariance, dtype=float)
        joint[block, :] = 0.0
        joint[:, block] = 0.0
        joint[block, block] = covariance

        calibration: dict[str, Any] = dict(self.calibration)
        calibration[sensor.name] = calib_state
        return dataclasses.replace(self, calibration=calibration, covariance=joint)
