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
Measurement ordering and repropagation engine

CoreLogic owns the history buffer and decides for every measurement whether
it can be appended at the head or must be inserted into history and replayed
forward.

Processing rules:
    - Before initialize() measurements are validated and queued
    - Measurements within epsilon below the latest entry are snapped onto it
      and take the in-order path
    - Older measurements are inserted by timestamp and every later entry is
      recomputed from its predecessor's snapshot
    - Measurements older than the oldest retained entry are dropped as stale

Each snapshot is a pure function of the previous snapshot and the entry's
measurement. Replay therefore reproduces exactly what in-order processing
would have produced for the same time-sorted stream.

Update measurements between propagation samples are aligned by propagating
the previous snapshot to the update time with a zero-order hold on the last
propagation input.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any
from typing import Iterable
from typing import Optional
from typing import Sequence
from typing import Tuple

import numpy as np

from oasis_estimation.core.core_buffer import BufferEntry
from oasis_estimation.core.core_buffer import CoreBuffer
from oasis_estimation.core.core_config import CoreConfig
from oasis_estimation.core.core_errors import EmptyBufferError
from oasis_estimation.core.core_errors import EstimatorError
from oasis_estimation.core.core_errors import InvalidMeasurementError
from oasis_estimation.core.core_errors import InvalidTransitionError
from oasis_estimation.core.core_errors import NoEntryForSensorError
from oasis_estimation.core.core_errors import NumericalInstabilityWarning
from oasis_estimation.core.core_errors import StaleMeasurementDropped
from oasis_estimation.core.core_state import CoreStateType
from oasis_estimation.core.core_state import initial_core_covariance
from oasis_estimation.core.core_time import CoreTime
from oasis_estimation.core.core_time import from_ns
from oasis_estimation.core.core_time import to_ns
from oasis_estimation.core.core_types import MeasurementStatus
from oasis_estimation.core.core_types import PendingMeasurement
from oasis_estimation.core.core_types import ProcessResult
from oasis_estimation.core.core_types import UpdateReport
from oasis_estimation.core.ekf_update import EkfCorrection
from oasis_estimation.core.ekf_update import ekf_correct
from oasis_estimation.core.state_snapshot import StateLayout
from oasis_estimation.core.state_snapshot import StateSnapshot
from oasis_estimation.math_utils.linalg import is_finite
from oasis_estimation.math_utils.linalg import symmetrize
from oasis_estimation.sensors.sensor_interface import PropagationSensor
from oasis_estimation.sensors.sensor_interface import SensorBase
from oasis_estimation.sensors.sensor_interface import UpdateSensor


_LOG: logging.Logger = logging.getLogger(__name__)


class CoreLogic:
    """
    Multi-sensor error-state EKF with an out-of-order measurement buffer
    """

    def __init__(
        self,
        config: CoreConfig,
        propagation_sensor: PropagationSensor,
        update_sensors: Iterable[UpdateSensor] = (),
    ) -> None:
        if not isinstance(propagation_sensor, PropagationSensor):
            raise TypeError("propagation_sensor must be a PropagationSensor")

        self._config: CoreConfig = config
        self._propagation_sensor: PropagationSensor = propagation_sensor
        self._update_sensors: list[UpdateSensor] = []
        self._buffer: CoreBuffer = CoreBuffer()
        self._layout: Optional[StateLayout] = None
        self._pending: list[PendingMeasurement] = []
        self._contributed: set[str] = set()
        self._consecutive_failures: int = 0

        self.diagnostics: dict[str, int] = {
            "queued": 0,
            "applied": 0,
            "repropagated": 0,
            "replayed_entries": 0,
            "stale_dropped": 0,
            "invalid": 0,
            "duplicate": 0,
            "numerical_failure": 0,
            "evicted": 0,
            "pending_discarded": 0,
        }

        for sensor in update_sensors:
            self.register_update_sensor(sensor)

    @property
    def config(self) -> CoreConfig:
        return self._config

    @property
    def propagation_sensor(self) -> PropagationSensor:
        return self._propagation_sensor

    @property
    def update_sensors(self) -> Tuple[UpdateSensor, ...]:
        return tuple(self._update_sensors)

    @property
    def buffer(self) -> CoreBuffer:
        return self._buffer

    def register_update_sensor(self, sensor: UpdateSensor) -> None:
        """
        Add an update sensor to the estimator

        Raises:
            InvalidTransitionError: If the estimator is already initialized
            ValueError: If another sensor already uses the same name
        """

        if self.is_initialized():
            raise InvalidTransitionError(
                "update sensors must be registered before initialize()"
            )
        if not isinstance(sensor, UpdateSensor):
            raise TypeError("sensor must be an UpdateSensor")
        if sensor.name in self._sensor_names():
            raise ValueError(f"Duplicate sensor name: {sensor.name}")
        self._update_sensors.append(sensor)

    def is_initialized(self) -> bool:
        return self._layout is not None

    def is_degraded(self) -> bool:
        return self._consecutive_failures >= self._config.max_numerical_failures

    def pending_measurements(self) -> list[PendingMeasurement]:
        return list(self._pending)

    def reset(self) -> None:
        """
        Discard all state and return to the uninitialized state

        Registered sensors and their calibration priors are kept.
        """

        self._buffer.reset()
        self._layout = None
        self._pending.clear()
        self._contributed.clear()
        self._consecutive_failures = 0
        _LOG.info("Estimator reset")

    def initialize(
        self, position: Sequence[float], orientation_wxyz: Sequence[float]
    ) -> None:
        """
        Seed the estimator at the latest queued propagation measurement

        Args:
            position: Initial IMU position in the world frame in meters
            orientation_wxyz: Initial IMU orientation, [w, x, y, z]

        Raises:
            InvalidTransitionError: If already initialized or no propagation
                measurement has been queued
            ValueError: If the pose is not finite or the quaternion is zero
        """

        if self.is_initialized():
            raise InvalidTransitionError("estimator is already initialized")

        seed: Optional[PendingMeasurement] = None
        for pending in self._pending:
            if pending.sensor is not self._propagation_sensor:
                continue
            if seed is None or to_ns(pending.timestamp) >= to_ns(seed.timestamp):
                seed = pending
        if seed is None:
            raise InvalidTransitionError(
                "initialize() requires a propagation measurement first"
            )

        p_wi: np.ndarray = np.asarray(position, dtype=float).reshape(3)
        q_wi: np.ndarray = np.asarray(orientation_wxyz, dtype=float).reshape(4)
        if not is_finite(p_wi) or not is_finite(q_wi):
            raise ValueError("initial pose must be finite")
        if float(np.linalg.norm(q_wi)) < 1.0e-9:
            raise ValueError("initial orientation must be a nonzero quaternion")

        layout: StateLayout = StateLayout(self._update_sensors)
        dim: int = layout.total_dim
        covariance: np.ndarray = np.zeros((dim, dim), dtype=float)
        covariance[layout.core, layout.core] = initial_core_covariance(self._config)
        calibration: dict[str, Any] = {}
        for sensor in self._update_sensors:
            calib_state, calib_cov = sensor.initial_calibration()
            block: slice = layout.slice_for(sensor)
            covariance[block, block] = calib_cov
            calibration[sensor.name] = calib_state

        snapshot: StateSnapshot = StateSnapshot(
            timestamp=seed.timestamp,
            sensor=self._propagation_sensor,
            core_state=CoreStateType.from_pose(p_wi, q_wi),
            calibration=calibration,
            covariance=covariance,
            layout=layout,
            propagation_input=seed.measurement,
        )
        self._buffer.insert(
            BufferEntry(
                timestamp=seed.timestamp,
                sensor=self._propagation_sensor,
                measurement=seed.measurement,
                snapshot=snapshot,
            )
        )
        self._layout = layout

        seed_ns: int = to_ns(seed.timestamp)
        pending: list[PendingMeasurement] = self._pending
        self._pending = []
        later: list[PendingMeasurement] = [
            item for item in pending if to_ns(item.timestamp) > seed_ns
        ]
        # The seed itself is consumed, not discarded
        self.diagnostics["pending_discarded"] += len(pending) - len(later) - 1
        _LOG.info(
            "Estimator initialized at t=%d.%09d, replaying %d queued measurements",
            seed.timestamp.sec,
            seed.timestamp.nanosec,
            len(later),
        )

        for item in later:
            self.process_measurement(item.sensor, item.timestamp, item.measurement)

    def process_measurement(
        self, sensor: SensorBase, timestamp: CoreTime, measurement: Any
    ) -> ProcessResult:
        """
        Process one timestamped measurement

        Rejected measurements never raise: the error is logged, counted in
        diagnostics and returned in the result.
        """

        try:
            self._check_registered(sensor)
            sensor.validate(measurement)
        except InvalidMeasurementError as exc:
            return self._reject_invalid(sensor, timestamp, exc)

        if not self.is_initialized():
            self._queue(sensor, timestamp, measurement)
            return ProcessResult(
                status=MeasurementStatus.QUEUED,
                sensor_name=sensor.name,
                timestamp=timestamp,
            )

        epsilon_ns: int = self._config.epsilon_ns
        if self._buffer.has_entry_near(sensor, timestamp, epsilon_ns):
            self.diagnostics["duplicate"] += 1
            return self._reject_invalid(
                sensor,
                timestamp,
                InvalidMeasurementError(
                    f"{sensor.name}: duplicate measurement at "
                    f"t={timestamp.sec}.{timestamp.nanosec:09d}"
                ),
            )

        latest_time: Optional[CoreTime] = self._buffer.latest_time()
        assert latest_time is not None
        latest_ns: int = to_ns(latest_time)
        t_ns: int = to_ns(timestamp)

        if t_ns >= latest_ns - epsilon_ns:
            if t_ns < latest_ns:
                timestamp = latest_time
            return self._process_in_order(sensor, timestamp, measurement)

        return self._process_out_of_order(sensor, timestamp, measurement)

    def get_latest_state(self) -> StateSnapshot:
        """
        Return the newest resolved snapshot

        Raises:
            EmptyBufferError: If the estimator holds no state
        """

        if not self.is_initialized():
            raise EmptyBufferError("estimator is not initialized")
        return self._buffer.get_latest()

    def get_latest_state_for(self, sensor: SensorBase) -> StateSnapshot:
        """
        Return the newest snapshot produced by a measurement of sensor

        Once the sensor's own entries are evicted, the newest retained
        snapshot is returned. It still carries the sensor's calibration.

        Raises:
            NoEntryForSensorError: If the sensor never contributed an entry
        """

        if not self.is_initialized():
            raise NoEntryForSensorError("estimator is not initialized")
        try:
            return self._buffer.get_latest_for(sensor)
        except NoEntryForSensorError:
            if sensor is self._propagation_sensor or sensor.name in self._contributed:
                return self._buffer.get_latest()
            raise

    def set_calibration_prior(
        self, sensor: UpdateSensor, calib_state: Any, covariance: np.ndarray
    ) -> None:
        """
        Replace the calibration prior of an update sensor

        Before initialization the prior is stored on the sensor. Afterwards
        it replaces the sensor's calibration in every retained snapshot,
        which is only allowed until the sensor's first accepted measurement.

        Raises:
            InvalidTransitionError: If the sensor already contributed
            ValueError: If the sensor is unknown or the covariance is invalid
        """

        if sensor not in self._update_sensors:
            raise ValueError(f"Sensor {sensor.name} is not registered")
        cov: np.ndarray = sensor.check_calibration_covariance(covariance)
        if not self.is_initialized():
            sensor.set_initial_calibration(calib_state, cov)
            return
        if sensor.name in self._contributed:
            raise InvalidTransitionError(
                f"{sensor.name}: calibration prior after the sensor contributed"
            )

        entries: list[BufferEntry] = list(self._buffer.iter_entries())
        for index, entry in enumerate(entries):
            if entry.snapshot is None:
                continue
            self._buffer.set_snapshot(
                index, entry.snapshot.with_calibration_prior(sensor, calib_state, cov)
            )
        _LOG.info("Calibration prior replaced for %s", sensor.name)

    def _sensor_names(self) -> set[str]:
        names: set[str] = {self._propagation_sensor.name}
        names.update(sensor.name for sensor in self._update_sensors)
        return names

    def _check_registered(self, sensor: SensorBase) -> None:
        if sensor is self._propagation_sensor:
            return
        if any(sensor is registered for registered in self._update_sensors):
            return
        raise InvalidMeasurementError(f"sensor {sensor.name} is not registered")

    def _queue(self, sensor: SensorBase, timestamp: CoreTime, measurement: Any) -> None:
        self._pending.append(
            PendingMeasurement(
                sensor=sensor, timestamp=timestamp, measurement=measurement
            )
        )
        overflow: int = len(self._pending) - self._config.max_buffer_entries
        if overflow > 0:
            del self._pending[:overflow]
            self.diagnostics["pending_discarded"] += overflow
        self.diagnostics["queued"] += 1

    def _process_in_order(
        self, sensor: SensorBase, timestamp: CoreTime, measurement: Any
    ) -> ProcessResult:
        prev: StateSnapshot = self._buffer.get_latest()
        try:
            snapshot, report = self._resolve(prev, sensor, timestamp, measurement)
        except NumericalInstabilityWarning as exc:
            return self._reject_numerical(sensor, timestamp, exc)

        self._buffer.insert(
            BufferEntry(
                timestamp=timestamp,
                sensor=sensor,
                measurement=measurement,
                snapshot=snapshot,
            )
        )
        self._record_success(sensor)
        self.diagnostics["applied"] += 1
        self._evict()

        return ProcessResult(
            status=MeasurementStatus.APPLIED,
            sensor_name=sensor.name,
            timestamp=timestamp,
            update_report=report,
        )

    def _process_out_of_order(
        self, sensor: SensorBase, timestamp: CoreTime, measurement: Any
    ) -> ProcessResult:
        earliest_time: Optional[CoreTime] = self._buffer.earliest_time()
        assert earliest_time is not None
        if to_ns(timestamp) < to_ns(earliest_time):
            self.diagnostics["stale_dropped"] += 1
            stale: StaleMeasurementDropped = StaleMeasurementDropped(
                f"{sensor.name}: t={timestamp.sec}.{timestamp.nanosec:09d} is older "
                f"than the retained history"
            )
            _LOG.info("Dropping measurement, %s", stale)
            return ProcessResult(
                status=MeasurementStatus.STALE,
                sensor_name=sensor.name,
                timestamp=timestamp,
                error=stale,
            )

        index: int = self._buffer.insert(
            BufferEntry(timestamp=timestamp, sensor=sensor, measurement=measurement)
        )
        inserted: BufferEntry = self._buffer.entry_at(index)
        sequence: int = inserted.sequence

        # Replay set: the new entry, then everything strictly after it. The
        # entry being resolved always sits at index.
        report: Optional[UpdateReport] = None
        failure: Optional[NumericalInstabilityWarning] = None
        replayed: int = 0
        for entry in itertools.chain(
            (inserted,), self._buffer.entries_after(timestamp)
        ):
            prev_snapshot: Optional[StateSnapshot] = self._buffer.entry_at(
                index - 1
            ).snapshot
            assert prev_snapshot is not None
            try:
                snapshot, entry_report = self._resolve(
                    prev_snapshot, entry.sensor, entry.timestamp, entry.measurement
                )
            except NumericalInstabilityWarning as exc:
                self._buffer.remove_at(index)
                if entry.sequence == sequence:
                    failure = exc
                else:
                    self.diagnostics["numerical_failure"] += 1
                    self._consecutive_failures += 1
                    _LOG.warning(
                        "Removing %s measurement during replay, %s",
                        entry.sensor.name,
                        exc,
                    )
                continue

            self._buffer.set_snapshot(index, snapshot)
            if entry.sequence == sequence:
                report = entry_report
                self._record_success(sensor)
            elif entry_report is not None:
                self._contributed.add(entry.sensor.name)
            replayed += 1
            index += 1

        if failure is not None:
            return self._reject_numerical(sensor, timestamp, failure, replayed=replayed)

        self.diagnostics["repropagated"] += 1
        self.diagnostics["replayed_entries"] += replayed
        self._evict()

        return ProcessResult(
            status=MeasurementStatus.REPROPAGATED,
            sensor_name=sensor.name,
            timestamp=timestamp,
            replayed=replayed,
            update_report=report,
        )

    def _resolve(
        self,
        prev: StateSnapshot,
        sensor: SensorBase,
        timestamp: CoreTime,
        measurement: Any,
    ) -> Tuple[StateSnapshot, Optional[UpdateReport]]:
        """
        Compute the snapshot produced by applying a measurement to prev
        """

        if sensor is self._propagation_sensor:
            core_state, covariance = self._propagate(prev, timestamp, measurement)
            snapshot: StateSnapshot = StateSnapshot(
                timestamp=timestamp,
                sensor=sensor,
                core_state=core_state,
                calibration=prev.calibration,
                covariance=covariance,
                layout=prev.layout,
                propagation_input=measurement,
            )
            return snapshot, None

        update_sensor: UpdateSensor = sensor  # type: ignore[assignment]
        core_prior, cov_prior = self._propagate(prev, timestamp, prev.propagation_input)
        core_post, calibration, cov_post, report = self._correct(
            prev.layout,
            core_prior,
            prev.calibration,
            cov_prior,
            update_sensor,
            timestamp,
            measurement,
        )
        updated: StateSnapshot = StateSnapshot(
            timestamp=timestamp,
            sensor=sensor,
            core_state=core_post,
            calibration=calibration,
            covariance=cov_post,
            layout=prev.layout,
            propagation_input=prev.propagation_input,
        )
        return updated, report

    def _propagate(
        self, prev: StateSnapshot, timestamp: CoreTime, measurement: Any
    ) -> Tuple[CoreStateType, np.ndarray]:
        """
        Propagate the joint state of prev to timestamp

        The core block comes from the propagation sensor, core/calibration
        cross blocks are mapped through Phi and calibration blocks are static.
        """

        layout: StateLayout = prev.layout
        core: slice = layout.core
        p_prev: np.ndarray = prev.covariance

        core_state, p_core, phi = self._propagation_sensor.propagate(
            prev.core_state,
            p_prev[core, core],
            prev.propagation_input,
            prev.timestamp,
            measurement,
            timestamp,
        )

        p_new: np.ndarray = np.array(p_prev, dtype=float)
        p_new[core, core] = p_core
        if layout.total_dim > core.stop:
            calib: slice = slice(core.stop, layout.total_dim)
            p_cross: np.ndarray = phi @ p_prev[core, calib]
            p_new[core, calib] = p_cross
            p_new[calib, core] = p_cross.T
        p_new = symmetrize(p_new)

        if not core_state.is_finite() or not is_finite(p_new):
            raise NumericalInstabilityWarning("non-finite propagated state")
        return core_state, p_new

    def _correct(
        self,
        layout: StateLayout,
        core_state: CoreStateType,
        calibration: Any,
        covariance: np.ndarray,
        sensor: UpdateSensor,
        timestamp: CoreTime,
        measurement: Any,
    ) -> Tuple[CoreStateType, dict[str, Any], np.ndarray, UpdateReport]:
        calib_state: Any = calibration[sensor.name]
        predicted: Any = sensor.predict(core_state, calib_state)
        residual: np.ndarray = np.asarray(
            sensor.residual(measurement, predicted), dtype=float
        ).reshape(-1)
        h_core, h_calib = sensor.jacobian(core_state, calib_state)

        h: np.ndarray = np.zeros((residual.size, layout.total_dim), dtype=float)
        h[:, layout.core] = h_core
        h[:, layout.slice_for(sensor)] = h_calib

        correction: EkfCorrection = ekf_correct(
            covariance,
            h,
            residual,
            sensor.measurement_noise(measurement),
            psd_tolerance=self._config.psd_tolerance,
        )

        core_post: CoreStateType = core_state.boxplus(correction.delta[layout.core])
        calib_post: dict[str, Any] = dict(calibration)
        for other in layout.update_sensors:
            delta_block: np.ndarray = correction.delta[layout.slice_for(other)]
            if np.any(delta_block != 0.0):
                calib_post[other.name] = other.apply_correction(
                    calibration[other.name], delta_block
                )
        if not core_post.is_finite():
            raise NumericalInstabilityWarning("non-finite corrected state")

        report: UpdateReport = UpdateReport(
            sensor_name=sensor.name,
            timestamp=timestamp,
            innovation=residual.tolist(),
            innovation_cov=correction.innovation_cov.tolist(),
            mahalanobis2=correction.mahalanobis2,
        )
        return core_post, calib_post, correction.covariance, report

    def _record_success(self, sensor: SensorBase) -> None:
        if sensor is not self._propagation_sensor:
            self._contributed.add(sensor.name)
            self._consecutive_failures = 0

    def _evict(self) -> None:
        latest_time: Optional[CoreTime] = self._buffer.latest_time()
        if latest_time is None:
            return
        cutoff: CoreTime = from_ns(to_ns(latest_time) - self._config.t_buffer_ns)
        evicted: int = self._buffer.evict_before(cutoff)
        evicted += self._buffer.evict_to_size(self._config.max_buffer_entries)
        self.diagnostics["evicted"] += evicted

    def _reject_invalid(
        self, sensor: SensorBase, timestamp: CoreTime, exc: InvalidMeasurementError
    ) -> ProcessResult:
        self.diagnostics["invalid"] += 1
        _LOG.info("Rejecting measurement, %s", exc)
        return ProcessResult(
            status=MeasurementStatus.INVALID,
            sensor_name=sensor.name,
            timestamp=timestamp,
            error=exc,
        )

    def _reject_numerical(
        self,
        sensor: SensorBase,
        timestamp: CoreTime,
        exc: EstimatorError,
        *,
        replayed: int = 0,
    ) -> ProcessResult:
        self.diagnostics["numerical_failure"] += 1
        self._consecutive_failures += 1
        _LOG.warning("Aborting %s update, %s", sensor.name, exc)
        if self.is_degraded():
            _LOG.warning(
                "Estimate degraded after %d consecutive numerical failures",
                self._consecutive_failures,
            )
        return ProcessResult(
            status=MeasurementStatus.NUMERICAL_FAILURE,
            sensor_name=sensor.name,
            timestamp=timestamp,
            replayed=replayed,
            error=exc,
            degraded=self.is_degraded(),
        )
