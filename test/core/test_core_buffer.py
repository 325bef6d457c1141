################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

from __future__ import annotations

from typing import Optional

import numpy as np
import pytest

from oasis_estimation.core.core_buffer import BufferEntry
from oasis_estimation.core.core_buffer import CoreBuffer
from oasis_estimation.core.core_errors import EmptyBufferError
from oasis_estimation.core.core_errors import NoEntryForSensorError
from oasis_estimation.core.core_state import CoreStateType
from oasis_estimation.core.core_time import CoreTime
from oasis_estimation.core.core_time import from_ns
from oasis_estimation.core.state_snapshot import StateLayout
from oasis_estimation.core.state_snapshot import StateSnapshot
from oasis_estimation.sensors.imu.imu_sensor import ImuSensor
from oasis_estimation.sensors.imu.imu_types import ImuMeasurement
from oasis_estimation.sensors.position.position_sensor import PositionSensor
from oasis_estimation.sensors.position.position_types import PositionMeasurement
from oasis_estimation.sensors.sensor_interface import SensorBase


_IMU: ImuSensor = ImuSensor("imu")
_POSITION: PositionSensor = PositionSensor("position")
_LAYOUT: StateLayout = StateLayout([])


def _build_snapshot(timestamp: CoreTime, sensor: SensorBase) -> StateSnapshot:
    return StateSnapshot(
        timestamp=timestamp,
        sensor=sensor,
        core_state=CoreStateType.identity(),
        calibration={},
        covariance=np.eye(_LAYOUT.total_dim, dtype=float),
        layout=_LAYOUT,
        propagation_input=None,
    )


def _build_entry(
    t_ns: int, sensor: SensorBase = _IMU, *, resolved: bool = True
) -> BufferEntry:
    timestamp: CoreTime = from_ns(t_ns)
    measurement: object = (
        ImuMeasurement([0.0, 0.0, 0.0], [0.0, 0.0, 9.81])
        if sensor is _IMU
        else PositionMeasurement([0.0, 0.0, 0.0])
    )
    snapshot: Optional[StateSnapshot] = (
        _build_snapshot(timestamp, sensor) if resolved else None
    )
    return BufferEntry(
        timestamp=timestamp, sensor=sensor, measurement=measurement, snapshot=snapshot
    )


def _timestamps(buffer: CoreBuffer) -> list[int]:
    return [entry.timestamp.nanosec for entry in buffer.iter_entries()]


def test_insert_keeps_time_order() -> None:
    buffer: CoreBuffer = CoreBuffer()

    assert buffer.insert(_build_entry(20)) == 0
    assert buffer.insert(_build_entry(40)) == 1
    assert buffer.insert(_build_entry(30)) == 1
    assert buffer.insert(_build_entry(10)) == 0

    assert _timestamps(buffer) == [10, 20, 30, 40]
    assert len(buffer) == 4


def test_insert_orders_equal_timestamps_by_arrival() -> None:
    buffer: CoreBuffer = CoreBuffer()

    buffer.insert(_build_entry(5, _IMU))
    index: int = buffer.insert(_build_entry(5, _POSITION))

    assert index == 1
    first: BufferEntry = buffer.entry_at(0)
    second: BufferEntry = buffer.entry_at(1)
    assert first.sensor is _IMU
    assert second.sensor is _POSITION
    assert first.sequence < second.sequence


def test_get_latest_on_empty_buffer_raises() -> None:
    buffer: CoreBuffer = CoreBuffer()

    with pytest.raises(EmptyBufferError):
        buffer.get_latest()

    assert buffer.latest_time() is None
    assert buffer.earliest_time() is None


def test_get_latest_skips_unresolved_entries() -> None:
    buffer: CoreBuffer = CoreBuffer()
    buffer.insert(_build_entry(10))
    buffer.insert(_build_entry(20, resolved=False))

    snapshot: StateSnapshot = buffer.get_latest()

    assert snapshot.timestamp == from_ns(10)


def test_get_latest_for_sensor() -> None:
    buffer: CoreBuffer = CoreBuffer()
    buffer.insert(_build_entry(10, _IMU))
    buffer.insert(_build_entry(20, _POSITION))
    buffer.insert(_build_entry(30, _IMU))

    with pytest.raises(NoEntryForSensorError):
        CoreBuffer().get_latest_for(_IMU)

    assert buffer.get_latest_for(_POSITION).timestamp == from_ns(20)
    assert buffer.get_latest_for(_IMU).timestamp == from_ns(30)
    assert buffer.get_latest().timestamp == from_ns(30)


def test_get_latest_for_unknown_sensor_raises() -> None:
    buffer: CoreBuffer = CoreBuffer()
    buffer.insert(_build_entry(10, _IMU))

    with pytest.raises(NoEntryForSensorError):
        buffer.get_latest_for(_POSITION)


def test_entries_after_is_strict() -> None:
    buffer: CoreBuffer = CoreBuffer()
    for t_ns in (10, 20, 20, 30):
        buffer.insert(_build_entry(t_ns))

    after: list[BufferEntry] = list(buffer.entries_after(from_ns(20)))

    assert [entry.timestamp.nanosec for entry in after] == [30]
    assert list(buffer.entries_after(from_ns(30))) == []
    assert len(list(buffer.entries_after(from_ns(0)))) == 4


def test_evict_before_drops_older_entries() -> None:
    buffer: CoreBuffer = CoreBuffer()
    for t_ns in (0, 10, 15):
        buffer.insert(_build_entry(t_ns))

    evicted: int = buffer.evict_before(from_ns(10))

    assert evicted == 1
    assert _timestamps(buffer) == [10, 15]


def test_evict_before_never_removes_latest_entry() -> None:
    buffer: CoreBuffer = CoreBuffer()
    for t_ns in (0, 10, 15):
        buffer.insert(_build_entry(t_ns))

    evicted: int = buffer.evict_before(from_ns(1000))

    assert evicted == 2
    assert _timestamps(buffer) == [15]
    assert buffer.get_latest().timestamp == from_ns(15)

    assert buffer.evict_before(from_ns(2000)) == 0
    assert len(buffer) == 1


def test_evict_to_size() -> None:
    buffer: CoreBuffer = CoreBuffer()
    for t_ns in range(10):
        buffer.insert(_build_entry(t_ns))

    assert buffer.evict_to_size(3) == 7
    assert _timestamps(buffer) == [7, 8, 9]
    assert buffer.evict_to_size(5) == 0

    with pytest.raises(ValueError):
        buffer.evict_to_size(0)


def test_has_entry_near_matches_sensor_and_window() -> None:
    buffer: CoreBuffer = CoreBuffer()
    buffer.insert(_build_entry(100, _IMU))

    assert buffer.has_entry_near(_IMU, from_ns(100), 0)
    assert buffer.has_entry_near(_IMU, from_ns(103), 5)
    assert not buffer.has_entry_near(_IMU, from_ns(110), 5)
    assert not buffer.has_entry_near(_POSITION, from_ns(100), 5)


def test_set_snapshot_and_remove_at() -> None:
    buffer: CoreBuffer = CoreBuffer()
    buffer.insert(_build_entry(10))
    index: int = buffer.insert(_build_entry(20, _POSITION, resolved=False))

    snapshot: StateSnapshot = _build_snapshot(from_ns(20), _POSITION)
    buffer.set_snapshot(index, snapshot)

    assert buffer.entry_at(index).snapshot is snapshot
    assert buffer.get_latest_for(_POSITION) is snapshot

    removed: BufferEntry = buffer.remove_at(index)

    assert removed.sensor is _POSITION
    assert _timestamps(buffer) == [10]
    assert list(buffer.entries_after(from_ns(10))) == []


def test_reset_clears_entries() -> None:
    buffer: CoreBuffer = CoreBuffer()
    buffer.insert(_build_entry(10))

    buffer.reset()

    assert len(buffer) == 0
    with pytest.raises(EmptyBufferError):
        buffer.get_latest()


def test_snapshot_arrays_are_read_only() -> None:
    snapshot: StateSnapshot = _build_snapshot(from_ns(0), _IMU)

    with pytest.raises(ValueError):
        snapshot.covariance[0, 0] = 2.0
    with pytest.raises(ValueError):
        snapshot.core_state.p_wi[0] = 1.0
