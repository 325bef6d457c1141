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
Time-ordered measurement buffer with per-entry state snapshots

The buffer is an append-mostly log of measurements. Each entry carries the
snapshot produced by applying its measurement to the previous entry's
snapshot. Entries are ordered by timestamp, ties are ordered by insertion.

Indexing uses a parallel list of integer nanosecond keys so bisect never
compares CoreTime objects or float seconds.
"""

from __future__ import annotations

import bisect
import dataclasses
from dataclasses import dataclass
from typing import Any
from typing import Iterator
from typing import Optional

from oasis_estimation.core.core_errors import EmptyBufferError
from oasis_estimation.core.core_errors import NoEntryForSensorError
from oasis_estimation.core.core_time import CoreTime
from oasis_estimation.core.core_time import times_close
from oasis_estimation.core.core_time import to_ns
from oasis_estimation.core.state_snapshot import StateSnapshot
from oasis_estimation.sensors.sensor_interface import SensorBase


@dataclass(frozen=True)
class BufferEntry:
    """
    One measurement in the buffer

    Fields:
        timestamp: Measurement time
        sensor: Sensor that produced the measurement
        measurement: Opaque sensor payload
        snapshot: Resolved state after applying the measurement, None until
            the entry has been processed
        sequence: Monotonic insertion counter assigned by the buffer
    """

    timestamp: CoreTime
    sensor: SensorBase
    measurement: Any
    snapshot: Optional[StateSnapshot] = None
    sequence: int = -1


class CoreBuffer:
    """
    Ordered store of buffer entries
    """

    def __init__(self) -> None:
        self._entries: list[BufferEntry] = []
        self._keys: list[int] = []
        self._next_sequence: int = 0

    def __len__(self) -> int:
        return len(self._entries)

    def reset(self) -> None:
        self._entries.clear()
        self._keys.clear()
        self._next_sequence = 0

    def insert(self, entry: BufferEntry) -> int:
        """
        Insert an entry after all entries with the same or earlier timestamp

        Returns:
            Index of the inserted entry
        """

        key: int = to_ns(entry.timestamp)
        index: int = bisect.bisect_right(self._keys, key)
        stamped: BufferEntry = dataclasses.replace(
            entry, sequence=self._next_sequence
        )
        self._next_sequence += 1
        self._keys.insert(index, key)
        self._entries.insert(index, stamped)
        return index

    def entry_at(self, index: int) -> BufferEntry:
        return self._entries[index]

    def set_snapshot(self, index: int, snapshot: StateSnapshot) -> None:
        self._entries[index] = dataclasses.replace(
            self._entries[index], snapshot=snapshot
        )

    def remove_at(self, index: int) -> BufferEntry:
        self._keys.pop(index)
        return self._entries.pop(index)

    def iter_entries(self) -> Iterator[BufferEntry]:
        return iter(list(self._entries))

    def latest_time(self) -> Optional[CoreTime]:
        if not self._entries:
            return None
        return self._entries[-1].timestamp

    def earliest_time(self) -> Optional[CoreTime]:
        if not self._entries:
            return None
        return self._entries[0].timestamp

    def get_latest(self) -> StateSnapshot:
        """
        Return the snapshot of the newest resolved entry

        Raises:
            EmptyBufferError: If no entry holds a snapshot
        """

        for entry in reversed(self._entries):
            if entry.snapshot is not None:
                return entry.snapshot
        raise EmptyBufferError("buffer holds no state")

    def get_latest_for(self, sensor: SensorBase) -> StateSnapshot:
        """
        Return the newest snapshot produced by a sensor's measurement

        Raises:
            NoEntryForSensorError: If no retained entry came from the sensor
        """

        for entry in reversed(self._entries):
            if entry.sensor is sensor and entry.snapshot is not None:
                return entry.snapshot
        raise NoEntryForSensorError(f"no buffered state from sensor {sensor.name}")

    def entries_after(self, timestamp: CoreTime) -> Iterator[BufferEntry]:
        """
        Yield entries strictly newer than timestamp in buffer order
        """

        start: int = bisect.bisect_right(self._keys, to_ns(timestamp))
        for entry in self._entries[start:]:
            yield entry

    def has_entry_near(
        self, sensor: SensorBase, timestamp: CoreTime, epsilon_ns: int
    ) -> bool:
        """
        Check for an entry from the same sensor within epsilon of timestamp
        """

        key: int = to_ns(timestamp)
        start: int = bisect.bisect_left(self._keys, key - epsilon_ns)
        stop: int = bisect.bisect_right(self._keys, key + epsilon_ns)
        return any(
            entry.sensor is sensor
            and times_close(entry.timestamp, timestamp, epsilon_ns)
            for entry in self._entries[start:stop]
        )

    def evict_before(self, timestamp: CoreTime) -> int:
        """
        Drop entries strictly older than timestamp

        The newest entry is always retained.

        Returns:
            Number of entries removed
        """

        count: int = bisect.bisect_left(self._keys, to_ns(timestamp))
        count = min(count, len(self._entries) - 1)
        if count <= 0:
            return 0
        del self._entries[:count]
        del self._keys[:count]
        return count

    def evict_to_size(self, max_entries: int) -> int:
        """
        Drop the oldest entries until at most max_entries remain
        """

        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        count: int = len(self._entries) - max_entries
        if count <= 0:
            return 0
        del self._entries[:count]
        del self._keys[:count]
        return count
