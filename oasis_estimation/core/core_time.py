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
Timestamp type and helpers for the estimator timeline
"""

from __future__ import annotations

import math
from dataclasses import dataclass


# Nanoseconds per second for converting estimator timestamps
_NS_PER_S: int = 1_000_000_000


@dataclass(frozen=True, order=True)
class CoreTime:
    """
    Estimator timestamp stored as seconds and nanoseconds

    Ordering compares (sec, nanosec) lexicographically, which is the total
    order of the underlying nanosecond count because nanosec is normalized.

    Fields:
        sec: Whole seconds since the estimator time reference
        nanosec: Sub-second remainder in nanoseconds [0, 1e9)
    """

    sec: int
    nanosec: int

    def __post_init__(self) -> None:
        if not 0 <= self.nanosec < _NS_PER_S:
            raise ValueError("nanosec must be in [0, 1e9)")


def to_ns(t: CoreTime) -> int:
    return t.sec * _NS_PER_S + t.nanosec


def from_ns(ns: int) -> CoreTime:
    sec, nanosec = divmod(int(ns), _NS_PER_S)
    return CoreTime(sec=sec, nanosec=nanosec)


def to_seconds(t: CoreTime) -> float:
    return float(t.sec) + float(t.nanosec) / _NS_PER_S


def from_seconds(seconds: float) -> CoreTime:
    if not math.isfinite(seconds):
        raise ValueError("seconds must be finite")
    total_ns: int = int(round(seconds * _NS_PER_S))
    return from_ns(total_ns)


def seconds_to_ns(seconds: float) -> int:
    """
    Convert a duration in seconds to integer nanoseconds
    """

    if not math.isfinite(seconds):
        raise ValueError("seconds must be finite")
    return int(round(seconds * _NS_PER_S))


def times_close(t_a: CoreTime, t_b: CoreTime, epsilon_ns: int) -> bool:
    """
    Compare two timestamps for equality within epsilon_ns nanoseconds
    """

    return abs(to_ns(t_a) - to_ns(t_b)) <= epsilon_ns
