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
Configuration data for the estimator core
"""

from __future__ import annotations

import math
from dataclasses import asdict
from dataclasses import dataclass
from dataclasses import field
from dataclasses import fields
from typing import Mapping

from oasis_estimation.core.core_time import seconds_to_ns


@dataclass(frozen=True)
class CoreConfig:
    """
    Shared estimator configuration values

    Fields:
        t_buffer_sec: Retention horizon in seconds behind the latest entry
        max_buffer_entries: Max number of retained buffer entries
        epsilon_sec: Tolerance in seconds for treating timestamps as equal
        pos_var: Initial position variance in m^2
        vel_var: Initial velocity variance in (m/s)^2
        ang_var: Initial orientation variance in rad^2
        gyro_bias_var: Initial gyro bias variance in (rad/s)^2
        accel_bias_var: Initial accel bias variance in (m/s^2)^2
        max_numerical_failures: Consecutive aborted updates before the
            estimate is reported as degraded
        psd_tolerance: Relative eigenvalue tolerance for PSD checks
        t_buffer_ns: Retention horizon in nanoseconds
        epsilon_ns: Timestamp tolerance in nanoseconds
    """

    t_buffer_sec: float
    max_buffer_entries: int
    epsilon_sec: float

    pos_var: float
    vel_var: float
    ang_var: float
    gyro_bias_var: float
    accel_bias_var: float

    max_numerical_failures: int
    psd_tolerance: float

    t_buffer_ns: int = field(init=False)
    epsilon_ns: int = field(init=False)

    def __post_init__(self) -> None:
        """Validate and convert time-based thresholds from seconds to nanoseconds."""
        self.validate()
        object.__setattr__(self, "t_buffer_ns", seconds_to_ns(self.t_buffer_sec))
        object.__setattr__(self, "epsilon_ns", seconds_to_ns(self.epsilon_sec))

    @classmethod
    def defaults(cls) -> CoreConfig:
        return cls(
            t_buffer_sec=5.0,
            max_buffer_entries=4000,
            epsilon_sec=1.0e-6,
            pos_var=0.25,
            vel_var=0.25,
            ang_var=(10.0 * math.pi / 180.0) ** 2,
            gyro_bias_var=1.0e-4,
            accel_bias_var=1.0e-2,
            max_numerical_failures=5,
            psd_tolerance=1.0e-9,
        )

    @classmethod
    def from_dict(cls, params: Mapping[str, object]) -> CoreConfig:
        """
        Build a configuration from a mapping, filling missing keys from defaults
        """

        known: set[str] = {f.name for f in fields(cls) if f.init}
        unknown: list[str] = sorted(key for key in params if key not in known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")

        values: dict[str, object] = {
            key: value
            for key, value in asdict(cls.defaults()).items()
            if key in known
        }
        values.update(params)
        return cls(**values)  # type: ignore[arg-type]

    def validate(self) -> None:
        """Validate configuration and raise ValueError on failure."""
        if not math.isfinite(self.t_buffer_sec) or self.t_buffer_sec <= 0.0:
            raise ValueError("t_buffer_sec must be positive")
        if self.max_buffer_entries < 1:
            raise ValueError("max_buffer_entries must be >= 1")
        if not math.isfinite(self.epsilon_sec) or self.epsilon_sec < 0.0:
            raise ValueError("epsilon_sec must be >= 0")
        variances: tuple[str, ...] = (
            "pos_var",
            "vel_var",
            "ang_var",
            "gyro_bias_var",
            "accel_bias_var",
        )
        for name in variances:
            value: float = float(getattr(self, name))
            if not math.isfinite(value) or value < 0.0:
                raise ValueError(f"{name} must be finite and >= 0")
        if self.max_numerical_failures < 1:
            raise ValueError("max_numerical_failures must be >= 1")
        if not math.isfinite(self.psd_tolerance) or self.psd_tolerance < 0.0:
            raise ValueError("psd_tolerance must be >= 0")

    def as_dict(self) -> dict[str, object]:
        """Return a JSON-serializable dict representation."""
        return asdict(self)
