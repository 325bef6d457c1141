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
Types for the IMU propagation sensor
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class ImuMeasurement:
    """
    IMU sample with raw motion data

    Fields:
        angular_velocity_rps: Angular velocity in rad/s, XYZ order, IMU frame
        linear_acceleration_mps2: Specific force in m/s^2, XYZ order, IMU frame
    """

    angular_velocity_rps: Sequence[float]
    linear_acceleration_mps2: Sequence[float]

    def __post_init__(self) -> None:
        # Private copies, the buffer must not alias caller-owned lists
        object.__setattr__(
            self, "angular_velocity_rps", tuple(self.angular_velocity_rps)
        )
        object.__setattr__(
            self, "linear_acceleration_mps2", tuple(self.linear_acceleration_mps2)
        )


@dataclass(frozen=True)
class ImuNoiseParams:
    """
    Continuous-time IMU noise densities

    Fields:
        n_w: Gyro white noise density in rad/s/sqrt(Hz), XYZ order
        n_bw: Gyro bias random walk in rad/s^2/sqrt(Hz), XYZ order
        n_a: Accel white noise density in m/s^2/sqrt(Hz), XYZ order
        n_ba: Accel bias random walk in m/s^3/sqrt(Hz), XYZ order
    """

    n_w: list[float]
    n_bw: list[float]
    n_a: list[float]
    n_ba: list[float]

    def __post_init__(self) -> None:
        for name in ("n_w", "n_bw", "n_a", "n_ba"):
            values: list[float] = list(getattr(self, name))
            if len(values) != 3:
                raise ValueError(f"{name} must have 3 elements")
            for value in values:
                if not math.isfinite(value) or value < 0.0:
                    raise ValueError(f"{name} must be finite and >= 0")

    @staticmethod
    def zeros() -> ImuNoiseParams:
        return ImuNoiseParams(
            n_w=[0.0, 0.0, 0.0],
            n_bw=[0.0, 0.0, 0.0],
            n_a=[0.0, 0.0, 0.0],
            n_ba=[0.0, 0.0, 0.0],
        )
