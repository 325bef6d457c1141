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
Barometric pressure to height conversion

Uses the troposphere form of the international barometric formula:

    h = (T / L) * (1 - (P / P0) ** (R * L / g))

with T the air temperature at the reference level, L the temperature lapse
rate, R the specific gas constant of dry air, and g standard gravity.
"""

from __future__ import annotations

import math


# Standard sea-level pressure in Pa
STANDARD_PRESSURE_PA: float = 101325.0

# Standard sea-level temperature in K
STANDARD_TEMPERATURE_K: float = 288.15

# Temperature lapse rate in K/m
_LAPSE_RATE_K_PER_M: float = 0.0065

# Specific gas constant of dry air in J/(kg K)
_GAS_CONSTANT_DRY_AIR: float = 287.05287

# Standard gravity in m/s^2
_STANDARD_GRAVITY_MPS2: float = 9.80665

_EXPONENT: float = _GAS_CONSTANT_DRY_AIR * _LAPSE_RATE_K_PER_M / _STANDARD_GRAVITY_MPS2


def pressure_to_height(
    pressure_pa: float,
    *,
    reference_pressure_pa: float = STANDARD_PRESSURE_PA,
    temperature_k: float = STANDARD_TEMPERATURE_K,
) -> float:
    """
    Convert a static pressure to height above the reference pressure level

    Args:
        pressure_pa: Measured static pressure in Pa
        reference_pressure_pa: Pressure at height zero in Pa
        temperature_k: Air temperature at the reference level in K

    Returns:
        Height in meters
    """

    for name, value in (
        ("pressure_pa", pressure_pa),
        ("reference_pressure_pa", reference_pressure_pa),
        ("temperature_k", temperature_k),
    ):
        if not math.isfinite(value) or value <= 0.0:
            raise ValueError(f"{name} must be finite and positive")

    ratio: float = pressure_pa / reference_pressure_pa
    return (temperature_k / _LAPSE_RATE_K_PER_M) * (1.0 - ratio**_EXPONENT)


def height_to_pressure(
    height_m: float,
    *,
    reference_pressure_pa: float = STANDARD_PRESSURE_PA,
    temperature_k: float = STANDARD_TEMPERATURE_K,
) -> float:
    """
    Inverse of pressure_to_height()
    """

    base: float = 1.0 - height_m * _LAPSE_RATE_K_PER_M / temperature_k
    if base <= 0.0:
        raise ValueError("height_m is above the troposphere model range")
    return reference_pressure_pa * base ** (1.0 / _EXPONENT)
