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
Types for the barometric pressure update sensor
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass(frozen=True)
class PressureMeasurement:
    """
    Barometric pressure sample

    Fields:
        pressure_pa: Static pressure in pascal
        temperature_k: Optional air temperature in kelvin; the sensor's
            reference temperature is used when absent
    """

    pressure_pa: float
    temperature_k: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "pressure_pa", float(self.pressure_pa))
        if self.temperature_k is not None:
            object.__setattr__(self, "temperature_k", float(self.temperature_k))


@dataclass
class PressureSensorState:
    """
    Pressure sensor lever arm

    Bias and scale of the pressure reading are assumed zero and one.

    Fields:
        p_ip: Translation of the sensor frame in the IMU frame in meters
    """

    p_ip: np.ndarray

    def __post_init__(self) -> None:
        self.p_ip = np.asarray(self.p_ip, dtype=float).reshape(3)

    def copy(self) -> PressureSensorState:
        return PressureSensorState(p_ip=np.array(self.p_ip, dtype=float))

    def as_dict(self) -> dict[str, list[float]]:
        """Return a JSON-serializable dict representation."""
        return {"p_ip": self.p_ip.tolist()}

    @staticmethod
    def zeros() -> PressureSensorState:
        return PressureSensorState(p_ip=np.zeros(3, dtype=float))
