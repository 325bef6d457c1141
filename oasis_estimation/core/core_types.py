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
Result and report types returned by the estimator
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any
from typing import Optional

from oasis_estimation.core.core_errors import EstimatorError
from oasis_estimation.core.core_time import CoreTime
from oasis_estimation.core.core_time import to_seconds
from oasis_estimation.sensors.sensor_interface import SensorBase


class MeasurementStatus(Enum):
    """
    Outcome of processing one measurement
    """

    # Held until the estimator is initialized
    QUEUED = "queued"

    # Appended at the head of the buffer
    APPLIED = "applied"

    # Inserted into history and replayed forward
    REPROPAGATED = "repropagated"

    # Older than the retained history
    STALE = "stale"

    # Rejected by validation, registration or duplicate checks
    INVALID = "invalid"

    # Update aborted by a numerical failure
    NUMERICAL_FAILURE = "numerical_failure"


@dataclass(frozen=True)
class PendingMeasurement:
    """
    Measurement received before the estimator was initialized
    """

    sensor: SensorBase
    timestamp: CoreTime
    measurement: Any


@dataclass(frozen=True)
class UpdateReport:
    """
    Diagnostics for one EKF correction

    Fields:
        sensor_name: Update sensor name
        timestamp: Measurement time
        innovation: Residual vector
        innovation_cov: Innovation covariance S as a nested list
        mahalanobis2: Squared Mahalanobis distance of the innovation
    """

    sensor_name: str
    timestamp: CoreTime
    innovation: list[float]
    innovation_cov: list[list[float]]
    mahalanobis2: float

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable dict representation."""
        return {
            "sensor_name": self.sensor_name,
            "t_meas": to_seconds(self.timestamp),
            "innovation": list(self.innovation),
            "innovation_cov": [list(row) for row in self.innovation_cov],
            "mahalanobis2": self.mahalanobis2,
        }


@dataclass(frozen=True)
class ProcessResult:
    """
    Outcome of CoreLogic.process_measurement()

    Fields:
        status: What happened to the measurement
        sensor_name: Sensor that produced the measurement
        timestamp: Time the measurement was buffered at, after snapping
        replayed: Number of buffer entries recomputed by repropagation
        update_report: Correction diagnostics for update measurements
        error: Error describing a rejected measurement
        degraded: True if consecutive numerical failures reached the limit
    """

    status: MeasurementStatus
    sensor_name: str
    timestamp: CoreTime
    replayed: int = 0
    update_report: Optional[UpdateReport] = None
    error: Optional[EstimatorError] = None
    degraded: bool = False

    @property
    def accepted(self) -> bool:
        return self.status in (
            MeasurementStatus.QUEUED,
            MeasurementStatus.APPLIED,
            MeasurementStatus.REPROPAGATED,
        )
