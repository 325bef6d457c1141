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
Exceptions raised and reported by the estimator core

Recoverable conditions (stale, invalid, and numerically unstable
measurements) are caught by CoreLogic.process_measurement() and returned in
the ProcessResult. Query errors are raised to the caller, who can retry
later. InvalidTransitionError marks a contract violation by the caller and
is never caught by the core.
"""


class EstimatorError(Exception):
    """Base class for estimator errors"""


class EmptyBufferError(EstimatorError):
    """A state query was made before any snapshot exists"""


class NoEntryForSensorError(EstimatorError):
    """A per-sensor query was made before the sensor contributed an entry"""


class StaleMeasurementDropped(EstimatorError):
    """A measurement is older than the oldest retained buffer entry"""


class InvalidMeasurementError(EstimatorError):
    """A measurement was rejected as malformed, unregistered, or duplicate"""


class NumericalInstabilityWarning(EstimatorError):
    """An update produced a non-finite residual or a non-PSD covariance"""


class InvalidTransitionError(EstimatorError):
    """The estimator was used in a way its state machine does not allow"""
