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
Measurement buffer, state snapshots and the repropagating EKF core
"""

from __future__ import annotations

from oasis_estimation.core.core_config import CoreConfig
from oasis_estimation.core.core_logic import CoreLogic
from oasis_estimation.core.core_time import CoreTime
from oasis_estimation.core.core_types import MeasurementStatus
from oasis_estimation.core.core_types import ProcessResult


__all__ = [
    "CoreConfig",
    "CoreLogic",
    "CoreTime",
    "MeasurementStatus",
    "ProcessResult",
]
