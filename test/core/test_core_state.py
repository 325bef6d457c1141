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

import math

import numpy as np

from oasis_estimation.core.core_config import CoreConfig
from oasis_estimation.core.core_state import CORE_INDEX
from oasis_estimation.core.core_state import CoreStateType
from oasis_estimation.core.core_state import initial_core_covariance
from oasis_estimation.math_utils.quat import quat_to_rotmat


def test_state_normalizes_orientation() -> None:
    state: CoreStateType = CoreStateType.from_pose(
        [1.0, 2.0, 3.0], [2.0, 0.0, 0.0, 0.0]
    )

    assert np.allclose(state.q_wi, [1.0, 0.0, 0.0, 0.0])
    assert np.allclose(state.v_wi, np.zeros(3))
    assert state.is_finite()


def test_boxplus_applies_each_block() -> None:
    state: CoreStateType = CoreStateType.identity()
    delta: np.ndarray = np.zeros(CORE_INDEX.dim, dtype=float)
    delta[CORE_INDEX.p_wi] = [1.0, 0.0, 0.0]
    delta[CORE_INDEX.v_wi] = [0.0, 2.0, 0.0]
    delta[CORE_INDEX.theta_wi] = [0.0, 0.0, 0.5 * math.pi]
    delta[CORE_INDEX.b_w] = [0.1, 0.1, 0.1]
    delta[CORE_INDEX.b_a] = [0.0, 0.0, -0.2]

    corrected: CoreStateType = state.boxplus(delta)

    assert np.allclose(corrected.p_wi, [1.0, 0.0, 0.0])
    assert np.allclose(corrected.v_wi, [0.0, 2.0, 0.0])
    assert np.allclose(quat_to_rotmat(corrected.q_wi) @ [1.0, 0.0, 0.0], [0, 1, 0])
    assert np.allclose(corrected.b_w, [0.1, 0.1, 0.1])
    assert np.allclose(corrected.b_a, [0.0, 0.0, -0.2])

    # The original state is untouched
    assert np.allclose(state.p_wi, np.zeros(3))


def test_copy_is_independent() -> None:
    state: CoreStateType = CoreStateType.identity()
    clone: CoreStateType = state.copy()
    clone.p_wi[0] = 5.0

    assert state.p_wi[0] == 0.0


def test_is_finite_detects_nan() -> None:
    state: CoreStateType = CoreStateType.identity()
    state.v_wi[1] = math.nan

    assert not state.is_finite()


def test_initial_covariance_is_diagonal() -> None:
    config: CoreConfig = CoreConfig.defaults()
    covariance: np.ndarray = initial_core_covariance(config)

    assert covariance.shape == (15, 15)
    assert np.allclose(covariance, np.diag(np.diag(covariance)))
    assert math.isclose(covariance[0, 0], config.pos_var)
    assert math.isclose(covariance[5, 5], config.vel_var)
    assert math.isclose(covariance[8, 8], config.ang_var)
    assert math.isclose(covariance[11, 11], config.gyro_bias_var)
    assert math.isclose(covariance[14, 14], config.accel_bias_var)


def test_as_dict_is_serializable() -> None:
    values: dict[str, list[float]] = CoreStateType.identity().as_dict()

    assert values["q_wi"] == [1.0, 0.0, 0.0, 0.0]
    assert set(values) == {"p_wi", "v_wi", "q_wi", "b_w", "b_a"}
