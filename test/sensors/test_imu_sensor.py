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
import pytest

from oasis_estimation.core.core_errors import InvalidMeasurementError
from oasis_estimation.core.core_state import CORE_INDEX
from oasis_estimation.core.core_state import CoreStateType
from oasis_estimation.core.core_time import CoreTime
from oasis_estimation.core.core_time import from_ns
from oasis_estimation.math_utils.linalg import is_psd
from oasis_estimation.math_utils.quat import quat_to_rotmat
from oasis_estimation.math_utils.quat import so3_exp
from oasis_estimation.sensors.imu.imu_sensor import ImuSensor
from oasis_estimation.sensors.imu.imu_types import ImuMeasurement
from oasis_estimation.sensors.imu.imu_types import ImuNoiseParams


_NS_PER_S: int = 1_000_000_000


def _build_noise() -> ImuNoiseParams:
    return ImuNoiseParams(
        n_w=[0.01, 0.01, 0.01],
        n_bw=[0.001, 0.001, 0.001],
        n_a=[0.1, 0.1, 0.1],
        n_ba=[0.01, 0.01, 0.01],
    )


def _at_rest() -> ImuMeasurement:
    return ImuMeasurement(
        angular_velocity_rps=[0.0, 0.0, 0.0],
        linear_acceleration_mps2=[0.0, 0.0, 9.81],
    )


def test_stationary_propagation_keeps_state() -> None:
    imu: ImuSensor = ImuSensor("imu", _build_noise())
    state: CoreStateType = CoreStateType.from_pose([1.0, 2.0, 3.0], [1, 0, 0, 0])
    covariance: np.ndarray = np.eye(CORE_INDEX.dim) * 0.01

    new_state, new_cov, phi = imu.propagate(
        state, covariance, _at_rest(), from_ns(0), _at_rest(), from_ns(_NS_PER_S // 10)
    )

    assert np.allclose(new_state.p_wi, [1.0, 2.0, 3.0])
    assert np.allclose(new_state.v_wi, np.zeros(3))
    assert np.allclose(new_state.q_wi, [1.0, 0.0, 0.0, 0.0])
    assert phi.shape == (15, 15)
    assert is_psd(new_cov)
    assert np.all(np.diag(new_cov) >= np.diag(covariance))
    assert new_cov[CORE_INDEX.v_wi, CORE_INDEX.v_wi][0, 0] > covariance[3, 3]


def test_zero_interval_returns_identity_transition() -> None:
    imu: ImuSensor = ImuSensor("imu", _build_noise())
    state: CoreStateType = CoreStateType.identity()
    covariance: np.ndarray = np.eye(CORE_INDEX.dim)
    t_meas: CoreTime = from_ns(100)

    new_state, new_cov, phi = imu.propagate(
        state, covariance, _at_rest(), t_meas, _at_rest(), t_meas
    )

    assert np.allclose(new_state.p_wi, state.p_wi)
    assert np.array_equal(new_cov, covariance)
    assert np.array_equal(phi, np.eye(CORE_INDEX.dim))


def test_negative_interval_raises() -> None:
    imu: ImuSensor = ImuSensor("imu")
    state: CoreStateType = CoreStateType.identity()

    with pytest.raises(ValueError):
        imu.propagate(
            state, np.eye(15), _at_rest(), from_ns(10), _at_rest(), from_ns(5)
        )


def test_constant_acceleration_is_integrated_exactly() -> None:
    imu: ImuSensor = ImuSensor("imu")
    accel_w: np.ndarray = np.array([0.5, -0.25, 1.0], dtype=float)
    omega_b: np.ndarray = np.array([0.0, 0.0, 0.2], dtype=float)
    gravity_w: np.ndarray = np.array([0.0, 0.0, 9.81], dtype=float)
    dt_ns: int = _NS_PER_S // 100

    def sample(t_s: float) -> ImuMeasurement:
        rot_wi: np.ndarray = quat_to_rotmat(so3_exp(omega_b * t_s))
        return ImuMeasurement(
            angular_velocity_rps=omega_b.tolist(),
            linear_acceleration_mps2=(rot_wi.T @ (accel_w + gravity_w)).tolist(),
        )

    state: CoreStateType = CoreStateType.identity()
    covariance: np.ndarray = np.zeros((15, 15))
    prev: ImuMeasurement = sample(0.0)
    for step in range(1, 101):
        curr: ImuMeasurement = sample(step * 0.01)
        state, covariance, _ = imu.propagate(
            state,
            covariance,
            prev,
            from_ns((step - 1) * dt_ns),
            curr,
            from_ns(step * dt_ns),
        )
        prev = curr

    assert np.allclose(state.p_wi, 0.5 * accel_w, atol=1.0e-9)
    assert np.allclose(state.v_wi, accel_w, atol=1.0e-9)
    assert np.allclose(state.q_wi, so3_exp(omega_b * 1.0), atol=1.0e-9)


def test_missing_previous_measurement_uses_current() -> None:
    imu: ImuSensor = ImuSensor("imu")
    state: CoreStateType = CoreStateType.identity()
    moving: ImuMeasurement = ImuMeasurement(
        angular_velocity_rps=[0.0, 0.0, 0.0],
        linear_acceleration_mps2=[1.0, 0.0, 9.81],
    )

    with_none, _, _ = imu.propagate(
        state, np.eye(15), None, from_ns(0), moving, from_ns(_NS_PER_S)
    )
    with_same, _, _ = imu.propagate(
        state, np.eye(15), moving, from_ns(0), moving, from_ns(_NS_PER_S)
    )

    assert np.allclose(with_none.p_wi, with_same.p_wi)
    assert np.allclose(with_none.v_wi, [1.0, 0.0, 0.0])


def test_biases_are_removed_from_measurements() -> None:
    imu: ImuSensor = ImuSensor("imu")
    state: CoreStateType = CoreStateType.identity()
    state.b_a = np.array([0.2, 0.0, 0.0])
    biased: ImuMeasurement = ImuMeasurement(
        angular_velocity_rps=[0.0, 0.0, 0.0],
        linear_acceleration_mps2=[0.2, 0.0, 9.81],
    )

    new_state, _, _ = imu.propagate(
        state, np.eye(15), biased, from_ns(0), biased, from_ns(_NS_PER_S)
    )

    assert np.allclose(new_state.v_wi, np.zeros(3))
    assert np.allclose(new_state.b_a, [0.2, 0.0, 0.0])


def test_continuous_dynamics_structure() -> None:
    imu: ImuSensor = ImuSensor("imu", _build_noise())

    f_mat, g_mat, q_c = imu.continuous_dynamics(
        np.eye(3), np.zeros(3), np.array([0.0, 0.0, 9.81])
    )

    assert f_mat.shape == (15, 15)
    assert g_mat.shape == (15, 12)
    assert q_c.shape == (12, 12)
    assert np.allclose(f_mat[CORE_INDEX.p_wi, CORE_INDEX.v_wi], np.eye(3))
    assert np.allclose(f_mat[CORE_INDEX.theta_wi, CORE_INDEX.b_w], -np.eye(3))
    assert math.isclose(q_c[0, 0], 1.0e-4)
    assert math.isclose(q_c[3, 3], 1.0e-2)


def test_validate_rejects_malformed_samples() -> None:
    imu: ImuSensor = ImuSensor("imu")

    imu.validate(_at_rest())
    with pytest.raises(InvalidMeasurementError):
        imu.validate(None)
    with pytest.raises(InvalidMeasurementError):
        imu.validate(
            ImuMeasurement(
                angular_velocity_rps=[0.0, 0.0],
                linear_acceleration_mps2=[0.0, 0.0, 9.81],
            )
        )
    with pytest.raises(InvalidMeasurementError):
        imu.validate(
            ImuMeasurement(
                angular_velocity_rps=[0.0, 0.0, 0.0],
                linear_acceleration_mps2=[0.0, math.inf, 9.81],
            )
        )


def test_noise_params_validate() -> None:
    with pytest.raises(ValueError):
        ImuNoiseParams(n_w=[0.1, 0.1], n_bw=[0, 0, 0], n_a=[0, 0, 0], n_ba=[0, 0, 0])
    with pytest.raises(ValueError):
        ImuNoiseParams(
            n_w=[-0.1, 0.1, 0.1], n_bw=[0, 0, 0], n_a=[0, 0, 0], n_ba=[0, 0, 0]
        )


def test_measurement_keeps_its_own_copy_of_inputs() -> None:
    accel: list[float] = [0.0, 0.0, 9.81]
    measurement: ImuMeasurement = ImuMeasurement(
        angular_velocity_rps=[0.0, 0.0, 0.0], linear_acceleration_mps2=accel
    )

    accel[2] = 0.0

    assert measurement.linear_acceleration_mps2 == (0.0, 0.0, 9.81)
