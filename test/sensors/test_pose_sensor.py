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
from oasis_estimation.core.core_state import CoreStateType
from oasis_estimation.math_utils.quat import quat_multiply
from oasis_estimation.math_utils.quat import so3_exp
from oasis_estimation.sensors.pose.pose_sensor import PoseSensor
from oasis_estimation.sensors.pose.pose_types import PoseMeasurement
from oasis_estimation.sensors.pose.pose_types import PoseSensorState
from test.sensors.jacobian_check import numeric_jacobian


def _build_state() -> CoreStateType:
    return CoreStateType(
        p_wi=[1.0, -2.0, 3.0],
        v_wi=[0.1, 0.2, 0.3],
        q_wi=so3_exp(np.array([0.2, -0.1, 0.4])),
        b_w=[0.0, 0.0, 0.0],
        b_a=[0.0, 0.0, 0.0],
    )


def _build_calibration() -> PoseSensorState:
    return PoseSensorState(
        p_ip=[0.1, 0.05, -0.2],
        q_ip=so3_exp(np.array([0.0, 0.3, -0.1])),
    )


def _measurement_from_state(
    sensor: PoseSensor, state: CoreStateType, calib: PoseSensorState
) -> PoseMeasurement:
    p_wp, q_wp = sensor.predict(state, calib)
    return PoseMeasurement(position_m=p_wp.tolist(), orientation_wxyz=q_wp.tolist())


def test_residual_is_zero_at_truth() -> None:
    sensor: PoseSensor = PoseSensor("pose")
    state: CoreStateType = _build_state()
    calib: PoseSensorState = _build_calibration()
    measurement: PoseMeasurement = _measurement_from_state(sensor, state, calib)

    residual: np.ndarray = sensor.residual(measurement, sensor.predict(state, calib))

    assert residual.shape == (6,)
    assert np.allclose(residual, np.zeros(6), atol=1.0e-12)


def test_predict_composes_extrinsic() -> None:
    sensor: PoseSensor = PoseSensor("pose")
    state: CoreStateType = CoreStateType.identity()
    calib: PoseSensorState = PoseSensorState(
        p_ip=[1.0, 0.0, 0.0], q_ip=so3_exp(np.array([0.0, 0.0, 0.1]))
    )

    p_wp, q_wp = sensor.predict(state, calib)

    assert np.allclose(p_wp, [1.0, 0.0, 0.0])
    assert np.allclose(q_wp, quat_multiply(state.q_wi, calib.q_ip))


def test_jacobian_matches_finite_difference() -> None:
    sensor: PoseSensor = PoseSensor("pose")
    state: CoreStateType = _build_state()
    calib: PoseSensorState = _build_calibration()
    measurement: PoseMeasurement = _measurement_from_state(sensor, state, calib)

    h_core, h_calib = sensor.jacobian(state, calib)
    num_core, num_calib = numeric_jacobian(sensor, state, calib, measurement)

    assert h_core.shape == (6, 15)
    assert h_calib.shape == (6, 6)
    assert np.allclose(h_core, num_core, atol=1.0e-6)
    assert np.allclose(h_calib, num_calib, atol=1.0e-6)


def test_measurement_noise_defaults() -> None:
    sensor: PoseSensor = PoseSensor("pose")

    r: np.ndarray = sensor.measurement_noise(None)

    assert r.shape == (6, 6)
    assert math.isclose(r[0, 0], 0.02**2)
    assert math.isclose(r[5, 5], math.radians(2.0) ** 2)


def test_custom_noise_must_be_positive() -> None:
    with pytest.raises(ValueError):
        PoseSensor("pose", [0.1, 0.1, 0.1, 0.0, 0.1, 0.1])


def test_apply_correction_updates_extrinsic() -> None:
    sensor: PoseSensor = PoseSensor("pose")
    calib: PoseSensorState = sensor.default_calibration()

    corrected: PoseSensorState = sensor.apply_correction(
        calib, np.array([0.1, 0.0, 0.0, 0.0, 0.0, 0.2])
    )

    assert np.allclose(corrected.p_ip, [0.1, 0.0, 0.0])
    assert np.allclose(corrected.q_ip, so3_exp(np.array([0.0, 0.0, 0.2])))
    assert np.allclose(calib.p_ip, np.zeros(3))


def test_default_calibration_covariance() -> None:
    sensor: PoseSensor = PoseSensor("pose")

    covariance: np.ndarray = sensor.default_calibration_covariance()

    assert covariance.shape == (6, 6)
    assert math.isclose(covariance[0, 0], 0.25)
    assert math.isclose(covariance[3, 3], math.radians(20.0) ** 2)


def test_validate_rejects_bad_orientation() -> None:
    sensor: PoseSensor = PoseSensor("pose")

    sensor.validate(
        PoseMeasurement(position_m=[0, 0, 0], orientation_wxyz=[1, 0, 0, 0])
    )
    with pytest.raises(InvalidMeasurementError):
        sensor.validate(
            PoseMeasurement(position_m=[0, 0, 0], orientation_wxyz=[0, 0, 0, 0])
        )
    with pytest.raises(InvalidMeasurementError):
        sensor.validate(
            PoseMeasurement(position_m=[0, 0, math.nan], orientation_wxyz=[1, 0, 0, 0])
        )


def test_set_initial_calibration_validates_covariance() -> None:
    sensor: PoseSensor = PoseSensor("pose")

    with pytest.raises(ValueError):
        sensor.set_initial_calibration(sensor.default_calibration(), np.eye(3))
    with pytest.raises(ValueError):
        sensor.set_initial_calibration(sensor.default_calibration(), -np.eye(6))

    sensor.set_initial_calibration(_build_calibration(), np.eye(6) * 0.01)
    calib, covariance = sensor.initial_calibration()

    assert np.allclose(calib.p_ip, [0.1, 0.05, -0.2])
    assert np.allclose(covariance, np.eye(6) * 0.01)
