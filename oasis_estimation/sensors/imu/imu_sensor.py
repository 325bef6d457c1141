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
IMU propagation sensor with strapdown integration and error-state covariance
"""

from __future__ import annotations

from typing import Any
from typing import Optional
from typing import Tuple
from typing import cast

import numpy as np

from oasis_estimation.core.core_errors import InvalidMeasurementError
from oasis_estimation.core.core_state import CORE_INDEX
from oasis_estimation.core.core_state import CoreStateType
from oasis_estimation.core.core_time import CoreTime
from oasis_estimation.core.core_time import to_ns
from oasis_estimation.math_utils.linalg import symmetrize
from oasis_estimation.math_utils.quat import quat_multiply
from oasis_estimation.math_utils.quat import quat_normalize
from oasis_estimation.math_utils.quat import quat_to_rotmat
from oasis_estimation.math_utils.quat import skew_symmetric
from oasis_estimation.math_utils.quat import so3_exp
from oasis_estimation.sensors.imu.imu_types import ImuMeasurement
from oasis_estimation.sensors.imu.imu_types import ImuNoiseParams
from oasis_estimation.sensors.sensor_interface import PropagationSensor


# Seconds per nanosecond for time conversions
_NS_TO_S: float = 1.0e-9

# Standard gravity magnitude in m/s^2
DEFAULT_GRAVITY_MPS2: float = 9.81

# Dimension of the stacked IMU noise vector [n_w, n_a, n_bw, n_ba]
_NOISE_DIM: int = 12


class ImuSensor(PropagationSensor):
    """
    Inertial propagation sensor

    The nominal state is integrated with the mean of the previous and current
    gyro samples for orientation and the mean of the world-frame specific
    forces at both ends of the interval for velocity and position. The error
    state covariance uses a second-order state transition and a third-order
    series for the discrete process noise.
    """

    def __init__(
        self,
        name: str,
        noise: Optional[ImuNoiseParams] = None,
        *,
        gravity_mps2: float = DEFAULT_GRAVITY_MPS2,
    ) -> None:
        super().__init__(name)
        self._noise: ImuNoiseParams = (
            noise if noise is not None else ImuNoiseParams.zeros()
        )
        self._gravity_w: np.ndarray = np.array([0.0, 0.0, gravity_mps2], dtype=float)

    @property
    def noise(self) -> ImuNoiseParams:
        return self._noise

    def validate(self, measurement: Any) -> None:
        super().validate(measurement)
        if not isinstance(measurement, ImuMeasurement):
            raise InvalidMeasurementError(
                f"{self.name}: expected ImuMeasurement, "
                f"got {type(measurement).__name__}"
            )
        self.validate_vector(
            "angular_velocity_rps", measurement.angular_velocity_rps, 3
        )
        self.validate_vector(
            "linear_acceleration_mps2", measurement.linear_acceleration_mps2, 3
        )

    def propagate(
        self,
        prev_state: CoreStateType,
        prev_covariance: np.ndarray,
        prev_measurement: Optional[Any],
        prev_timestamp: CoreTime,
        measurement: Any,
        new_timestamp: CoreTime,
    ) -> Tuple[CoreStateType, np.ndarray, np.ndarray]:
        dt_ns: int = to_ns(new_timestamp) - to_ns(prev_timestamp)
        if dt_ns < 0:
            raise ValueError("new_timestamp must not precede prev_timestamp")

        identity: np.ndarray = np.eye(CORE_INDEX.dim, dtype=float)
        if dt_ns == 0:
            return prev_state.copy(), np.array(prev_covariance, dtype=float), identity

        dt_s: float = float(dt_ns) * _NS_TO_S
        imu_curr: ImuMeasurement = cast(ImuMeasurement, measurement)
        imu_prev: ImuMeasurement = (
            cast(ImuMeasurement, prev_measurement)
            if prev_measurement is not None
            else imu_curr
        )

        omega_prev: np.ndarray = np.asarray(imu_prev.angular_velocity_rps, dtype=float)
        omega_curr: np.ndarray = np.asarray(imu_curr.angular_velocity_rps, dtype=float)
        accel_prev: np.ndarray = np.asarray(
            imu_prev.linear_acceleration_mps2, dtype=float
        )
        accel_curr: np.ndarray = np.asarray(
            imu_curr.linear_acceleration_mps2, dtype=float
        )

        omega_mean: np.ndarray = 0.5 * (omega_prev + omega_curr) - prev_state.b_w
        accel_prev_corr: np.ndarray = accel_prev - prev_state.b_a
        accel_curr_corr: np.ndarray = accel_curr - prev_state.b_a

        rot_prev: np.ndarray = quat_to_rotmat(prev_state.q_wi)
        q_new: np.ndarray = quat_normalize(
            quat_multiply(prev_state.q_wi, so3_exp(omega_mean * dt_s))
        )
        rot_new: np.ndarray = quat_to_rotmat(q_new)

        accel_world: np.ndarray = (
            0.5 * (rot_prev @ accel_prev_corr + rot_new @ accel_curr_corr)
            - self._gravity_w
        )
        v_new: np.ndarray = prev_state.v_wi + accel_world * dt_s
        p_new: np.ndarray = (
            prev_state.p_wi + prev_state.v_wi * dt_s + 0.5 * accel_world * dt_s * dt_s
        )

        new_state: CoreStateType = CoreStateType(
            p_wi=p_new,
            v_wi=v_new,
            q_wi=q_new,
            b_w=np.array(prev_state.b_w, dtype=float),
            b_a=np.array(prev_state.b_a, dtype=float),
        )

        accel_mean_corr: np.ndarray = 0.5 * (accel_prev_corr + accel_curr_corr)
        f_mat, g_mat, q_c = self.continuous_dynamics(
            rot_prev, omega_mean, accel_mean_corr
        )
        phi: np.ndarray = self._discrete_state_transition(f_mat, dt_s)
        q_d: np.ndarray = self._discrete_process_noise(f_mat, g_mat, q_c, dt_s)

        p_prev: np.ndarray = np.asarray(prev_covariance, dtype=float)
        p_new_cov: np.ndarray = symmetrize(phi @ p_prev @ phi.T + q_d)
        return new_state, p_new_cov, phi

    def continuous_dynamics(
        self,
        rot_wi: np.ndarray,
        omega_corr: np.ndarray,
        accel_corr: np.ndarray,
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Build the continuous error-state dynamics

        Args:
            rot_wi: Rotation from IMU to world frame
            omega_corr: Bias-corrected angular velocity in rad/s
            accel_corr: Bias-corrected specific force in m/s^2

        Returns:
            Tuple of (F, G, Q_c) with F 15x15, G 15x12, Q_c 12x12
        """

        dim: int = CORE_INDEX.dim
        f_mat: np.ndarray = np.zeros((dim, dim), dtype=float)
        g_mat: np.ndarray = np.zeros((dim, _NOISE_DIM), dtype=float)
        eye3: np.ndarray = np.eye(3, dtype=float)

        p_idx: slice = CORE_INDEX.p_wi
        v_idx: slice = CORE_INDEX.v_wi
        th_idx: slice = CORE_INDEX.theta_wi
        bw_idx: slice = CORE_INDEX.b_w
        ba_idx: slice = CORE_INDEX.b_a

        f_mat[p_idx, v_idx] = eye3
        f_mat[v_idx, th_idx] = -rot_wi @ skew_symmetric(accel_corr)
        f_mat[v_idx, ba_idx] = -rot_wi
        f_mat[th_idx, th_idx] = -skew_symmetric(omega_corr)
        f_mat[th_idx, bw_idx] = -eye3

        g_mat[th_idx, 0:3] = -eye3
        g_mat[v_idx, 3:6] = -rot_wi
        g_mat[bw_idx, 6:9] = eye3
        g_mat[ba_idx, 9:12] = eye3

        # Units: (rad/s)^2/Hz, (m/s^2)^2/Hz, (rad/s^2)^2/Hz, (m/s^3)^2/Hz
        noise_std: np.ndarray = np.hstack(
            [
                np.asarray(self._noise.n_w, dtype=float),
                np.asarray(self._noise.n_a, dtype=float),
                np.asarray(self._noise.n_bw, dtype=float),
                np.asarray(self._noise.n_ba, dtype=float),
            ]
        )
        q_c: np.ndarray = np.diag(noise_std * noise_std)
        return f_mat, g_mat, q_c

    def _discrete_state_transition(self, f_mat: np.ndarray, dt_s: float) -> np.ndarray:
        identity: np.ndarray = np.eye(f_mat.shape[0], dtype=float)
        f_dt: np.ndarray = f_mat * dt_s
        phi: np.ndarray = identity + f_dt + 0.5 * (f_dt @ f_dt)
        return phi

    def _discrete_process_noise(
        self,
        f_mat: np.ndarray,
        g_mat: np.ndarray,
        q_c: np.ndarray,
        dt_s: float,
    ) -> np.ndarray:
        q_cont: np.ndarray = g_mat @ q_c @ g_mat.T
        f_q: np.ndarray = f_mat @ q_cont
        q_f: np.ndarray = q_cont @ f_mat.T

        dt_2: float = dt_s * dt_s
        dt_3: float = dt_2 * dt_s

        # Units: seconds. Meaning: first-order integration weight
        term_1: np.ndarray = q_cont * dt_s

        # Units: seconds^2. Meaning: second-order integration weight
        term_2: np.ndarray = 0.5 * (f_q + q_f) * dt_2

        # Units: seconds^3. Meaning: third-order integration weight
        term_3: np.ndarray = (
            (1.0 / 6.0) * (f_mat @ f_q + q_f @ f_mat.T + 2.0 * f_mat @ q_f) * dt_3
        )
        return symmetrize(term_1 + term_2 + term_3)
