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
Quaternion and SO(3) helpers for the estimator state

Quaternions are stored as numpy arrays in [w, x, y, z] order and use the
Hamilton convention. A quaternion q_ab rotates vectors from frame b into
frame a.
"""

from __future__ import annotations

import math

import numpy as np


_EPS: float = 1.0e-12


def quat_identity() -> np.ndarray:
    """
    Return the identity quaternion in [w, x, y, z] order
    """

    return np.array([1.0, 0.0, 0.0, 0.0], dtype=float)


def quat_normalize(q_wxyz: np.ndarray) -> np.ndarray:
    """
    Normalize a quaternion in [w, x, y, z] order
    """

    q: np.ndarray = np.asarray(q_wxyz, dtype=float).reshape(4)
    norm: float = float(np.linalg.norm(q))
    if norm < _EPS:
        return quat_identity()
    return q / norm


def quat_multiply(q1_wxyz: np.ndarray, q2_wxyz: np.ndarray) -> np.ndarray:
    """
    Multiply two quaternions in [w, x, y, z] order
    """

    w1: float = float(q1_wxyz[0])
    x1: float = float(q1_wxyz[1])
    y1: float = float(q1_wxyz[2])
    z1: float = float(q1_wxyz[3])

    w2: float = float(q2_wxyz[0])
    x2: float = float(q2_wxyz[1])
    y2: float = float(q2_wxyz[2])
    z2: float = float(q2_wxyz[3])

    return np.array(
        [
            w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
            w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
            w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
            w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
        ],
        dtype=float,
    )


def quat_conjugate(q_wxyz: np.ndarray) -> np.ndarray:
    """
    Conjugate a quaternion in [w, x, y, z] order
    """

    return np.array(
        [float(q_wxyz[0]), -float(q_wxyz[1]), -float(q_wxyz[2]), -float(q_wxyz[3])],
        dtype=float,
    )


def so3_exp(phi_rad: np.ndarray) -> np.ndarray:
    """
    Exponential map from a rotation vector to a unit quaternion
    """

    phi: np.ndarray = np.asarray(phi_rad, dtype=float).reshape(3)
    angle_rad: float = float(np.linalg.norm(phi))
    if angle_rad < _EPS:
        return quat_normalize(
            np.array(
                [1.0, 0.5 * float(phi[0]), 0.5 * float(phi[1]), 0.5 * float(phi[2])],
                dtype=float,
            )
        )

    axis: np.ndarray = phi / angle_rad
    half_angle: float = 0.5 * angle_rad
    sin_half: float = math.sin(half_angle)
    return quat_normalize(
        np.array(
            [
                math.cos(half_angle),
                axis[0] * sin_half,
                axis[1] * sin_half,
                axis[2] * sin_half,
            ],
            dtype=float,
        )
    )


def so3_log(q_wxyz: np.ndarray) -> np.ndarray:
    """
    Log map from a unit quaternion to a rotation vector
    """

    q_unit: np.ndarray = quat_normalize(q_wxyz)
    if q_unit[0] < 0.0:
        q_unit = -q_unit

    vector: np.ndarray = q_unit[1:4]
    sin_half: float = float(np.linalg.norm(vector))
    if sin_half < _EPS:
        return 2.0 * vector

    half_angle: float = math.atan2(sin_half, float(q_unit[0]))
    axis: np.ndarray = vector / sin_half
    return axis * (2.0 * half_angle)


def quat_to_rotmat(q_wxyz: np.ndarray) -> np.ndarray:
    """
    Convert a quaternion to a 3x3 rotation matrix
    """

    q_unit: np.ndarray = quat_normalize(q_wxyz)
    w: float = float(q_unit[0])
    x: float = float(q_unit[1])
    y: float = float(q_unit[2])
    z: float = float(q_unit[3])

    ww: float = w * w
    xx: float = x * x
    yy: float = y * y
    zz: float = z * z

    wx: float = w * x
    wy: float = w * y
    wz: float = w * z

    xy: float = x * y
    xz: float = x * z
    yz: float = y * z

    return np.array(
        [
            [ww + xx - yy - zz, 2.0 * (xy - wz), 2.0 * (xz + wy)],
            [2.0 * (xy + wz), ww - xx + yy - zz, 2.0 * (yz - wx)],
            [2.0 * (xz - wy), 2.0 * (yz + wx), ww - xx - yy + zz],
        ],
        dtype=float,
    )


def quat_boxplus(q_wxyz: np.ndarray, delta_theta_rad: np.ndarray) -> np.ndarray:
    """
    Apply a body-frame rotation perturbation, q <- q * exp(delta_theta)
    """

    return quat_normalize(quat_multiply(q_wxyz, so3_exp(delta_theta_rad)))


def quat_boxminus(q_a_wxyz: np.ndarray, q_b_wxyz: np.ndarray) -> np.ndarray:
    """
    Body-frame rotation error from B to A, log(q_b^-1 * q_a)
    """

    return so3_log(quat_multiply(quat_conjugate(q_b_wxyz), q_a_wxyz))


def skew_symmetric(vec: np.ndarray) -> np.ndarray:
    """
    Build the cross-product matrix [v]x of a 3-vector
    """

    x: float = float(vec[0])
    y: float = float(vec[1])
    z: float = float(vec[2])
    return np.array(
        [
            [0.0, -z, y],
            [z, 0.0, -x],
            [-y, x, 0.0],
        ],
        dtype=float,
    )
