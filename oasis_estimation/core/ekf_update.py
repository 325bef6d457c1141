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
Joint error-state EKF correction

Computes the Kalman gain through a Cholesky factor of the innovation
covariance and updates the covariance in Joseph form. Any non-finite or
non-PSD intermediate aborts the correction with NumericalInstabilityWarning.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from oasis_estimation.core.core_errors import NumericalInstabilityWarning
from oasis_estimation.math_utils.linalg import cholesky_with_jitter
from oasis_estimation.math_utils.linalg import is_finite
from oasis_estimation.math_utils.linalg import is_psd
from oasis_estimation.math_utils.linalg import symmetrize


@dataclass(frozen=True)
class EkfCorrection:
    """
    Result of one EKF correction

    Fields:
        delta: Joint error-state correction K * residual
        covariance: Posterior joint covariance
        innovation_cov: Innovation covariance S that was factored
        mahalanobis2: Squared Mahalanobis distance of the residual
    """

    delta: np.ndarray
    covariance: np.ndarray
    innovation_cov: np.ndarray
    mahalanobis2: float


def ekf_correct(
    covariance: np.ndarray,
    h: np.ndarray,
    residual: np.ndarray,
    r: np.ndarray,
    *,
    psd_tolerance: float,
) -> EkfCorrection:
    """
    Apply an EKF correction to a joint covariance

    Args:
        covariance: Prior joint covariance P, n x n
        h: Measurement Jacobian over the joint error state, m x n
        residual: Measurement residual, length m
        r: Measurement noise covariance, m x m
        psd_tolerance: Relative eigenvalue tolerance for the posterior check

    Returns:
        Correction with the error-state delta and posterior covariance

    Raises:
        NumericalInstabilityWarning: If the residual or S is non-finite, S
            cannot be factored, or the posterior is not PSD
    """

    p: np.ndarray = np.asarray(covariance, dtype=float)
    nu: np.ndarray = np.asarray(residual, dtype=float).reshape(-1)
    h_mat: np.ndarray = np.asarray(h, dtype=float)
    r_mat: np.ndarray = np.asarray(r, dtype=float)

    if h_mat.shape != (nu.size, p.shape[0]) or r_mat.shape != (nu.size, nu.size):
        raise ValueError("Inconsistent measurement dimensions")
    if not is_finite(nu):
        raise NumericalInstabilityWarning("non-finite residual")

    s_hat: np.ndarray = h_mat @ p @ h_mat.T
    s: np.ndarray = s_hat + r_mat
    if not is_finite(s):
        raise NumericalInstabilityWarning("non-finite innovation covariance")

    factored: Optional[tuple[np.ndarray, np.ndarray]] = cholesky_with_jitter(s)
    if factored is None:
        raise NumericalInstabilityWarning("singular innovation covariance")
    l, s = factored

    y: np.ndarray = np.linalg.solve(l, nu)
    x: np.ndarray = np.linalg.solve(l.T, y)
    mahalanobis2: float = float(nu.T @ x)

    ph_t: np.ndarray = p @ h_mat.T
    tmp: np.ndarray = np.linalg.solve(l, ph_t.T)
    s_inv_ph_t: np.ndarray = np.linalg.solve(l.T, tmp)
    k_gain: np.ndarray = s_inv_ph_t.T

    delta: np.ndarray = k_gain @ nu
    if not is_finite(delta):
        raise NumericalInstabilityWarning("non-finite state correction")

    identity: np.ndarray = np.eye(p.shape[0], dtype=float)
    temp: np.ndarray = identity - k_gain @ h_mat
    posterior: np.ndarray = symmetrize(temp @ p @ temp.T + k_gain @ r_mat @ k_gain.T)
    if not is_psd(posterior, tolerance=psd_tolerance):
        raise NumericalInstabilityWarning("posterior covariance is not PSD")

    return EkfCorrection(
        delta=delta,
        covariance=posterior,
        innovation_cov=s,
        mahalanobis2=mahalanobis2,
    )
