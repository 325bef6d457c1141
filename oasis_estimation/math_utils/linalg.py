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
Covariance helpers shared by propagation and update steps
"""

from __future__ import annotations

from typing import Optional

import numpy as np


# Jitter factors tried in order when a Cholesky factorization fails
_CHOLESKY_JITTER_FACTORS: tuple[float, ...] = (1e-10, 1e-8, 1e-6, 1e-4)


def symmetrize(matrix: np.ndarray) -> np.ndarray:
    """
    Return P_sym = 0.5 * (P + P^T)
    """

    mat: np.ndarray = np.asarray(matrix, dtype=float)
    return 0.5 * (mat + mat.T)


def is_finite(value: np.ndarray) -> bool:
    return bool(np.all(np.isfinite(value)))


def is_psd(matrix: np.ndarray, *, tolerance: float = 1.0e-9) -> bool:
    """
    Check that a symmetric matrix is positive semi-definite

    The smallest eigenvalue may be negative by at most tolerance scaled by the
    largest diagonal magnitude, absorbing round-off in near-singular blocks.

    Args:
        matrix: Square matrix to test
        tolerance: Relative eigenvalue tolerance

    Returns:
        True if the matrix is finite, symmetric, and PSD within tolerance
    """

    mat: np.ndarray = np.asarray(matrix, dtype=float)
    if mat.ndim != 2 or mat.shape[0] != mat.shape[1]:
        raise ValueError("matrix must be square")
    if not is_finite(mat):
        return False

    scale: float = max(1.0, float(np.max(np.abs(np.diag(mat)))))
    if not np.allclose(mat, mat.T, rtol=0.0, atol=tolerance * scale):
        return False

    min_eig: float = float(np.min(np.linalg.eigvalsh(symmetrize(mat))))
    return min_eig >= -tolerance * scale


def cholesky_with_jitter(matrix: np.ndarray) -> Optional[tuple[np.ndarray, np.ndarray]]:
    """
    Factor a symmetric matrix, adding diagonal jitter on failure

    Returns:
        Tuple of (lower factor L, matrix actually factored) or None if the
        matrix stays singular after every jitter level
    """

    s: np.ndarray = symmetrize(matrix)
    size: int = s.shape[0]
    scale: float = max(1.0, float(np.max(np.abs(np.diag(s)))))
    try:
        return np.linalg.cholesky(s), s
    except np.linalg.LinAlgError:
        pass

    for factor in _CHOLESKY_JITTER_FACTORS:
        s_try: np.ndarray = s + (factor * scale) * np.eye(size, dtype=float)
        try:
            return np.linalg.cholesky(s_try), s_try
        except np.linalg.LinAlgError:
            continue

    return None
