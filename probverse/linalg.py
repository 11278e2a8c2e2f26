"""
Small dense linear algebra helpers for the estimator.

Products, sums and transposes use numpy directly. This module adds an
inverse that reports (instead of raising on) near-singular input, and
covariance conditioning. All helpers operate on float64 arrays and keep
no state.
"""
from __future__ import annotations

from typing import Tuple

import numpy as np


def guarded_inverse(a: np.ndarray, epsilon: float = 1e-10) -> Tuple[np.ndarray, float, bool]:
    """
    Invert a square matrix, substituting the identity when it is near-singular.

    When |det| < epsilon, or numpy reports the matrix singular, the
    identity is returned in place of the inverse.

    Parameters
    - a: (n, n) matrix
    - epsilon: determinant magnitude below which the matrix is singular

    Returns
    - (inverse or identity, determinant, singular flag)
    """
    a = np.asarray(a, dtype=np.float64)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        raise ValueError(f"Expected a square matrix, got shape {a.shape}")

    identity = np.eye(a.shape[0], dtype=np.float64)
    det = float(np.linalg.det(a))
    if not np.isfinite(det) or abs(det) < epsilon:
        return identity, det if np.isfinite(det) else 0.0, True

    try:
        inverse = np.linalg.inv(a)
    except np.linalg.LinAlgError:
        return identity, det, True
    return inverse, det, False


def determinant(a: np.ndarray) -> float:
    return float(np.linalg.det(np.asarray(a, dtype=np.float64)))


def symmetrize(p: np.ndarray) -> np.ndarray:
    """Return (P + P^T) / 2"""
    return 0.5 * (p + p.T)


def condition_covariance(p: np.ndarray, min_variance: float = 0.0) -> np.ndarray:
    """
    Remove numerical drift from a covariance matrix.

    Symmetrizes and floors the diagonal at min_variance so marginal
    variances can never go negative.
    """
    p = symmetrize(np.asarray(p, dtype=np.float64))
    diag = np.diagonal(p)
    if np.any(diag < min_variance):
        idx = np.arange(p.shape[0])
        p[idx, idx] = np.maximum(diag, min_variance)
    return p


def selection_matrix(indices, dim: int) -> np.ndarray:
    """
    Build the (len(indices), dim) matrix that selects the given state components.

    Used as the observation matrix H.
    """
    h = np.zeros((len(indices), dim), dtype=np.float64)
    for row, idx in enumerate(indices):
        h[row, idx] = 1.0
    return h
