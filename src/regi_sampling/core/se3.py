"""
Rigid transforms and the se(3) exponential map.

Tangent vectors are ordered (rx, ry, rz, tx, ty, tz): the first three are
rotation generators (radians), the last three translation generators (mm).
Rigid transforms are 4x4 homogeneous float64 arrays.

Numerical note:
    SMALL_ANGLE = 1e-6 rad is the switch to Taylor expansions of the
    Rodrigues and left-Jacobian coefficients, so no division by a vanishing
    angle ever happens. The truncation error there is O(theta^3), far below
    double precision for the values involved.
"""

from __future__ import annotations

import math

import numpy as np

SMALL_ANGLE: float = 1e-6


def skew(v: np.ndarray) -> np.ndarray:
    """Skew-symmetric matrix from 3-vector (hat operator)."""
    v = np.asarray(v, dtype=float).reshape(-1)
    return np.array([
        [0.0, -v[2], v[1]],
        [v[2], 0.0, -v[0]],
        [-v[1], v[0], 0.0],
    ], dtype=float)


def vee(S: np.ndarray) -> np.ndarray:
    """Extract 3-vector from skew-symmetric matrix."""
    return np.array([S[2, 1], S[0, 2], S[1, 0]], dtype=float)


def exp_se3(xi) -> np.ndarray:
    """
    Exponential map se(3) -> SE(3).

    R = I + a W + b W^2 (Rodrigues) and t = V v with the left Jacobian
    V = I + b W + c W^2, where
        a = sin(t)/t, b = (1 - cos(t))/t^2, c = (t - sin(t))/t^3.
    """
    xi = np.asarray(xi, dtype=float).reshape(-1)
    if xi.shape[0] != 6:
        raise ValueError(f"Expected 6-element tangent vector, got {xi.shape[0]}")

    w = xi[:3]
    v = xi[3:]
    W = skew(w)
    W2 = W @ W
    theta = float(np.linalg.norm(w))

    if theta < SMALL_ANGLE:
        a = 1.0 - theta * theta / 6.0
        b = 0.5 - theta * theta / 24.0
        c = 1.0 / 6.0 - theta * theta / 120.0
    else:
        a = math.sin(theta) / theta
        b = (1.0 - math.cos(theta)) / (theta * theta)
        c = (theta - math.sin(theta)) / (theta * theta * theta)

    I3 = np.eye(3, dtype=float)
    T = np.eye(4, dtype=float)
    T[:3, :3] = I3 + a * W + b * W2
    T[:3, 3] = (I3 + b * W + c * W2) @ v
    return T


def translation_only(p) -> np.ndarray:
    T = np.eye(4, dtype=float)
    T[:3, 3] = np.asarray(p, dtype=float).reshape(3)
    return T


def invert_rigid(T: np.ndarray) -> np.ndarray:
    """Closed-form inverse [R^T, -R^T t]."""
    T = np.asarray(T, dtype=float)
    R = T[:3, :3]
    out = np.eye(4, dtype=float)
    out[:3, :3] = R.T
    out[:3, 3] = -R.T @ T[:3, 3]
    return out


def apply_to_point(T: np.ndarray, p) -> np.ndarray:
    p = np.asarray(p, dtype=float).reshape(3)
    return T[:3, :3] @ p + T[:3, 3]


def is_rigid(T: np.ndarray, atol: float = 1e-6) -> bool:
    T = np.asarray(T, dtype=float)
    if T.shape != (4, 4) or not np.all(np.isfinite(T)):
        return False
    if not np.allclose(T[3], [0.0, 0.0, 0.0, 1.0], atol=atol):
        return False
    R = T[:3, :3]
    if not np.allclose(R @ R.T, np.eye(3), atol=atol):
        return False
    return abs(np.linalg.det(R) - 1.0) < atol
