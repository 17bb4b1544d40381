"""
Interpretable summaries of rigid offsets.

Euler convention: R = Rx(ax) @ Ry(ay) @ Rz(az), i.e. rotations about the
fixed X, Y, Z axes of the offset's frame, X applied last. Decomposition and
reconstruction both use it.

Gimbal lock (|cos ay| < GIMBAL_EPS): ax and az are not separable, so az is
clamped to 0 and ax carries the remaining rotation about the shared axis.
The reconstruction of such a triple is still exact.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .constants import RAD2DEG
from .se3 import vee

GIMBAL_EPS: float = 1e-9


def rot_x(a: float) -> np.ndarray:
    c, s = math.cos(a), math.sin(a)
    return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]])


def rot_y(a: float) -> np.ndarray:
    c, s = math.cos(a), math.sin(a)
    return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])


def rot_z(a: float) -> np.ndarray:
    c, s = math.cos(a), math.sin(a)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def rotation_angle_and_translation(T: np.ndarray) -> Tuple[float, float]:
    """Angle-axis magnitude (rad) of the rotation block and norm of the translation (mm)."""
    T = np.asarray(T, dtype=float)
    R = T[:3, :3]
    sin_t = 0.5 * float(np.linalg.norm(vee(R - R.T)))
    cos_t = 0.5 * (float(np.trace(R)) - 1.0)
    angle = math.atan2(sin_t, cos_t)
    return angle, float(np.linalg.norm(T[:3, 3]))


def euler_xyz_and_trans(T: np.ndarray) -> Tuple[float, float, float, float, float, float]:
    """Return (ax, ay, az) in radians followed by (tx, ty, tz)."""
    T = np.asarray(T, dtype=float)
    R = T[:3, :3]
    ay = math.asin(float(np.clip(R[0, 2], -1.0, 1.0)))
    if abs(math.cos(ay)) > GIMBAL_EPS:
        ax = math.atan2(-R[1, 2], R[2, 2])
        az = math.atan2(-R[0, 1], R[0, 0])
    else:
        ax = math.atan2(R[2, 1], R[1, 1])
        az = 0.0
    tx, ty, tz = (float(v) for v in T[:3, 3])
    return ax, ay, az, tx, ty, tz


def rigid_from_euler_xyz_and_trans(ax, ay, az, tx, ty, tz) -> np.ndarray:
    T = np.eye(4, dtype=float)
    T[:3, :3] = rot_x(ax) @ rot_y(ay) @ rot_z(az)
    T[:3, 3] = [tx, ty, tz]
    return T


@dataclass(frozen=True)
class OffsetDecomposition:
    rot_deg: float
    trans_mm: float
    rot_x_deg: float
    rot_y_deg: float
    rot_z_deg: float
    trans_x_mm: float
    trans_y_mm: float
    trans_z_mm: float

    def as_row(self) -> list:
        return [self.rot_deg, self.trans_mm,
                self.rot_x_deg, self.rot_y_deg, self.rot_z_deg,
                self.trans_x_mm, self.trans_y_mm, self.trans_z_mm]


def decompose_offset(T: np.ndarray) -> OffsetDecomposition:
    angle, trans = rotation_angle_and_translation(T)
    ax, ay, az, tx, ty, tz = euler_xyz_and_trans(T)
    return OffsetDecomposition(
        rot_deg=angle * RAD2DEG,
        trans_mm=trans,
        rot_x_deg=ax * RAD2DEG,
        rot_y_deg=ay * RAD2DEG,
        rot_z_deg=az * RAD2DEG,
        trans_x_mm=tx,
        trans_y_mm=ty,
        trans_z_mm=tz,
    )
