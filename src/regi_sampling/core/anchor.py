"""
Center-of-rotation anchoring for sampled pose offsets.

Offsets are drawn in the camera projective frame, where rotations would
naturally pivot about the camera origin (the X-ray source). To get clinically
realistic errors the offset is instead applied about an anchor point (the
volume centroid) expressed in that frame:

    anchor_cam  = E * G^-1 * A
    pre_offset  = Trans(-anchor_cam) * E
    post_offset = G * E^-1 * Trans(anchor_cam)
    composite   = post_offset * T * pre_offset

with E the camera extrinsic, G the ground truth camera-to-volume transform,
A the anchor in volume coordinates and T the sampled offset. For T = I the
composite reduces to G, and for a pure rotation T the anchor stays fixed:
composite * G^-1 * A == A.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .errors import NumericDegeneracyError
from .se3 import apply_to_point, translation_only

MIN_ABS_DET: float = 1e-9


def _checked_inverse(T: np.ndarray, name: str) -> np.ndarray:
    T = np.asarray(T, dtype=float)
    if T.shape != (4, 4):
        raise NumericDegeneracyError(f"{name} must be 4x4, got shape {T.shape}")
    if not np.all(np.isfinite(T)):
        raise NumericDegeneracyError(f"{name} has non-finite entries")
    if not np.allclose(T[3], [0.0, 0.0, 0.0, 1.0], atol=MIN_ABS_DET):
        raise NumericDegeneracyError(f"{name} is not a rigid transform (bottom row {T[3].tolist()})")
    det = float(np.linalg.det(T[:3, :3]))
    if not np.isfinite(det) or abs(det) < MIN_ABS_DET:
        raise NumericDegeneracyError(f"{name} is not invertible (det of 3x3 block = {det:g})")
    return np.linalg.inv(T)


@dataclass(frozen=True)
class AnchorComposer:
    anchor_vol: np.ndarray
    anchor_cam: np.ndarray
    shift_from: np.ndarray
    shift_to: np.ndarray
    pre_offset: np.ndarray
    post_offset: np.ndarray

    @classmethod
    def from_geometry(cls, extrinsic, gt_cam_to_vol, anchor_vol) -> "AnchorComposer":
        E = np.asarray(extrinsic, dtype=float)
        G = np.asarray(gt_cam_to_vol, dtype=float)
        E_inv = _checked_inverse(E, "camera extrinsic")
        G_inv = _checked_inverse(G, "ground truth cam-to-volume transform")

        anchor_vol = np.asarray(anchor_vol, dtype=float).reshape(3)
        anchor_cam = apply_to_point(E @ G_inv, anchor_vol)

        shift_from = translation_only(anchor_cam)
        shift_to = translation_only(-anchor_cam)

        return cls(
            anchor_vol=anchor_vol,
            anchor_cam=anchor_cam,
            shift_from=shift_from,
            shift_to=shift_to,
            pre_offset=shift_to @ E,
            post_offset=G @ E_inv @ shift_from,
        )

    def compose(self, offset: np.ndarray) -> np.ndarray:
        """Camera-to-volume pose for one offset T."""
        out = self.post_offset @ np.asarray(offset, dtype=float) @ self.pre_offset
        if not np.all(np.isfinite(out)):
            raise NumericDegeneracyError("composite pose has non-finite entries")
        return out
