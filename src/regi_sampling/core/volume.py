from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

import numpy as np

from .constants import DEFAULT_MU_WATER, HU_AIR


@dataclass
class Volume:
    """
    3D image with physical geometry.

    data is indexed (z, y, x); spacing, origin and the direction columns are
    in (x, y, z) order, matching continuous index (i, j, k) = (x, y, z).
    """
    data: np.ndarray
    spacing: np.ndarray
    origin: np.ndarray = field(default_factory=lambda: np.zeros(3))
    direction: np.ndarray = field(default_factory=lambda: np.eye(3))

    def __post_init__(self):
        self.spacing = np.asarray(self.spacing, dtype=float).reshape(3)
        self.origin = np.asarray(self.origin, dtype=float).reshape(3)
        self.direction = np.asarray(self.direction, dtype=float).reshape(3, 3)

    @property
    def size_xyz(self) -> np.ndarray:
        return np.array(self.data.shape[::-1], dtype=float)

    def index_to_phys_matrix(self) -> np.ndarray:
        """4x4 map from continuous (i, j, k) index to physical (mm) coordinates."""
        M = np.eye(4)
        M[:3, :3] = self.direction @ np.diag(self.spacing)
        M[:3, 3] = self.origin
        return M

    def index_to_phys(self, idx) -> np.ndarray:
        idx = np.asarray(idx, dtype=float)
        return idx @ (self.direction @ np.diag(self.spacing)).T + self.origin

    def phys_to_index(self, pts) -> np.ndarray:
        pts = np.asarray(pts, dtype=float)
        A_inv = np.linalg.inv(self.direction @ np.diag(self.spacing))
        return (pts - self.origin) @ A_inv.T

    def center_phys(self) -> np.ndarray:
        """Physical point at the center of the voxel grid."""
        return self.index_to_phys((self.size_xyz - 1.0) / 2.0)

    def crop(self, box) -> "Volume":
        """Sub-volume for (z, y, x) slices; the origin moves to the first kept voxel."""
        lo_xyz = np.array([box[2].start, box[1].start, box[0].start], dtype=float)
        return replace(self, data=self.data[box].copy(), origin=self.index_to_phys(lo_xyz))

    def with_data(self, data: np.ndarray) -> "Volume":
        if data.shape != self.data.shape:
            raise ValueError(f"shape mismatch: {data.shape} vs {self.data.shape}")
        return replace(self, data=data)


def build_label_lut(keep, max_label: int = 255) -> np.ndarray:
    """LUT mapping every kept label to 1 and the rest to 0."""
    lut = np.zeros(max_label + 1, dtype=np.uint8)
    if isinstance(keep, np.ndarray) and keep.dtype == bool:
        n = min(len(keep), max_label + 1)
        lut[:n][keep[:n]] = 1
    else:
        for lid in keep:
            lut[int(lid)] = 1
    return lut


def label_bounds(labels: np.ndarray, keep: Iterable[int] = (1,)):
    """(z, y, x) slices of the smallest box holding every kept label, None if there are none."""
    where = np.argwhere(np.isin(labels, list(keep)))
    if where.size == 0:
        return None
    lo = where.min(0)
    hi = where.max(0) + 1
    return tuple(slice(int(a), int(b)) for a, b in zip(lo, hi))


def remap_labels(labels: np.ndarray, lut: np.ndarray) -> np.ndarray:
    lab = np.asarray(labels)
    if lab.size and int(lab.max()) >= len(lut):
        # labels outside the table map to background
        lut = np.concatenate([lut, np.zeros(int(lab.max()) + 1 - len(lut), dtype=lut.dtype)])
    return lut[lab.astype(np.int64)]


def mask_volume(vol: np.ndarray, labels: np.ndarray, keep: Iterable[int] = (1,),
                background: float = HU_AIR) -> np.ndarray:
    """Keep voxels whose label is in `keep`, set the others to `background`."""
    if vol.shape != labels.shape:
        raise ValueError(f"volume/label shape mismatch: {vol.shape} vs {labels.shape}")
    m = np.isin(labels, list(keep))
    return np.where(m, vol, np.float32(background)).astype(np.float32)


def hu_to_lin_att(vol_hu: np.ndarray, mu_water: Optional[float] = None) -> np.ndarray:
    mu_water = DEFAULT_MU_WATER if mu_water is None else float(mu_water)
    mu = mu_water * (1.0 + np.asarray(vol_hu, dtype=np.float32) / 1000.0)
    return np.maximum(mu, 0.0).astype(np.float32)
