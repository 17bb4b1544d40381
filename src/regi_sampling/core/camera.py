from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class CameraModel:
    """
    Pinhole X-ray camera.

    The source sits at the origin of the camera frame and the detector plane
    at z = focal length (mm). `extrinsic` maps world points into the camera
    frame; pixel (col, row) lies along K^-1 [col, row, 1].
    """
    intrinsic: np.ndarray
    extrinsic: np.ndarray
    num_rows: int
    num_cols: int
    row_spacing: float
    col_spacing: float

    @property
    def extrinsic_inv(self) -> np.ndarray:
        return np.linalg.inv(self.extrinsic)

    @property
    def focal_len_mm(self) -> float:
        return float(abs(self.intrinsic[0, 0]) * self.col_spacing)

    def source_world(self) -> np.ndarray:
        return self.extrinsic_inv[:3, 3].copy()

    def pixel_points_cam(self) -> np.ndarray:
        """(rows, cols, 3) detector pixel centers in the camera frame (mm)."""
        cols, rows = np.meshgrid(np.arange(self.num_cols, dtype=float),
                                 np.arange(self.num_rows, dtype=float))
        homog = np.stack([cols, rows, np.ones_like(cols)], axis=-1)
        dirs = homog @ np.linalg.inv(self.intrinsic).T
        # scale so every point lies on the detector plane
        return dirs * (self.focal_len_mm / dirs[..., 2:3])

    def downsample(self, factor: float) -> "CameraModel":
        """Camera for an image resized by `factor` (0.25 -> 4x fewer rows and cols)."""
        if factor == 1.0:
            return self
        if factor <= 0:
            raise ValueError(f"downsample factor must be positive, got {factor}")
        S = np.diag([factor, factor, 1.0])
        return CameraModel(
            intrinsic=S @ self.intrinsic,
            extrinsic=self.extrinsic,
            num_rows=max(1, int(round(self.num_rows * factor))),
            num_cols=max(1, int(round(self.num_cols * factor))),
            row_spacing=self.row_spacing / factor,
            col_spacing=self.col_spacing / factor,
        )
