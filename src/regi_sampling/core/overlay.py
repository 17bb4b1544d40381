from pathlib import Path

import cv2
import nibabel as nib
import numpy as np

from .constants import DRR_RAW_FMT, DRR_REMAP_FMT, EDGES_FMT, EDGES_OVERLAY_FMT


def overlay_edges(gray_u8: np.ndarray, edges_u8: np.ndarray, color=(0, 255, 0)):
    """Paint edge pixels in `color` (BGR) over a grayscale image."""
    if edges_u8.ndim > 2:
        edges_u8 = np.squeeze(edges_u8)
    if edges_u8.ndim != 2:
        raise ValueError(f"edges must be 2D, got {edges_u8.shape}")
    # match size
    if edges_u8.shape != gray_u8.shape:
        edges_u8 = cv2.resize(edges_u8, (gray_u8.shape[1], gray_u8.shape[0]), interpolation=cv2.INTER_NEAREST)
    base = cv2.cvtColor(gray_u8, cv2.COLOR_GRAY2BGR)
    base[edges_u8 > 0] = color
    return base


def save_u8_gray(path, img):
    img = np.squeeze(img)
    if img.ndim == 3:
        if img.shape[2] == 1:
            img = img[:, :, 0]
        elif img.shape[2] in (3, 4):
            img = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY if img.shape[2] == 3 else cv2.COLOR_BGRA2GRAY)
        else:
            img = img[:, :, 0]
    if img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)
    cv2.imwrite(str(path), np.ascontiguousarray(img))


def save_raw_drr(path, drr: np.ndarray, row_spacing: float, col_spacing: float):
    """Write float line integrals as a 2D NIfTI (x = columns, y = rows)."""
    affine = np.diag([float(col_spacing), float(row_spacing), 1.0, 1.0])
    img = nib.Nifti1Image(np.ascontiguousarray(drr.T, dtype=np.float32), affine)
    nib.save(img, str(path))


class SampleArtifactWriter:
    """Writes the four per-sample artifacts into `out_dir`."""

    def __init__(self, out_dir: Path, row_spacing: float = 1.0, col_spacing: float = 1.0):
        self.out_dir = Path(out_dir)
        self.row_spacing = row_spacing
        self.col_spacing = col_spacing

    def __call__(self, idx: int, rendered) -> None:
        save_raw_drr(self.out_dir / DRR_RAW_FMT.format(idx), rendered.drr,
                     self.row_spacing, self.col_spacing)
        save_u8_gray(self.out_dir / DRR_REMAP_FMT.format(idx), rendered.drr_u8)
        save_u8_gray(self.out_dir / EDGES_FMT.format(idx), rendered.edges_u8)
        cv2.imwrite(str(self.out_dir / EDGES_OVERLAY_FMT.format(idx)), rendered.overlay_bgr)
