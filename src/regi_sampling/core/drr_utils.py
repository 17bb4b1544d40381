# src/regi_sampling/core/drr_utils.py
from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from .camera import CameraModel
from .overlay import overlay_edges
from .raycast import LineIntegralRayCaster
from .volume import Volume


def remap_to_u8(img: np.ndarray) -> np.ndarray:
    """Linear min/max stretch to [0, 255]."""
    img = np.asarray(img, dtype=np.float64)
    lo, hi = float(np.min(img)), float(np.max(img))
    if hi - lo < 1e-12:
        return np.zeros(img.shape, dtype=np.uint8)
    u8 = np.round(255.0 * (img - lo) / (hi - lo))
    return np.ascontiguousarray(np.clip(u8, 0, 255).astype(np.uint8))


def mask_to_outline(mask_u8, k=3):
    kernel = np.ones((k, k), np.uint8)
    er = cv2.erode(mask_u8, kernel, iterations=1, borderType=cv2.BORDER_REPLICATE)
    edge = cv2.subtract(mask_u8, er)
    return edge


def drr_edges(drr_u8):
    """Robust edges from a (H,W) DRR image."""
    if drr_u8.ndim == 3:
        drr_u8 = drr_u8[..., 0]
    if drr_u8.std() < 2:  # nearly flat
        return np.zeros_like(drr_u8)
    eq = cv2.equalizeHist(drr_u8)
    med = np.median(eq)
    lo = max(0, 0.66 * med)
    hi = min(255, 1.33 * med)
    return cv2.Canny(eq, lo, hi)


@dataclass
class RenderedSample:
    drr: np.ndarray          # float32 line integrals
    drr_u8: np.ndarray
    edges_u8: np.ndarray     # 0/255
    overlay_bgr: np.ndarray  # edges drawn over the real projection


class DRREdgeRenderer:
    """
    Renders a DRR for a camera-to-volume pose and extracts 2D edges.

    Edges are the union of Canny edges on the 8-bit DRR (`do_canny`) and the
    outline of the projected volume silhouette (`do_boundary`). They are
    overlaid on `proj_u8`, the 8-bit real projection.
    """

    def __init__(self, vol_lin_att: Volume, cam: CameraModel, proj_u8: np.ndarray,
                 do_canny: bool = True, do_boundary: bool = True,
                 step_mm: float = 1.0, rows_per_batch: int = 32, dev=None):
        self.ray_caster = LineIntegralRayCaster(vol_lin_att, cam, step_mm=step_mm,
                                                rows_per_batch=rows_per_batch, dev=dev)
        if proj_u8.shape != (cam.num_rows, cam.num_cols):
            proj_u8 = cv2.resize(proj_u8, (cam.num_cols, cam.num_rows), interpolation=cv2.INTER_AREA)
        self.proj_u8 = proj_u8
        self.do_canny = do_canny
        self.do_boundary = do_boundary

    def __call__(self, cam_to_vol: np.ndarray) -> RenderedSample:
        drr, hit = self.ray_caster.render(cam_to_vol)
        drr_u8 = remap_to_u8(drr)
        edges = np.zeros(drr_u8.shape, dtype=np.uint8)
        if self.do_canny:
            edges = cv2.bitwise_or(edges, drr_edges(drr_u8))
        if self.do_boundary:
            edges = cv2.bitwise_or(edges, mask_to_outline(hit, k=3))
        overlay = overlay_edges(self.proj_u8, edges, color=(0, 255, 0))
        return RenderedSample(drr=drr, drr_u8=drr_u8, edges_u8=edges, overlay_bgr=overlay)
