# src/regi_sampling/core/raycast.py
from __future__ import annotations

import math
from typing import Tuple

import numpy as np
import torch
import torch.nn.functional as F

from .camera import CameraModel
from .volume import Volume


def device():
    return torch.device("cuda" if torch.cuda.is_available() else "cpu")


class LineIntegralRayCaster:
    """
    Line integrals of a linear attenuation volume along every detector ray.

    Rays run from the X-ray source to each detector pixel. Poses passed to
    `render` map the camera world frame into volume physical coordinates.
    Sampling is trilinear (torch grid_sample), zero outside the volume, with
    a fixed step in mm restricted to the ray/volume box intersection.
    """

    def __init__(self, vol: Volume, cam: CameraModel, step_mm: float = 1.0,
                 rows_per_batch: int = 32, dev=None):
        if step_mm <= 0:
            raise ValueError(f"step_mm must be positive, got {step_mm}")
        self.vol = vol
        self.cam = cam
        self.step_mm = float(step_mm)
        self.rows_per_batch = max(1, int(rows_per_batch))
        self.dev = dev or device()

        data = np.ascontiguousarray(vol.data, dtype=np.float32)
        self._vol_t = torch.from_numpy(data)[None, None].to(self.dev)  # (1,1,D,H,W)
        self._size_xyz = vol.size_xyz
        self._idx_from_phys = np.linalg.inv(vol.index_to_phys_matrix())

        E_inv = cam.extrinsic_inv
        det_cam = cam.pixel_points_cam()
        self._det_world = det_cam @ E_inv[:3, :3].T + E_inv[:3, 3]  # (rows, cols, 3)
        self._src_world = cam.source_world()
        self._ray_len_mm = np.linalg.norm(self._det_world - self._src_world, axis=-1)

    def _to_index(self, cam_to_vol: np.ndarray, pts: np.ndarray) -> np.ndarray:
        M = self._idx_from_phys @ np.asarray(cam_to_vol, dtype=float)
        return pts @ M[:3, :3].T + M[:3, 3]

    def render(self, cam_to_vol: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Return (line_integral float32 (rows, cols), hit_mask uint8 0/255)."""
        src = torch.tensor(self._to_index(cam_to_vol, self._src_world), dtype=torch.float64, device=self.dev)
        det = torch.tensor(self._to_index(cam_to_vol, self._det_world), dtype=torch.float64, device=self.dev)
        ray_len = torch.tensor(self._ray_len_mm, dtype=torch.float64, device=self.dev)

        d = det - src
        d_safe = torch.where(d.abs() < 1e-12, torch.full_like(d, 1e-12), d)
        lo = torch.full((3,), -0.5, dtype=torch.float64, device=self.dev)
        hi = torch.tensor(self._size_xyz - 0.5, dtype=torch.float64, device=self.dev)
        t1 = (lo - src) / d_safe
        t2 = (hi - src) / d_safe
        t_near = torch.minimum(t1, t2).amax(dim=-1).clamp(0.0, 1.0)
        t_far = torch.maximum(t1, t2).amin(dim=-1).clamp(0.0, 1.0)
        span = (t_far - t_near).clamp(min=0.0)

        rows, cols = self.cam.num_rows, self.cam.num_cols
        out = torch.zeros((rows, cols), dtype=torch.float32, device=self.dev)

        max_len_mm = float((span * ray_len).max().item()) if span.numel() else 0.0
        n_steps = int(math.ceil(max_len_mm / self.step_mm))
        if n_steps == 0:
            return out.cpu().numpy(), np.zeros((rows, cols), dtype=np.uint8)

        dt = self.step_mm / ray_len                         # (rows, cols) step in t
        k = torch.arange(n_steps, dtype=torch.float64, device=self.dev) + 0.5
        # grid_sample coordinates: index i maps to 2 i / (n - 1) - 1
        denom = torch.tensor(np.maximum(self._size_xyz - 1.0, 1.0), dtype=torch.float64, device=self.dev)
        src_g = (src / denom * 2.0 - 1.0).to(torch.float32)
        d_g = (d / denom * 2.0).to(torch.float32)

        for r0 in range(0, rows, self.rows_per_batch):
            r1 = min(rows, r0 + self.rows_per_batch)
            t = t_near[r0:r1, None, :] + k[None, :, None] * dt[r0:r1, None, :]    # (R, S, C)
            w = (t < t_far[r0:r1, None, :]).to(torch.float32)
            grid = src_g + t.to(torch.float32)[..., None] * d_g[r0:r1, None, :, :]  # (R, S, C, 3)
            # grid_sample wants (N, D_out, H_out, W_out, 3) with xyz order
            grid = grid.permute(1, 0, 2, 3)[None]                              # (1, S, R, C, 3)
            mu = F.grid_sample(self._vol_t, grid, mode="bilinear",
                               padding_mode="zeros", align_corners=True)[0, 0]  # (S, R, C)
            out[r0:r1] = (mu * w.permute(1, 0, 2)).sum(dim=0) * self.step_mm

        line_int = out.cpu().numpy().astype(np.float32)
        hit = (line_int > 1e-6).astype(np.uint8) * 255
        return line_int, hit
