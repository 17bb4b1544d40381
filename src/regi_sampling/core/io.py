from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import h5py
import numpy as np

from .camera import CameraModel
from .constants import GT_CORRECTION_MM
from .errors import InputDataError
from .se3 import translation_only
from .volume import Volume, remap_labels


@dataclass
class SamplingData:
    cam: CameraModel
    vol: Volume               # intensities (HU)
    seg: Volume               # labels after the remap
    proj: np.ndarray          # (rows, cols) float32 projection pixels
    rot_up_deg: int           # 0 or 180
    gt_cam_to_vol: np.ndarray  # corrected ground truth


def proj_idx_str(proj_idx: int) -> str:
    return f"{int(proj_idx):03d}"


def _require(group: h5py.Group, key: str, what: Optional[str] = None):
    if key not in group:
        where = group.name.rstrip("/") + "/" + key
        raise InputDataError(f"{what or 'entry'} not found in data file: {where}")
    return group[key]


def _read_matrix(group: h5py.Group, key: str) -> np.ndarray:
    return np.asarray(_require(group, key)[()], dtype=float)


def _read_scalar(group: h5py.Group, key: str):
    return np.asarray(_require(group, key)[()]).reshape(-1)[0]


def read_image_group(g: h5py.Group, ndim: int = 3):
    """Read an image group with datasets pixels, spacing, origin and dir-mat."""
    pixels = np.asarray(_require(g, "pixels", "image pixels")[()])
    if pixels.ndim != ndim:
        raise InputDataError(f"expected {ndim}D pixels in {g.name}, got shape {pixels.shape}")
    spacing = np.asarray(g["spacing"][()], dtype=float) if "spacing" in g else np.ones(ndim)
    origin = np.asarray(g["origin"][()], dtype=float) if "origin" in g else np.zeros(ndim)
    direction = np.asarray(g["dir-mat"][()], dtype=float) if "dir-mat" in g else np.eye(ndim)
    return pixels, spacing, origin, direction


def read_camera(h5: h5py.File) -> CameraModel:
    pp = _require(h5, "proj-params", "projection parameters group")
    return CameraModel(
        intrinsic=_read_matrix(pp, "intrinsic"),
        extrinsic=_read_matrix(pp, "extrinsic"),
        num_rows=int(_read_scalar(pp, "num-rows")),
        num_cols=int(_read_scalar(pp, "num-cols")),
        row_spacing=float(_read_scalar(pp, "pixel-row-spacing")),
        col_spacing=float(_read_scalar(pp, "pixel-col-spacing")),
    )


def load_sampling_data(h5_path: Path, spec_id: str, proj_idx: int, label_lut: np.ndarray,
                       gt_correction_mm: float = GT_CORRECTION_MM, echo=None) -> SamplingData:
    """
    Read camera, volumes, projection and ground truth pose for one specimen/projection.

    `label_lut` remaps the label volume (kept anatomy -> 1). The ground truth is
    pre-multiplied by a translation of `gt_correction_mm` on each axis.
    """
    say = echo or (lambda *_: None)
    h5_path = Path(h5_path)
    if not h5_path.exists():
        raise InputDataError(f"data file not found: {h5_path}")

    say(f"opening source H5 for reading: {h5_path}")
    try:
        h5 = h5py.File(str(h5_path), "r")
    except OSError as exc:
        raise InputDataError(f"cannot open data file {h5_path}: {exc}") from exc

    with h5:
        say("setting up camera...")
        cam = read_camera(h5)

        spec_g = _require(h5, str(spec_id), "specimen ID")

        say("reading intensity volume...")
        px, sp, org, dirm = read_image_group(_require(spec_g, "vol", "intensity volume"))
        vol = Volume(px.astype(np.float32), sp, org, dirm)

        say("reading segmentation volume...")
        seg_g = _require(_require(spec_g, "vol-seg", "segmentation group"), "image", "segmentation volume")
        lpx, lsp, lorg, ldir = read_image_group(seg_g)
        if lpx.shape != px.shape:
            raise InputDataError(f"segmentation shape {lpx.shape} does not match volume shape {px.shape}")
        seg = Volume(remap_labels(lpx, label_lut).astype(np.uint8), lsp, lorg, ldir)

        projs_g = _require(spec_g, "projections", "projections group")
        pidx = proj_idx_str(proj_idx)
        proj_g = _require(projs_g, pidx, "projection")

        say("reading projection pixels...")
        img, _, _, _ = read_image_group(_require(proj_g, "image", "projection image"), ndim=2)

        rot_up = bool(_read_scalar(proj_g, "rot-180-for-up"))

        gt = _read_matrix(_require(proj_g, "gt-poses", "ground truth poses group"), "cam-to-pelvis-vol")

    gt_corr = translation_only(np.full(3, float(gt_correction_mm)))
    return SamplingData(
        cam=cam,
        vol=vol,
        seg=seg,
        proj=img.astype(np.float32),
        rot_up_deg=180 if rot_up else 0,
        gt_cam_to_vol=gt_corr @ gt,
    )
