from pathlib import Path

import h5py
import numpy as np
import pytest

# Small synthetic scene: 24x24 detector with 10 mm pixels, focal length 1000 mm,
# a 10^3 volume (5 mm voxels) whose center sits 500 mm in front of the source.
VOL_SIZE = 10
VOL_SPACING = 5.0
FOCAL_PX = 100.0
DET_PX = 24
DET_SPACING = 10.0
SPEC_ID = "17-1882"
PROJ_IDX = 2


def make_intrinsic():
    return np.array([
        [FOCAL_PX, 0.0, DET_PX / 2.0],
        [0.0, FOCAL_PX, DET_PX / 2.0],
        [0.0, 0.0, 1.0],
    ])


def make_gt_cam_to_vol():
    """Maps the camera point (0, 0, 500) onto the volume center."""
    c = (VOL_SIZE - 1) / 2.0 * VOL_SPACING
    G = np.eye(4)
    G[:3, 3] = [c, c, c - 500.0]
    return G


def make_volumes():
    hu = np.zeros((VOL_SIZE,) * 3, dtype=np.float32)
    lab = np.zeros((VOL_SIZE,) * 3, dtype=np.uint8)
    hu[2:8, 2:8, 2:8] = 1000.0
    lab[2:8, 2:8, 2:4] = 1
    lab[2:8, 2:8, 4:6] = 7
    lab[2:8, 2:8, 6:8] = 2
    lab[0, 0, 0] = 5  # not part of the anatomy of interest
    return hu, lab


def _write_image(g, pixels, spacing, origin, direction):
    g.create_dataset("pixels", data=pixels)
    g.create_dataset("spacing", data=np.asarray(spacing, dtype=float))
    g.create_dataset("origin", data=np.asarray(origin, dtype=float))
    g.create_dataset("dir-mat", data=np.asarray(direction, dtype=float))


def write_sampling_h5(path: Path, omit=(), rot_up=False) -> Path:
    """
    Write an HDF5 file in the layout read by core.io.

    `omit` lists entries (paths relative to the file root) left out.
    """
    path = Path(path)
    hu, lab = make_volumes()
    with h5py.File(str(path), "w") as h5:
        if "proj-params" not in omit:
            pp = h5.create_group("proj-params")
            entries = {
                "intrinsic": make_intrinsic(),
                "extrinsic": np.eye(4),
                "num-rows": DET_PX,
                "num-cols": DET_PX,
                "pixel-row-spacing": DET_SPACING,
                "pixel-col-spacing": DET_SPACING,
            }
            for k, v in entries.items():
                if f"proj-params/{k}" not in omit:
                    pp.create_dataset(k, data=v)

        if SPEC_ID in omit:
            return path
        spec = h5.create_group(SPEC_ID)
        sp = [VOL_SPACING] * 3
        if f"{SPEC_ID}/vol" not in omit:
            _write_image(spec.create_group("vol"), hu, sp, np.zeros(3), np.eye(3))
        if f"{SPEC_ID}/vol-seg" not in omit:
            _write_image(spec.create_group("vol-seg/image"), lab, sp, np.zeros(3), np.eye(3))

        pidx = f"{PROJ_IDX:03d}"
        projs = spec.create_group("projections")
        if f"{SPEC_ID}/projections/{pidx}" not in omit:
            proj = projs.create_group(pidx)
            rng = np.random.default_rng(0)
            img = rng.uniform(0.0, 4.0, size=(DET_PX, DET_PX)).astype(np.float32)
            _write_image(proj.create_group("image"), img, [DET_SPACING] * 2, np.zeros(2), np.eye(2))
            proj.create_dataset("rot-180-for-up", data=np.uint8(1 if rot_up else 0))
            if "gt-poses" not in omit:
                proj.create_group("gt-poses").create_dataset("cam-to-pelvis-vol", data=make_gt_cam_to_vol())
    return path


@pytest.fixture
def h5_path(tmp_path):
    return write_sampling_h5(tmp_path / "data.h5")


@pytest.fixture
def geometry():
    """(extrinsic, ground truth cam-to-vol, anchor in volume) for a non-trivial camera."""
    from regi_sampling.core.se3 import exp_se3

    E = exp_se3([0.3, -1.2, 0.5, 40.0, -15.0, 900.0])
    G = exp_se3([2.0, 0.4, -0.7, -120.0, 60.0, 30.0])
    A = np.array([110.0, 95.5, 160.25])
    return E, G, A
