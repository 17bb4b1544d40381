import numpy as np

# anatomy of interest: left/right hemi-pelvis, vertebra, upper/lower sacrum
PELVIS_LABELS = "1-4,7"

# Shift applied to the stored ground truth (mm, on each axis) to undo an old
# linear interpolation texture indexing mismatch. Check against the renderer's
# interpolation convention before reusing with other data.
GT_CORRECTION_MM = -0.5

DEFAULT_ROT_STD_DEG = (1.0, 1.0, 1.0)
DEFAULT_TRANS_STD_MM = (1.0, 1.0, 5.0)

# linear attenuation of water (1/mm) near 70 keV
DEFAULT_MU_WATER = 0.0195
HU_AIR = -1000.0

DEG2RAD = np.pi / 180.0
RAD2DEG = 180.0 / np.pi

OFFSET_COLUMNS = [
    "total rotation (deg)", "total trans. (mm)",
    "rotation X (deg)", "rotation Y (deg)", "rotation Z (deg)",
    "translation X (mm)", "translation Y (mm)", "translation Z (mm)",
]
SE3_COLUMNS = [f"se3-dim-{i}" for i in range(1, 7)]
POSE_COLUMNS = [f"row{r}_col{c}" for r in range(1, 5) for c in range(1, 5)]

OFFSET_AMOUNTS_CSV = "offset_amounts.csv"
SE3_PARAMS_CSV = "se3_lie_params.csv"
CAM_TO_VOL_CSV = "cam_extrins_to_vol_poses.csv"
OFFSET_POSES_CSV = "offset_poses.csv"

DRR_RAW_FMT = "drr_raw_{:03d}.nii.gz"
DRR_REMAP_FMT = "drr_remap_{:03d}.png"
EDGES_FMT = "edges_{:03d}.png"
EDGES_OVERLAY_FMT = "edges_overlay_{:03d}.png"
