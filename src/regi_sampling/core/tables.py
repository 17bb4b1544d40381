from pathlib import Path

import pandas as pd

from .constants import (
    CAM_TO_VOL_CSV, OFFSET_AMOUNTS_CSV, OFFSET_COLUMNS, OFFSET_POSES_CSV,
    POSE_COLUMNS, SE3_COLUMNS, SE3_PARAMS_CSV,
)


def dataset_tables(ds) -> dict:
    """File name -> DataFrame, rows in sample index order."""
    n = len(ds)
    return {
        OFFSET_AMOUNTS_CSV: pd.DataFrame(ds.decomps, columns=OFFSET_COLUMNS),
        SE3_PARAMS_CSV: pd.DataFrame(ds.pose_params.T, columns=SE3_COLUMNS),
        CAM_TO_VOL_CSV: pd.DataFrame(ds.composites.reshape(n, 16), columns=POSE_COLUMNS),
        OFFSET_POSES_CSV: pd.DataFrame(ds.offsets.reshape(n, 16), columns=POSE_COLUMNS),
    }


def write_tables(ds, out_dir: Path, echo=None) -> list:
    say = echo or (lambda *_: None)
    written = []
    for name, df in dataset_tables(ds).items():
        path = Path(out_dir) / name
        say(f"writing {name}...")
        df.to_csv(path, index=False, float_format="%.17g")
        written.append(path)
    return written
