import json
from pathlib import Path

import click
import numpy as np

from .root import cli
from ..core.anchor import AnchorComposer
from ..core.commands_utils import parse_label_spec
from ..core.constants import (
    DEFAULT_MU_WATER, DEFAULT_ROT_STD_DEG, DEFAULT_TRANS_STD_MM, GT_CORRECTION_MM, HU_AIR, PELVIS_LABELS,
)
from ..core.drr_utils import DRREdgeRenderer, remap_to_u8
from ..core.errors import ConfigurationError, InputDataError
from ..core.io import load_sampling_data, proj_idx_str
from ..core.orchestrator import SampleOrchestrator
from ..core.overlay import SampleArtifactWriter
from ..core.sampling import SAMPLERS, make_rng, make_sampler
from ..core.tables import write_tables
from ..core.volume import build_label_lut, hu_to_lin_att, label_bounds, mask_volume


def _check_config(num_samples, out_dir, ds_factor, step_mm, labels):
    if num_samples < 1:
        raise ConfigurationError(f"number of samples must be positive, got {num_samples}")
    if out_dir.exists() and not out_dir.is_dir():
        raise ConfigurationError(f"output directory path exists, but is not a directory: {out_dir}")
    if ds_factor <= 0:
        raise ConfigurationError(f"--ds-factor must be positive, got {ds_factor}")
    if step_mm <= 0:
        raise ConfigurationError(f"--step-mm must be positive, got {step_mm}")
    keep = parse_label_spec(labels)
    if keep is None or not keep.any():
        raise ConfigurationError("--labels must select at least one label")
    return build_label_lut(keep)


@cli.command("sample-single-view")
@click.argument("data_file", type=click.Path(path_type=Path))
@click.argument("spec_id")
@click.argument("proj_idx", type=click.IntRange(min=0))
@click.argument("num_samples", type=int)
@click.argument("out_dir", type=click.Path(path_type=Path))
@click.option("--rng-seed", type=click.IntRange(min=0), default=None,
              help="Seed for the RNG. Drawn from OS entropy when not provided.")
@click.option("--sampler", "sampler_name", type=click.Choice(sorted(SAMPLERS)), default="indep-normal", show_default=True)
@click.option("--rot-std-deg", type=float, nargs=3, default=DEFAULT_ROT_STD_DEG, show_default=True,
              help="Rotation std-devs about X Y Z (deg)")
@click.option("--trans-std-mm", type=float, nargs=3, default=DEFAULT_TRANS_STD_MM, show_default=True,
              help="Translation std-devs along X Y Z (mm)")
@click.option("--labels", default=PELVIS_LABELS, show_default=True,
              help="Label IDs kept as the anatomy of interest, e.g. '1-4,7'")
@click.option("--gt-correction-mm", type=float, default=GT_CORRECTION_MM, show_default=True,
              help="Translation (each axis) pre-applied to the stored ground truth pose")
@click.option("--mu-water", type=float, default=DEFAULT_MU_WATER, show_default=True, help="Water attenuation (1/mm)")
@click.option("--ds-factor", type=float, default=1.0, show_default=True,
              help="Downsampling of each 2D dimension, 0.25 -> 4x fewer rows and cols")
@click.option("--step-mm", type=float, default=1.0, show_default=True, help="Ray marching step (mm)")
@click.option("--rows-per-batch", type=click.IntRange(min=1), default=16, show_default=True,
              help="Detector rows ray cast at once")
@click.option("--canny/--no-canny", default=True, show_default=True, help="Canny edges of the DRR")
@click.option("--boundary/--no-boundary", default=True, show_default=True, help="Silhouette boundary edges")
@click.pass_context
def sample_single_view(ctx, data_file, spec_id, proj_idx, num_samples, out_dir, rng_seed, sampler_name,
                       rot_std_deg, trans_std_mm, labels, gt_correction_mm, mu_water, ds_factor, step_mm,
                       rows_per_batch, canny, boundary):
    """
    Sample initial poses about a ground truth pose and render each one.

    Writes drr_raw_NNN.nii.gz, drr_remap_NNN.png, edges_NNN.png and
    edges_overlay_NNN.png per sample, plus offset_amounts.csv,
    se3_lie_params.csv, cam_extrins_to_vol_poses.csv, offset_poses.csv and
    meta.json. Sample 000 is always the ground truth pose.
    """
    verbose = bool((ctx.obj or {}).get("verbose"))

    def vout(msg):
        if verbose:
            click.echo(msg)

    out_dir = Path(out_dir)
    label_lut = _check_config(num_samples, out_dir, ds_factor, step_mm, labels)

    rng, seed, from_os = make_rng(rng_seed)
    if from_os:
        click.echo(f"⚠️  no --rng-seed given: seeded RNG from OS entropy ({seed}); "
                   f"pass --rng-seed {seed} to reproduce this run", err=True)
    else:
        vout(f"using specified seed for RNG: {seed}")

    vout("reading data from HDF5 file...")
    data = load_sampling_data(data_file, spec_id, proj_idx, label_lut,
                              gt_correction_mm=gt_correction_mm, echo=vout)
    vout(f"ground truth cam extrins to vol:\n{data.gt_cam_to_vol}")

    vout("masking out voxels outside the selected labels and cropping...")
    box = label_bounds(data.seg.data, keep=(1,))
    if box is None:
        raise InputDataError(f"no voxels of specimen {spec_id} carry the labels {labels!r}")
    vol, seg = data.vol.crop(box), data.seg.crop(box)
    ct_hu = mask_volume(vol.data, seg.data, keep=(1,), background=HU_AIR)
    vout(f"cropped volume to {ct_hu.shape[::-1]} voxels (x, y, z)")

    vout("converting HU --> Lin. Att.")
    vol_att = vol.with_data(hu_to_lin_att(ct_hu, mu_water=mu_water))

    anchor = vol_att.center_phys()
    vout(f"center of rot wrt vol: {anchor}")
    composer = AnchorComposer.from_geometry(data.cam.extrinsic, data.gt_cam_to_vol, anchor)

    if not out_dir.exists():
        vout("creating output directory...")
        out_dir.mkdir(parents=True, exist_ok=True)

    vout("remapping proj to 8bpp for eventual edge overlay...")
    proj_u8 = remap_to_u8(data.proj)

    sampler = make_sampler(sampler_name, rot_std_deg, trans_std_mm)
    vout(f"pose sampler: {sampler!r}")

    cam = data.cam.downsample(ds_factor)
    renderer = DRREdgeRenderer(vol_att, cam, proj_u8, do_canny=canny, do_boundary=boundary,
                               step_mm=step_mm, rows_per_batch=rows_per_batch)
    writer = SampleArtifactWriter(out_dir, row_spacing=cam.row_spacing, col_spacing=cam.col_spacing)

    orch = SampleOrchestrator(sampler, composer, renderer, sink=writer, verbose=verbose)
    ds = orch.run(num_samples, rng)

    write_tables(ds, out_dir, echo=vout)
    with open(out_dir / "meta.json", "w") as f:
        json.dump({
            "data_file": str(data_file), "specimen": spec_id, "projection": proj_idx_str(proj_idx),
            "num_samples": int(num_samples), "rng_seed": int(seed), "seed_from_os_entropy": bool(from_os),
            "sampler": sampler_name, "rot_std_deg": list(rot_std_deg), "trans_std_mm": list(trans_std_mm),
            "labels": labels, "gt_correction_mm": float(gt_correction_mm), "mu_water": float(mu_water),
            "ds_factor": float(ds_factor), "step_mm": float(step_mm), "rot_up_deg": int(data.rot_up_deg),
            "center_of_rot_wrt_vol": np.asarray(anchor).tolist(),
            "gt_cam_to_vol": np.asarray(data.gt_cam_to_vol).tolist(),
        }, f, indent=2)

    click.echo(f"✅ Wrote {len(ds)} samples to {out_dir}")
