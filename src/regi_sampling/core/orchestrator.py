"""
Drives one sampling run: batch draw, then compose/decompose/render per sample.

All tangent vectors are drawn before the loop, so the random stream is used
exactly once, in index order, and never during rendering. Every iteration
writes only its own pre-sized slot, so results are in index order no matter
how the loop body is scheduled.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import click
import numpy as np
from tqdm import tqdm

from .anchor import AnchorComposer
from .decompose import OffsetDecomposition, decompose_offset
from .sampling import PoseParamSampler, draw_pose_params
from .se3 import exp_se3


@dataclass(frozen=True)
class Sample:
    index: int
    pose_params: np.ndarray
    offset: np.ndarray
    cam_to_vol: np.ndarray
    decomp: OffsetDecomposition


@dataclass
class Dataset:
    pose_params: np.ndarray   # (6, N)
    offsets: np.ndarray       # (N, 4, 4)
    composites: np.ndarray    # (N, 4, 4)
    decomps: np.ndarray       # (N, 8)

    @classmethod
    def allocate(cls, pose_params: np.ndarray) -> "Dataset":
        n = pose_params.shape[1]
        return cls(
            pose_params=pose_params,
            offsets=np.full((n, 4, 4), np.nan),
            composites=np.full((n, 4, 4), np.nan),
            decomps=np.full((n, 8), np.nan),
        )

    def __len__(self):
        return self.pose_params.shape[1]

    def __getitem__(self, i: int) -> Sample:
        if not -len(self) <= i < len(self):
            raise IndexError(i)
        i = i % len(self)
        return Sample(
            index=i,
            pose_params=self.pose_params[:, i].copy(),
            offset=self.offsets[i].copy(),
            cam_to_vol=self.composites[i].copy(),
            decomp=OffsetDecomposition(*(float(v) for v in self.decomps[i])),
        )

    def is_complete(self) -> bool:
        return bool(np.all(np.isfinite(self.composites)) and np.all(np.isfinite(self.decomps)))


class SampleOrchestrator:
    """
    renderer: called once per sample with the composite cam-to-volume pose.
    sink: optional, called as sink(index, rendered) right after each render.
    """

    def __init__(self, sampler: PoseParamSampler, composer: AnchorComposer,
                 renderer: Callable[[np.ndarray], object],
                 sink: Optional[Callable[[int, object], None]] = None,
                 verbose: bool = False, progress: bool = True):
        self.sampler = sampler
        self.composer = composer
        self.renderer = renderer
        self.sink = sink
        self.verbose = verbose
        self.progress = progress

    def _say(self, msg: str):
        if self.verbose:
            click.echo(msg)

    def run(self, count: int, rng: np.random.Generator) -> Dataset:
        count = int(count)
        if count < 1:
            raise ValueError(f"sample count must be positive, got {count}")

        self._say(f"drawing {count - 1} pose parameter samples (sample 0 fixed at ground truth)...")
        pose_params = draw_pose_params(self.sampler, count, rng)
        ds = Dataset.allocate(pose_params)

        it = range(count)
        if self.progress:
            it = tqdm(it, desc="samples", leave=False)
        for i in it:
            self.process(ds, i)

        return ds

    def process(self, ds: Dataset, i: int) -> None:
        """Compose, decompose and render sample i, writing into slot i."""
        self._say(f"processing sample index: {i}")
        offset = exp_se3(ds.pose_params[:, i])
        cam_to_vol = self.composer.compose(offset)

        ds.offsets[i] = offset
        ds.composites[i] = cam_to_vol
        ds.decomps[i] = decompose_offset(offset).as_row()

        rendered = self.renderer(cam_to_vol)
        if self.sink is not None:
            self.sink(i, rendered)
