from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Optional, Sequence, Tuple, Type

import numpy as np

from .constants import DEG2RAD


class PoseParamSampler(ABC):
    """Draws se(3) tangent-space offsets, one column per sample."""

    @abstractmethod
    def sample_pose_params(self, count: int, rng: np.random.Generator) -> np.ndarray:
        """Return a (6, count) array of tangent vectors."""


class IndependentNormalSampler(PoseParamSampler):
    """
    Zero-mean normal draws with independent dimensions.

    Rotation std-devs are given in degrees and stored in radians; translation
    std-devs are in mm. Negative values are not checked here.
    """

    def __init__(self, rot_x_deg_std_dev, rot_y_deg_std_dev, rot_z_deg_std_dev,
                 trans_x_mm_std_dev, trans_y_mm_std_dev, trans_z_mm_std_dev):
        self.std_devs = np.array([
            rot_x_deg_std_dev * DEG2RAD,
            rot_y_deg_std_dev * DEG2RAD,
            rot_z_deg_std_dev * DEG2RAD,
            trans_x_mm_std_dev,
            trans_y_mm_std_dev,
            trans_z_mm_std_dev,
        ], dtype=float)

    def sample_pose_params(self, count: int, rng: np.random.Generator) -> np.ndarray:
        # one (count, 6) draw: the six dims of a sample are consumed back to back
        z = rng.standard_normal((int(count), 6))
        return (z * self.std_devs).T

    def __repr__(self):
        return f"IndependentNormalSampler(std_devs={self.std_devs.tolist()})"


SAMPLERS: Dict[str, Type[PoseParamSampler]] = {
    "indep-normal": IndependentNormalSampler,
}


def make_sampler(name: str, rot_std_deg: Sequence[float], trans_std_mm: Sequence[float]) -> PoseParamSampler:
    try:
        cls = SAMPLERS[name]
    except KeyError:
        raise ValueError(f"unknown sampler: {name} (known: {', '.join(sorted(SAMPLERS))})") from None
    return cls(*[float(s) for s in rot_std_deg], *[float(s) for s in trans_std_mm])


def draw_pose_params(sampler: PoseParamSampler, count: int, rng: np.random.Generator) -> np.ndarray:
    """
    Batch-draw all tangent vectors for a run.

    Column 0 is the exact zero vector (the ground truth pose); the remaining
    count - 1 columns come from a single sampler call. count == 1 draws nothing.
    """
    count = int(count)
    params = np.zeros((6, count), dtype=float)
    if count > 1:
        params[:, 1:] = sampler.sample_pose_params(count - 1, rng)
    return params


def make_rng(seed: Optional[int] = None) -> Tuple[np.random.Generator, int, bool]:
    """
    Return (rng, seed_used, from_os_entropy).

    Without a seed, entropy is pulled from the OS; it is returned so the run
    can be replayed by passing it back as the seed.
    """
    if seed is None:
        ss = np.random.SeedSequence()
        return np.random.default_rng(ss), int(ss.entropy), True
    return np.random.default_rng(int(seed)), int(seed), False
