import numpy as np
import pytest

from regi_sampling.core.anchor import AnchorComposer
from regi_sampling.core.errors import NumericDegeneracyError
from regi_sampling.core.se3 import apply_to_point, exp_se3, invert_rigid


def test_zero_offset_reproduces_ground_truth(geometry):
    E, G, A = geometry
    comp = AnchorComposer.from_geometry(E, G, A)
    assert np.allclose(comp.compose(exp_se3(np.zeros(6))), G, atol=1e-9)
    assert np.allclose(comp.compose(np.eye(4)), G, atol=1e-9)


def test_anchor_in_camera_frame(geometry):
    E, G, A = geometry
    comp = AnchorComposer.from_geometry(E, G, A)
    assert np.allclose(comp.anchor_cam, apply_to_point(E @ invert_rigid(G), A))
    assert np.allclose(comp.shift_from @ comp.shift_to, np.eye(4))
    # the pre-offset sends the anchor (seen from the world frame) to the origin
    anchor_world = apply_to_point(invert_rigid(G), A)
    assert np.allclose(apply_to_point(comp.pre_offset, anchor_world), 0.0, atol=1e-9)


def test_anchor_is_fixed_point_of_pure_rotations(geometry):
    E, G, A = geometry
    comp = AnchorComposer.from_geometry(E, G, A)
    rng = np.random.default_rng(5)
    for _ in range(200):
        T = exp_se3(np.concatenate([rng.normal(0, 0.5, 3), np.zeros(3)]))
        C = comp.compose(T)
        assert np.linalg.norm(apply_to_point(C @ invert_rigid(G), A) - A) < 1e-6
        assert np.linalg.norm(apply_to_point(G @ invert_rigid(C), A) - A) < 1e-6


def test_rotation_about_camera_origin_would_move_anchor(geometry):
    E, G, A = geometry
    T = exp_se3([0.1, 0.0, 0.0, 0, 0, 0])
    naive = G @ invert_rigid(E) @ T @ E
    assert np.linalg.norm(apply_to_point(naive @ invert_rigid(G), A) - A) > 1.0


def test_translation_offset_moves_anchor_by_its_length(geometry):
    E, G, A = geometry
    comp = AnchorComposer.from_geometry(E, G, A)
    C = comp.compose(exp_se3([0, 0, 0, 3.0, -4.0, 0.0]))
    assert np.linalg.norm(apply_to_point(C @ invert_rigid(G), A) - A) == pytest.approx(5.0)


def test_singular_transforms_are_reported(geometry):
    E, G, A = geometry
    bad = G.copy()
    bad[:3, :3] = 0.0
    with pytest.raises(NumericDegeneracyError, match="ground truth"):
        AnchorComposer.from_geometry(E, bad, A)
    flat = G.copy()
    flat[3] = 0.0
    with pytest.raises(NumericDegeneracyError, match="bottom row"):
        AnchorComposer.from_geometry(E, flat, A)
    projective = E.copy()
    projective[3, 2] = 1e-3
    with pytest.raises(NumericDegeneracyError, match="extrinsic"):
        AnchorComposer.from_geometry(projective, G, A)
    nan_e = E.copy()
    nan_e[0, 3] = np.nan
    with pytest.raises(NumericDegeneracyError, match="extrinsic"):
        AnchorComposer.from_geometry(nan_e, G, A)
    with pytest.raises(NumericDegeneracyError):
        AnchorComposer.from_geometry(E, G, A).compose(np.full((4, 4), np.inf))
