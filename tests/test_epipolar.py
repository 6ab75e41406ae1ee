import numpy as np
import pytest

from slamkit.epipolar import (
    epipolar_constraint,
    essential_matrix,
    fundamental_matrix_8point,
    recover_pose,
    skew,
)
from slamkit.lie import so3_exp

FOCAL = 521.0
PP = (325.1, 249.7)
K = np.array([[FOCAL, 0.0, PP[0]], [0.0, FOCAL, PP[1]], [0.0, 0.0, 1.0]])


def _project(points, K):
    return np.column_stack(
        [
            K[0, 0] * points[:, 0] / points[:, 2] + K[0, 2],
            K[1, 1] * points[:, 1] / points[:, 2] + K[1, 2],
        ]
    )


@pytest.fixture
def scene():
    rng = np.random.default_rng(0)
    X = np.column_stack(
        [rng.uniform(-2, 2, 40), rng.uniform(-2, 2, 40), rng.uniform(4, 8, 40)]
    )
    R = so3_exp([0.05, -0.1, 0.03])
    t = np.array([0.5, 0.1, -0.05])
    X2 = X @ R.T + t
    return _project(X, K), _project(X2, K), R, t


def test_skew_matches_cross_product():
    t = np.array([1.0, -2.0, 0.5])
    v = np.array([0.3, 0.7, -1.1])
    np.testing.assert_allclose(skew(t) @ v, np.cross(t, v))
    np.testing.assert_allclose(skew(t).T, -skew(t))


def test_epipolar_constraint_zero_for_true_motion(scene):
    p1, p2, R, t = scene
    for a, b in zip(p1, p2):
        assert abs(epipolar_constraint(a, b, R, t, K)) < 1e-9


def test_essential_matrix_satisfies_constraint(scene):
    p1, p2, R, t = scene
    E = essential_matrix(p1, p2, FOCAL, PP)
    s = np.linalg.svd(E, compute_uv=False)
    np.testing.assert_allclose(s, [1.0, 1.0, 0.0], atol=1e-9)
    expected = skew(t) @ R
    En = E / np.linalg.norm(E)
    Gn = expected / np.linalg.norm(expected)
    assert min(np.linalg.norm(En - Gn), np.linalg.norm(En + Gn)) < 1e-6


def test_recover_pose_returns_true_motion(scene):
    p1, p2, R, t = scene
    E = essential_matrix(p1, p2, FOCAL, PP)
    R_est, t_est = recover_pose(E, p1, p2, FOCAL, PP)
    np.testing.assert_allclose(R_est, R, atol=1e-6)
    np.testing.assert_allclose(t_est, t / np.linalg.norm(t), atol=1e-6)


def test_fundamental_matrix_properties(scene):
    p1, p2, _, _ = scene
    F = fundamental_matrix_8point(p1, p2)
    assert F[2, 2] == pytest.approx(1.0)
    s = np.linalg.svd(F, compute_uv=False)
    assert s[2] / s[0] < 1e-9
    for a, b in zip(p1, p2):
        y1 = np.array([a[0], a[1], 1.0])
        y2 = np.array([b[0], b[1], 1.0])
        assert abs(y2 @ F @ y1) < 1e-6


def test_too_few_points_rejected(scene):
    p1, p2, _, _ = scene
    with pytest.raises(ValueError):
        fundamental_matrix_8point(p1[:7], p2[:7])
    with pytest.raises(ValueError):
        essential_matrix(p1[:7], p2[:7], FOCAL, PP)


def test_mismatched_shapes_rejected(scene):
    p1, p2, _, _ = scene
    with pytest.raises(ValueError):
        essential_matrix(p1, p2[:-1], FOCAL, PP)