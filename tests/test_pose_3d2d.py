import numpy as np
import pytest

from slamkit.camera import DEPTH_SCALE, TUM_K, pixel2cam
from slamkit.lie import SE3, se3_exp, so3_exp
from slamkit.pose_3d2d import (
    bundle_adjustment_gauss_newton,
    points_3d_from_depth,
    reprojection_jacobian,
)


def _project(points, K):
    return np.column_stack(
        [
            K[0, 0] * points[:, 0] / points[:, 2] + K[0, 2],
            K[1, 1] * points[:, 1] / points[:, 2] + K[1, 2],
        ]
    )


@pytest.fixture
def points():
    rng = np.random.default_rng(1)
    return np.column_stack(
        [rng.uniform(-1, 1, 30), rng.uniform(-1, 1, 30), rng.uniform(3, 6, 30)]
    )


def test_jacobian_matches_finite_differences():
    p = np.array([0.3, -0.2, 2.5])
    J = reprojection_jacobian(p, TUM_K)
    h = 1e-6
    for k in range(6):
        d = np.zeros(6)
        d[k] = h
        plus = _project(se3_exp(d).act(p)[None, :], TUM_K)[0]
        minus = _project(se3_exp(-d).act(p)[None, :], TUM_K)[0]
        numeric = (plus - minus) / (2 * h)
        np.testing.assert_allclose(-numeric, J[:, k], rtol=1e-5, atol=1e-3)


def test_gauss_newton_recovers_pose(points):
    true_pose = SE3(so3_exp([0.05, -0.08, 0.02]), [0.1, -0.05, 0.2])
    observed = _project(true_pose.act(points), TUM_K)
    pose = bundle_adjustment_gauss_newton(points, observed, TUM_K, 10)
    np.testing.assert_allclose(pose.matrix(), true_pose.matrix(), atol=1e-6)


def test_gauss_newton_stays_at_identity_for_exact_data(points):
    observed = _project(points, TUM_K)
    pose = bundle_adjustment_gauss_newton(points, observed, TUM_K, 10)
    np.testing.assert_allclose(pose.matrix(), np.eye(4), atol=1e-9)


def test_gauss_newton_rejects_mismatched_shapes(points):
    with pytest.raises(ValueError):
        bundle_adjustment_gauss_newton(points, np.zeros((len(points) - 1, 2)), TUM_K, 10)


def test_points_3d_from_depth_skips_zero_depth():
    depth = np.zeros((30, 30), dtype=np.uint16)
    depth[8, 5] = 10000
    kp1 = [(5.6, 8.2), (20.0, 20.0)]
    kp2 = [(7.5, 9.25), (21.0, 22.0)]
    pts_3d, pts_2d = points_3d_from_depth(kp1, kp2, [(0, 0, 3), (1, 1, 3)], depth, TUM_K)
    z = 10000 / DEPTH_SCALE
    assert pts_3d.shape == (1, 3)
    np.testing.assert_allclose(pts_3d[0], [*(pixel2cam(kp1[0], TUM_K) * z), z])
    np.testing.assert_allclose(pts_2d, [kp2[0]])