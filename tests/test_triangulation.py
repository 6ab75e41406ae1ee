import numpy as np
import pytest

from slamkit.camera import TUM_K, Match
from slamkit.lie import so3_exp
from slamkit.triangulation import get_color, triangulate_points, triangulation

POINTS = np.array([[0.0, 0.0, 5.0], [1.0, -0.5, 4.0], [-1.0, 0.8, 6.0], [0.3, 0.2, 3.0]])
R = so3_exp([0.05, -0.1, 0.02])
T = np.array([0.5, 0.1, -0.2])


def _pixels(points):
    homog = points @ TUM_K.T
    return homog[:, :2] / homog[:, 2:3]


def test_triangulation_recovers_points():
    kp1 = _pixels(POINTS)
    kp2 = _pixels(POINTS @ R.T + T)
    matches = [Match(i, i, 0.0) for i in range(len(POINTS))]
    result = triangulation(kp1, kp2, matches, R, T)
    np.testing.assert_allclose(result, POINTS, atol=1e-6)


def test_triangulation_follows_match_order():
    kp1 = _pixels(POINTS)
    kp2 = _pixels(POINTS @ R.T + T)[::-1]
    n = len(POINTS)
    matches = [(i, n - 1 - i, 0.0) for i in range(n)]
    result = triangulation(kp1, kp2, matches, R, T)
    np.testing.assert_allclose(result, POINTS, atol=1e-6)


def test_triangulate_points_normalised():
    T1 = np.hstack([np.eye(3), np.zeros((3, 1))])
    T2 = np.hstack([R, T.reshape(3, 1)])
    pts1 = POINTS[:, :2] / POINTS[:, 2:3]
    cam2 = POINTS @ R.T + T
    pts2 = cam2[:, :2] / cam2[:, 2:3]
    np.testing.assert_allclose(triangulate_points(T1, T2, pts1, pts2), POINTS, atol=1e-6)


def test_triangulate_points_rejects_bad_shapes():
    T1 = np.hstack([np.eye(3), np.zeros((3, 1))])
    with pytest.raises(ValueError):
        triangulate_points(np.eye(3), T1, [[0, 0]], [[0, 0]])
    with pytest.raises(ValueError):
        triangulate_points(T1, T1, [[0, 0], [1, 1]], [[0, 0]])


def test_get_color_clamps_depth():
    assert get_color(5.0) == get_color(10.0)
    assert get_color(100.0) == get_color(50.0)


def test_get_color_green_is_zero_and_red_grows():
    near = get_color(12.0)
    far = get_color(40.0)
    assert near[1] == 0.0 and far[1] == 0.0
    assert far[0] > near[0]
    assert far[2] < near[2]


def test_get_color_midrange():
    assert get_color(20.0) == pytest.approx((127.5, 0.0, 127.5))