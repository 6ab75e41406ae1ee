import numpy as np

from slamkit.reprojection import SnavelyReprojectionError, cam_projection_with_distortion
from slamkit.rotation import angle_axis_rotate_point


def _camera(rotation=(0.0, 0.0, 0.0), translation=(0.0, 0.0, 0.0), focal=2.0, k1=0.0, k2=0.0):
    return np.array([*rotation, *translation, focal, k1, k2])


def test_projection_without_distortion():
    result = cam_projection_with_distortion(_camera(), [1.0, 2.0, -1.0])
    assert np.allclose(result, [2.0, 4.0])


def test_projection_with_radial_distortion():
    result = cam_projection_with_distortion(_camera(k1=0.1), [1.0, 2.0, -1.0])
    assert np.allclose(result, [3.0, 6.0])


def test_translation_equivalent_to_moving_point():
    point = np.array([0.3, -0.2, -4.0])
    t = np.array([0.1, 0.4, -0.5])
    moved = cam_projection_with_distortion(_camera(translation=t, k1=0.01), point)
    shifted = cam_projection_with_distortion(_camera(k1=0.01), point + t)
    assert np.allclose(moved, shifted)


def test_rotation_equivalent_to_rotating_point():
    point = np.array([0.3, -0.2, -4.0])
    aa = np.array([0.05, -0.1, 0.2])
    rotated_cam = cam_projection_with_distortion(_camera(rotation=aa, focal=500.0), point)
    rotated_pt = cam_projection_with_distortion(
        _camera(focal=500.0), angle_axis_rotate_point(aa, point)
    )
    assert np.allclose(rotated_cam, rotated_pt)


def test_residual_zero_at_prediction():
    camera = _camera(rotation=(0.01, 0.02, -0.03), translation=(0.1, 0.0, 0.2), focal=400.0, k1=1e-3)
    point = np.array([1.0, -0.5, -6.0])
    u, v = cam_projection_with_distortion(camera, point)
    error = SnavelyReprojectionError(u, v)
    assert np.allclose(error(camera, point), [0.0, 0.0])


def test_residual_is_prediction_minus_observation():
    camera = _camera()
    point = [1.0, 2.0, -1.0]
    prediction = cam_projection_with_distortion(camera, point)
    error = SnavelyReprojectionError(prediction[0] + 0.5, prediction[1] - 1.5)
    assert np.allclose(error(camera, point), [-0.5, 1.5])