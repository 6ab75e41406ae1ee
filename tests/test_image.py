import numpy as np
import pytest

from slamkit.image import build_pyramid, get_pixel_value, resize_half


@pytest.fixture
def grid():
    return np.arange(9, dtype=np.uint8).reshape(3, 3)


def test_integer_coordinates_return_pixel(grid):
    assert get_pixel_value(grid, 1, 1) == pytest.approx(float(grid[1, 1]))
    assert get_pixel_value(grid, 2, 0) == pytest.approx(float(grid[0, 2]))


def test_midpoint_is_average_of_neighbours(grid):
    expected = (float(grid[0, 0]) + float(grid[0, 1])) / 2
    assert get_pixel_value(grid, 0.5, 0) == pytest.approx(expected)


def test_coordinates_are_clamped(grid):
    assert get_pixel_value(grid, -3, -2) == pytest.approx(float(grid[0, 0]))
    assert get_pixel_value(grid, 10, 10) == pytest.approx(float(grid[2, 2]))


def test_array_coordinates_give_array(grid):
    values = get_pixel_value(grid, np.array([0.0, 1.0, 2.0]), np.array([0.0, 1.0, 2.0]))
    assert values.shape == (3,)
    np.testing.assert_allclose(values, [grid[0, 0], grid[1, 1], grid[2, 2]])


def test_non_2d_image_rejected():
    with pytest.raises(ValueError):
        get_pixel_value(np.zeros((2, 2, 3)), 0, 0)


def test_resize_half_box_average():
    img = np.array([[0, 4], [8, 12]], dtype=np.uint8)
    out = resize_half(img)
    assert out.dtype == np.uint8
    assert out.tolist() == [[6]]


def test_resize_half_constant_stays_constant():
    img = np.full((7, 9), 5, dtype=np.uint8)
    out = resize_half(img)
    assert out.shape == (3, 4)
    assert np.all(out == 5)


def test_resize_half_too_small():
    with pytest.raises(ValueError):
        resize_half(np.zeros((1, 1)))


def test_build_pyramid_shapes():
    pyramid = build_pyramid(np.zeros((48, 64), dtype=np.uint8), 4)
    assert [p.shape for p in pyramid] == [(48, 64), (24, 32), (12, 16), (6, 8)]


def test_build_pyramid_needs_a_level():
    with pytest.raises(ValueError):
        build_pyramid(np.zeros((8, 8)), 0)