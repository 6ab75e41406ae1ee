"""Grey-scale image sampling and image pyramids."""

from __future__ import annotations

import numpy as np


def _as_image(img) -> np.ndarray:
    a = np.asarray(img)
    if a.ndim != 2:
        raise ValueError(f"expected a single-channel image, got shape {a.shape}")
    if a.size == 0:
        raise ValueError("image is empty")
    return a


def get_pixel_value(img, x, y):
    """Bilinearly interpolated value of the image at (x, y).

    Coordinates are clamped to the image. Scalars give a float; arrays of
    coordinates give an array of values of the broadcast shape.
    """
    a = _as_image(img)
    rows, cols = a.shape
    xs = np.asarray(x, dtype=float)
    ys = np.asarray(y, dtype=float)
    xs = np.where(xs < 0, 0.0, xs)
    ys = np.where(ys < 0, 0.0, ys)
    xs = np.where(xs >= cols, cols - 1.0, xs)
    ys = np.where(ys >= rows, rows - 1.0, ys)
    x0 = np.floor(xs).astype(int)
    y0 = np.floor(ys).astype(int)
    xx = xs - x0
    yy = ys - y0
    x1 = np.minimum(x0 + 1, cols - 1)
    y1 = np.minimum(y0 + 1, rows - 1)
    value = (
        (1 - xx) * (1 - yy) * a[y0, x0]
        + xx * (1 - yy) * a[y0, x1]
        + (1 - xx) * yy * a[y1, x0]
        + xx * yy * a[y1, x1]
    )
    value = np.asarray(value, dtype=float)
    return float(value) if value.ndim == 0 else value


def _linear_taps(src_len: int, dst_len: int):
    scale = src_len / dst_len
    pos = (np.arange(dst_len) + 0.5) * scale - 0.5
    pos = np.clip(pos, 0.0, src_len - 1.0)
    i0 = np.floor(pos).astype(int)
    i1 = np.minimum(i0 + 1, src_len - 1)
    return i0, i1, pos - i0


def resize_half(img) -> np.ndarray:
    """Shrink an image to half its size (rounded down) with bilinear interpolation."""
    a = _as_image(img)
    rows, cols = a.shape
    new_rows, new_cols = int(rows * 0.5), int(cols * 0.5)
    if new_rows == 0 or new_cols == 0:
        raise ValueError(f"image of shape {a.shape} is too small to halve")
    y0, y1, wy = _linear_taps(rows, new_rows)
    x0, x1, wx = _linear_taps(cols, new_cols)
    f = a.astype(float)
    top = f[y0][:, x0] * (1 - wx) + f[y0][:, x1] * wx
    bottom = f[y1][:, x0] * (1 - wx) + f[y1][:, x1] * wx
    out = top * (1 - wy)[:, None] + bottom * wy[:, None]
    if np.issubdtype(a.dtype, np.integer):
        info = np.iinfo(a.dtype)
        return np.clip(np.rint(out), info.min, info.max).astype(a.dtype)
    return out.astype(a.dtype) if np.issubdtype(a.dtype, np.floating) else out


def build_pyramid(img, levels: int = 4) -> list[np.ndarray]:
    """Image pyramid from full size down, each level half the previous one."""
    if levels < 1:
        raise ValueError("a pyramid needs at least one level")
    pyramid = [_as_image(img)]
    for _ in range(levels - 1):
        pyramid.append(resize_half(pyramid[-1]))
    return pyramid