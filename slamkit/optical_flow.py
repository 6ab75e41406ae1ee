"""Lucas-Kanade optical flow by Gauss-Newton, on one level or on an image pyramid."""

from __future__ import annotations

import numpy as np

from .image import build_pyramid, get_pixel_value

HALF_PATCH_SIZE = 4
ITERATIONS = 10
PYRAMIDS = 4
PYRAMID_SCALE = 0.5
_CONVERGENCE = 1e-2

_OX, _OY = np.meshgrid(
    np.arange(-HALF_PATCH_SIZE, HALF_PATCH_SIZE),
    np.arange(-HALF_PATCH_SIZE, HALF_PATCH_SIZE),
    indexing="ij",
)
_OX = _OX.ravel().astype(float)
_OY = _OY.ravel().astype(float)


def _jacobian(img, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    gx = 0.5 * (get_pixel_value(img, xs + 1, ys) - get_pixel_value(img, xs - 1, ys))
    gy = 0.5 * (get_pixel_value(img, xs, ys + 1) - get_pixel_value(img, xs, ys - 1))
    return -np.column_stack([gx, gy])


def _track(img1, img2, kx: float, ky: float, dx: float, dy: float, inverse: bool):
    xs = kx + _OX
    ys = ky + _OY
    reference = get_pixel_value(img1, xs, ys)
    H = np.zeros((2, 2))
    J = None
    last_cost = 0.0
    succ = True
    for iteration in range(ITERATIONS):
        errors = reference - get_pixel_value(img2, xs + dx, ys + dy)
        if not inverse:
            J = _jacobian(img2, xs + dx, ys + dy)
        elif iteration == 0:
            # In inverse mode the Jacobian comes from the first image and stays fixed.
            J = _jacobian(img1, xs, ys)
        if not inverse or iteration == 0:
            H = J.T @ J
        b = -(J.T @ errors)
        cost = float(errors @ errors)

        try:
            update = np.linalg.solve(H, b)
        except np.linalg.LinAlgError:
            update = np.full(2, np.nan)
        if np.isnan(update[0]):
            succ = False
            break
        if iteration > 0 and cost > last_cost:
            break

        dx += float(update[0])
        dy += float(update[1])
        last_cost = cost
        succ = True
        if float(np.linalg.norm(update)) < _CONVERGENCE:
            break
    return dx, dy, succ


def optical_flow_single_level(
    img1, img2, kp1, kp2=None, inverse: bool = False, has_initial: bool = False
) -> tuple[np.ndarray, list[bool]]:
    """Track (x, y) keypoints of img1 into img2.

    With has_initial, kp2 holds the starting guesses. Returns the tracked
    positions as an (N, 2) array and whether each point was tracked.
    """
    p1 = np.asarray(kp1, dtype=float).reshape(-1, 2)
    if has_initial:
        if kp2 is None:
            raise ValueError("initial guesses are required when has_initial is set")
        initial = np.asarray(kp2, dtype=float).reshape(-1, 2)
        if initial.shape != p1.shape:
            raise ValueError("kp1 and kp2 must hold the same number of points")
    else:
        initial = p1

    tracked = np.empty_like(p1)
    success: list[bool] = []
    for i, ((kx, ky), (gx, gy)) in enumerate(zip(p1, initial)):
        dx, dy, succ = _track(img1, img2, kx, ky, gx - kx, gy - ky, inverse)
        tracked[i] = (kx + dx, ky + dy)
        success.append(succ)
    return tracked, success


def optical_flow_multi_level(img1, img2, kp1, inverse: bool = False) -> tuple[np.ndarray, list[bool]]:
    """Coarse-to-fine tracking over a four-level pyramid with scale 0.5."""
    pyr1 = build_pyramid(img1, PYRAMIDS)
    pyr2 = build_pyramid(img2, PYRAMIDS)
    top_scale = PYRAMID_SCALE ** (PYRAMIDS - 1)
    kp1_pyr = np.asarray(kp1, dtype=float).reshape(-1, 2) * top_scale
    kp2_pyr = kp1_pyr.copy()
    success: list[bool] = []
    for level in range(PYRAMIDS - 1, -1, -1):
        kp2_pyr, success = optical_flow_single_level(
            pyr1[level], pyr2[level], kp1_pyr, kp2_pyr, inverse, True
        )
        if level > 0:
            kp1_pyr = kp1_pyr / PYRAMID_SCALE
            kp2_pyr = kp2_pyr / PYRAMID_SCALE
    return kp2_pyr, success