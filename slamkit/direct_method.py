"""Camera pose from image intensities (direct method), on one level or on a pyramid."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .image import build_pyramid, get_pixel_value
from .lie import SE3, se3_exp

# Stereo baseline of the KITTI-style sequence the default intrinsics belong to.
BASELINE = 0.573

HALF_PATCH_SIZE = 1
ITERATIONS = 10
PYRAMIDS = 4
PYRAMID_SCALE = 0.5
_SCALES = tuple(PYRAMID_SCALE**level for level in range(PYRAMIDS))
_CONVERGENCE = 1e-3

_OFF_X, _OFF_Y = np.meshgrid(
    np.arange(-HALF_PATCH_SIZE, HALF_PATCH_SIZE + 1),
    np.arange(-HALF_PATCH_SIZE, HALF_PATCH_SIZE + 1),
    indexing="ij",
)
_OFF_X = _OFF_X.ravel().astype(float)
_OFF_Y = _OFF_Y.ravel().astype(float)


@dataclass(frozen=True)
class Intrinsics:
    """Pinhole camera intrinsics."""

    fx: float = 718.856
    fy: float = 718.856
    cx: float = 607.1928
    cy: float = 185.2157

    def scaled(self, scale: float) -> "Intrinsics":
        """Intrinsics of the same camera for an image resized by scale."""
        return Intrinsics(self.fx * scale, self.fy * scale, self.cx * scale, self.cy * scale)


@dataclass(eq=False)
class JacobianAccumulation:
    """Normal equations, mean patch cost and projections gathered over all points."""

    hessian: np.ndarray
    bias: np.ndarray
    cost: float
    projection: np.ndarray
    good: int


def _image(img, name: str) -> np.ndarray:
    a = np.asarray(img)
    if a.ndim != 2:
        raise ValueError(f"{name} must be a single-channel image, got shape {a.shape}")
    return a


def _references(px_ref, depth_ref) -> tuple[np.ndarray, np.ndarray]:
    px = np.asarray(px_ref, dtype=float)
    if px.ndim != 2 or px.shape[1] != 2:
        raise ValueError(f"px_ref must have shape (N, 2), got {px.shape}")
    depth = np.asarray(depth_ref, dtype=float).reshape(-1)
    if len(depth) != len(px):
        raise ValueError("px_ref and depth_ref must hold the same number of entries")
    return px, depth


def accumulate_jacobian(img1, img2, px_ref, depth_ref, T21=None, camera=None) -> JacobianAccumulation:
    """Gauss-Newton system of the photometric error of reference pixels seen through T21."""
    a1 = _image(img1, "img1")
    a2 = _image(img2, "img2")
    px, depth = _references(px_ref, depth_ref)
    pose = T21 if T21 is not None else SE3()
    cam = camera if camera is not None else Intrinsics()
    rows, cols = a2.shape

    projection = np.zeros((len(px), 2))
    hessian = np.zeros((6, 6))
    bias = np.zeros(6)
    if len(px) == 0:
        return JacobianAccumulation(hessian, bias, 0.0, projection, 0)

    point_ref = depth[:, None] * np.column_stack(
        [(px[:, 0] - cam.cx) / cam.fx, (px[:, 1] - cam.cy) / cam.fy, np.ones(len(px))]
    )
    point_cur = pose.act(point_ref)
    X, Y, Z = point_cur[:, 0], point_cur[:, 1], point_cur[:, 2]
    with np.errstate(divide="ignore", invalid="ignore"):
        u = cam.fx * X / Z + cam.cx
        v = cam.fy * Y / Z + cam.cy
    h = HALF_PATCH_SIZE
    inside = (
        np.isfinite(u) & np.isfinite(v)
        & (u >= h) & (u <= cols - h) & (v >= h) & (v <= rows - h)
    )
    good = (Z >= 0) & inside
    count = int(np.count_nonzero(good))
    if count == 0:
        return JacobianAccumulation(hessian, bias, 0.0, projection, 0)

    u, v = u[good], v[good]
    X, Y, Z = X[good], Y[good], Z[good]
    ref = px[good]
    projection[good] = np.column_stack([u, v])

    z_inv = 1.0 / Z
    z2_inv = z_inv * z_inv
    zeros = np.zeros_like(Z)
    j_pixel_xi = np.stack(
        [
            np.column_stack([
                cam.fx * z_inv, zeros, -cam.fx * X * z2_inv,
                -cam.fx * X * Y * z2_inv, cam.fx + cam.fx * X * X * z2_inv, -cam.fx * Y * z_inv,
            ]),
            np.column_stack([
                zeros, cam.fy * z_inv, -cam.fy * Y * z2_inv,
                -cam.fy - cam.fy * Y * Y * z2_inv, cam.fy * X * Y * z2_inv, cam.fy * X * z_inv,
            ]),
        ],
        axis=1,
    )

    x1 = ref[:, 0:1] + _OFF_X
    y1 = ref[:, 1:2] + _OFF_Y
    x2 = u[:, None] + _OFF_X
    y2 = v[:, None] + _OFF_Y
    error = get_pixel_value(a1, x1, y1) - get_pixel_value(a2, x2, y2)
    grad_x = 0.5 * (get_pixel_value(a2, x2 + 1, y2) - get_pixel_value(a2, x2 - 1, y2))
    grad_y = 0.5 * (get_pixel_value(a2, x2, y2 + 1) - get_pixel_value(a2, x2, y2 - 1))
    j_img = np.stack([grad_x, grad_y], axis=-1)

    J = -np.einsum("gkp,gpi->gki", j_img, j_pixel_xi)
    hessian = np.einsum("gki,gkj->ij", J, J)
    bias = -np.einsum("gk,gki->i", error, J)
    cost = float(np.sum(error * error)) / count
    return JacobianAccumulation(hessian, bias, cost, projection, count)


def _solve(hessian: np.ndarray, bias: np.ndarray) -> np.ndarray:
    try:
        return np.linalg.solve(hessian, bias)
    except np.linalg.LinAlgError:
        return np.full(6, np.nan)


def direct_pose_estimation_single_layer(
    img1, img2, px_ref, depth_ref, T21=None, camera=None
) -> tuple[SE3, np.ndarray]:
    """Refine T21 on one image level.

    Returns the pose and the projections of the reference pixels into img2
    found in the last accumulation (zero for pixels that fell outside).
    """
    pose = T21 if T21 is not None else SE3()
    cam = camera if camera is not None else Intrinsics()
    px, depth = _references(px_ref, depth_ref)
    projection = np.zeros((len(px), 2))
    last_cost = 0.0
    for iteration in range(ITERATIONS):
        acc = accumulate_jacobian(img1, img2, px, depth, pose, cam)
        projection = acc.projection
        update = _solve(acc.hessian, acc.bias)
        if np.isnan(update[0]):
            # A flat patch leaves the Hessian singular.
            break
        pose = se3_exp(update).compose(pose)
        cost = acc.cost
        if iteration > 0 and cost > last_cost:
            break
        if float(np.linalg.norm(update)) < _CONVERGENCE:
            break
        last_cost = cost
    return pose, projection


def direct_pose_estimation_multi_layer(
    img1, img2, px_ref, depth_ref, T21=None, camera=None
) -> tuple[SE3, np.ndarray]:
    """Refine T21 coarse to fine over a four-level pyramid with scale 0.5."""
    pose = T21 if T21 is not None else SE3()
    cam = camera if camera is not None else Intrinsics()
    px, depth = _references(px_ref, depth_ref)
    pyr1 = build_pyramid(_image(img1, "img1"), PYRAMIDS)
    pyr2 = build_pyramid(_image(img2, "img2"), PYRAMIDS)
    projection = np.zeros((len(px), 2))
    for level in range(PYRAMIDS - 1, -1, -1):
        scale = _SCALES[level]
        pose, projection = direct_pose_estimation_single_layer(
            pyr1[level], pyr2[level], px * scale, depth, pose, cam.scaled(scale)
        )
    return pose, projection