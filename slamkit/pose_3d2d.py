"""Camera pose from 3D-2D correspondences by Gauss-Newton on the reprojection error."""

from __future__ import annotations

import numpy as np

from .camera import DEPTH_SCALE, TUM_K, Match, pixel2cam
from .lie import SE3, se3_exp

_CONVERGENCE = 1e-6


def _intrinsics(K) -> tuple[float, float, float, float]:
    k = np.asarray(K, dtype=float)
    if k.shape != (3, 3):
        raise ValueError(f"expected a 3x3 camera matrix, got shape {k.shape}")
    return k[0, 0], k[1, 1], k[0, 2], k[1, 2]


def reprojection_jacobian(point_cam, K=TUM_K) -> np.ndarray:
    """2x6 Jacobian of (observed - projected) w.r.t. a left se(3) perturbation."""
    fx, fy, _, _ = _intrinsics(K)
    X, Y, Z = (float(v) for v in np.asarray(point_cam, dtype=float).reshape(3))
    inv_z = 1.0 / Z
    inv_z2 = inv_z * inv_z
    return np.array(
        [
            [
                -fx * inv_z,
                0.0,
                fx * X * inv_z2,
                fx * X * Y * inv_z2,
                -fx - fx * X * X * inv_z2,
                fx * Y * inv_z,
            ],
            [
                0.0,
                -fy * inv_z,
                fy * Y * inv_z2,
                fy + fy * Y * Y * inv_z2,
                -fy * X * Y * inv_z2,
                -fy * X * inv_z,
            ],
        ]
    )


def bundle_adjustment_gauss_newton(points_3d, points_2d, K=TUM_K, iterations: int = 10) -> SE3:
    """Estimate the pose T with points_2d ~= project(T * points_3d), starting from identity."""
    p3 = np.asarray(points_3d, dtype=float)
    p2 = np.asarray(points_2d, dtype=float)
    if p3.ndim != 2 or p3.shape[1] != 3 or p2.shape != (len(p3), 2):
        raise ValueError("expected points of shape (N, 3) and (N, 2)")
    if len(p3) == 0:
        raise ValueError("at least one correspondence is required")
    fx, fy, cx, cy = _intrinsics(K)

    pose = SE3()
    last_cost = 0.0
    for iteration in range(iterations):
        pc = pose.act(p3)
        proj = np.column_stack(
            [fx * pc[:, 0] / pc[:, 2] + cx, fy * pc[:, 1] / pc[:, 2] + cy]
        )
        errors = p2 - proj
        cost = float(np.sum(errors * errors))
        jacobians = np.array([reprojection_jacobian(p, K) for p in pc])
        H = np.einsum("nij,nik->jk", jacobians, jacobians)
        b = -np.einsum("nij,ni->j", jacobians, errors)

        try:
            dx = np.linalg.solve(H, b)
        except np.linalg.LinAlgError:
            break
        if np.isnan(dx[0]):
            break
        if iteration > 0 and cost >= last_cost:
            break

        pose = se3_exp(dx).compose(pose)
        last_cost = cost
        if float(np.linalg.norm(dx)) < _CONVERGENCE:
            break
    return pose


def points_3d_from_depth(
    keypoints1, keypoints2, matches, depth, K=TUM_K
) -> tuple[np.ndarray, np.ndarray]:
    """3D points from the first view's depth image, paired with pixels of the second view.

    Matches with zero depth are skipped. Returns arrays of shape (N, 3) and (N, 2).
    """
    depth_img = np.asarray(depth)
    pts_3d, pts_2d = [], []
    for m in (Match._make(m) for m in matches):
        kp1 = keypoints1[m.query_idx]
        d = int(depth_img[int(kp1[1]), int(kp1[0])])
        if d == 0:
            continue
        dd = d / DEPTH_SCALE
        p1 = pixel2cam(kp1, K)
        pts_3d.append((p1[0] * dd, p1[1] * dd, dd))
        kp2 = keypoints2[m.train_idx]
        pts_2d.append((float(kp2[0]), float(kp2[1])))
    return (
        np.array(pts_3d, dtype=float).reshape(-1, 3),
        np.array(pts_2d, dtype=float).reshape(-1, 2),
    )