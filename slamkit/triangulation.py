"""Linear triangulation of matched points from two camera poses."""

from __future__ import annotations

import numpy as np

from .camera import TUM_K, Match, pixel2cam

_UPPER_DEPTH = 50.0
_LOWER_DEPTH = 10.0


def _projection(T, name: str) -> np.ndarray:
    p = np.asarray(T, dtype=float)
    if p.shape != (3, 4):
        raise ValueError(f"{name} must be a 3x4 projection matrix, got shape {p.shape}")
    return p


def triangulate_points(T1, T2, pts1, pts2) -> np.ndarray:
    """Triangulate normalised image points seen through 3x4 poses T1 and T2.

    Returns the non-homogeneous points as an (N, 3) array.
    """
    P1 = _projection(T1, "T1")
    P2 = _projection(T2, "T2")
    p1 = np.asarray(pts1, dtype=float).reshape(-1, 2)
    p2 = np.asarray(pts2, dtype=float).reshape(-1, 2)
    if p1.shape != p2.shape:
        raise ValueError("pts1 and pts2 must hold the same number of points")
    points = []
    for (u1, v1), (u2, v2) in zip(p1, p2):
        a = np.array(
            [
                u1 * P1[2] - P1[0],
                v1 * P1[2] - P1[1],
                u2 * P2[2] - P2[0],
                v2 * P2[2] - P2[1],
            ]
        )
        _, _, vt = np.linalg.svd(a)
        X = vt[-1]
        with np.errstate(divide="ignore", invalid="ignore"):
            points.append(X[:3] / X[3])
    return np.array(points, dtype=float).reshape(-1, 3)


def triangulation(keypoints1, keypoints2, matches, R, t, K=TUM_K) -> np.ndarray:
    """3D points, in the first camera's frame, of matched pixels of two views.

    The second camera is at x2 = R x1 + t. Returns an (N, 3) array in match order.
    """
    rotation = np.asarray(R, dtype=float)
    if rotation.shape != (3, 3):
        raise ValueError(f"expected a 3x3 rotation matrix, got shape {rotation.shape}")
    translation = np.asarray(t, dtype=float).reshape(3, 1)
    T1 = np.hstack([np.eye(3), np.zeros((3, 1))])
    T2 = np.hstack([rotation, translation])
    pts1, pts2 = [], []
    for m in (Match._make(m) for m in matches):
        pts1.append(pixel2cam(keypoints1[m.query_idx], K))
        pts2.append(pixel2cam(keypoints2[m.train_idx], K))
    return triangulate_points(T1, T2, pts1, pts2)


def get_color(depth: float) -> tuple[float, float, float]:
    """BGR drawing colour for a depth, clamped to the range [10, 50]."""
    th_range = _UPPER_DEPTH - _LOWER_DEPTH
    d = min(max(float(depth), _LOWER_DEPTH), _UPPER_DEPTH)
    return (255.0 * d / th_range, 0.0, 255.0 * (1.0 - d / th_range))