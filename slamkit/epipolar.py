"""Two-view epipolar geometry: fundamental and essential matrices and pose recovery."""

from __future__ import annotations

import math

import numpy as np

from .camera import TUM_K, pixel2cam
from .lie import hat

_MIN_POINTS = 8
_W = np.array([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])


def skew(t) -> np.ndarray:
    """Skew-symmetric matrix t^ of a translation, so that skew(t) @ v == t x v."""
    return hat(t)


def _as_correspondences(points1, points2, minimum: int) -> tuple[np.ndarray, np.ndarray]:
    p1 = np.asarray(points1, dtype=float)
    p2 = np.asarray(points2, dtype=float)
    if p1.ndim != 2 or p1.shape[1] != 2 or p2.shape != p1.shape:
        raise ValueError("expected two point arrays of the same shape (N, 2)")
    if len(p1) < minimum:
        raise ValueError(f"at least {minimum} correspondences are required, got {len(p1)}")
    return p1, p2


def _hartley_normalize(pts: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    centroid = pts.mean(axis=0)
    mean_dist = float(np.sqrt(((pts - centroid) ** 2).sum(axis=1)).mean())
    if mean_dist == 0.0:
        raise ValueError("all points coincide")
    s = math.sqrt(2.0) / mean_dist
    T = np.array(
        [
            [s, 0.0, -s * centroid[0]],
            [0.0, s, -s * centroid[1]],
            [0.0, 0.0, 1.0],
        ]
    )
    homogeneous = np.column_stack([pts, np.ones(len(pts))]) @ T.T
    return homogeneous, T


def _linear_epipolar(x1: np.ndarray, x2: np.ndarray) -> np.ndarray:
    """Least-squares 3x3 matrix M with x2^T M x1 = 0 for homogeneous rows x1, x2."""
    a = np.column_stack(
        [
            x2[:, 0] * x1[:, 0], x2[:, 0] * x1[:, 1], x2[:, 0] * x1[:, 2],
            x2[:, 1] * x1[:, 0], x2[:, 1] * x1[:, 1], x2[:, 1] * x1[:, 2],
            x2[:, 2] * x1[:, 0], x2[:, 2] * x1[:, 1], x2[:, 2] * x1[:, 2],
        ]
    )
    _, _, vt = np.linalg.svd(a)
    return vt[-1].reshape(3, 3)


def fundamental_matrix_8point(points1, points2) -> np.ndarray:
    """Fundamental matrix F with x2^T F x1 = 0 by the normalised 8-point algorithm."""
    p1, p2 = _as_correspondences(points1, points2, _MIN_POINTS)
    x1, T1 = _hartley_normalize(p1)
    x2, T2 = _hartley_normalize(p2)
    f = _linear_epipolar(x1, x2)
    u, s, vt = np.linalg.svd(f)
    f = u @ np.diag([s[0], s[1], 0.0]) @ vt
    f = T2.T @ f @ T1
    if abs(f[2, 2]) > np.finfo(float).eps:
        f = f / f[2, 2]
    return f


def _normalized(points: np.ndarray, focal: float, principal_point) -> np.ndarray:
    cx, cy = float(principal_point[0]), float(principal_point[1])
    return (points - np.array([cx, cy])) / float(focal)


def essential_matrix(points1, points2, focal=521.0, principal_point=(325.1, 249.7)) -> np.ndarray:
    """Essential matrix from pixel correspondences of a camera with one focal length."""
    p1, p2 = _as_correspondences(points1, points2, _MIN_POINTS)
    if focal == 0:
        raise ValueError("focal length must be non-zero")
    n1 = _normalized(p1, focal, principal_point)
    n2 = _normalized(p2, focal, principal_point)
    ones = np.ones((len(n1), 1))
    e = _linear_epipolar(np.hstack([n1, ones]), np.hstack([n2, ones]))
    u, _, vt = np.linalg.svd(e)
    return u @ np.diag([1.0, 1.0, 0.0]) @ vt


def _triangulate(R: np.ndarray, t: np.ndarray, x1: np.ndarray, x2: np.ndarray) -> np.ndarray:
    P1 = np.hstack([np.eye(3), np.zeros((3, 1))])
    P2 = np.hstack([R, t.reshape(3, 1)])
    points = []
    for (u1, v1), (u2, v2) in zip(x1, x2):
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
        points.append(X[:3] / X[3] if X[3] != 0 else np.full(3, np.nan))
    return np.array(points)


def recover_pose(
    essential, points1, points2, focal=521.0, principal_point=(325.1, 249.7)
) -> tuple[np.ndarray, np.ndarray]:
    """Rotation and unit translation (x2 = R x1 + t) that put most points in front of both cameras."""
    p1, p2 = _as_correspondences(points1, points2, 1)
    e = np.asarray(essential, dtype=float)
    if e.shape != (3, 3):
        raise ValueError(f"expected a 3x3 essential matrix, got shape {e.shape}")
    if focal == 0:
        raise ValueError("focal length must be non-zero")
    n1 = _normalized(p1, focal, principal_point)
    n2 = _normalized(p2, focal, principal_point)

    u, _, vt = np.linalg.svd(e)
    if np.linalg.det(u) < 0:
        u = -u
    if np.linalg.det(vt) < 0:
        vt = -vt
    r1 = u @ _W @ vt
    r2 = u @ _W.T @ vt
    t = u[:, 2] / np.linalg.norm(u[:, 2])

    best, best_count = None, -1
    for R, tc in ((r1, t), (r1, -t), (r2, t), (r2, -t)):
        X = _triangulate(R, tc, n1, n2)
        depth1 = X[:, 2]
        depth2 = (X @ R.T + tc)[:, 2]
        count = int(np.sum((depth1 > 0) & (depth2 > 0)))
        if count > best_count:
            best, best_count = (R, tc), count
    return best[0].copy(), best[1].copy()


def epipolar_constraint(pt1, pt2, R, t, K=TUM_K) -> float:
    """Value of y2^T t^ R y1 for pixel points pt1 and pt2; zero for a perfect match."""
    n1 = pixel2cam(pt1, K)
    n2 = pixel2cam(pt2, K)
    y1 = np.array([n1[0], n1[1], 1.0])
    y2 = np.array([n2[0], n2[1], 1.0])
    rotation = np.asarray(R, dtype=float)
    return float(y2 @ skew(np.asarray(t, dtype=float).reshape(3)) @ rotation @ y1)