"""Rigid alignment of matched 3D point sets (ICP by SVD and by optimisation)."""

from __future__ import annotations

import numpy as np

from .lie import SE3, hat, se3_exp

_LM_TAU = 1e-5
_LM_MAX_TRIALS = 10


def _as_point_pairs(pts1, pts2) -> tuple[np.ndarray, np.ndarray]:
    p1 = np.asarray(pts1, dtype=float)
    p2 = np.asarray(pts2, dtype=float)
    if p1.ndim != 2 or p1.shape[1] != 3 or p2.shape != p1.shape:
        raise ValueError("expected two point arrays of the same shape (N, 3)")
    if len(p1) == 0:
        raise ValueError("at least one point pair is required")
    return p1, p2


def pose_estimation_3d3d(pts1, pts2) -> tuple[np.ndarray, np.ndarray]:
    """Return (R, t) such that pts1 ~= R @ pts2 + t, found by SVD."""
    p1, p2 = _as_point_pairs(pts1, pts2)
    c1 = p1.mean(axis=0)
    c2 = p2.mean(axis=0)
    q1 = p1 - c1
    q2 = p2 - c2
    w = q1.T @ q2
    u, _, vt = np.linalg.svd(w)
    r = u @ vt
    if np.linalg.det(r) < 0:
        r = -r
    t = c1 - r @ c2
    return r, t


def _linearize(pose: SE3, p1: np.ndarray, p2: np.ndarray):
    transformed = pose.act(p2)
    errors = p1 - transformed
    jacobians = np.zeros((len(p1), 3, 6))
    jacobians[:, :, :3] = -np.eye(3)
    jacobians[:, :, 3:] = np.array([hat(p) for p in transformed])
    h = np.einsum("nij,nik->jk", jacobians, jacobians)
    b = -np.einsum("nij,ni->j", jacobians, errors)
    return h, b, float(np.sum(errors * errors))


def _cost(pose: SE3, p1: np.ndarray, p2: np.ndarray) -> float:
    errors = p1 - pose.act(p2)
    return float(np.sum(errors * errors))


def bundle_adjustment_3d3d(pts1, pts2, iterations: int = 10) -> SE3:
    """Refine the pose T with pts1 ~= T * pts2 by Levenberg-Marquardt from identity."""
    p1, p2 = _as_point_pairs(pts1, pts2)
    pose = SE3()
    h, b, cost = _linearize(pose, p1, p2)
    lam = _LM_TAU * float(np.max(np.diag(h)))
    ni = 2.0
    for _ in range(iterations):
        accepted = False
        for _ in range(_LM_MAX_TRIALS):
            try:
                dx = np.linalg.solve(h + lam * np.eye(6), b)
            except np.linalg.LinAlgError:
                lam *= ni
                ni *= 2.0
                continue
            candidate = se3_exp(dx).compose(pose)
            new_cost = _cost(candidate, p1, p2)
            scale = float(dx @ (lam * dx + b)) + 1e-3
            rho = (cost - new_cost) / scale
            if rho > 0 and np.isfinite(new_cost):
                pose = candidate
                lam *= max(1.0 / 3.0, 1.0 - (2.0 * rho - 1.0) ** 3)
                ni = 2.0
                accepted = True
                break
            lam *= ni
            ni *= 2.0
        if not accepted:
            break
        h, b, cost = _linearize(pose, p1, p2)
        if float(np.linalg.norm(dx)) < 1e-12:
            break
    return pose