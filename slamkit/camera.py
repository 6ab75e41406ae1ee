"""Pinhole camera helpers: pixel normalisation, match filtering and depth back-projection."""

from __future__ import annotations

from typing import Iterable, NamedTuple, Sequence

import numpy as np

# Intrinsics of the TUM Freiburg2 camera.
TUM_K = np.array(
    [
        [520.9, 0.0, 325.1],
        [0.0, 521.0, 249.7],
        [0.0, 0.0, 1.0],
    ]
)

# Raw depth-image units per metre.
DEPTH_SCALE = 5000.0

# Lower bound on the match-distance threshold, used when the best match is very close.
MATCH_DISTANCE_FLOOR = 30.0
_INITIAL_MIN_DISTANCE = 10000.0


class Match(NamedTuple):
    """A descriptor match: index in the first set, index in the second, and distance."""

    query_idx: int
    train_idx: int
    distance: float


def _intrinsics(K) -> np.ndarray:
    k = np.asarray(K, dtype=float)
    if k.shape != (3, 3):
        raise ValueError(f"expected a 3x3 camera matrix, got shape {k.shape}")
    return k


def pixel2cam(p, K=TUM_K) -> np.ndarray:
    """Convert pixel coordinates to normalised camera coordinates."""
    k = _intrinsics(K)
    x, y = float(p[0]), float(p[1])
    return np.array([(x - k[0, 2]) / k[0, 0], (y - k[1, 2]) / k[1, 1]])


def filter_matches(matches: Iterable) -> list[Match]:
    """Keep matches whose distance is at most max(2 * smallest distance, 30)."""
    all_matches = [Match._make(m) for m in matches]
    if not all_matches:
        return []
    min_dist = min([_INITIAL_MIN_DISTANCE, *(float(m.distance) for m in all_matches)])
    threshold = max(2.0 * min_dist, MATCH_DISTANCE_FLOOR)
    return [m for m in all_matches if m.distance <= threshold]


def _depth_at(depth: np.ndarray, keypoint: Sequence[float]) -> int:
    return int(depth[int(keypoint[1]), int(keypoint[0])])


def points_from_depth(
    keypoints1, keypoints2, matches, depth1, depth2, K=TUM_K
) -> tuple[np.ndarray, np.ndarray]:
    """Back-project matched keypoints of two depth images into 3D point pairs.

    Matches where either depth reading is zero are skipped. Returns two
    arrays of shape (N, 3).
    """
    d1_img = np.asarray(depth1)
    d2_img = np.asarray(depth2)
    pts1, pts2 = [], []
    for m in (Match._make(m) for m in matches):
        kp1 = keypoints1[m.query_idx]
        kp2 = keypoints2[m.train_idx]
        d1 = _depth_at(d1_img, kp1)
        d2 = _depth_at(d2_img, kp2)
        if d1 == 0 or d2 == 0:
            continue
        p1 = pixel2cam(kp1, K)
        p2 = pixel2cam(kp2, K)
        dd1 = d1 / DEPTH_SCALE
        dd2 = d2 / DEPTH_SCALE
        pts1.append((p1[0] * dd1, p1[1] * dd1, dd1))
        pts2.append((p2[0] * dd2, p2[1] * dd2, dd2))
    return (
        np.array(pts1, dtype=float).reshape(-1, 3),
        np.array(pts2, dtype=float).reshape(-1, 3),
    )