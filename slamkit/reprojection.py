"""Snavely camera model projection and reprojection residual."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from .rotation import angle_axis_rotate_point


def cam_projection_with_distortion(camera, point) -> np.ndarray:
    """Project a 3D point with a 9-parameter camera.

    The camera holds an angle-axis rotation [0-2], translation [3-5],
    focal length [6] and radial distortion coefficients [7-8].
    """
    cam = np.asarray(camera, dtype=float)
    p = angle_axis_rotate_point(cam[:3], point) + cam[3:6]
    xp = -p[0] / p[2]
    yp = -p[1] / p[2]
    l1, l2 = cam[7], cam[8]
    r2 = xp * xp + yp * yp
    distortion = 1.0 + r2 * (l1 + l2 * r2)
    focal = cam[6]
    return np.array([focal * distortion * xp, focal * distortion * yp])


@dataclass(frozen=True)
class SnavelyReprojectionError:
    """Residual between a projected point and its observed image position."""

    observed_x: float
    observed_y: float

    def __call__(self, camera, point) -> np.ndarray:
        predictions = cam_projection_with_distortion(camera, point)
        return predictions - np.array([self.observed_x, self.observed_y])