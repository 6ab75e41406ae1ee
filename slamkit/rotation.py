"""Angle-axis and quaternion rotation helpers."""

from __future__ import annotations

import math

import numpy as np

_EPSILON = float(np.finfo(float).eps)


def angle_axis_to_quaternion(angle_axis) -> np.ndarray:
    """Convert an angle-axis vector to a quaternion (w, x, y, z)."""
    a = np.asarray(angle_axis, dtype=float)
    theta_squared = float(a @ a)
    if theta_squared > _EPSILON:
        theta = math.sqrt(theta_squared)
        half_theta = 0.5 * theta
        k = math.sin(half_theta) / theta
        return np.array([math.cos(half_theta), a[0] * k, a[1] * k, a[2] * k])
    k = 0.5
    return np.array([1.0, a[0] * k, a[1] * k, a[2] * k])


def quaternion_to_angle_axis(quaternion) -> np.ndarray:
    """Convert a quaternion (w, x, y, z) to an angle-axis vector."""
    q = np.asarray(quaternion, dtype=float)
    vec = q[1:4]
    sin_squared_theta = float(vec @ vec)
    if sin_squared_theta > _EPSILON:
        sin_theta = math.sqrt(sin_squared_theta)
        cos_theta = float(q[0])
        if cos_theta < 0.0:
            two_theta = 2.0 * math.atan2(-sin_theta, -cos_theta)
        else:
            two_theta = 2.0 * math.atan2(sin_theta, cos_theta)
        k = two_theta / sin_theta
    else:
        k = 2.0
    return vec * k


def angle_axis_rotate_point(angle_axis, pt) -> np.ndarray:
    """Rotate a 3D point by an angle-axis rotation (Rodrigues' formula)."""
    a = np.asarray(angle_axis, dtype=float)
    p = np.asarray(pt, dtype=float)
    theta2 = float(a @ a)
    if theta2 > _EPSILON:
        theta = math.sqrt(theta2)
        costheta = math.cos(theta)
        sintheta = math.sin(theta)
        w = a / theta
        w_cross_pt = np.cross(w, p)
        tmp = float(w @ p) * (1.0 - costheta)
        return p * costheta + w_cross_pt * sintheta + w * tmp
    # First-order approximation near zero: R * p = p + w x p.
    return p + np.cross(a, p)