"""Rotation and rigid-motion groups SO(3) and SE(3) with their exponential maps."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np
from scipy.spatial.transform import Rotation

_SMALL_ANGLE = 1e-10


def hat(v) -> np.ndarray:
    """Return the skew-symmetric matrix of a 3-vector, so that hat(v) @ w == v x w."""
    x, y, z = np.asarray(v, dtype=float).reshape(3)
    return np.array(
        [
            [0.0, -z, y],
            [z, 0.0, -x],
            [-y, x, 0.0],
        ]
    )


def so3_exp(omega) -> np.ndarray:
    """Rotation matrix of an angle-axis vector (Rodrigues' formula)."""
    w = np.asarray(omega, dtype=float).reshape(3)
    theta = float(np.linalg.norm(w))
    k = hat(w)
    if theta < _SMALL_ANGLE:
        return np.eye(3) + k + 0.5 * (k @ k)
    a = k / theta
    return np.eye(3) + math.sin(theta) * a + (1.0 - math.cos(theta)) * (a @ a)


def so3_log(rotation) -> np.ndarray:
    """Angle-axis vector of a rotation matrix."""
    r = np.asarray(rotation, dtype=float)
    if r.shape != (3, 3):
        raise ValueError(f"expected a 3x3 rotation matrix, got shape {r.shape}")
    return Rotation.from_matrix(r).as_rotvec()


def _left_jacobian(phi: np.ndarray) -> np.ndarray:
    theta = float(np.linalg.norm(phi))
    k = hat(phi)
    if theta < _SMALL_ANGLE:
        return np.eye(3) + 0.5 * k + (k @ k) / 6.0
    return (
        np.eye(3)
        + (1.0 - math.cos(theta)) / theta**2 * k
        + (theta - math.sin(theta)) / theta**3 * (k @ k)
    )


@dataclass(frozen=True, eq=False)
class SE3:
    """A rigid motion: rotation matrix and translation vector."""

    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        rotation = np.array(self.rotation, dtype=float)
        translation = np.array(self.translation, dtype=float).reshape(3)
        if rotation.shape != (3, 3):
            raise ValueError(f"expected a 3x3 rotation matrix, got shape {rotation.shape}")
        object.__setattr__(self, "rotation", rotation)
        object.__setattr__(self, "translation", translation)

    @classmethod
    def exp(cls, xi) -> "SE3":
        return se3_exp(xi)

    def matrix(self) -> np.ndarray:
        """The 4x4 homogeneous transformation matrix."""
        m = np.eye(4)
        m[:3, :3] = self.rotation
        m[:3, 3] = self.translation
        return m

    def act(self, point) -> np.ndarray:
        """Transform one point of shape (3,) or many of shape (N, 3)."""
        p = np.asarray(point, dtype=float)
        return p @ self.rotation.T + self.translation

    def compose(self, other: "SE3") -> "SE3":
        """Return self * other: apply other first, then self."""
        return SE3(
            self.rotation @ other.rotation,
            self.rotation @ other.translation + self.translation,
        )

    def inverse(self) -> "SE3":
        rt = self.rotation.T
        return SE3(rt, -rt @ self.translation)

    def __matmul__(self, other):
        if isinstance(other, SE3):
            return self.compose(other)
        return self.act(other)


def se3_exp(xi) -> SE3:
    """Exponential map of a twist (translation part first, then rotation part)."""
    x = np.asarray(xi, dtype=float).reshape(6)
    rho, phi = x[:3], x[3:]
    return SE3(so3_exp(phi), _left_jacobian(phi) @ rho)