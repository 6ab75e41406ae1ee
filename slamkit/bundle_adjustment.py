"""Bundle adjustment of BAL problems with a pose-and-intrinsics camera model."""

from __future__ import annotations

import random
import sys
from dataclasses import dataclass, field

import numpy as np
from scipy.optimize import least_squares
from scipy.sparse import lil_matrix

from .bal import BALProblem, load_bal
from .lie import so3_exp, so3_log

_EPSILON = float(np.finfo(float).eps)
CAMERA_SIZE = 9
POINT_SIZE = 3


@dataclass(eq=False)
class PoseAndIntrinsics:
    """Camera pose (rotation, translation), focal length and distortion k1, k2."""

    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))
    focal: float = 0.0
    k1: float = 0.0
    k2: float = 0.0

    @classmethod
    def from_array(cls, data) -> "PoseAndIntrinsics":
        """Build from 9 values: angle-axis rotation, translation, focal, k1, k2."""
        d = np.asarray(data, dtype=float).reshape(CAMERA_SIZE)
        return cls(
            rotation=so3_exp(d[:3]),
            translation=d[3:6].copy(),
            focal=float(d[6]),
            k1=float(d[7]),
            k2=float(d[8]),
        )

    def to_array(self) -> np.ndarray:
        """Return the 9 camera values in BAL order."""
        return np.concatenate(
            [so3_log(self.rotation), self.translation, [self.focal, self.k1, self.k2]]
        )

    def project(self, point) -> np.ndarray:
        """Project a 3D point into the image with this camera."""
        pc = self.rotation @ np.asarray(point, dtype=float) + self.translation
        pc = -pc / pc[2]
        r2 = float(pc @ pc)
        distortion = 1.0 + r2 * (self.k1 + self.k2 * r2)
        return np.array([self.focal * distortion * pc[0], self.focal * distortion * pc[1]])


def _rotate(angle_axis: np.ndarray, points: np.ndarray) -> np.ndarray:
    theta2 = np.sum(angle_axis * angle_axis, axis=1)
    big = theta2 > _EPSILON
    theta = np.where(big, np.sqrt(theta2), 1.0)
    w = angle_axis / theta[:, None]
    cos = np.cos(theta)[:, None]
    sin = np.sin(theta)[:, None]
    dot = np.sum(w * points, axis=1)[:, None]
    rotated = points * cos + np.cross(w, points) * sin + w * dot * (1.0 - cos)
    approx = points + np.cross(angle_axis, points)
    return np.where(big[:, None], rotated, approx)


def _project(cameras: np.ndarray, points: np.ndarray) -> np.ndarray:
    pc = _rotate(cameras[:, :3], points) + cameras[:, 3:6]
    pc = -pc / pc[:, 2:3]
    r2 = np.sum(pc * pc, axis=1)
    distortion = 1.0 + r2 * (cameras[:, 7] + cameras[:, 8] * r2)
    return (cameras[:, 6] * distortion)[:, None] * pc[:, :2]


def _jacobian_sparsity(problem: BALProblem) -> lil_matrix:
    m = 2 * problem.num_observations
    n = CAMERA_SIZE * problem.num_cameras + POINT_SIZE * problem.num_points
    sparsity = lil_matrix((m, n), dtype=int)
    point_offset = CAMERA_SIZE * problem.num_cameras
    for obs, (cam, pt) in enumerate(zip(problem.camera_index, problem.point_index)):
        rows = slice(2 * obs, 2 * obs + 2)
        cam_start = CAMERA_SIZE * cam
        pt_start = point_offset + POINT_SIZE * pt
        sparsity[rows, cam_start:cam_start + CAMERA_SIZE] = 1
        sparsity[rows, pt_start:pt_start + POINT_SIZE] = 1
    return sparsity


def solve_ba(problem: BALProblem, max_iterations: int = 40) -> float:
    """Optimise cameras and points in place with a Huber loss; return the final cost."""
    if problem.use_quaternions:
        raise ValueError("bundle adjustment needs angle-axis cameras")
    if problem.num_observations == 0:
        raise ValueError("the problem has no observations")

    num_camera_params = CAMERA_SIZE * problem.num_cameras
    camera_index = problem.camera_index
    point_index = problem.point_index
    observations = problem.observations

    def residuals(x: np.ndarray) -> np.ndarray:
        cameras = x[:num_camera_params].reshape(-1, CAMERA_SIZE)
        points = x[num_camera_params:].reshape(-1, POINT_SIZE)
        predicted = _project(cameras[camera_index], points[point_index])
        return (predicted - observations).ravel()

    result = least_squares(
        residuals,
        problem.parameters.copy(),
        jac_sparsity=_jacobian_sparsity(problem),
        loss="huber",
        f_scale=1.0,
        method="trf",
        x_scale="jac",
        max_nfev=max_iterations,
    )
    problem.parameters[:] = result.x
    return float(result.cost)


def main(argv=None) -> int:
    """Load a BAL file, condition it, solve it and write before/after point clouds."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 1:
        print("usage: bundle_adjustment bal_data.txt")
        return 1

    problem = load_bal(args[0])
    problem.normalize()
    problem.perturb(0.1, 0.5, 0.5, random.Random(0))
    problem.write_to_ply_file("initial.ply")

    print("bal problem file loaded...")
    print(
        f"bal problem have {problem.num_cameras} cameras and {problem.num_points} points. "
    )
    print(f"Forming {problem.num_observations} observations. ")
    print("Solving BA ... ")
    cost = solve_ba(problem)
    print(f"final cost: {cost}")

    problem.write_to_ply_file("final.ply")
    return 0


if __name__ == "__main__":
    sys.exit(main())