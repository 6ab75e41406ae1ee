"""Bundle Adjustment in the Large (BAL) problem loading, saving and conditioning."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterable

import numpy as np

from .rotation import (
    angle_axis_rotate_point,
    angle_axis_to_quaternion,
    quaternion_to_angle_axis,
)
from .sampling import rand_normal

POINT_BLOCK_SIZE = 3


def median(data: Iterable[float]) -> float:
    """Return the element at position n // 2 of the sorted data."""
    values = sorted(float(v) for v in data)
    if not values:
        raise ValueError("median of empty data")
    return values[len(values) // 2]


def _normal_vector(rng: random.Random, sigma: float) -> np.ndarray:
    return np.array([rand_normal(rng) for _ in range(3)]) * sigma


@dataclass
class BALProblem:
    """Cameras, points and observations of a BAL dataset."""

    num_cameras: int
    num_points: int
    camera_index: np.ndarray
    point_index: np.ndarray
    observations: np.ndarray
    parameters: np.ndarray
    use_quaternions: bool = False

    def __post_init__(self) -> None:
        self.camera_index = np.asarray(self.camera_index, dtype=int)
        self.point_index = np.asarray(self.point_index, dtype=int)
        self.observations = np.asarray(self.observations, dtype=float).reshape(-1, 2)
        self.parameters = np.asarray(self.parameters, dtype=float)
        expected = self.camera_block_size * self.num_cameras + POINT_BLOCK_SIZE * self.num_points
        if self.parameters.size != expected:
            raise ValueError(f"expected {expected} parameters, got {self.parameters.size}")

    @property
    def camera_block_size(self) -> int:
        return 10 if self.use_quaternions else 9

    @property
    def point_block_size(self) -> int:
        return POINT_BLOCK_SIZE

    @property
    def num_observations(self) -> int:
        return len(self.camera_index)

    @property
    def num_parameters(self) -> int:
        return self.parameters.size

    @property
    def cameras(self) -> np.ndarray:
        """Camera blocks as a (num_cameras, block) view into the parameters."""
        end = self.camera_block_size * self.num_cameras
        return self.parameters[:end].reshape(self.num_cameras, self.camera_block_size)

    @property
    def points(self) -> np.ndarray:
        """Points as a (num_points, 3) view into the parameters."""
        start = self.camera_block_size * self.num_cameras
        return self.parameters[start:].reshape(self.num_points, POINT_BLOCK_SIZE)

    def camera_for_observation(self, i: int) -> np.ndarray:
        return self.cameras[self.camera_index[i]]

    def point_for_observation(self, i: int) -> np.ndarray:
        return self.points[self.point_index[i]]

    def _translation_slice(self) -> slice:
        start = self.camera_block_size - 6
        return slice(start, start + 3)

    def _camera_to_angle_axis_and_center(self, camera: np.ndarray):
        if self.use_quaternions:
            angle_axis = quaternion_to_angle_axis(camera[:4])
        else:
            angle_axis = np.array(camera[:3], dtype=float)
        # c = -R't
        center = -angle_axis_rotate_point(-angle_axis, camera[self._translation_slice()])
        return angle_axis, center

    def _angle_axis_and_center_to_camera(self, angle_axis, center, camera: np.ndarray) -> None:
        if self.use_quaternions:
            camera[:4] = angle_axis_to_quaternion(angle_axis)
        else:
            camera[:3] = angle_axis
        # t = -R c
        camera[self._translation_slice()] = -angle_axis_rotate_point(angle_axis, center)

    def _angle_axis_cameras(self) -> np.ndarray:
        if not self.use_quaternions:
            return self.cameras.copy()
        return np.array(
            [np.concatenate([quaternion_to_angle_axis(cam[:4]), cam[4:]]) for cam in self.cameras]
        ).reshape(self.num_cameras, 9)

    def write_to_file(self, filename) -> None:
        """Save the problem in BAL text format, cameras in angle-axis form."""
        with open(filename, "w", encoding="ascii") as fh:
            fh.write(f"{self.num_cameras} {self.num_points} {self.num_observations}\n")
            for cam, pt, (u, v) in zip(self.camera_index, self.point_index, self.observations):
                fh.write(f"{cam} {pt} {u:g} {v:g}\n")
            for value in self._angle_axis_cameras().ravel():
                fh.write(f"{value:.16g}\n")
            for value in self.points.ravel():
                fh.write(f"{value:.16g}\n")

    def write_to_ply_file(self, filename) -> None:
        """Save camera centres (green) and points (white) as an ASCII PLY cloud."""
        header = [
            "ply",
            "format ascii 1.0",
            f"element vertex {self.num_cameras + self.num_points}",
            "property float x",
            "property float y",
            "property float z",
            "property uchar red",
            "property uchar green",
            "property uchar blue",
            "end_header",
        ]
        with open(filename, "w", encoding="ascii") as fh:
            fh.write("\n".join(header) + "\n")
            for camera in self.cameras:
                _, center = self._camera_to_angle_axis_and_center(camera)
                fh.write(f"{center[0]:g} {center[1]:g} {center[2]:g} 0 255 0\n")
            for point in self.points:
                coords = "".join(f"{v:g} " for v in point)
                fh.write(f"{coords}255 255 255\n")

    def normalize(self) -> None:
        """Centre the points on their median and scale the median deviation to 100."""
        points = self.points
        med = np.array([median(points[:, axis]) for axis in range(3)])
        deviation = median(np.abs(points - med).sum(axis=1))
        if deviation == 0.0:
            raise ValueError("points have zero median absolute deviation")
        scale = 100.0 / deviation
        points[:] = scale * (points - med)
        for camera in self.cameras:
            angle_axis, center = self._camera_to_angle_axis_and_center(camera)
            center = scale * (center - med)
            self._angle_axis_and_center_to_camera(angle_axis, center, camera)

    def perturb(
        self,
        rotation_sigma: float,
        translation_sigma: float,
        point_sigma: float,
        rng: random.Random | None = None,
    ) -> None:
        """Add Gaussian noise to points, camera rotations and translations."""
        if point_sigma < 0.0 or rotation_sigma < 0.0 or translation_sigma < 0.0:
            raise ValueError("noise levels must be non-negative")
        rng = rng if rng is not None else random.Random()
        if point_sigma > 0:
            for point in self.points:
                point += _normal_vector(rng, point_sigma)
        for camera in self.cameras:
            angle_axis, center = self._camera_to_angle_axis_and_center(camera)
            if rotation_sigma > 0.0:
                angle_axis = angle_axis + _normal_vector(rng, rotation_sigma)
            self._angle_axis_and_center_to_camera(angle_axis, center, camera)
            if translation_sigma > 0.0:
                camera[self._translation_slice()] += _normal_vector(rng, translation_sigma)


def load_bal(filename, use_quaternions: bool = False) -> BALProblem:
    """Load a BAL problem from a text file."""
    with open(filename, encoding="ascii") as fh:
        tokens = iter(fh.read().split())

    def take(kind):
        try:
            token = next(tokens)
        except StopIteration:
            raise ValueError("Invalid BAL data file: unexpected end of data") from None
        try:
            return kind(token)
        except ValueError:
            raise ValueError(f"Invalid BAL data file: bad value {token!r}") from None

    num_cameras = take(int)
    num_points = take(int)
    num_observations = take(int)
    if min(num_cameras, num_points, num_observations) < 0:
        raise ValueError("Invalid BAL data file: negative count")

    camera_index, point_index, observations = [], [], []
    for _ in range(num_observations):
        camera_index.append(take(int))
        point_index.append(take(int))
        observations.append((take(float), take(float)))

    num_parameters = 9 * num_cameras + 3 * num_points
    parameters = np.array([take(float) for _ in range(num_parameters)], dtype=float)

    if use_quaternions:
        cameras = parameters[: 9 * num_cameras].reshape(num_cameras, 9)
        converted = [np.concatenate([angle_axis_to_quaternion(c[:3]), c[3:]]) for c in cameras]
        parameters = np.concatenate([*converted, parameters[9 * num_cameras:]])

    return BALProblem(
        num_cameras=num_cameras,
        num_points=num_points,
        camera_index=np.array(camera_index, dtype=int),
        point_index=np.array(point_index, dtype=int),
        observations=np.array(observations, dtype=float).reshape(-1, 2),
        parameters=parameters,
        use_quaternions=use_quaternions,
    )