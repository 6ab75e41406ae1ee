# slamkit

Building blocks for feature-based and direct visual odometry and for bundle
adjustment, written on top of NumPy and SciPy. Images are plain 2-D NumPy
arrays (single channel); keypoints are `(x, y)` pairs.

## What is inside

- `slamkit.sampling` – `rand_double` and `rand_normal` (polar method) drawing
  from a `random.Random`.
- `slamkit.rotation` – `angle_axis_to_quaternion`, `quaternion_to_angle_axis`
  and `angle_axis_rotate_point` (Rodrigues' formula).
- `slamkit.lie` – `hat`, `so3_exp`, `so3_log`, `se3_exp` and the `SE3` rigid
  transform (`matrix`, `act`, `compose`, `inverse`, and `@` for composition or
  for transforming points).
- `slamkit.bal` – Bundle Adjustment in the Large (BAL) text files: `load_bal`,
  and `BALProblem` with `normalize`, `perturb`, `write_to_file` and
  `write_to_ply_file`; `median` returns the element at position `n // 2` of
  the sorted data.
- `slamkit.reprojection` – the camera model with radial distortion used by BAL
  (`cam_projection_with_distortion`) and the residual
  `SnavelyReprojectionError`.
- `slamkit.bundle_adjustment` – `solve_ba`, a Huber-robust sparse least-squares
  refinement of all cameras and points of an angle-axis `BALProblem`, and
  `PoseAndIntrinsics` (`from_array`, `to_array`, `project`).
- `slamkit.orb` – oriented BRIEF descriptors for given keypoints
  (`compute_orb`; keypoints within 16 pixels of the border get `None`),
  `hamming_distance` and brute-force matching `bf_match`.
- `slamkit.camera` – `pixel2cam`, the `Match` tuple, `filter_matches`
  (keep distances up to `max(2 * smallest, 30)`) and `points_from_depth`.
- `slamkit.epipolar` – `skew`, `fundamental_matrix_8point`,
  `essential_matrix`, `recover_pose` and `epipolar_constraint`.
- `slamkit.triangulation` – `triangulate_points`, `triangulation` and
  `get_color`.
- `slamkit.pose_3d2d` – `points_3d_from_depth`, `reprojection_jacobian` and
  PnP by Gauss-Newton, `bundle_adjustment_gauss_newton`.
- `slamkit.pose_3d3d` – ICP by SVD (`pose_estimation_3d3d`) and pose-only
  Levenberg-Marquardt refinement (`bundle_adjustment_3d3d`).
- `slamkit.image` – bilinear sampling `get_pixel_value`, `resize_half` and
  `build_pyramid`.
- `slamkit.optical_flow` – Lucas-Kanade tracking, `optical_flow_single_level`
  and the four-level `optical_flow_multi_level`, forward or inverse.
- `slamkit.direct_method` – `Intrinsics`, `accumulate_jacobian` and direct
  photometric pose estimation, `direct_pose_estimation_single_layer` and
  `direct_pose_estimation_multi_layer`.

## Installing

```
pip install .
```

## Bundle adjustment from the command line

Given a BAL data file:

```
slamkit-ba problem.txt
```

The problem is normalised, perturbed with a fixed seed, written to
`initial.ply`, optimised and written to `final.ply`; both files can be opened
in any PLY viewer.

## Using the library

```python
import random
from slamkit.bal import load_bal
from slamkit.bundle_adjustment import solve_ba

problem = load_bal("problem.txt", False)
problem.normalize()
problem.perturb(0.1, 0.5, 0.5, random.Random(0))
cost = solve_ba(problem, 40)
problem.write_to_ply_file("final.ply")
```

Aligning two point sets:

```python
from slamkit.pose_3d3d import pose_estimation_3d3d

R, t = pose_estimation_3d3d(pts1, pts2)   # pts1 ≈ R @ pts2 + t
```

## What it does not do

slamkit does not read or write image files, detect corners or keypoints, or
draw and display results: images and keypoints are passed in as arrays and
results come back as arrays. The only command is `slamkit-ba`.

## Running the tests

```
pip install .[test]
pytest
```