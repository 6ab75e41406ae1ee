[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "slamkit"
version = "0.1.0"
description = "Visual odometry and bundle adjustment building blocks: ORB descriptors, pose estimation, optical flow, direct method and BAL bundle adjustment."
requires-python = ">=3.10"
dependencies = [
    "numpy",
    "scipy",
]
keywords = [
    "slam",
    "visual-odometry",
    "bundle-adjustment",
    "orb",
    "optical-flow",
    "epipolar-geometry",
    "icp",
    "pnp",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Education",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Image Processing",
    "Topic :: Scientific/Engineering :: Mathematics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
slamkit-ba = "slamkit.bundle_adjustment:main"

[tool.hatch.build.targets.wheel]
packages = ["slamkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
