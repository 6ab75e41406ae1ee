"""Visual odometry and bundle adjustment building blocks: rotations, SE(3), BAL problems, ORB descriptors, pose estimation, optical flow and the direct method."""

__version__ = "0.1.0"