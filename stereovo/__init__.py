"""Stereo visual odometry building blocks: geometry, cameras, triangulation, map and bundle adjustment."""

__version__ = "0.1.0"