[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "stereovo"
version = "0.1.0"
description = "Building blocks for stereo visual odometry: SE(3) geometry, pinhole cameras, triangulation, a sliding-window map and local bundle adjustment"
requires-python = ">=3.10"
keywords = ["visual odometry", "stereo", "slam", "bundle adjustment", "triangulation", "computer vision"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Processing",
]
dependencies = [
    "numpy",
    "scipy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["stereovo"]

[tool.pytest.ini_options]
addopts = "-ra"
