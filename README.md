# stereovo

stereovo provides the building blocks of a stereo visual odometry system. It has
rigid-body geometry, a pinhole stereo camera model, linear triangulation, frames,
features and landmarks, a sliding-window map, graph optimisation for bundle
adjustment with a background back end, a reader for stereo image sequences, and a
logger for poses and diagnostic images.

## Installation

```
pip install .
```

To run the tests as well:

```
pip install .[test]
pytest
```

## Modules

- `stereovo.geometry`: `SO3` and `SE3`. These rotations and rigid transforms are
  stored as numpy arrays and provide `exp`/`log`, `inverse`, composition with `*`,
  and transformation of 3-vectors or `(N, 3)` arrays with `*`. `SE3` also has
  `identity()`, `from_quaternion(quaternion, translation)` with the quaternion as
  `(w, x, y, z)`, `matrix()`, `matrix3x4()`, `rotation_matrix()` and
  `unit_quaternion()`.
- `stereovo.camera`: `Camera`. This is a frozen dataclass of pinhole intrinsics
  (`fx`, `fy`, `cx`, `cy`, `baseline`) plus the extrinsic `pose` from the stereo
  rig to the camera. It has `intrinsic_matrix()` and the conversions
  `world2camera`, `camera2world`, `camera2pixel`, `pixel2camera`, `world2pixel`
  and `pixel2world`.
- `stereovo.algorithm`: `triangulation(poses, points)` is linear SVD
  triangulation from observations on the normalised image plane. It returns the
  point, or `None` when the solution is poorly conditioned. `to_vec2(point)` is a
  small converter.
- `stereovo.feature`: `KeyPoint` and `Feature`. A feature holds weak references
  to its frame and to its map point.
- `stereovo.frame`: `Frame`. This is a stereo image pair with a thread-safe
  `pose` (world to camera) and left/right feature lists. `Frame.create()` assigns
  consecutive ids, and `set_keyframe()` assigns consecutive keyframe ids.
- `stereovo.mappoint`: `MapPoint`. This is a 3D landmark with a thread-safe
  `pos`, its observing features, `add_observation` and `remove_observation`.
  `MapPoint.create()` assigns consecutive ids.
- `stereovo.slam_map`: `Map`. It holds all keyframes and landmarks and a window
  of active ones, seven keyframes by default. When the window overflows, it
  retires a keyframe. This is the nearest one if that one is closer than 0.2 in
  SE(3) log distance, and otherwise the farthest one. `clean_map()` deactivates
  landmarks that are no longer observed.
- `stereovo.optimization`: `VertexPose`, `VertexXYZ`, the reprojection edges
  `EdgeProjectionPoseOnly` and `EdgeProjection`, a `HuberKernel`, and an
  `Optimizer` that runs Levenberg–Marquardt on a sparse system over level-0
  edges.
- `stereovo.backend`: `Backend`. It starts a worker thread on construction.
  `update_map()` requests a bundle adjustment of the map's active keyframes and
  landmarks. `stop()` ends the thread, and it also runs when the backend is used
  as a context manager. `optimize(keyframes, landmarks)` can be called directly.
  It marks observations whose chi² exceeds an adaptive threshold as outliers,
  starting at 5.991 and doubled up to five times until more than half of the
  edges are inliers. It returns `(outliers, inliers)`.
- `stereovo.dataset`: `Dataset`. It reads a sequence directory:
  - `calib.txt` holds four cameras, each a three-character name followed by a
    3×4 projection matrix in row order.
  - The images are `left_frames/left_image<id>.png` and
    `right_frames/right_image<id>.png`.

  The frame ids come from the `frame_ids` argument, or otherwise from the lines
  of `interesting_frames.csv` in the same directory. `init()` loads the
  calibration and returns `False` if the calibration is missing. `next_frame()`
  returns the next `Frame` with grayscale images, or `None` at the end.
  `camera(i)` returns a calibrated `Camera`.
- `stereovo.logger`: `PoseLogger(log_path)`.
  - `log_pose(pose)` appends `tx,ty,tz,qw,qx,qy,qz` lines to `paths.csv`.
  - `log_image(filename, image)` saves an image, as PNG if no extension is given.
  - `log_feature_match_images(frame)` writes the stereo pair side by side to
    `concat_images/feature_match<id>.png`. Matched features get green boxes and
    a connecting line. Features found only on the left get red boxes, and those
    found only on the right get blue boxes.

## Example

```python
import numpy as np
from stereovo.geometry import SE3
from stereovo.algorithm import triangulation

poses = [SE3.identity(), SE3.from_quaternion([1, 0, 0, 0], [-0.5, 0, 0])]
point = np.array([1.0, 2.0, 10.0])
observations = []
for pose in poses:
    pc = pose * point
    observations.append(pc / pc[2])

estimated = triangulation(poses, observations)  # close to [1, 2, 10]
```

## What the package does not do

The package has no feature detector or optical-flow tracker, and no front end
that tracks frames and selects keyframes. It has no configuration-file loader,
no end-to-end odometry driver, no command-line program and no map viewer. To
run odometry on a sequence, you must build the tracking loop yourself. Use
`Dataset`, `Camera`, `triangulation`, `Map` and `Backend` for that loop.