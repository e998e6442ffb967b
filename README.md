# deformslam

Building blocks for visual SLAM in deforming scenes, written with NumPy, SciPy
and Pillow.

## Contents

### `deformslam.masking`

Image masks: `uint8` arrays that are 255 where the image is usable and 0 where
it is masked out.

- `deformslam.masking.filters`
  - `Filter` — abstract base with `generate_mask(image)` and `description()`.
  - `BorderFilter(rows_begin, rows_end, cols_begin, cols_end, threshold)` —
    masks out the given number of rows and columns at each border and every
    black pixel, then erodes the mask with a 21x21 rectangle.
  - `BrightFilter(threshold)` — masks out pixels brighter than `threshold`,
    erodes with an 11x11 ellipse and smooths with an 11x11 Gaussian.
  - `PredefinedFilter(path)` — a fixed mask read from a grayscale image file and
    eroded with a 20x20 ellipse.
  - Helpers: `to_gray` (3 or 4 channel images are read as BGR(A)), `erode`,
    `rect_kernel`, `ellipse_kernel`.
- `deformslam.masking.masker.Masker` — holds an ordered list of filters.
  `mask(image)` ANDs all filter masks together and erodes the result with a
  10x10 rectangle; `all_masks(image)` returns each filter's mask keyed by its
  name plus the combined mask under `"Global"`. Filters are added with
  `add_filter`, removed with `delete_filter(idx)` and listed with
  `describe_filters()`. `Masker.from_txt(path)` / `load_from_txt(path)` read one
  filter per line:

  ```
  BorderFilter 10 10 10 10 0
  BrightFilter 200
  Predefined masks/endoscope.png
  ```

  Unknown filter names are ignored, and a file that cannot be opened adds no
  filters.

### `deformslam.matching`

- `deformslam.matching.windows` — the image machinery for pyramidal optical
  flow:
  - `build_optical_flow_pyramid(image, win_size, max_level)` returns a list of
    `PyramidLevel` objects, each a grey image with its Scharr derivatives.
  - `interpolation_weights(frac_x, frac_y)` gives fixed-point bilinear weights.
  - `sample_window` and `sample_gradient_window` sample sub-pixel intensity
    (scaled by 32) and derivative windows, reflecting at the image edges.
  - `PhotometricInformation` holds per-level reference means and windows of a
    tracked point.

### `deformslam.optimization`

- `deformslam.optimization.graph` — `LandmarkVertex` (3-D point or
  displacement, additive updates), `PoseVertex` (camera-from-world rigid
  transform, left SE(3) updates, `map` and `homogeneous`) and the abstract
  `Edge`, whose default `linearize_oplus` computes Jacobians by central
  differences and whose `chi2()` returns the weighted squared error.
- `deformslam.optimization.regularizers` — `PositionRegularizer`,
  `PositionRegularizerWithDeformation`, `SpatialRegularizer`,
  `SpatialRegularizerFixed` and `SpatialRegularizerWithDeformation`.
- `deformslam.optimization.observation` — `SpatialRegularizerWithObservation`,
  which compares a landmark's flow between two frames with a measured flow.
- `deformslam.optimization.reprojection` — `ReprojectionError`,
  `ReprojectionErrorOnlyDeformation`, `ReprojectionErrorOnlyPose` and
  `ReprojectionErrorWithDeformation`, plus `pose_jacobian`. The camera model
  passed as `calibration` is any object with `project(point)` and
  `projection_jacobian(point)`.

## What the package does not do

- It has no feature tracker: `deformslam.matching` provides pyramids and
  window sampling, not a complete Lucas-Kanade tracking loop.
- It has no stereo depth estimation; `deformslam.stereo` holds no modules.
- It has no optimizer: vertices and edges compute errors and Jacobians, but
  nothing in the package solves the least-squares problem.
- It has no camera model and no command-line program.

## Installation

```
pip install .
```

## Examples

```python
import numpy as np
from deformslam.masking.masker import Masker
from deformslam.masking.filters import BorderFilter, BrightFilter

image = np.full((240, 320), 100, dtype=np.uint8)

masker = Masker([BorderFilter(10, 10, 10, 10, 0), BrightFilter(200)])
mask = masker.mask(image)          # uint8, 255 where the image is usable
print(masker.describe_filters())
```

```python
from deformslam.optimization.graph import LandmarkVertex
from deformslam.optimization.regularizers import SpatialRegularizerWithDeformation

moved = LandmarkVertex([0.1, 0.0, 0.0])
still = LandmarkVertex()
edge = SpatialRegularizerWithDeformation(moved, still, weight=2.0)
print(edge.compute_error())        # [0.2 0.  0. ]
print(edge.chi2())                 # about 0.04
```

## Tests

```
pip install .[test]
pytest
```