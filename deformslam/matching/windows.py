"""Image pyramids and fixed-point window sampling used by the optical-flow tracker."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray
from scipy import ndimage

from deformslam.masking.filters import to_gray

W_BITS = 14
"""Fixed-point precision of the bilinear interpolation weights."""

INTENSITY_SHIFT = W_BITS - 5
"""Sampled intensities keep 5 fractional bits, i.e. they are scaled by 32."""

FLT_SCALE = 1.0 / (1 << 20)
"""Scale turning products of sampled window values back into plain units."""

Weights = Tuple[int, int, int, int]

_PYR_KERNEL = np.array([1, 4, 6, 4, 1], dtype=np.int64)


@dataclass
class PyramidLevel:
    """One pyramid level: a grey image and its Scharr derivatives (``dx``, ``dy``)."""

    image: NDArray[np.uint8]
    derivatives: NDArray[np.int16]

    @property
    def shape(self) -> Tuple[int, int]:
        return self.image.shape


@dataclass
class PhotometricInformation:
    """Per-level reference data of one tracked point."""

    mean_gray_per_level: List[float] = field(default_factory=list)
    squared_mean_gray_per_level: List[float] = field(default_factory=list)
    gray_reference: List[Optional[NDArray[np.int16]]] = field(default_factory=list)
    gradient_reference: List[Optional[NDArray[np.int16]]] = field(default_factory=list)

    def __post_init__(self) -> None:
        lengths = {
            len(self.mean_gray_per_level),
            len(self.squared_mean_gray_per_level),
            len(self.gray_reference),
            len(self.gradient_reference),
        }
        if len(lengths) != 1:
            raise ValueError("photometric information lists must have one entry per level")

    @property
    def num_levels(self) -> int:
        return len(self.mean_gray_per_level)


def _reflect101(indices: NDArray, size: int) -> NDArray:
    if size <= 0:
        raise ValueError("cannot sample an empty image")
    if size == 1:
        return np.zeros_like(indices)
    period = 2 * (size - 1)
    idx = np.abs(indices) % period
    return np.where(idx >= size, period - idx, idx)


def _descale(values: NDArray, shift: int) -> NDArray:
    return (values + (1 << (shift - 1))) >> shift


def _scharr_derivatives(image: NDArray[np.uint8]) -> NDArray[np.int16]:
    src = np.pad(image.astype(np.int32), 1, mode="reflect")
    t0 = (src[:-2] + src[2:]) * 3 + src[1:-1] * 10
    t1 = src[2:] - src[:-2]
    dx = t0[:, 2:] - t0[:, :-2]
    dy = (t1[:, :-2] + t1[:, 2:]) * 3 + t1[:, 1:-1] * 10
    return np.stack([dx, dy], axis=-1).astype(np.int16)


def _pyr_down(image: NDArray[np.uint8]) -> NDArray[np.uint8]:
    acc = ndimage.correlate1d(image.astype(np.int64), _PYR_KERNEL, axis=0, mode="mirror")
    acc = ndimage.correlate1d(acc, _PYR_KERNEL, axis=1, mode="mirror")
    return ((acc[::2, ::2] + 128) >> 8).astype(np.uint8)


def _win_dims(win_size: Sequence[int]) -> Tuple[int, int]:
    width, height = (int(v) for v in win_size)
    if width <= 0 or height <= 0:
        raise ValueError("window size must be positive")
    return width, height


def build_optical_flow_pyramid(image: NDArray, win_size: Sequence[int],
                               max_level: int) -> List[PyramidLevel]:
    """Build a Gaussian pyramid with Scharr derivatives at each level.

    Construction stops early once the next level would be no larger than the
    window in either dimension; the returned list always holds level 0.
    """
    if max_level < 0:
        raise ValueError("max_level must be non-negative")
    win_w, win_h = _win_dims(win_size)
    current = np.asarray(to_gray(image))
    if current.ndim != 2 or current.size == 0:
        raise ValueError("image must be a non-empty 2-D array")
    current = np.clip(current, 0, 255).astype(np.uint8)

    levels: List[PyramidLevel] = []
    for level in range(max_level + 1):
        levels.append(PyramidLevel(current, _scharr_derivatives(current)))
        if level == max_level:
            break
        rows, cols = current.shape
        if (cols + 1) // 2 <= win_w or (rows + 1) // 2 <= win_h:
            break
        current = _pyr_down(current)
    return levels


def interpolation_weights(frac_x: float, frac_y: float) -> Weights:
    """Fixed-point bilinear weights (w00, w01, w10, w11) summing to ``1 << W_BITS``."""
    a = np.float32(frac_x)
    b = np.float32(frac_y)
    one = np.float32(1.0)
    scale = np.float32(1 << W_BITS)
    w00 = int(np.rint((one - a) * (one - b) * scale))
    w01 = int(np.rint(a * (one - b) * scale))
    w10 = int(np.rint((one - a) * b * scale))
    w11 = (1 << W_BITS) - w00 - w01 - w10
    return w00, w01, w10, w11


def _neighbourhood(array: NDArray, origin_x: int, origin_y: int,
                   width: int, height: int) -> NDArray[np.int64]:
    rows = _reflect101(np.arange(origin_y, origin_y + height + 1), array.shape[0])
    cols = _reflect101(np.arange(origin_x, origin_x + width + 1), array.shape[1])
    return array[np.ix_(rows, cols)].astype(np.int64)


def _blend(patch: NDArray[np.int64], weights: Weights) -> NDArray[np.int64]:
    w00, w01, w10, w11 = weights
    return (patch[:-1, :-1] * w00 + patch[:-1, 1:] * w01
            + patch[1:, :-1] * w10 + patch[1:, 1:] * w11)


def sample_window(image: NDArray, origin_x: int, origin_y: int, weights: Weights,
                  win_size: Sequence[int]) -> NDArray[np.int16]:
    """Sample a window of intensities scaled by 32 at sub-pixel position.

    ``origin_x``/``origin_y`` is the integer top-left corner; ``weights`` come from
    :func:`interpolation_weights`. Pixels outside the image are reflected.
    """
    width, height = _win_dims(win_size)
    img = np.asarray(image)
    if img.ndim != 2:
        raise ValueError("image must be a 2-D array")
    patch = _neighbourhood(img, int(origin_x), int(origin_y), width, height)
    return _descale(_blend(patch, weights), INTENSITY_SHIFT).astype(np.int16)


def sample_gradient_window(derivatives: NDArray, origin_x: int, origin_y: int,
                           weights: Weights, win_size: Sequence[int]) -> NDArray[np.int16]:
    """Sample an interpolated ``(height, width, 2)`` window of image derivatives."""
    width, height = _win_dims(win_size)
    deriv = np.asarray(derivatives)
    if deriv.ndim != 3 or deriv.shape[2] != 2:
        raise ValueError("derivatives must have shape (rows, cols, 2)")
    patch = _neighbourhood(deriv, int(origin_x), int(origin_y), width, height)
    dx = _descale(_blend(patch[..., 0], weights), W_BITS)
    dy = _descale(_blend(patch[..., 1], weights), W_BITS)
    return np.stack([dx, dy], axis=-1).astype(np.int16)