"""Image filters that each produce a binary-ish validity mask for an image."""

from __future__ import annotations

import abc
from os import PathLike
from typing import Union

import numpy as np
from numpy.typing import NDArray
from PIL import Image
from scipy import ndimage

MASK_ON = 255

PathType = Union[str, "PathLike[str]"]


def to_gray(image: NDArray) -> NDArray:
    """Return a single-channel view of ``image``; 3 or 4 channel images are read as BGR(A)."""
    arr = np.asarray(image)
    if arr.ndim == 2:
        return arr
    if arr.ndim == 3 and arr.shape[2] == 1:
        return arr[:, :, 0]
    if arr.ndim == 3 and arr.shape[2] in (3, 4):
        if arr.dtype == np.uint8:
            b, g, r = (arr[..., k].astype(np.int64) for k in range(3))
            gray = (b * 1868 + g * 9617 + r * 4899 + 8192) >> 14
            return gray.astype(np.uint8)
        b, g, r = (arr[..., k].astype(np.float64) for k in range(3))
        return (0.114 * b + 0.587 * g + 0.299 * r).astype(arr.dtype)
    raise ValueError(f"unsupported image shape {arr.shape}")


def rect_kernel(width: int, height: int) -> NDArray[np.bool_]:
    """Rectangular structuring element of the given size."""
    if width <= 0 or height <= 0:
        raise ValueError("kernel size must be positive")
    return np.ones((height, width), dtype=bool)


def ellipse_kernel(width: int, height: int) -> NDArray[np.bool_]:
    """Elliptic structuring element inscribed in a ``width`` x ``height`` box."""
    if width <= 0 or height <= 0:
        raise ValueError("kernel size must be positive")
    kernel = np.zeros((height, width), dtype=bool)
    r = height // 2
    c = width // 2
    inv_r2 = 1.0 / (r * r) if r else 0.0
    for i, row in enumerate(kernel):
        dy = i - r
        if abs(dy) <= r:
            dx = round(c * np.sqrt((r * r - dy * dy) * inv_r2))
            row[max(c - dx, 0):min(c + dx + 1, width)] = True
    return kernel


def erode(mask: NDArray, kernel: NDArray) -> NDArray:
    """Grey-level erosion; pixels outside the image never lower the minimum."""
    arr = np.asarray(mask)
    footprint = np.asarray(kernel, dtype=bool)
    if arr.size == 0 or not footprint.any():
        return arr.copy()
    if np.issubdtype(arr.dtype, np.integer):
        fill = np.iinfo(arr.dtype).max
    else:
        fill = np.finfo(arr.dtype).max
    return ndimage.minimum_filter(arr, footprint=footprint, mode="constant", cval=fill)


def _gaussian_blur(mask: NDArray, ksize: int, sigma: float) -> NDArray[np.uint8]:
    x = np.arange(ksize, dtype=np.float64) - (ksize - 1) / 2.0
    weights = np.exp(-(x * x) / (2.0 * sigma * sigma))
    weights /= weights.sum()
    out = ndimage.correlate1d(mask.astype(np.float64), weights, axis=0, mode="mirror")
    out = ndimage.correlate1d(out, weights, axis=1, mode="mirror")
    return np.clip(np.rint(out), 0, 255).astype(np.uint8)


class Filter(abc.ABC):
    """A filter that generates a single mask from an input image."""

    name: str = "Filter"

    @abc.abstractmethod
    def generate_mask(self, image: NDArray) -> NDArray[np.uint8]:
        """Return the mask for ``image``: 255 where usable, 0 where masked out."""

    @abc.abstractmethod
    def description(self) -> str:
        """Short human-readable description of the filter."""


class BorderFilter(Filter):
    """Masks out rows and columns at the outer borders of the image, and black pixels."""

    name = "BorderFilter"

    def __init__(self, rows_begin: int, rows_end: int, cols_begin: int, cols_end: int,
                 threshold: int) -> None:
        self.rows_begin = rows_begin
        self.rows_end = rows_end
        self.cols_begin = cols_begin
        self.cols_end = cols_end
        self.threshold = threshold

    def generate_mask(self, image: NDArray) -> NDArray[np.uint8]:
        gray = to_gray(image)
        rows, cols = gray.shape
        width = cols - self.cols_end - self.cols_begin
        height = rows - self.rows_end - self.rows_begin
        if (self.cols_begin < 0 or self.rows_begin < 0 or width < 0 or height < 0
                or self.cols_end < 0 or self.rows_end < 0):
            raise ValueError("border region does not fit inside the image")
        mask = np.zeros((rows, cols), dtype=np.uint8)
        mask[self.rows_begin:self.rows_begin + height,
             self.cols_begin:self.cols_begin + width] = MASK_ON
        mask[gray == 0] = 0
        return erode(mask, rect_kernel(21, 21))

    def description(self) -> str:
        return (f"Border mask with parameters [{self.rows_begin},{self.rows_end},"
                f"{self.cols_begin},{self.cols_end}]")


class BrightFilter(Filter):
    """Masks out pixels brighter than a threshold."""

    name = "BrightFilter"

    def __init__(self, threshold: int) -> None:
        self.threshold = threshold

    def generate_mask(self, image: NDArray) -> NDArray[np.uint8]:
        gray = to_gray(image)
        mask = np.where(gray > self.threshold, 0, MASK_ON).astype(np.uint8)
        mask = erode(mask, ellipse_kernel(11, 11))
        return _gaussian_blur(mask, 11, 5.0)

    def description(self) -> str:
        return f"Bright mask with th_ = {self.threshold}"


class PredefinedFilter(Filter):
    """A fixed mask loaded from a grayscale image file."""

    name = "PredefinedFilter"

    def __init__(self, path: PathType) -> None:
        self.path = str(path)
        with Image.open(self.path) as img:
            loaded = np.array(img.convert("L"), dtype=np.uint8)
        self._mask = erode(loaded, ellipse_kernel(20, 20))

    def generate_mask(self, image: NDArray) -> NDArray[np.uint8]:
        return self._mask.copy()

    def description(self) -> str:
        return f"Predefined filer loaded from: {self.path}"