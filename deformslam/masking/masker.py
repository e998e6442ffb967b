"""Combine several filters into one global image mask."""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

import numpy as np
from numpy.typing import NDArray

from deformslam.masking.filters import (
    MASK_ON,
    BorderFilter,
    BrightFilter,
    Filter,
    PathType,
    PredefinedFilter,
    erode,
    rect_kernel,
)

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")
_INT32_MIN, _INT32_MAX = -(2 ** 31), 2 ** 31 - 1


def _parse_int(token: str) -> int:
    match = _LEADING_INT.match(token)
    if match is None:
        raise ValueError(f"invalid integer: {token!r}")
    value = int(match.group(1))
    if not _INT32_MIN <= value <= _INT32_MAX:
        raise ValueError(f"integer out of range: {token!r}")
    return value


def _token(args: list, idx: int) -> str:
    return args[idx] if idx < len(args) else ""


class Masker:
    """Holds an ordered list of filters and merges their masks."""

    def __init__(self, filters: Optional[Iterable[Filter]] = None) -> None:
        self._filters: list = list(filters or ())

    @classmethod
    def from_txt(cls, path: PathType) -> "Masker":
        """Build a masker from a filter description file."""
        masker = cls()
        masker.load_from_txt(path)
        return masker

    @property
    def filters(self) -> tuple:
        return tuple(self._filters)

    def __len__(self) -> int:
        return len(self._filters)

    def load_from_txt(self, path: PathType) -> None:
        """Append filters read from lines of the form ``<filterName> <param_1> ...``.

        A file that cannot be opened adds nothing; unknown filter names are ignored.
        """
        logger.info("Loading filters: %s", path)
        try:
            handle = open(path, encoding="utf-8")
        except OSError:
            return
        with handle:
            for line in handle:
                tokens = line.split()
                if not tokens:
                    continue
                name, args = tokens[0], tokens[1:]
                if name == "BorderFilter":
                    values = [_parse_int(_token(args, i)) for i in range(5)]
                    self.add_filter(BorderFilter(*values))
                elif name == "BrightFilter":
                    self.add_filter(BrightFilter(_parse_int(_token(args, 0))))
                elif name == "Predefined":
                    self.add_filter(PredefinedFilter(_token(args, 0)))

    def add_filter(self, image_filter: Filter) -> None:
        self._filters.append(image_filter)

    def delete_filter(self, idx: int) -> None:
        """Remove the filter at position ``idx``."""
        del self._filters[idx]

    def _combine(self, image: NDArray, collected: Optional[dict]) -> NDArray[np.uint8]:
        arr = np.asarray(image)
        rows, cols = arr.shape[:2]
        combined = np.full((rows, cols), MASK_ON, dtype=np.uint8)
        for image_filter in self._filters:
            mask = image_filter.generate_mask(arr)
            if collected is not None:
                collected[image_filter.name] = mask
            combined = np.bitwise_and(combined, mask.astype(np.uint8))
        return erode(combined, rect_kernel(10, 10))

    def mask(self, image: NDArray) -> NDArray[np.uint8]:
        """Apply every filter and return the eroded global mask."""
        return self._combine(image, None).copy()

    def all_masks(self, image: NDArray) -> dict:
        """Return each filter's mask keyed by filter name, plus the ``"Global"`` mask."""
        collected: dict = {}
        collected["Global"] = self._combine(image, collected)
        return collected

    def describe_filters(self) -> str:
        lines = [f"List of filters ({len(self._filters)}):\n"]
        lines.extend(f"\t-{f.description()}\n" for f in self._filters)
        return "".join(lines)