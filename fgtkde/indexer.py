"""Box id arithmetic on the uniform grid.

Boxes are labeled with a mixed-radix number whose first axis is the fastest
varying digit. For a 10 x 4 grid in two dimensions::

    y
    |30 31 32 33 34 35 36 37 38 39
    |20 21 22 23 24 25 26 27 28 29
    |10 11 12 13 14 15 16 17 18 19
    | 0  1  2  3  4  5  6  7  8  9
    |_____________________________ x
"""

from __future__ import annotations

import itertools
from collections.abc import Sequence
from functools import lru_cache

import numpy as np


@lru_cache(maxsize=32)
def _offset_stencil(dimension: int, radius: int) -> np.ndarray:
    """All offsets in ``[-radius, radius]^d`` as a ``(count, d)`` array."""
    span = range(-radius, radius + 1)
    stencil = np.array(list(itertools.product(span, repeat=dimension)), dtype=np.int64)
    stencil.setflags(write=False)
    return stencil


class SpatialIndexer:
    """Bijection between box coordinate tuples and linear box ids.

    Parameters
    ----------
    nsides:
        Number of boxes along each axis.
    """

    def __init__(self, nsides: Sequence[int]) -> None:
        self.nsides = np.asarray(nsides, dtype=np.int64)
        if self.nsides.ndim != 1 or self.nsides.size == 0:
            raise ValueError("nsides must be a non-empty sequence")
        if np.any(self.nsides < 1):
            raise ValueError("every axis needs at least one box")

        self.dimension = int(self.nsides.size)
        # stride of axis k is the product of all lower axis counts
        self.strides = np.concatenate(([1], np.cumprod(self.nsides[:-1]))).astype(
            np.int64
        )
        self.nboxes = int(np.prod(self.nsides))

    def encode(self, coords: Sequence[int]) -> int:
        """Linear id of the box at per-axis coordinates ``coords``."""
        coords = np.asarray(coords, dtype=np.int64)
        if coords.shape != (self.dimension,):
            raise ValueError(f"expected {self.dimension} coordinates")
        if np.any(coords < 0) or np.any(coords >= self.nsides):
            raise ValueError(f"box coordinates {coords.tolist()} are off the grid")
        return int(np.dot(coords, self.strides))

    def encode_many(self, coords: np.ndarray) -> np.ndarray:
        """Vectorized :meth:`encode` for a ``(d, n)`` array of coordinates."""
        return self.strides @ np.asarray(coords, dtype=np.int64)

    def decode(self, box_id: int) -> tuple[int, ...]:
        """Per-axis coordinates of box ``box_id``."""
        if not 0 <= box_id < self.nboxes:
            raise IndexError(f"box id {box_id} out of range [0, {self.nboxes})")
        coords = []
        rest = int(box_id)
        for nside in self.nsides:
            rest, coord = divmod(rest, int(nside))
            coords.append(coord)
        return tuple(coords)

    def neighbors(self, box_id: int, radius: int) -> set[int]:
        """Ids of all boxes within ``radius`` boxes of ``box_id`` along every axis.

        The box itself is part of the result. Candidates falling off the grid
        are dropped.
        """
        if radius < 0:
            raise ValueError("radius must be >= 0")
        origin = np.asarray(self.decode(box_id), dtype=np.int64)
        candidates = origin + _offset_stencil(self.dimension, int(radius))
        on_grid = np.all((candidates >= 0) & (candidates < self.nsides), axis=1)
        return set(self.encode_many(candidates[on_grid].T).tolist())
