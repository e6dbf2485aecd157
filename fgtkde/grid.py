"""Uniform grid geometry and truncation-order selection.

The FGT covers the bounding box of the reference points with a uniform grid
whose boxes are about one bandwidth wide. The truncation order of the
Hermite/Taylor series follows from the ratio between the box half-width and
the bandwidth using the error bound of Greengard and Strain (1991).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from fgtkde.exceptions import DegenerateGridError

log = logging.getLogger(__name__)


def truncation_error_bound(order: int, radius_ratio: float, dimension: int) -> float:
    """Upper bound of the series truncation error for ``order`` terms per axis.

    Parameters
    ----------
    order:
        Number of terms ``p`` kept per axis.
    radius_ratio:
        Half box side divided by the bandwidth. Must be below ``0.5``.
    dimension:
        Dimensionality ``d``.

    Returns
    -------
    float
        ``((f + s)^d - f^d) / (1 - 2r)^(2d)`` with ``q = (2r)^p``,
        ``f = (1 - q)^2`` and ``s = q (2 - q) / sqrt(p!)``.
    """
    two_r = 2.0 * radius_ratio
    q = two_r**order
    first = (1.0 - q) ** 2
    # sqrt(p!) through lgamma so that large orders do not overflow
    second = q * (2.0 - q) * math.exp(-0.5 * math.lgamma(order + 1.0))
    scale = 1.0 / (1.0 - two_r) ** (2 * dimension)
    # (f + s)^d - f^d factored as s * sum_k (f + s)^k f^(d-1-k), exact for tiny s
    total = sum(
        (first + second) ** k * first ** (dimension - 1 - k) for k in range(dimension)
    )
    return scale * second * total


def truncation_order(
    radius_ratio: float, dimension: int, tolerance: float, max_order: int = 64
) -> int:
    """Smallest order whose truncation error bound is ``<= tolerance``.

    Raises
    ------
    DegenerateGridError
        If ``radius_ratio >= 0.5`` (the bound diverges) or no order up to
        ``max_order`` satisfies the tolerance.
    """
    if not radius_ratio < 0.5:
        raise DegenerateGridError(
            f"radius ratio {radius_ratio:.6g} must be below 0.5; "
            "the grid boxes are too large for the bandwidth"
        )

    for order in range(1, max_order + 1):
        if truncation_error_bound(order, radius_ratio, dimension) <= tolerance:
            return order

    raise DegenerateGridError(
        f"no truncation order up to {max_order} reaches tolerance {tolerance:g} "
        f"(radius ratio {radius_ratio:.6g}, dimension {dimension})"
    )


@dataclass(frozen=True)
class GridGeometry:
    """Shape of the FGT grid and the truncation order that goes with it.

    Attributes
    ----------
    nsides:
        Number of boxes along each axis.
    side_lengths:
        Side length of the boxes along each axis.
    min_coords:
        Lower corner of the grid.
    nboxes:
        Total number of boxes.
    order:
        Truncation order ``p``.
    radius_ratio:
        Largest half box side divided by the bandwidth.
    interaction_radius:
        Distance beyond which a kernel value drops below the tolerance,
        ``sqrt(-2 h^2 ln(tau))``.
    """

    nsides: tuple[int, ...]
    side_lengths: np.ndarray
    min_coords: np.ndarray
    nboxes: int
    order: int
    radius_ratio: float
    interaction_radius: float

    @property
    def dimension(self) -> int:
        return len(self.nsides)

    @classmethod
    def from_references(
        cls,
        references: np.ndarray,
        bandwidth: float,
        tolerance: float,
        *,
        box_ratio: float = 1.0,
        max_order: int = 64,
    ) -> "GridGeometry":
        """Lay the grid over a column-oriented ``(d, n)`` reference set.

        Parameters
        ----------
        references:
            Reference points, one column per point.
        bandwidth:
            Kernel bandwidth ``h``.
        tolerance:
            Absolute error tolerance.
        box_ratio:
            Target box side in units of the bandwidth. Values above 1 can make
            the radius ratio reach 0.5 and the order search fail.
        max_order:
            Upper limit of the truncation-order search.
        """
        mins = references.min(axis=1)
        maxs = references.max(axis=1)
        extent = maxs - mins

        nsides = np.floor(extent / (box_ratio * bandwidth)).astype(np.int64) + 1
        nsides = np.maximum(nsides, 1)
        side_lengths = extent / nsides
        radius_ratio = float(np.max(side_lengths) / (2.0 * bandwidth))

        order = truncation_order(
            radius_ratio, references.shape[0], tolerance, max_order=max_order
        )
        nboxes = int(np.prod(nsides))

        log.debug(
            "grid: nsides=%s, nboxes=%d, radius ratio=%.4g, order=%d",
            nsides.tolist(),
            nboxes,
            radius_ratio,
            order,
        )

        side_lengths.setflags(write=False)
        mins.setflags(write=False)
        return cls(
            nsides=tuple(int(n) for n in nsides),
            side_lengths=side_lengths,
            min_coords=mins,
            nboxes=nboxes,
            order=order,
            radius_ratio=radius_ratio,
            interaction_radius=math.sqrt(-2.0 * bandwidth * bandwidth * math.log(tolerance)),
        )

    def centroids(self) -> np.ndarray:
        """Centers of all boxes as a ``(d, nboxes)`` array, column = box id.

        Box ids use the first axis as the fastest varying digit.
        """
        coords = np.indices(self.nsides[::-1], dtype=np.int64).reshape(
            self.dimension, -1
        )[::-1]
        return self.min_coords[:, None] + (coords + 0.5) * self.side_lengths[:, None]
