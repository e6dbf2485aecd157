"""Binning of query and reference points into grid boxes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from fgtkde.grid import GridGeometry
from fgtkde.indexer import SpatialIndexer

log = logging.getLogger(__name__)


@dataclass(eq=False)
class Box:
    """One cell of the FGT grid.

    ``query_rows`` holds the queries inside the box extent, which may be
    served by the local expansion. ``outside_rows`` holds queries clamped in
    from beyond the reference bounding box; the Taylor series is not valid
    there, so they are only evaluated directly or through the far field.
    ``moments`` stays ``None`` until the far-field expansion of the box has
    been formed; ``local`` stays ``None`` until something was accumulated
    into the local expansion.
    """

    id: int
    coords: tuple[int, ...]
    centroid: np.ndarray
    query_rows: np.ndarray
    reference_rows: np.ndarray
    outside_rows: np.ndarray = field(
        default_factory=lambda: np.empty(0, dtype=np.int64), repr=False
    )
    moments: np.ndarray | None = field(default=None, repr=False)
    local: np.ndarray | None = field(default=None, repr=False)

    @property
    def moments_computed(self) -> bool:
        return self.moments is not None

    @property
    def num_queries(self) -> int:
        return int(self.query_rows.size)

    @property
    def num_references(self) -> int:
        return int(self.reference_rows.size)

    @property
    def num_outside(self) -> int:
        return int(self.outside_rows.size)


def bin_points(
    points: np.ndarray, geometry: GridGeometry, indexer: SpatialIndexer
) -> np.ndarray:
    """Box id of every column of ``points``.

    Points outside the grid are clamped into the nearest edge box, and a point
    sitting exactly on the upper edge of an axis lands in the last box.
    """
    nsides = np.asarray(geometry.nsides, dtype=np.int64)[:, None]
    sides = geometry.side_lengths[:, None]
    offsets = points - geometry.min_coords[:, None]
    with np.errstate(divide="ignore", invalid="ignore"):
        scaled = np.where(sides > 0, offsets / np.where(sides > 0, sides, 1.0), 0.0)
    bins = np.clip(np.floor(scaled), 0, nsides - 1).astype(np.int64)
    return indexer.encode_many(bins)


def _group_rows(box_ids: np.ndarray, nboxes: int) -> list[np.ndarray]:
    """Split point indices by box id; each list keeps increasing order."""
    order = np.argsort(box_ids, kind="stable")
    counts = np.bincount(box_ids, minlength=nboxes)
    return np.split(order.astype(np.int64), np.cumsum(counts)[:-1])


def assign_points(
    geometry: GridGeometry,
    indexer: SpatialIndexer,
    queries: np.ndarray,
    references: np.ndarray,
) -> list[Box]:
    """Create the box arena and distribute both point sets over it.

    Parameters
    ----------
    geometry:
        Grid layout.
    indexer:
        Box id arithmetic for ``geometry.nsides``.
    queries, references:
        Column-oriented ``(d, n)`` point sets.

    Returns
    -------
    list[Box]
        One record per box, indexed by box id.
    """
    reference_rows = _group_rows(
        bin_points(references, geometry, indexer), geometry.nboxes
    )
    nboxes = geometry.nboxes
    centroids = geometry.centroids()
    query_ids = bin_points(queries, geometry, indexer)

    # the local expansion of a box is valid within half a side of its centroid
    limit = 0.5 * float(np.max(geometry.side_lengths)) * (1.0 + 1e-9)
    if queries.shape[1]:
        offsets = np.max(np.abs(queries - centroids[:, query_ids]), axis=0)
        inside = offsets <= limit
    else:
        inside = np.ones(0, dtype=bool)

    query_rows = _group_rows(np.where(inside, query_ids, nboxes), nboxes + 1)
    outside_rows = _group_rows(np.where(inside, nboxes, query_ids), nboxes + 1)

    num_outside = int(np.count_nonzero(~inside))
    if num_outside:
        log.warning(
            "%d query points lie outside the reference bounding box; they are "
            "clamped into edge boxes and evaluated without local expansions",
            num_outside,
        )

    return [
        Box(
            id=box_id,
            coords=indexer.decode(box_id),
            centroid=centroids[:, box_id].copy(),
            query_rows=query_rows[box_id],
            reference_rows=reference_rows[box_id],
            outside_rows=outside_rows[box_id],
        )
        for box_id in range(nboxes)
    ]
