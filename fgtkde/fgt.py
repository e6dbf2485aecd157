"""Kernel density estimation with the multidimensional fast Gauss transform.

The method is the fast Gauss transform of

    L. Greengard and J. Strain, "The Fast Gauss Transform",
    SIAM J. Sci. Stat. Comput. 12(1), 79-94, 1991.

generalized from two to ``d`` dimensions with a slightly modified version of
Strain's cut-offs. Only the Gaussian kernel with a single fixed bandwidth and
uniform point weights is supported.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Any

import numpy as np

from fgtkde.assignment import Box, assign_points
from fgtkde.exceptions import InvalidConfiguration, NotComputedError
from fgtkde.expansion import ExpansionEngine
from fgtkde.functions.cpu_numba import direct_pair_sums
from fgtkde.grid import GridGeometry
from fgtkde.indexer import SpatialIndexer
from fgtkde.kernel import GaussianKernel, normalize_densities
from fgtkde.multiindex import MultiIndexTable
from fgtkde.parameters import Parameters


def interaction_cutoffs(
    tolerance: float, order: int, dimension: int
) -> tuple[int, int, int]:
    """Interaction radius and expansion thresholds of a run.

    Returns
    -------
    kdis:
        Neighbor radius in boxes, ``ceil(sqrt(-2 ln(tau))) + 1``.
    nfmax:
        Reference boxes with at most this many points form no far-field
        expansion, ``p^(d-1) + 2``.
    nlmax:
        Query boxes with at most this many points are evaluated point by
        point instead of through a local expansion; equal to ``nfmax``.
    """
    kdis = math.ceil(math.sqrt(-2.0 * math.log(tolerance))) + 1
    nfmax = order ** (dimension - 1) + 2
    return kdis, nfmax, nfmax


def _as_point_set(points: Any, name: str) -> np.ndarray:
    try:
        points = np.array(points, dtype=np.float64, order="C", copy=True)
    except (TypeError, ValueError) as exc:
        raise InvalidConfiguration(f"{name} must be a numeric matrix") from exc
    if points.ndim != 2:
        raise InvalidConfiguration(
            f"{name} must have shape (dimension, count), got {points.shape}"
        )
    if points.shape[0] == 0:
        raise InvalidConfiguration(f"{name} must have at least one dimension")
    if not np.all(np.isfinite(points)):
        raise InvalidConfiguration(f"{name} contains non-finite coordinates")
    points.setflags(write=False)
    return points


class FGTKde:
    """Fast Gauss transform kernel density estimator.

    Computes, for every query point ``y``,

        f(y) = 1 / (N (2 pi h^2)^(d/2)) sum_x exp(-|y - x|^2 / (2 h^2))

    over the ``N`` reference points to an absolute accuracy ``tolerance``.
    The instance computes once; build a new one for new data.

    Parameters
    ----------
    queries:
        Query points as a column-oriented ``(d, n_queries)`` matrix.
    references:
        Reference points as a column-oriented ``(d, n_references)`` matrix.
    bandwidth:
        Gaussian kernel bandwidth ``h``.
    tolerance:
        Absolute error tolerance in ``(0, 1)``.
    **options:
        Further fields of :class:`~fgtkde.parameters.Parameters`
        (``box_ratio``, ``max_truncation_order``, ``far_field_threshold``,
        ``local_threshold``, ``parallel``).

    Examples
    --------
    >>> kde = FGTKde(queries, references, bandwidth=0.5, tolerance=1e-4)
    >>> kde.compute()
    >>> densities = kde.get_density_estimates()
    """

    def __init__(
        self,
        queries: Any,
        references: Any,
        bandwidth: float,
        tolerance: float,
        **options: Any,
    ) -> None:
        self.parameters = Parameters.build(
            bandwidth=bandwidth, tolerance=tolerance, **options
        )
        self.queries = _as_point_set(queries, "queries")
        self.references = _as_point_set(references, "references")
        if self.queries.shape[0] != self.references.shape[0]:
            raise InvalidConfiguration(
                f"queries are {self.queries.shape[0]}-dimensional but references "
                f"are {self.references.shape[0]}-dimensional"
            )
        if self.references.shape[1] == 0:
            raise InvalidConfiguration("the reference set is empty")

        self.kernel = GaussianKernel(self.parameters.bandwidth)
        self.log = logging.getLogger(self.__class__.__module__)
        self._reset()

    def _reset(self) -> None:
        """Drop the results of an earlier run."""
        self.geometry: GridGeometry | None = None
        self.table: MultiIndexTable | None = None
        self.boxes: list[Box] = []
        self.interaction_counts: dict[str, int] = {}
        self.last_profile: dict[str, float] | None = None
        self._densities: np.ndarray | None = None

    @classmethod
    def from_parameters(
        cls, queries: Any, references: Any, parameters: Parameters
    ) -> "FGTKde":
        return cls(queries, references, **parameters.model_dump())

    @property
    def dimension(self) -> int:
        return int(self.references.shape[0])

    @property
    def computed(self) -> bool:
        return self._densities is not None

    def compute(self, *, profile: bool = False) -> None:
        """Run the fast Gauss transform and normalize the sums.

        Parameters
        ----------
        profile:
            If True, populate ``last_profile`` with stage timings in seconds.

        Raises
        ------
        DegenerateGridError
            If no truncation order satisfies the tolerance for the grid.
        """
        params = self.parameters
        self._reset()
        self.log.info(
            "Computing FGT KDE for %d queries and %d references in %d dimensions ...",
            self.queries.shape[1],
            self.references.shape[1],
            self.dimension,
        )
        t_start = time.perf_counter()

        geometry = GridGeometry.from_references(
            self.references,
            params.bandwidth,
            params.tolerance,
            box_ratio=params.box_ratio,
            max_order=params.max_truncation_order,
        )
        table = MultiIndexTable(geometry.order, self.dimension)
        indexer = SpatialIndexer(geometry.nsides)
        boxes = assign_points(geometry, indexer, self.queries, self.references)
        t_setup = time.perf_counter()

        kdis, nfmax, nlmax = interaction_cutoffs(
            params.tolerance, geometry.order, self.dimension
        )
        if params.far_field_threshold is not None:
            nfmax = params.far_field_threshold
        if params.local_threshold is not None:
            nlmax = params.local_threshold
        self.log.info(
            "grid of %d boxes %s, truncation order %d, kdis=%d, nfmax=%s, nlmax=%s",
            geometry.nboxes,
            geometry.nsides,
            geometry.order,
            kdis,
            nfmax,
            nlmax,
        )

        self.geometry = geometry
        self.table = table
        self.boxes = boxes

        densities = np.zeros(self.queries.shape[1], dtype=np.float64)
        engine = ExpansionEngine(table, params.bandwidth)
        counts = self._gauss_transform(
            engine, indexer, boxes, densities, kdis=kdis, nfmax=nfmax, nlmax=nlmax
        )
        t_transform = time.perf_counter()

        normalize_densities(
            densities, self.kernel, self.dimension, self.references.shape[1]
        )
        t_end = time.perf_counter()

        self.interaction_counts = counts
        self._densities = densities
        self.log.debug("interaction counts: %s", counts)
        self.log.info("FGT KDE completed in %.3f seconds", t_end - t_start)

        if profile:
            self.last_profile = {
                "setup_s": t_setup - t_start,
                "transform_s": t_transform - t_setup,
                "normalize_s": t_end - t_transform,
                "total_s": t_end - t_start,
                "n_boxes": float(geometry.nboxes),
                "order": float(geometry.order),
            }
        else:
            self.last_profile = None

    def _gauss_transform(
        self,
        engine: ExpansionEngine,
        indexer: SpatialIndexer,
        boxes: list[Box],
        densities: np.ndarray,
        *,
        kdis: int,
        nfmax: float,
        nlmax: float,
    ) -> dict[str, int]:
        """Visit every reference box and route each box pair to one path.

        Queries clamped in from outside the grid only take the direct or
        far-field paths; the Taylor local series does not converge for them.
        """
        counts = {
            "direct": 0,
            "far_field": 0,
            "direct_local": 0,
            "translation": 0,
            "local_evaluations": 0,
            "outside": 0,
        }
        queries = self.queries
        references = self.references

        for ref_box in boxes:
            ninbox = ref_box.num_references
            if ninbox == 0:
                continue

            neighbors = sorted(indexer.neighbors(ref_box.id, kdis))
            far_field = ninbox > nfmax
            if far_field:
                engine.compute_far_field_moments(ref_box, references)

            for query_box_id in neighbors:
                query_box = boxes[query_box_id]
                ninnbr = query_box.num_queries

                if query_box.num_outside:
                    if far_field:
                        engine.evaluate_far_field(
                            ref_box, queries, query_box.outside_rows, densities
                        )
                    else:
                        direct_pair_sums(
                            queries,
                            query_box.outside_rows,
                            references,
                            ref_box.reference_rows,
                            engine.delta,
                            densities,
                        )
                    counts["outside"] += 1

                if ninnbr == 0:
                    continue
                if not far_field:
                    # too few references for a far-field expansion
                    if ninnbr <= nlmax:
                        direct_pair_sums(
                            queries,
                            query_box.query_rows,
                            references,
                            ref_box.reference_rows,
                            engine.delta,
                            densities,
                        )
                        counts["direct"] += 1
                    else:
                        engine.accumulate_direct_local(ref_box, references, query_box)
                        counts["direct_local"] += 1
                elif ninnbr <= nlmax:
                    engine.evaluate_far_field(
                        ref_box, queries, query_box.query_rows, densities
                    )
                    counts["far_field"] += 1
                else:
                    engine.translate_far_field_to_local(ref_box, query_box)
                    counts["translation"] += 1

        crowded = [box for box in boxes if box.num_queries > nlmax]
        counts["local_evaluations"] = engine.evaluate_local_expansions(
            crowded, queries, densities, parallel=self.parameters.parallel
        )
        return counts

    def get_density_estimates(self) -> np.ndarray:
        """Normalized density estimate of every query point.

        Raises
        ------
        NotComputedError
            If :meth:`compute` has not run yet.
        """
        if self._densities is None:
            raise NotComputedError("Call compute() before get_density_estimates().")
        return self._densities.copy()


def fgt_kde(
    queries: Any, references: Any, bandwidth: float, tolerance: float, **options: Any
) -> np.ndarray:
    """Compute FGT density estimates in one call."""
    kde = FGTKde(queries, references, bandwidth, tolerance, **options)
    kde.compute()
    return kde.get_density_estimates()
