"""Hermite (far-field) and Taylor (local) expansions of the Gaussian kernel.

With ``delta = 2 h^2`` and ``s = sqrt(delta)`` the kernel between a query ``y``
and a reference ``x`` is ``exp(-|y - x|^2 / s^2)``. Around a reference box
center ``c`` it factors into

    sum_alpha A_alpha h_alpha((y - c) / s),  A_alpha = ((x - c) / s)^alpha / alpha!

and around a query box center ``c_Q`` into

    sum_beta B_beta ((y - c_Q) / s)^beta,  B_beta = (-1)^|beta| / beta! h_beta((c_Q - x) / s)

where ``h_n`` are the Hermite functions. All coefficient vectors use the
layout of :class:`~fgtkde.multiindex.MultiIndexTable`.
"""

from __future__ import annotations

import logging
import math

import numpy as np

from fgtkde.assignment import Box
from fgtkde.functions.cpu_numba import (
    accumulate_hermite_local,
    accumulate_monomials,
    evaluate_hermite_series,
    evaluate_taylor_series_parallel,
    evaluate_taylor_series_serial,
    hermite_table,
    taylor_series_value,
)
from fgtkde.multiindex import MultiIndexTable


class ExpansionEngine:
    """The numerical kernels of the FGT for one truncation order and bandwidth.

    Parameters
    ----------
    table:
        Multi-index table of the run.
    bandwidth:
        Kernel bandwidth ``h``.
    """

    def __init__(self, table: MultiIndexTable, bandwidth: float) -> None:
        self.table = table
        self.order = table.order
        self.total = table.size
        self.delta = 2.0 * bandwidth * bandwidth
        self.scale = math.sqrt(self.delta)

        # h_{a+b} lookup for the per-axis translation matrices
        span = np.arange(self.order)
        self._hankel_index = span[:, None] + span[None, :]

        self.log = logging.getLogger(self.__class__.__module__)

    def compute_far_field_moments(self, box: Box, references: np.ndarray) -> np.ndarray:
        """Form the far-field moments of ``box`` once and cache them on the box.

        Calling this again for the same box returns the cached vector without
        touching it.

        Returns
        -------
        numpy.ndarray
            The moment vector; entry 0 equals the number of reference points.
        """
        if box.moments is not None:
            return box.moments

        moments = np.zeros(self.total, dtype=np.float64)
        if self.order > 1:
            accumulate_monomials(
                references,
                box.reference_rows,
                box.centroid,
                self.scale,
                self.order,
                self.total,
                moments,
            )
            moments *= self.table.inv_multiindex_factorials
        moments[0] = box.num_references

        box.moments = moments
        return moments

    def evaluate_far_field(
        self,
        box: Box,
        queries: np.ndarray,
        query_rows: np.ndarray,
        densities: np.ndarray,
    ) -> None:
        """Add the far-field expansion of ``box`` to the given query points."""
        if box.moments is None:
            raise RuntimeError(f"far-field moments of box {box.id} were not computed")
        evaluate_hermite_series(
            queries,
            query_rows,
            box.centroid,
            self.scale,
            self.order,
            self.total,
            box.moments,
            densities,
        )

    def accumulate_direct_local(
        self, reference_box: Box, references: np.ndarray, query_box: Box
    ) -> None:
        """Convert each reference point of ``reference_box`` straight into a
        Taylor expansion about the center of ``query_box``."""
        local = self._local_of(query_box)
        accumulate_hermite_local(
            references,
            reference_box.reference_rows,
            query_box.centroid,
            self.scale,
            self.order,
            self.total,
            self.table.neg_inv_multiindex_factorials,
            local,
        )

    def translate_far_field_to_local(self, source_box: Box, dest_box: Box) -> None:
        """Translate the far-field moments of ``source_box`` into the local
        expansion of ``dest_box``.

        ``B_beta += (-1)^|beta| / beta! * sum_alpha A_alpha h_{alpha+beta}(t)``
        with ``t = (c_dest - c_src) / s``. The sum separates over the axes, so
        the moment tensor is contracted one axis at a time with the Hankel
        matrix ``h_{a+b}(t_k)`` of that axis.
        """
        if source_box.moments is None:
            raise RuntimeError(
                f"far-field moments of box {source_box.id} were not computed"
            )
        shift = dest_box.centroid - source_box.centroid
        hermite = hermite_table(shift, self.scale, 2 * self.order - 1)

        coeffs = source_box.moments.reshape((self.order,) * self.table.dimension)
        for axis in range(self.table.dimension):
            # leading axis is alpha_axis; the new beta_axis goes to the back
            coeffs = np.tensordot(coeffs, hermite[axis][self._hankel_index], axes=(0, 0))

        local = self._local_of(dest_box)
        local += self.table.neg_inv_multiindex_factorials * coeffs.reshape(-1)

    def evaluate_local_expansion(
        self, point: np.ndarray, centroid: np.ndarray, local: np.ndarray
    ) -> float:
        """Value of a local expansion about ``centroid`` at a single point."""
        return float(
            taylor_series_value(
                np.ascontiguousarray(point, dtype=np.float64),
                np.ascontiguousarray(centroid, dtype=np.float64),
                self.scale,
                self.order,
                self.total,
                local,
            )
        )

    def evaluate_local_expansions(
        self,
        boxes: list[Box],
        queries: np.ndarray,
        densities: np.ndarray,
        *,
        parallel: bool = True,
    ) -> int:
        """Evaluate the local expansion of every box in ``boxes`` at its queries.

        Boxes without an accumulated local expansion contribute nothing.

        Returns
        -------
        int
            Number of query points evaluated.
        """
        boxes = [box for box in boxes if box.local is not None and box.num_queries]
        if not boxes:
            return 0

        rows = np.concatenate([box.query_rows for box in boxes])
        slots = np.repeat(
            np.arange(len(boxes), dtype=np.int64), [box.num_queries for box in boxes]
        )
        centroids = np.ascontiguousarray(np.stack([box.centroid for box in boxes], axis=1))
        locals_ = np.stack([box.local for box in boxes])

        sweep = (
            evaluate_taylor_series_parallel if parallel else evaluate_taylor_series_serial
        )
        sweep(
            queries,
            rows,
            slots,
            centroids,
            locals_,
            self.scale,
            self.order,
            self.total,
            densities,
        )
        return int(rows.size)

    def _local_of(self, box: Box) -> np.ndarray:
        if box.local is None:
            box.local = np.zeros(self.total, dtype=np.float64)
        return box.local
