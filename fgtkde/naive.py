"""Brute-force Gaussian kernel density estimates.

Used to validate the fast Gauss transform and by the ``--naive`` switch of the
command line tool. The cost is ``O(n_queries * n_references)``.
"""

from __future__ import annotations

import numpy as np
from scipy.spatial.distance import cdist

from fgtkde.functions.cpu_numba import gaussian_sums_parallel
from fgtkde.kernel import GaussianKernel, normalize_densities


def naive_kernel_sums(
    queries: np.ndarray,
    references: np.ndarray,
    bandwidth: float,
    *,
    chunk_size: int | None = 1024,
) -> np.ndarray:
    """Unnormalized sums ``sum_x exp(-|y - x|^2 / (2 h^2))`` for every query.

    Parameters
    ----------
    queries, references:
        Column-oriented ``(d, n)`` point sets.
    bandwidth:
        Gaussian kernel bandwidth.
    chunk_size:
        Number of queries per SciPy ``cdist`` block. ``None`` switches to the
        parallel Numba loop, which needs no temporary distance matrix.
    """
    kernel = GaussianKernel(bandwidth)
    queries = np.ascontiguousarray(queries, dtype=np.float64)
    references = np.ascontiguousarray(references, dtype=np.float64)
    if queries.shape[0] != references.shape[0]:
        raise ValueError("queries and references must have the same dimension")

    if chunk_size is None:
        return gaussian_sums_parallel(queries, references, kernel.delta)

    sums = np.empty(queries.shape[1], dtype=np.float64)
    for start in range(0, queries.shape[1], chunk_size):
        stop = min(start + chunk_size, queries.shape[1])
        dsqd = cdist(queries[:, start:stop].T, references.T, "sqeuclidean")
        sums[start:stop] = kernel.evaluate(dsqd).sum(axis=1)
    return sums


def naive_kde(
    queries: np.ndarray,
    references: np.ndarray,
    bandwidth: float,
    *,
    chunk_size: int | None = 1024,
) -> np.ndarray:
    """Normalized brute-force density estimates, comparable to :class:`FGTKde`."""
    sums = naive_kernel_sums(queries, references, bandwidth, chunk_size=chunk_size)
    return normalize_densities(
        sums, GaussianKernel(bandwidth), np.shape(references)[0], np.shape(references)[1]
    )


def max_relative_error(approx: np.ndarray, exact: np.ndarray) -> float:
    """Largest ``|approx - exact| / |exact|`` over entries with nonzero ``exact``."""
    approx = np.asarray(approx, dtype=float)
    exact = np.asarray(exact, dtype=float)
    mask = exact != 0
    if not np.any(mask):
        return float(np.max(np.abs(approx), initial=0.0))
    return float(np.max(np.abs(approx[mask] - exact[mask]) / np.abs(exact[mask])))
