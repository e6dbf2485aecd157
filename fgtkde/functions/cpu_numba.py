from numba import jit, prange

import numpy as np


@jit(nopython=True, nogil=True, cache=True)
def hermite_table(diff: np.ndarray, scale: float, length: int) -> np.ndarray:
    """Per-axis Hermite functions of the scaled offsets ``diff / scale``.

    Parameters
    ----------
    diff : np.ndarray
        Coordinate differences, shape ``(d,)``.
    scale : float
        The offsets are divided by this value, ``sqrt(2) * h`` for the FGT.
    length : int
        Number of Hermite functions per axis.

    Returns
    -------
    np.ndarray
        Array of shape ``(d, length)`` with ``out[k, n] = h_n(diff[k] / scale)``
        where ``h_0(u) = exp(-u^2)``, ``h_1(u) = 2u h_0(u)`` and
        ``h_{n+1}(u) = 2u h_n(u) - 2n h_{n-1}(u)``.

    """
    dim = diff.shape[0]
    out = np.empty((dim, length), dtype=np.float64)
    for k in range(dim):
        u = diff[k] / scale
        two_u = 2.0 * u
        out[k, 0] = np.exp(-u * u)
        if length > 1:
            out[k, 1] = two_u * out[k, 0]
        for n in range(1, length - 1):
            out[k, n + 1] = two_u * out[k, n] - 2.0 * n * out[k, n - 1]
    return out


@jit(nopython=True, nogil=True, cache=True)
def power_table(diff: np.ndarray, scale: float, length: int) -> np.ndarray:
    """Per-axis powers ``(diff[k] / scale)^n`` for ``n < length``."""
    dim = diff.shape[0]
    out = np.empty((dim, length), dtype=np.float64)
    for k in range(dim):
        u = diff[k] / scale
        out[k, 0] = 1.0
        for n in range(1, length):
            out[k, n] = out[k, n - 1] * u
    return out


@jit(nopython=True, nogil=True, cache=True)
def tensor_product(table: np.ndarray, order: int, total: int) -> np.ndarray:
    """Expand per-axis factors into the multi-index layout.

    Computes ``out[j] = prod_k table[k, alpha_k(j)]`` where axis 0 has stride
    ``total / order`` and the last axis stride 1. Each axis is filled block by
    block: inside a block of width ``boundary`` the entries ``step`` apart get
    the block head multiplied by the next factor of that axis.

    Parameters
    ----------
    table : np.ndarray
        Factors of shape ``(d, order)``.
    order : int
        Number of terms per axis.
    total : int
        ``order ** d``.

    Returns
    -------
    np.ndarray
        Tensor product of shape ``(total,)``.

    """
    out = np.empty(total, dtype=np.float64)
    if order == 1:
        acc = 1.0
        for k in range(table.shape[0]):
            acc *= table[k, 0]
        out[0] = acc
        return out

    out[0] = 1.0
    boundary = total
    step = total // order
    axis = 0
    while step >= 1:
        i = 0
        while i < total:
            first = i
            limit = i + boundary
            i += step
            j = 1
            while i < limit:
                out[i] = out[first] * table[axis, j]
                i += step
                j += 1
            out[first] *= table[axis, 0]
        boundary //= order
        step //= order
        axis += 1
    return out


@jit(nopython=True, nogil=True, cache=True)
def accumulate_monomials(
    points: np.ndarray,
    rows: np.ndarray,
    centroid: np.ndarray,
    scale: float,
    order: int,
    total: int,
    out: np.ndarray,
) -> None:
    """Add ``((x - c) / scale)^alpha`` of every selected point into ``out``."""
    dim = points.shape[0]
    diff = np.empty(dim, dtype=np.float64)
    for r in range(rows.shape[0]):
        col = rows[r]
        for k in range(dim):
            diff[k] = points[k, col] - centroid[k]
        terms = tensor_product(power_table(diff, scale, order), order, total)
        for i in range(total):
            out[i] += terms[i]


@jit(nopython=True, nogil=True, cache=True)
def evaluate_hermite_series(
    queries: np.ndarray,
    rows: np.ndarray,
    centroid: np.ndarray,
    scale: float,
    order: int,
    total: int,
    moments: np.ndarray,
    densities: np.ndarray,
) -> None:
    """Add ``sum_alpha A_alpha h_alpha((y - c) / scale)`` to every selected query."""
    dim = queries.shape[0]
    diff = np.empty(dim, dtype=np.float64)
    for r in range(rows.shape[0]):
        col = rows[r]
        for k in range(dim):
            diff[k] = queries[k, col] - centroid[k]
        terms = tensor_product(hermite_table(diff, scale, order), order, total)
        acc = 0.0
        for i in range(total):
            acc += moments[i] * terms[i]
        densities[col] += acc


@jit(nopython=True, nogil=True, cache=True)
def accumulate_hermite_local(
    references: np.ndarray,
    rows: np.ndarray,
    centroid: np.ndarray,
    scale: float,
    order: int,
    total: int,
    weights: np.ndarray,
    local: np.ndarray,
) -> None:
    """Add the Taylor coefficients of every selected reference about ``centroid``.

    ``local[j] += weights[j] * h_alpha((c - x) / scale)`` with ``weights`` the
    sign-alternated inverse multi-index factorials.
    """
    dim = references.shape[0]
    diff = np.empty(dim, dtype=np.float64)
    for r in range(rows.shape[0]):
        col = rows[r]
        for k in range(dim):
            diff[k] = centroid[k] - references[k, col]
        terms = tensor_product(hermite_table(diff, scale, order), order, total)
        for i in range(total):
            local[i] += weights[i] * terms[i]


@jit(nopython=True, nogil=True, cache=True)
def taylor_series_value(
    point: np.ndarray,
    centroid: np.ndarray,
    scale: float,
    order: int,
    total: int,
    local: np.ndarray,
) -> float:
    """Evaluate ``sum_beta B_beta ((y - c) / scale)^beta`` at one point."""
    dim = centroid.shape[0]
    diff = np.empty(dim, dtype=np.float64)
    for k in range(dim):
        diff[k] = point[k] - centroid[k]
    terms = tensor_product(power_table(diff, scale, order), order, total)
    acc = 0.0
    for i in range(total):
        acc += local[i] * terms[i]
    return acc


@jit(nopython=True, nogil=True, cache=True)
def evaluate_taylor_series_serial(
    queries: np.ndarray,
    rows: np.ndarray,
    slots: np.ndarray,
    centroids: np.ndarray,
    locals_: np.ndarray,
    scale: float,
    order: int,
    total: int,
    densities: np.ndarray,
) -> None:
    """Evaluate the local expansion ``slots[t]`` at query ``rows[t]`` for all ``t``.

    ``centroids`` is ``(d, m)`` and ``locals_`` is ``(m, total)``, one slot per
    box taking part in the sweep.
    """
    for t in range(rows.shape[0]):
        col = rows[t]
        slot = slots[t]
        densities[col] += taylor_series_value(
            queries[:, col], centroids[:, slot], scale, order, total, locals_[slot]
        )


@jit(nopython=True, nogil=True, cache=True, parallel=True)
def evaluate_taylor_series_parallel(
    queries: np.ndarray,
    rows: np.ndarray,
    slots: np.ndarray,
    centroids: np.ndarray,
    locals_: np.ndarray,
    scale: float,
    order: int,
    total: int,
    densities: np.ndarray,
) -> None:
    """Parallel twin of :func:`evaluate_taylor_series_serial`.

    ``rows`` must not contain duplicates; every iteration writes its own slot
    of ``densities``.
    """
    for t in prange(rows.shape[0]):
        col = rows[t]
        slot = slots[t]
        densities[col] += taylor_series_value(
            queries[:, col], centroids[:, slot], scale, order, total, locals_[slot]
        )


@jit(nopython=True, nogil=True, cache=True)
def direct_pair_sums(
    queries: np.ndarray,
    query_rows: np.ndarray,
    references: np.ndarray,
    reference_rows: np.ndarray,
    delta: float,
    densities: np.ndarray,
) -> None:
    """Add ``exp(-|y - x|^2 / delta)`` for every selected query/reference pair."""
    dim = queries.shape[0]
    for q in range(query_rows.shape[0]):
        qcol = query_rows[q]
        acc = 0.0
        for r in range(reference_rows.shape[0]):
            rcol = reference_rows[r]
            dsqd = 0.0
            for k in range(dim):
                diff = queries[k, qcol] - references[k, rcol]
                dsqd += diff * diff
            acc += np.exp(-dsqd / delta)
        densities[qcol] += acc


@jit(nopython=True, nogil=True, cache=True, parallel=True)
def gaussian_sums_parallel(
    queries: np.ndarray, references: np.ndarray, delta: float
) -> np.ndarray:
    """Unnormalized Gaussian sums of every query over all references."""
    dim = queries.shape[0]
    nq = queries.shape[1]
    nr = references.shape[1]
    out = np.zeros(nq, dtype=np.float64)
    for q in prange(nq):
        acc = 0.0
        for r in range(nr):
            dsqd = 0.0
            for k in range(dim):
                diff = queries[k, q] - references[k, r]
                dsqd += diff * diff
            acc += np.exp(-dsqd / delta)
        out[q] = acc
    return out
