"""Multi-index bookkeeping for the Hermite/Taylor coefficient vectors.

A coefficient vector of truncation order ``p`` in ``d`` dimensions holds
``p**d`` entries. Entry ``j`` belongs to the exponent tuple
``alpha = (alpha_0, ..., alpha_{d-1})`` with every ``alpha_k`` in ``[0, p)``.
Axis 0 is the most significant digit (stride ``p**(d-1)``), the last axis the
least significant one (stride 1), i.e. the C-order layout of a ``(p,) * d``
tensor. Every kernel in :mod:`fgtkde.functions.cpu_numba` fills its
per-axis products in exactly this order.
"""

from __future__ import annotations

import numpy as np
from scipy.special import gammaln


class MultiIndexTable:
    """Lookup tables shared by all expansion routines of one run.

    Parameters
    ----------
    order:
        Truncation order ``p`` (number of terms per axis).
    dimension:
        Dimensionality ``d``.

    Attributes
    ----------
    size:
        Number of coefficients ``p**d``.
    strides:
        Stride of each axis in the linear layout.
    multiindex:
        ``(size, d)`` integer array, row ``j`` is the exponent tuple of entry
        ``j``.
    total_degree:
        ``|alpha|`` for every entry.
    inv_multiindex_factorials:
        ``1 / alpha!`` for every entry.
    neg_inv_multiindex_factorials:
        ``(-1)^|alpha| / alpha!`` for every entry.
    """

    def __init__(self, order: int, dimension: int) -> None:
        if order < 1:
            raise ValueError("order must be >= 1")
        if dimension < 1:
            raise ValueError("dimension must be >= 1")

        self.order = int(order)
        self.dimension = int(dimension)
        self.size = self.order**self.dimension
        self.strides = self.order ** np.arange(
            self.dimension - 1, -1, -1, dtype=np.int64
        )

        self.multiindex = (
            np.indices((self.order,) * self.dimension, dtype=np.int64)
            .reshape(self.dimension, -1)
            .T.copy()
        )
        self.total_degree = self.multiindex.sum(axis=1)

        log_factorials = gammaln(self.multiindex + 1.0).sum(axis=1)
        self.inv_multiindex_factorials = np.exp(-log_factorials)
        signs = np.where(self.total_degree % 2 == 0, 1.0, -1.0)
        self.neg_inv_multiindex_factorials = signs * self.inv_multiindex_factorials

        for table in (
            self.multiindex,
            self.inv_multiindex_factorials,
            self.neg_inv_multiindex_factorials,
        ):
            table.setflags(write=False)

    def __len__(self) -> int:
        return self.size

    def encode(self, exponents) -> int:
        """Linear coefficient id of an exponent tuple."""
        exponents = np.asarray(exponents, dtype=np.int64)
        if exponents.shape != (self.dimension,):
            raise ValueError(f"expected {self.dimension} exponents")
        if np.any(exponents < 0) or np.any(exponents >= self.order):
            raise ValueError(f"exponents must lie in [0, {self.order})")
        return int(np.dot(exponents, self.strides))

    def decode(self, index: int) -> tuple[int, ...]:
        """Exponent tuple of a linear coefficient id."""
        if not 0 <= index < self.size:
            raise IndexError(f"coefficient id {index} out of range [0, {self.size})")
        return tuple(int(v) for v in self.multiindex[index])

    def __repr__(self) -> str:
        return f"MultiIndexTable(order={self.order}, dimension={self.dimension})"
