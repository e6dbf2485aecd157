"""Gaussian kernel and density normalization."""

from __future__ import annotations

import math

import numpy as np

from fgtkde.exceptions import InvalidConfiguration


class GaussianKernel:
    """Fixed-bandwidth Gaussian kernel ``exp(-d^2 / (2 h^2))``.

    Parameters
    ----------
    bandwidth:
        Kernel bandwidth ``h``.
    """

    def __init__(self, bandwidth: float) -> None:
        bandwidth = float(bandwidth)
        if not math.isfinite(bandwidth) or bandwidth <= 0:
            raise InvalidConfiguration(
                f"bandwidth must be a positive finite number, got {bandwidth}"
            )
        self.bandwidth = bandwidth

    @property
    def bandwidth_sq(self) -> float:
        return self.bandwidth * self.bandwidth

    @property
    def delta(self) -> float:
        """Twice the squared bandwidth, the scale used by the expansions."""
        return 2.0 * self.bandwidth_sq

    def evaluate(self, squared_distance):
        """Unnormalized kernel value for one or more squared distances."""
        return np.exp(-np.asarray(squared_distance, dtype=float) / self.delta)

    def normalization_constant(self, dimension: int) -> float:
        """Return ``(2 pi h^2)^(d/2)``, the integral of the kernel over R^d."""
        return math.pow(2.0 * math.pi * self.bandwidth_sq, dimension / 2.0)

    def __repr__(self) -> str:
        return f"GaussianKernel(bandwidth={self.bandwidth!r})"


def normalize_densities(
    sums: np.ndarray, kernel: GaussianKernel, dimension: int, reference_count: int
) -> np.ndarray:
    """Turn raw kernel sums into density estimates in place.

    Parameters
    ----------
    sums:
        Accumulated kernel sums, one per query point. Modified in place.
    kernel:
        The kernel the sums were computed with.
    dimension:
        Dimensionality of the points.
    reference_count:
        Number of reference points that contributed to the sums.

    Returns
    -------
    numpy.ndarray
        The same array, divided by ``normalization_constant(d) * N``.
    """
    sums /= kernel.normalization_constant(dimension) * reference_count
    return sums
