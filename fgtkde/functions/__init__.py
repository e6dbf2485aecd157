"""Low-level numerical kernels.

This subpackage contains the Numba-compiled loops (Hermite tables, tensor
products, pair sums) used by the expansion engine.
"""
