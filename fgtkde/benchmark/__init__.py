"""Benchmark drivers.

Timing comparisons of the fast Gauss transform against the brute-force sum.
"""
