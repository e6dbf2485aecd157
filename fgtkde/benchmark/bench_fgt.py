"""Benchmark driver for the fast Gauss transform KDE.

Runs timing comparisons between :class:`fgtkde.FGTKde` and the brute-force
kernel sum for a sweep of problem sizes.

Usage::

    python -m fgtkde.benchmark.bench_fgt --sizes 1000,4000,16000 --dimension 2
"""

from __future__ import annotations

import argparse
import logging
import os

import numpy as np
import pyperf

from fgtkde import FGTKde
from fgtkde.naive import naive_kde


def _set_reproducible_thread_env() -> None:
    """Set thread-count environment variables to ``"1"`` unless already set."""

    defaults = {
        "OMP_NUM_THREADS": "1",
        "MKL_NUM_THREADS": "1",
        "OPENBLAS_NUM_THREADS": "1",
        "NUMEXPR_NUM_THREADS": "1",
    }
    for key, value in defaults.items():
        os.environ.setdefault(key, value)


def _add_worker_args(cmd: list[str], args: argparse.Namespace) -> None:
    """Forward the benchmark flags to pyperf worker processes."""

    if args.sizes is not None:
        cmd.extend(["--sizes", str(args.sizes)])
    else:
        cmd.extend(["--n", str(args.n)])

    cmd.extend(["--dimension", str(args.dimension)])
    cmd.extend(["--seed", str(args.seed)])
    cmd.extend(["--bandwidth", str(args.bandwidth)])
    cmd.extend(["--tolerance", str(args.tolerance)])
    cmd.extend(["--which", str(args.which)])

    if args.serial:
        cmd.append("--serial")
    if args.log_quiet:
        cmd.append("--log-quiet")


def _build_runner() -> tuple[pyperf.Runner, argparse.ArgumentParser]:
    parser = argparse.ArgumentParser(
        description="Benchmark FGT kernel density estimation vs direct sum",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--n",
        type=int,
        default=2000,
        help="Number of references and queries (ignored if --sizes is used)",
    )
    parser.add_argument(
        "--sizes",
        type=str,
        default=None,
        help="Comma-separated sweep sizes, e.g. '1000,4000,16000'",
    )
    parser.add_argument("--dimension", type=int, default=2, help="Point dimension")
    parser.add_argument("--seed", type=int, default=0, help="RNG seed")
    parser.add_argument("--bandwidth", type=float, default=0.5, help="Bandwidth h")
    parser.add_argument(
        "--tolerance", type=float, default=1e-4, help="Absolute error tolerance"
    )
    parser.add_argument(
        "--which",
        choices=("both", "fgt", "naive"),
        default="both",
        help="Which implementation(s) to benchmark",
    )
    parser.add_argument(
        "--serial",
        action="store_true",
        help="Evaluate local expansions without the parallel kernel",
    )
    parser.add_argument(
        "--log-quiet",
        dest="log_quiet",
        action="store_true",
        help="Suppress Python-side logging",
    )

    runner = pyperf.Runner(
        _argparser=parser,
        add_cmdline_args=_add_worker_args,
        processes=1,
        warmups=1,
    )
    return runner, parser


def _parse_sizes(text: str) -> list[int]:
    values = [int(chunk) for chunk in text.split(",") if chunk.strip()]
    if not values:
        raise ValueError("--sizes must contain at least one integer")
    return values


def _register_benchmarks_for_size(
    runner: pyperf.Runner,
    *,
    n: int,
    dimension: int,
    seed: int,
    bandwidth: float,
    tolerance: float,
    which: str,
    parallel: bool,
) -> None:
    """Register the pyperf callables for one problem size.

    Points are drawn from a standard normal distribution scaled so that the
    bounding box spans roughly eight bandwidths per axis.
    """
    rng = np.random.default_rng(seed)
    scale = 8.0 * bandwidth / 6.0
    references = rng.normal(scale=scale, size=(dimension, n))
    queries = rng.normal(scale=scale, size=(dimension, n))

    def _bench_fgt() -> np.ndarray:
        kde = FGTKde(
            queries, references, bandwidth, tolerance, parallel=parallel
        )
        kde.compute()
        return kde.get_density_estimates()

    def _bench_naive() -> np.ndarray:
        return naive_kde(queries, references, bandwidth)

    if which in {"both", "fgt"}:
        runner.bench_func(f"fgt_kde_d{dimension}_n{n}", _bench_fgt)
    if which in {"both", "naive"}:
        runner.bench_func(f"naive_kde_d{dimension}_n{n}", _bench_naive)


def main() -> None:
    """CLI entry point for the FGT benchmark."""

    _set_reproducible_thread_env()

    runner, _ = _build_runner()
    args = runner.parse_args()

    if args.log_quiet:
        logging.getLogger().setLevel(logging.ERROR)

    sizes = [int(args.n)] if args.sizes is None else _parse_sizes(args.sizes)

    for n in sizes:
        _register_benchmarks_for_size(
            runner,
            n=n,
            dimension=int(args.dimension),
            seed=int(args.seed),
            bandwidth=float(args.bandwidth),
            tolerance=float(args.tolerance),
            which=str(args.which),
            parallel=not args.serial,
        )


if __name__ == "__main__":
    main()
