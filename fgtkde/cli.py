import logging

import click

from fgtkde.config import Config
from fgtkde.export import Export
from fgtkde.fgt import FGTKde
from fgtkde.naive import max_relative_error, naive_kde


@click.group()
@click.option("--verbose", "-v", count=True, help="Increase logging verbosity.")
def cli(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level, format="%(levelname)s (%(name)s): %(message)s"
    )


@cli.command()
@click.option(
    "--config",
    required=True,
    type=str,
    help="Specify the path to the config file to be used.",
)
@click.option(
    "--references",
    type=str,
    default="",
    help="File path for the reference points. Overrides the path in the config.",
)
@click.option(
    "--queries",
    type=str,
    default="",
    help="File path for the query points. Overrides the path in the config.",
)
@click.option("--bandwidth", type=float, default=None, help="Kernel bandwidth.")
@click.option(
    "--tolerance", type=float, default=None, help="Absolute error tolerance."
)
@click.option(
    "--output",
    type=str,
    default="",
    help="Output file (.txt, .csv, .json, .yaml, .bz2, .mat). Defaults to stdout.",
)
@click.option(
    "--naive",
    is_flag=True,
    default=False,
    help="Also compute the brute-force densities and report the largest relative error.",
)
def compute(
    config: str,
    references: str,
    queries: str,
    bandwidth: float | None,
    tolerance: float | None,
    output: str,
    naive: bool,
) -> None:
    cfg = Config(config, path_queries=queries, path_references=references)
    cfg.override(bandwidth=bandwidth, tolerance=tolerance)

    kde = FGTKde.from_parameters(cfg.queries, cfg.references, cfg.parameters)
    kde.compute()

    error = None
    if naive:
        exact = naive_kde(cfg.queries, cfg.references, cfg.parameters.bandwidth)
        error = max_relative_error(kde.get_density_estimates(), exact)
        click.echo(f"Maximum relative error against the naive sum: {error:g}", err=True)

    result = Export.from_kde(kde, max_relative_error=error)
    filename = output if output else cfg.output_filename
    if filename:
        result.save(filename)
    else:
        click.echo(result.to_text(), nl=False)
