"""formulakit CLI entry point."""

import logging

import click


@click.group()
@click.option("--verbose", "-v", count=True, help="Show build logs (-vv for debug).")
def cli(verbose: int):
    """formulakit: typed formula evaluators from YAML definitions."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


# Register commands
from formulakit.cli.evaluator_cmd import build, eval_command, source  # noqa: E402
from formulakit.cli.packages_cmd import packages  # noqa: E402

cli.add_command(source)
cli.add_command(build)
cli.add_command(eval_command)
cli.add_command(packages)
