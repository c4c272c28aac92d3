"""Evaluator CLI commands: source, build, eval."""

import dataclasses
import json
from pathlib import Path

import click
import yaml

from formulakit.config import RUNNERS, EvaluatorConfig
from formulakit.errors import FormulaKitError
from formulakit.evaluator import Evaluator
from formulakit.loader import load_definition
from formulakit.types import type_name_of_value

_definition_arg = click.argument(
    "definition", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)


def _fail(error: Exception) -> None:
    click.echo(click.style(f"Error: {error}", fg="red"), err=True)
    raise SystemExit(1)


def _config(**changes) -> EvaluatorConfig:
    """Environment config with the given options applied and revalidated."""
    changes = {key: value for key, value in changes.items() if value is not None}
    try:
        return dataclasses.replace(EvaluatorConfig.from_env(), **changes)
    except ValueError as e:
        _fail(e)


def _load(definition: Path, config: EvaluatorConfig) -> Evaluator:
    try:
        return load_definition(definition).create_evaluator(config)
    except FormulaKitError as e:
        _fail(e)


def _parse_assignment(text: str) -> tuple[str, object]:
    """Split NAME=VALUE; VALUE is read as a YAML scalar (2, 2.0, true, text)."""
    name, sep, raw = text.partition("=")
    if not sep or not name.strip():
        raise click.BadParameter(f"expected NAME=VALUE, got '{text}'", param_hint="--set")
    try:
        value = yaml.safe_load(raw) if raw.strip() else ""
    except yaml.YAMLError:
        value = raw
    if value is None or isinstance(value, (list, dict)):
        value = raw
    return name.strip(), value


@click.command()
@_definition_arg
def source(definition: Path):
    """Print the program a definition assembles to."""
    evaluator = _load(definition, EvaluatorConfig.from_env())
    click.echo(evaluator.source, nl=False)


@click.command()
@_definition_arg
@click.option(
    "--output", "-o", "output", default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help="Base directory for build output (kept after the command).",
)
def build(definition: Path, output: Path | None):
    """Validate and build a definition, reporting its result type."""
    config = _config(build_path=output)

    with _load(definition, config) as evaluator:
        try:
            artifact = evaluator.build()
        except FormulaKitError as e:
            _fail(e)

        click.echo(f"Built '{evaluator.name}' -> {artifact.result_type.value}")
        for spec in artifact.manifest.variables:
            click.echo(f"  var {spec.name} {spec.type.value} = {json.dumps(spec.default)}")
        if output is not None:
            click.echo(f"Output: {artifact.directory}")


@click.command("eval")
@_definition_arg
@click.option(
    "--set", "-s", "assignments", multiple=True, metavar="NAME=VALUE",
    help="Override a variable; repeatable.",
)
@click.option("--runner", type=click.Choice(RUNNERS), default=None, help="Execution runner.")
@click.option("--timeout", type=float, default=None, help="Seconds per evaluation.")
def eval_command(
    definition: Path,
    assignments: tuple[str, ...],
    runner: str | None,
    timeout: float | None,
):
    """Build a definition and evaluate it once, printing a JSON result."""
    config = _config(runner=runner, timeout=timeout)

    overrides = dict(_parse_assignment(a) for a in assignments)

    with _load(definition, config) as evaluator:
        try:
            evaluator.build()
            result = evaluator.evaluate(overrides)
        except FormulaKitError as e:
            _fail(e)

    click.echo(json.dumps({"type": type_name_of_value(result), "value": result}))
