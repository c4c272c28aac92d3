"""Runtime entry point: run a built artifact once.

    python -m formulakit.runtime <artifact-dir> < variables.json

Reads ``{"variables": {...}}`` from stdin and prints one result envelope
on stdout. Failures go to stderr with a nonzero exit status.
"""

import sys
from pathlib import Path

import click

from formulakit.errors import DecodeError, FormulaKitError
from formulakit.language import BudgetExceeded, Interpreter, RuntimeFault
from formulakit.runtime.codec import dump_envelope, encode_result, load_variables
from formulakit.runtime.runner import EXIT_RUNTIME_FAULT, EXIT_TIMEOUT


@click.command()
@click.argument(
    "artifact_dir", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.option("--max-steps", type=int, default=1_000_000, show_default=True)
@click.option("--max-call-depth", type=int, default=50, show_default=True)
@click.option("--timeout", type=float, default=None, help="Deadline in seconds.")
def main(artifact_dir: Path, max_steps: int, max_call_depth: int, timeout: float | None):
    """Run the artifact in ARTIFACT_DIR with variables read from stdin."""
    from formulakit.build.compiler import load_artifact

    try:
        artifact = load_artifact(artifact_dir)
        variables = artifact.defaults()
        variables.update(load_variables(sys.stdin.read()))
    except FormulaKitError as e:
        click.echo(str(e), err=True)
        raise SystemExit(2)

    interpreter = Interpreter(
        artifact.program,
        max_steps=max_steps,
        max_call_depth=max_call_depth,
        timeout=timeout,
    )
    try:
        value = interpreter.run(variables)
    except BudgetExceeded as e:
        click.echo(str(e), err=True)
        raise SystemExit(EXIT_TIMEOUT)
    except RuntimeFault as e:
        click.echo(f"runtime error: {e}", err=True)
        raise SystemExit(EXIT_RUNTIME_FAULT)
    except RecursionError:
        click.echo("runtime error: expression nesting too deep", err=True)
        raise SystemExit(EXIT_RUNTIME_FAULT)
    except MemoryError:
        click.echo("runtime error: out of memory", err=True)
        raise SystemExit(EXIT_RUNTIME_FAULT)

    try:
        envelope = encode_result(value, artifact.result_type)
    except DecodeError as e:
        click.echo(str(e), err=True)
        raise SystemExit(EXIT_RUNTIME_FAULT)

    click.echo(dump_envelope(envelope))


if __name__ == "__main__":
    main()
