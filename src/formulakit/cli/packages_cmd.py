"""Package documentation command."""

import json

import click

from formulakit.language import PackageRegistry, ensure_builtins


@click.command()
@click.argument("package", required=False)
@click.option("--json", "as_json", is_flag=True, default=False, help="Print as JSON.")
def packages(package: str | None, as_json: bool):
    """Document the builtin packages, or one PACKAGE."""
    ensure_builtins()

    docs = PackageRegistry.export_documentation()
    if package is not None:
        if package not in docs:
            click.echo(click.style(f"Error: unknown package '{package}'", fg="red"), err=True)
            raise SystemExit(1)
        docs = {package: docs[package]}

    if as_json:
        click.echo(json.dumps(docs, indent=2))
        return

    for name, functions in docs.items():
        click.echo(click.style(name, bold=True))
        for fn in functions:
            params = ", ".join(
                f"{p['name']} {'...' if p['variadic'] else ''}{p['type']}"
                for p in fn["parameters"]
            )
            click.echo(f"  {fn['name']}({params}) {fn['returnType']}")
            if fn["description"]:
                click.echo(f"      {fn['description']}")
