from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from cache_diff.cli.check import load_expansions, print_diagnostics
from cache_diff.core.codegen import render_module

console = Console(soft_wrap=True)


def expand(
    path: Annotated[Path, typer.Argument(help="Python file containing cache_diff classes.")],
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Write the generated module here.")] = None,
) -> None:
    """Print the generated diff functions for a file."""
    expansions = load_expansions(path)
    failed = [expansion for expansion in expansions if not expansion.ok]
    if failed:
        for expansion in failed:
            print_diagnostics(path, expansion.diagnostics)
        raise typer.Exit(1)

    models = [expansion.model for expansion in expansions if expansion.model is not None]
    module = render_module(models, source=str(path))
    if output is None:
        typer.echo(module, nl=False)
        return

    output.write_text(module, encoding="utf-8")
    console.print(f"[green]Wrote[/green] {len(models)} diff function(s) to {output}")
