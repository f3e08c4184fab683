from collections.abc import Sequence
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from cache_diff.core.expand import Expansion, expand_file
from cache_diff.models import Diagnostic, Span

console = Console(soft_wrap=True)


def load_expansions(path: Path) -> list[Expansion]:
    try:
        return expand_file(str(path))
    except (FileNotFoundError, ValueError) as error:
        console.print(f"[red]{error}[/red]", markup=True, highlight=False)
        raise typer.Exit(2) from None


def read_lines(path: Path) -> list[bytes]:
    # Rows as tree-sitter counts them, which is only at "\n"
    return path.read_bytes().split(b"\n")


def char_column(line: bytes, column: int) -> int:
    """Convert a tree-sitter byte column into a character column."""
    return len(line[:column].decode("utf-8", errors="replace"))


def location(lines: Sequence[bytes], span: Span) -> str:
    """1-based ``line:column`` of the span start, counted in characters."""
    row, column = span.start_point.row, span.start_point.column
    if row < len(lines):
        column = char_column(lines[row], column)
    return f"{row + 1}:{column + 1}"


def print_diagnostics(path: Path, diagnostics: Sequence[Diagnostic]) -> None:
    """Print each diagnostic with its location, source line and a caret underline."""
    lines = read_lines(path)
    for diagnostic in diagnostics:
        start, end = diagnostic.span.start_point, diagnostic.span.end_point
        console.print("[bold red]error[/bold red]: ", end="")
        console.print(diagnostic.message, markup=False, highlight=False)
        console.print(f"  --> {path}:{location(lines, diagnostic.span)}", markup=False, highlight=False)
        if start.row >= len(lines):
            continue
        raw = lines[start.row].rstrip(b"\r")
        line = raw.decode("utf-8", errors="replace")
        first = char_column(raw, start.column)
        last = char_column(raw, end.column) if end.row == start.row else len(line)
        console.print(f"   | {line}", markup=False, highlight=False)
        console.print(f"   | {' ' * first}[red]{'^' * max(last - first, 1)}[/red]", highlight=False)


def check(
    paths: Annotated[list[Path], typer.Argument(help="Python files containing cache_diff classes.")],
) -> None:
    """Validate cache_diff annotations and report every problem found."""
    total = 0
    failed = 0
    for path in paths:
        expansions = load_expansions(path)
        lines = read_lines(path)
        for expansion in expansions:
            total += 1
            if expansion.ok:
                console.print(f"[green]ok[/green] {path}:{location(lines, expansion.span)} {expansion.identifier}")
            else:
                failed += 1
                print_diagnostics(path, expansion.diagnostics)

    if failed:
        console.print(f"[red]{failed} of {total} declaration(s) failed[/red]")
        raise typer.Exit(1)
    console.print(f"[green]{total} declaration(s) checked[/green]")
