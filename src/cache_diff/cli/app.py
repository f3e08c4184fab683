import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from cache_diff.cli.check import check
from cache_diff.cli.expand import expand

app = typer.Typer(
    name="cache-diff",
    help="cache-diff CLI: validate cache_diff classes and generate their diff functions.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.command("check")(check)
app.command("expand")(expand)


@app.callback()
def configure(
    log_level: Annotated[
        str, typer.Option(envvar="CACHE_DIFF_LOG_LEVEL", help="Logging level (DEBUG, INFO, WARNING, ...).")
    ] = "WARNING",
) -> None:
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def main() -> None:
    app()
