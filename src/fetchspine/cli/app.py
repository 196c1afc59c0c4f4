"""
Root Typer application for the fetchspine CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from fetchspine.cli.config import show_config
from fetchspine.cli.fetch import classify_status, fetch

app = Typer(
    name="fetchspine",
    help="fetchspine — resilient HTTP requests: retries, timeouts, dedup, pacing.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("fetchspine")
        except PackageNotFoundError:
            from fetchspine import __version__ as v
        typer.echo(f"fetchspine {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """fetchspine CLI — send requests and inspect error classification."""


# ── Command registration ─────────────────────────────────────────────────

app.command("fetch")(fetch)
app.command("classify")(classify_status)
app.command("config")(show_config)


def run() -> None:
    """Console-script entry point."""
    app()
