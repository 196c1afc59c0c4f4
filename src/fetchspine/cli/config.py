"""
CLI: ``fetchspine config`` — effective configuration.
"""

from __future__ import annotations

import typer

from fetchspine.cli.utils import console, output_mapping
from fetchspine.core.settings import get_settings


def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show the effective settings (environment, .env, defaults)."""
    settings = get_settings()

    if format == "env":
        for key, value in sorted(settings.model_dump(mode="json").items()):
            console.print(f"FETCHSPINE_{key.upper()}={value}", markup=False, highlight=False)
        return

    output_mapping(settings.model_dump(mode="json"), as_json=format == "json", title="Settings")
