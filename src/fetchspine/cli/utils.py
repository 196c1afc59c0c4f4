"""
CLI utility helpers — header parsing and output formatting.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from fetchspine.core.errors import ClassifiedError
from fetchspine.execution.transport import Response
from fetchspine.messages import describe

console = Console()
err_console = Console(stderr=True)


# ── Input helpers ────────────────────────────────────────────────────────


def parse_headers(values: list[str] | None) -> dict[str, str]:
    """Parse repeated ``-H 'Name: value'`` options."""
    headers: dict[str, str] = {}
    for raw in values or []:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            raise typer.BadParameter(f"Header must look like 'Name: value', got {raw!r}")
        headers[name.strip()] = value.strip()
    return headers


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / pydantic model / dict to plain dict."""
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def output_response(response: Response, *, as_json: bool = False, include_headers: bool = False) -> None:
    """Render a successful response."""
    if as_json:
        payload: dict[str, Any] = {"status_code": response.status_code, "body": response.text}
        if include_headers:
            payload["headers"] = dict(response.headers)
        try:
            payload["json"] = response.json()
        except ValueError:
            pass
        console.print_json(json.dumps(payload, default=str))
        return

    console.print(f"[bold green]{response.status_code}[/bold green]")
    if include_headers:
        _print_dict(dict(response.headers))
        console.print()
    console.print(response.text, markup=False, highlight=False)


def output_error(error: ClassifiedError, *, as_json: bool = False) -> None:
    """Render a classified failure and exit with status 1."""
    if as_json:
        console.print_json(json.dumps(error.to_dict(), default=str))
        raise typer.Exit(code=1)

    friendly = describe(error)
    status = f" {error.status_code}" if error.status_code is not None else ""
    err_console.print(f"[bold red]Error[/bold red] ({error.kind.value}{status}): {error.message}")
    err_console.print(f"[bold]{friendly.title}[/bold] {friendly.message}")
    if friendly.action:
        err_console.print(f"[dim]{friendly.action}[/dim]")
    raise typer.Exit(code=1)


def output_mapping(data: Any, *, as_json: bool = False, title: str = "") -> None:
    """Render a dict or dataclass as JSON or a two-column table."""
    values = _to_dict(data)
    if as_json:
        console.print_json(json.dumps(values, default=str))
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value", overflow="fold")
    for key, value in values.items():
        table.add_row(key, "" if value is None else str(value))
    console.print(table)


# ── Private helpers ──────────────────────────────────────────────────────


def _print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")
