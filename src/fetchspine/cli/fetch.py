"""
CLI: ``fetchspine fetch`` and ``fetchspine classify``.
"""

from __future__ import annotations

import asyncio

import typer

from fetchspine.cli.utils import output_error, output_mapping, output_response, parse_headers
from fetchspine.core.errors import ClassifiedError
from fetchspine.core.logging import configure_logging
from fetchspine.core.settings import get_settings
from fetchspine.execution.classifier import classify
from fetchspine.execution.executor import RequestExecutor
from fetchspine.execution.transport import Response


def fetch(
    url: str = typer.Argument(..., help="URL to request"),
    method: str = typer.Option("GET", "--request", "-X", help="HTTP method"),
    header: list[str] | None = typer.Option(None, "--header", "-H", help="Header 'Name: value' (repeatable)"),
    data: str | None = typer.Option(None, "--data", "-d", help="Request body"),
    timeout: float | None = typer.Option(None, "--timeout", help="Per-attempt timeout in seconds"),
    retries: int | None = typer.Option(None, "--retries", min=0, help="Retries after the first attempt"),
    retry_delay: float | None = typer.Option(None, "--retry-delay", min=0, help="Base retry delay in seconds"),
    pacing: float | None = typer.Option(None, "--pacing", min=0, help="Minimum delay between requests to the host"),
    include: bool = typer.Option(False, "--include", "-i", help="Show response headers"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log retries and pacing to stderr"),
) -> None:
    """Send one request through the retry / timeout / pacing pipeline."""
    settings = get_settings()
    configure_logging(level="DEBUG" if verbose else settings.log_level, json_format=settings.json_logs)

    overrides: dict[str, float | int] = {}
    if timeout is not None:
        overrides["timeout"] = timeout
    if retries is not None:
        overrides["max_retries"] = retries
    if retry_delay is not None:
        overrides["base_retry_delay"] = retry_delay
    if pacing is not None:
        overrides["min_pacing_delay"] = pacing

    headers = parse_headers(header)

    async def _run() -> Response:
        async with RequestExecutor.from_settings(settings) as executor:
            return await executor.request(method, url, headers=headers, body=data, **overrides)

    try:
        response = asyncio.run(_run())
    except ClassifiedError as exc:
        output_error(exc, as_json=as_json)

    output_response(response, as_json=as_json, include_headers=include)


def classify_status(
    status: int = typer.Option(..., "--status", "-s", help="HTTP status code"),
    header: list[str] | None = typer.Option(None, "--header", "-H", help="Header 'Name: value' (repeatable)"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show how a response status and headers would be classified."""
    response = Response(status_code=status, headers=parse_headers(header))
    if response.ok:
        output_mapping({"status_code": status, "kind": None, "retryable": False, "note": "success"}, as_json=as_json)
        return

    error = classify(response=response)
    output_mapping(
        {
            "status_code": status,
            "kind": error.kind.value,
            "retryable": error.retryable,
            "retry_after": error.retry_after,
            "rate_limit": error.rate_limit.to_dict() if error.rate_limit else None,
            "message": error.message,
        },
        as_json=as_json,
        title="Classification",
    )
