"""JSON API helper on top of the request executor.

Sends a JSON body (``Content-Type: application/json`` unless the caller
sets one), runs the call through the full retry pipeline, and decodes the
JSON reply.  A reply that is not JSON, or a JSON object carrying a truthy
``"error"`` field, surfaces as an ``UNKNOWN`` ``ClassifiedError`` so that
callers handle one error type for every failure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fetchspine.core.errors import ClassifiedError, ErrorKind
from fetchspine.core.logging import get_logger

if TYPE_CHECKING:
    from fetchspine.core.cancellation import CancellationToken
    from fetchspine.execution.executor import RequestConfig, RequestExecutor

logger = get_logger(__name__)

JSON_CONTENT_TYPE = "application/json"


def _with_json_content_type(headers: dict[str, str] | None) -> dict[str, str]:
    merged = dict(headers or {})
    if not any(key.lower() == "content-type" for key in merged):
        merged["Content-Type"] = JSON_CONTENT_TYPE
    return merged


async def fetch_json(
    executor: RequestExecutor,
    url: str,
    *,
    method: str = "POST",
    body: Any = None,
    headers: dict[str, str] | None = None,
    config: RequestConfig | None = None,
    token: CancellationToken | None = None,
    **overrides: Any,
) -> Any:
    """Call a JSON endpoint and return the decoded payload.

    Args:
        executor: Executor that runs the request
        url: Target URL
        method: HTTP method (POST unless told otherwise)
        body: JSON-serializable payload, sent as-is when already ``str``/``bytes``
        headers: Extra headers; caller values win over the JSON default
        config: Request configuration (executor defaults when omitted)
        token: Cancellation token
        **overrides: Per-call ``RequestConfig`` overrides

    Raises:
        ClassifiedError: Transport/status failures, invalid JSON, or an
            ``"error"`` field in the reply
    """
    response = await executor.request(
        method,
        url,
        headers=_with_json_content_type(headers),
        body=body,
        config=config,
        token=token,
        **overrides,
    )

    try:
        data = response.json()
    except ValueError as exc:
        logger.warning("json_decode_failed", url=url, status=response.status_code)
        raise ClassifiedError(
            ErrorKind.UNKNOWN,
            "Invalid JSON response from server",
            status_code=response.status_code,
            cause=exc,
        ) from exc

    if isinstance(data, dict) and data.get("error"):
        error = data["error"]
        message = error if isinstance(error, str) else str(error.get("message", error) if isinstance(error, dict) else error)
        logger.warning("json_error_field", url=url, status=response.status_code, error=message)
        raise ClassifiedError(ErrorKind.UNKNOWN, message, status_code=response.status_code, cause=data)

    return data


__all__ = ["fetch_json", "JSON_CONTENT_TYPE"]
