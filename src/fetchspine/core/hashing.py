"""
Deterministic hashing for request deduplication.

Two requests share a dedup entry when they hash to the same signature, so
the signature must be stable across processes and insensitive to cosmetic
differences (header order, query parameter order, method case, JSON key
order) while still telling apart requests that would hit the server
differently.

Examples:
    >>> a = request_signature("get", "https://API.example.com/x?b=2&a=1")
    >>> b = request_signature("GET", "https://api.example.com/x?a=1&b=2")
    >>> a == b
    True

Tags:
    hashing, deduplication, fetchspine
"""

import hashlib
import json
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

_DEFAULT_PORTS = {"http": 80, "https": 443}


def compute_hash(*values: Any, length: int = 32) -> str:
    """
    Compute deterministic hash from values.

    Joins string representations with '|' and computes SHA-256.

    Args:
        *values: Values to hash (converted to strings)
        length: Hex digest length (default 32 = 128 bits)

    Returns:
        Hex string of specified length
    """
    content = "|".join(str(v) for v in values)
    return hashlib.sha256(content.encode()).hexdigest()[:length]


def normalize_url(url: str) -> str:
    """Normalize a URL for signature purposes.

    Lowercases scheme and host, drops default ports and the fragment,
    sorts query parameters and defaults an empty path to ``/``.  Userinfo
    is kept whole so different credentials never share a signature.
    """
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    port = parts.port
    netloc = host
    if parts.username is not None:
        userinfo = parts.username if parts.password is None else f"{parts.username}:{parts.password}"
        netloc = f"{userinfo}@{host}"
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{netloc}:{port}"
    query = urlencode(sorted(parse_qsl(parts.query, keep_blank_values=True)))
    return urlunsplit((scheme, netloc, parts.path or "/", query, ""))


def serialize_body(body: Any) -> str:
    """Canonical string form of a request body."""
    if body is None:
        return ""
    if isinstance(body, bytes):
        return hashlib.sha256(body).hexdigest()
    if isinstance(body, str):
        return body
    return json.dumps(body, sort_keys=True, separators=(",", ":"), default=str)


def request_signature(method: str, url: str, body: Any = None) -> str:
    """Signature of a request: method + normalized URL + serialized body."""
    return compute_hash(method.upper(), normalize_url(url), serialize_body(body), length=64)


__all__ = ["compute_hash", "normalize_url", "serialize_body", "request_signature"]
