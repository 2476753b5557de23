"""Token lookup over request body, query and headers."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Literal

from token_strategies.adapters.strategies.base import MissingCredentialError
from token_strategies.schemas.request import InboundRequest

RequestPart = Literal["body", "query", "headers"]

BODY_QUERY: tuple[RequestPart, ...] = ("body", "query")
BODY_QUERY_HEADERS: tuple[RequestPart, ...] = ("body", "query", "headers")


def lookup_field(
    request: InboundRequest,
    field_name: str,
    parts: Iterable[RequestPart] = BODY_QUERY_HEADERS,
) -> Any:
    """Return the first non-empty value of ``field_name`` in ``parts`` order."""
    for part in parts:
        value = getattr(request, part).get(field_name)
        if value:
            return value
    return None


def lookup_token(
    request: InboundRequest,
    field_name: str,
    parts: Iterable[RequestPart] = BODY_QUERY_HEADERS,
) -> str | None:
    """Like ``lookup_field`` but only accepts string values."""
    for part in parts:
        value = getattr(request, part).get(field_name)
        if isinstance(value, str) and value:
            return value
    return None


def require_token(
    request: InboundRequest,
    field_name: str,
    parts: Iterable[RequestPart] = BODY_QUERY_HEADERS,
) -> str:
    token = lookup_token(request, field_name, parts)
    if token is None:
        raise MissingCredentialError(field_name)
    return token
