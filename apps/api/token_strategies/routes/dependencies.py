"""FastAPI dependency wiring for token strategies."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import parse_qsl
from uuid import uuid4

import httpx
from fastapi import Request

from token_strategies.adapters.strategies import (
    KeyResolver,
    ProfileParseError,
    ProviderTransportError,
    TokenVerificationError,
)
from token_strategies.core.config import Settings
from token_strategies.core.logging_safety import safe_log_identifier
from token_strategies.errors import ApiError
from token_strategies.schemas.outcome import AuthenticatedUser
from token_strategies.schemas.request import InboundRequest
from token_strategies.services.strategy import (
    TokenStrategy,
    VerifyCallback,
    apple_token_strategy,
    instagram_token_strategy,
)

logger = logging.getLogger(__name__)


def _auth_error(message: str) -> ApiError:
    return ApiError(status_code=401, code="UNAUTHORIZED", message=message)


def _error_for(error: BaseException | None) -> ApiError:
    if isinstance(error, TokenVerificationError):
        return _auth_error(str(error))
    if isinstance(error, (ProviderTransportError, ProfileParseError)):
        details = None
        if isinstance(error, ProviderTransportError) and error.provider_code is not None:
            details = {"provider_code": error.provider_code}
        return ApiError(status_code=502, code="PROVIDER_UNAVAILABLE", message=str(error), details=details)
    return ApiError(status_code=500, code="AUTHENTICATION_ERROR", message="Authentication failed")


def _fail_message(info: Any) -> str:
    if isinstance(info, dict) and isinstance(info.get("message"), str):
        return info["message"]
    return "Invalid credentials"


def _request_correlation_id(request: Request) -> str:
    existing = getattr(request.state, "correlation_id", None)
    if isinstance(existing, str) and existing:
        return existing

    correlation_id = request.headers.get("X-Correlation-Id")
    if correlation_id:
        request.state.correlation_id = correlation_id
        return correlation_id

    generated = f"req-{uuid4()}"
    request.state.correlation_id = generated
    return generated


async def _read_body(request: Request) -> dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}

    content_type = request.headers.get("content-type", "").split(";", 1)[0].strip().lower()
    if content_type == "application/json":
        try:
            payload = json.loads(raw)
        except ValueError:
            logger.debug("auth.body_ignored reason=invalid_json path=%s", request.url.path)
            return {}
        return payload if isinstance(payload, dict) else {}
    if content_type == "application/x-www-form-urlencoded":
        try:
            return dict(parse_qsl(raw.decode("utf-8"), errors="strict"))
        except UnicodeDecodeError:
            logger.debug("auth.body_ignored reason=invalid_form_encoding path=%s", request.url.path)
            return {}
    return {}


async def read_inbound_request(request: Request) -> InboundRequest:
    """Build the transport-neutral request view a strategy reads tokens from."""
    return InboundRequest(
        body=await _read_body(request),
        query=dict(request.query_params),
        headers=dict(request.headers),
        source=request,
    )


def get_token_strategy(
    settings: Settings,
    verify: VerifyCallback,
    *,
    http_client: httpx.AsyncClient | None = None,
    key_resolver: KeyResolver | None = None,
) -> TokenStrategy:
    """Resolve provider strategy from configuration."""
    if settings.auth_provider == "apple":
        return apple_token_strategy(settings.apple_options(), verify, key_resolver=key_resolver)
    return instagram_token_strategy(settings.instagram_options(), verify, http_client=http_client)


def require_authenticated_user(
    strategy: TokenStrategy,
) -> Callable[[Request], Awaitable[AuthenticatedUser]]:
    """Return a dependency that authenticates the request with ``strategy``.

    The accepted user is also attached to ``request.state.auth_user``.
    """

    async def dependency(request: Request) -> AuthenticatedUser:
        safe_correlation_id = safe_log_identifier(_request_correlation_id(request), prefix="cid")
        outcome = await strategy.authenticate(await read_inbound_request(request))

        if outcome.kind == "fail":
            logger.warning(
                "auth.rejected correlation_id=%s method=%s path=%s strategy=%s reason=verification_failed",
                safe_correlation_id,
                request.method,
                request.url.path,
                strategy.name,
            )
            raise _auth_error(_fail_message(outcome.info))

        if outcome.kind == "error":
            logger.warning(
                "auth.errored correlation_id=%s method=%s path=%s strategy=%s error=%s",
                safe_correlation_id,
                request.method,
                request.url.path,
                strategy.name,
                type(outcome.error).__name__,
            )
            raise _error_for(outcome.error) from outcome.error

        authenticated = AuthenticatedUser(
            user=outcome.user,
            info=outcome.info,
            provider=strategy.source.provider,
        )
        logger.info(
            "auth.accepted correlation_id=%s method=%s path=%s strategy=%s",
            safe_correlation_id,
            request.method,
            request.url.path,
            strategy.name,
        )
        request.state.auth_user = authenticated
        return authenticated

    return dependency
