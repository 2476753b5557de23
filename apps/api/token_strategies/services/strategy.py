"""Shared authentication dispatcher for provider adapters."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any

import httpx

from token_strategies.adapters.strategies.apple import AppleProfileSource
from token_strategies.adapters.strategies.base import (
    CallbackError,
    MissingCredentialError,
    ProfileSource,
    StrategyError,
)
from token_strategies.adapters.strategies.instagram import InstagramProfileSource
from token_strategies.adapters.strategies.key_resolver import KeyResolver
from token_strategies.core.config import AppleStrategyOptions, InstagramStrategyOptions
from token_strategies.core.logging_safety import safe_log_identifier
from token_strategies.domain.auth_fsm import AuthAttempt, AuthState
from token_strategies.schemas.outcome import AuthOutcome
from token_strategies.schemas.profile import Profile
from token_strategies.schemas.request import Credential, InboundRequest

VerifyCallback = Callable[..., Any]

logger = logging.getLogger(__name__)


def _unpack_verified(result: Any) -> tuple[Any, Any]:
    if isinstance(result, tuple) and len(result) == 2:
        return result
    return result, None


class TokenStrategy:
    """Runs one provider adapter and hands its profile to the application.

    ``verify`` is called as ``verify(access_token, refresh_token, profile)``,
    or ``verify(request, access_token, refresh_token, profile)`` when
    ``pass_req_to_callback`` is set. It may be a plain function or a
    coroutine function and returns ``(user, info)`` (a bare ``user`` is
    accepted too). Raising reports an error; a falsy ``user`` reports a
    failure carrying ``info``.

    Each call to :meth:`authenticate` yields exactly one outcome and never
    retries the provider or the callback.
    """

    def __init__(
        self,
        source: ProfileSource,
        verify: VerifyCallback,
        *,
        pass_req_to_callback: bool = False,
    ) -> None:
        if not callable(verify):
            raise TypeError(f"{type(source).__name__} strategy requires a verify callback")
        self._source = source
        self._verify = verify
        self._pass_req_to_callback = pass_req_to_callback

    @property
    def name(self) -> str:
        return self._source.name

    @property
    def source(self) -> ProfileSource:
        return self._source

    async def authenticate(self, request: InboundRequest) -> AuthOutcome:
        attempt = AuthAttempt()

        attempt.advance(AuthState.EXTRACTING_CREDENTIAL)
        try:
            credential = self._source.extract_credential(request)
        except MissingCredentialError as exc:
            return self._fail(attempt, {"message": str(exc)})

        attempt.advance(AuthState.FETCHING_PROFILE)
        try:
            payload = await self._source.fetch_profile(credential)
        except StrategyError as exc:
            return self._error(attempt, exc)

        attempt.advance(AuthState.NORMALIZING_PROFILE)
        try:
            profile = self._source.normalize_profile(payload, credential)
        except StrategyError as exc:
            return self._error(attempt, exc)

        attempt.advance(AuthState.DISPATCHING)
        try:
            user, info = await self._call_verify(request, credential, profile)
        except Exception as exc:
            error = CallbackError(str(exc) or "Verify callback failed")
            error.__cause__ = exc
            return self._error(attempt, error, profile=profile)

        if not user:
            return self._fail(attempt, info, profile=profile)

        attempt.advance(AuthState.SUCCEEDED)
        logger.info(
            "auth.accepted strategy=%s subject=%s",
            self.name,
            safe_log_identifier(profile.id, prefix="sub"),
        )
        return AuthOutcome.success(user, info, profile=profile, states=attempt.history)

    async def _call_verify(
        self,
        request: InboundRequest,
        credential: Credential,
        profile: Profile,
    ) -> tuple[Any, Any]:
        access_token, refresh_token = self._source.callback_tokens(credential)
        args: tuple[Any, ...] = (access_token, refresh_token, profile)
        if self._pass_req_to_callback:
            native_request = request.source if request.source is not None else request
            args = (native_request, *args)

        result = self._verify(*args)
        if inspect.isawaitable(result):
            result = await result
        return _unpack_verified(result)

    def _fail(self, attempt: AuthAttempt, info: Any, **extra: Any) -> AuthOutcome:
        attempt.advance(AuthState.FAILED)
        logger.warning(
            "auth.rejected strategy=%s previous_state=%s",
            self.name,
            attempt.history[-2].value,
        )
        return AuthOutcome.fail(info, states=attempt.history, **extra)

    def _error(self, attempt: AuthAttempt, error: StrategyError, **extra: Any) -> AuthOutcome:
        attempt.advance(AuthState.ERRORED)
        logger.warning(
            "auth.errored strategy=%s previous_state=%s code=%s",
            self.name,
            attempt.history[-2].value,
            error.code,
        )
        return AuthOutcome.errored(error, states=attempt.history, **extra)


def instagram_token_strategy(
    options: InstagramStrategyOptions,
    verify: VerifyCallback,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> TokenStrategy:
    return TokenStrategy(
        InstagramProfileSource(options, http_client=http_client),
        verify,
        pass_req_to_callback=options.pass_req_to_callback,
    )


def apple_token_strategy(
    options: AppleStrategyOptions,
    verify: VerifyCallback,
    *,
    key_resolver: KeyResolver | None = None,
) -> TokenStrategy:
    return TokenStrategy(
        AppleProfileSource(options, key_resolver=key_resolver),
        verify,
        pass_req_to_callback=options.pass_req_to_callback,
    )


__all__ = [
    "TokenStrategy",
    "VerifyCallback",
    "apple_token_strategy",
    "instagram_token_strategy",
]
