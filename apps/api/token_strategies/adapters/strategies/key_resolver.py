"""Signing-key lookup for identity tokens."""

from __future__ import annotations

import asyncio
import logging
import ssl
import threading
import time
from collections import deque
from collections.abc import Callable
from functools import lru_cache
from typing import Any, Protocol

from jwt import PyJWKClient

from token_strategies.core.config import APPLE_JWKS_URL

CACHE_MAX_ENTRIES = 100
CACHE_MAX_AGE_SECONDS = 60 * 60 * 24
JWKS_REQUESTS_PER_MINUTE = 10

logger = logging.getLogger(__name__)


class KeySetRateLimitError(Exception):
    """Raised when a key lookup would exceed the JWKS fetch budget."""


class KeyResolver(Protocol):
    async def get_signing_key(self, kid: str) -> Any:
        """Return the public key registered under ``kid``."""


class RateLimitedJWKClient(PyJWKClient):
    """PyJWKClient that hits its endpoint at most ``requests_per_minute`` times per rolling minute."""

    def __init__(
        self,
        uri: str,
        *,
        requests_per_minute: int = JWKS_REQUESTS_PER_MINUTE,
        clock: Callable[[], float] = time.monotonic,
        **kwargs: Any,
    ) -> None:
        super().__init__(uri, **kwargs)
        self.requests_per_minute = requests_per_minute
        self._clock = clock
        self._fetches: deque[float] = deque()
        self._lock = threading.Lock()

    def fetch_data(self) -> Any:
        self._reserve_fetch()
        return super().fetch_data()

    def _reserve_fetch(self) -> None:
        with self._lock:
            now = self._clock()
            while self._fetches and now - self._fetches[0] >= 60:
                self._fetches.popleft()
            if len(self._fetches) >= self.requests_per_minute:
                logger.warning(
                    "jwks.rate_limited url=%s limit_per_minute=%s",
                    self.uri,
                    self.requests_per_minute,
                )
                raise KeySetRateLimitError(f"Too many requests to the JWKS endpoint {self.uri}")
            self._fetches.append(now)
        logger.debug("jwks.fetch url=%s", self.uri)


class JWKSKeyResolver:
    """Resolves signing keys by key id from a JWKS endpoint.

    Up to ``max_entries`` resolved keys are kept by PyJWT's key cache and the
    fetched key set is reused for ``max_age`` seconds. Unknown key ids force a
    refetch, which the rate limit bounds. Lookups run in a worker thread.
    """

    def __init__(
        self,
        jwks_url: str,
        *,
        max_entries: int = CACHE_MAX_ENTRIES,
        max_age: int = CACHE_MAX_AGE_SECONDS,
        requests_per_minute: int = JWKS_REQUESTS_PER_MINUTE,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.jwks_url = jwks_url
        self._client = RateLimitedJWKClient(
            jwks_url,
            requests_per_minute=requests_per_minute,
            clock=clock,
            cache_keys=True,
            max_cached_keys=max_entries,
            cache_jwk_set=True,
            lifespan=max_age,
            ssl_context=ssl.create_default_context(),
        )

    @property
    def client(self) -> RateLimitedJWKClient:
        return self._client

    async def get_signing_key(self, kid: str) -> Any:
        signing_key = await asyncio.to_thread(self._client.get_signing_key, kid)
        return signing_key.key


@lru_cache(maxsize=1)
def get_apple_key_resolver() -> JWKSKeyResolver:
    return JWKSKeyResolver(APPLE_JWKS_URL)


__all__ = [
    "JWKSKeyResolver",
    "KeyResolver",
    "KeySetRateLimitError",
    "RateLimitedJWKClient",
    "get_apple_key_resolver",
]
