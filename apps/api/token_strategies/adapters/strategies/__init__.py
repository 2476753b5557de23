"""Provider token strategy adapters."""

from .apple import AppleProfileSource
from .base import (
    CallbackError,
    MissingCredentialError,
    ProfileParseError,
    ProfileSource,
    ProviderTransportError,
    StrategyError,
    TokenVerificationError,
)
from .instagram import InstagramProfileSource
from .key_resolver import JWKSKeyResolver, KeyResolver, KeySetRateLimitError, RateLimitedJWKClient

__all__ = [
    "AppleProfileSource",
    "CallbackError",
    "InstagramProfileSource",
    "JWKSKeyResolver",
    "KeyResolver",
    "KeySetRateLimitError",
    "MissingCredentialError",
    "ProfileParseError",
    "ProfileSource",
    "ProviderTransportError",
    "RateLimitedJWKClient",
    "StrategyError",
    "TokenVerificationError",
]
