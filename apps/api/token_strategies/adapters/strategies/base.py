"""Provider adapter interfaces and error taxonomy."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from token_strategies.schemas.profile import Profile
from token_strategies.schemas.request import Credential, InboundRequest


class StrategyError(Exception):
    """Base class for every failure an adapter can report."""

    code = "STRATEGY_ERROR"


class MissingCredentialError(StrategyError):
    """Raised when the request carries no primary token."""

    code = "MISSING_CREDENTIAL"

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"You should provide {field_name}")


class ProviderTransportError(StrategyError):
    """Raised when the provider's profile endpoint could not be read.

    ``provider_code`` carries the provider's own error code when the error
    body could be decoded.
    """

    code = "PROVIDER_TRANSPORT_ERROR"

    def __init__(self, message: str, provider_code: Any = None, status_code: int | None = None) -> None:
        self.provider_code = provider_code
        self.status_code = status_code
        super().__init__(message)


class ProfileParseError(StrategyError):
    """Raised when a provider payload cannot be turned into a profile."""

    code = "PROFILE_PARSE_ERROR"


class TokenVerificationError(StrategyError):
    """Raised when a signed token fails signature or claim validation."""

    code = "TOKEN_VERIFICATION_FAILED"


class CallbackError(StrategyError):
    """Raised when the application's verify callback reported an error."""

    code = "CALLBACK_ERROR"


class ProfileSource(ABC):
    """Provider-specific half of a token strategy.

    The shared dispatcher calls ``extract_credential``, then
    ``fetch_profile``, then ``normalize_profile``; each step maps to one
    state of the authentication lifecycle.
    """

    name: str
    provider: str

    @abstractmethod
    def extract_credential(self, request: InboundRequest) -> Credential:
        """Return tokens carried by the request or raise MissingCredentialError."""

    @abstractmethod
    async def fetch_profile(self, credential: Credential) -> Any:
        """Obtain the provider's profile assertion for the credential."""

    @abstractmethod
    def normalize_profile(self, payload: Any, credential: Credential) -> Profile:
        """Map the provider payload into the canonical profile."""

    async def user_profile(self, credential: Credential) -> Profile:
        """Fetch and normalize in one call, outside of any dispatcher."""
        payload = await self.fetch_profile(credential)
        return self.normalize_profile(payload, credential)

    def callback_tokens(self, credential: Credential) -> tuple[str | None, str | None]:
        """Tokens forwarded to the verify callback as (access, refresh)."""
        return credential.token, credential.refresh_token


__all__ = [
    "CallbackError",
    "MissingCredentialError",
    "ProfileParseError",
    "ProfileSource",
    "ProviderTransportError",
    "StrategyError",
    "TokenVerificationError",
]
