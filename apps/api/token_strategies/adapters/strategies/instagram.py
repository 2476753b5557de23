"""Instagram access-token adapter."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging

import httpx
from pydantic import ValidationError

from token_strategies.adapters.strategies.base import (
    ProfileParseError,
    ProfileSource,
    ProviderTransportError,
)
from token_strategies.adapters.strategies.extractor import lookup_token, require_token
from token_strategies.core.config import InstagramStrategyOptions
from token_strategies.core.logging_safety import safe_log_url
from token_strategies.schemas.profile import Profile, ProfileName, ProfileValue
from token_strategies.schemas.request import Credential, InboundRequest

# Resource path signed by the integrity proof, independent of the configured host.
PROOF_ENDPOINT = "/users/self"

logger = logging.getLogger(__name__)


def compute_proof(client_secret: str, access_token: str) -> str:
    """Hex HMAC-SHA256 of Instagram's signed-request string for the profile call."""
    message = f"{PROOF_ENDPOINT}|access_token={access_token}"
    return hmac.new(
        client_secret.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def _provider_error(response: httpx.Response) -> ProviderTransportError:
    try:
        meta = response.json()["meta"]
        return ProviderTransportError(
            meta["error_message"],
            provider_code=meta["code"],
            status_code=response.status_code,
        )
    except (ValueError, KeyError, TypeError):
        return ProviderTransportError("Failed to fetch user profile", status_code=response.status_code)


class InstagramProfileSource(ProfileSource):
    """Reads the user profile for an Instagram OAuth2 access token."""

    name = "instagram-token"
    provider = "instagram"

    def __init__(
        self,
        options: InstagramStrategyOptions,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._options = options
        self._http_client = http_client

    @property
    def options(self) -> InstagramStrategyOptions:
        return self._options

    def extract_credential(self, request: InboundRequest) -> Credential:
        token = require_token(request, self._options.access_token_field)
        refresh_token = lookup_token(request, self._options.refresh_token_field)
        return Credential(token=token, refresh_token=refresh_token)

    def profile_params(self, access_token: str) -> dict[str, str]:
        params = {"access_token": access_token}
        if self._options.enable_proof:
            params["sig"] = compute_proof(self._options.client_secret or "", access_token)
        return params

    async def fetch_profile(self, credential: Credential) -> str:
        url = self._options.profile_url
        try:
            response = await self._get(url, self.profile_params(credential.token))
        except httpx.HTTPError as exc:
            logger.warning(
                "profile.fetch_failed provider=%s url=%s reason=transport error=%s",
                self.provider,
                safe_log_url(url),
                type(exc).__name__,
            )
            raise ProviderTransportError("Failed to fetch user profile") from exc

        if response.is_error:
            error = _provider_error(response)
            logger.warning(
                "profile.fetch_failed provider=%s url=%s status=%s provider_code=%s",
                self.provider,
                safe_log_url(url),
                response.status_code,
                error.provider_code,
            )
            raise error

        return response.text

    async def _get(self, url: str, params: dict[str, str]) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.get(url, params=params)
        async with httpx.AsyncClient() as client:
            return await client.get(url, params=params)

    def normalize_profile(self, payload: str, credential: Credential) -> Profile:
        try:
            parsed = json.loads(payload)
        except ValueError as exc:
            raise ProfileParseError("Failed to parse user profile") from exc

        data = parsed.get("data") if isinstance(parsed, dict) else None
        if not isinstance(data, dict) or not data.get("id"):
            raise ProfileParseError("User profile is missing data.id")

        parsed["id"] = str(data["id"])
        picture = data.get("profile_picture")

        try:
            return Profile(
                provider=self.provider,
                id=parsed["id"],
                username=data.get("username") or "",
                display_name=data.get("full_name") or "",
                name=ProfileName(
                    family_name=data.get("last_name") or "",
                    given_name=data.get("first_name") or "",
                ),
                emails=[],
                photos=[ProfileValue(value=picture)] if picture else [],
                raw=payload,
                parsed=parsed,
            )
        except ValidationError as exc:
            raise ProfileParseError("User profile fields have unexpected types") from exc


__all__ = ["InstagramProfileSource", "compute_proof"]
