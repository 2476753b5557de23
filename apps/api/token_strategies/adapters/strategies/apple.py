"""Sign in with Apple identity-token adapter."""

from __future__ import annotations

import json
import logging
from typing import Any

import jwt
from pydantic import ValidationError

from token_strategies.adapters.strategies.base import ProfileParseError, ProfileSource, TokenVerificationError
from token_strategies.adapters.strategies.extractor import BODY_QUERY, lookup_field, require_token
from token_strategies.adapters.strategies.key_resolver import (
    KeyResolver,
    KeySetRateLimitError,
    get_apple_key_resolver,
)
from token_strategies.core.config import APPLE_ISSUER, AppleStrategyOptions
from token_strategies.core.logging_safety import safe_log_identifier
from token_strategies.schemas.profile import Profile, ProfileName, ProfileValue
from token_strategies.schemas.request import Credential, InboundRequest

APPLE_SIGNING_ALGORITHM = "RS256"

logger = logging.getLogger(__name__)


def parse_user_fragment(value: Any) -> dict[str, Any] | None:
    """Decode the optional ``user`` object Apple hands the client on first sign-in.

    Apps usually forward it as a JSON string. Anything that does not decode
    to an object is treated as absent.
    """
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return None
    return value if isinstance(value, dict) else None


def _name_part(user: dict[str, Any], key: str) -> str | None:
    value = user.get(key)
    return value if isinstance(value, str) and value else None


def _name_from_user(user: dict[str, Any] | None) -> ProfileName | None:
    if not user:
        return None
    last_name = _name_part(user, "lastName")
    first_name = _name_part(user, "firstName")
    if not (last_name or first_name):
        return None
    return ProfileName(family_name=last_name, given_name=first_name)


class AppleProfileSource(ProfileSource):
    """Verifies Apple identity tokens against Apple's published keys."""

    name = "apple-token"
    provider = "apple"

    def __init__(
        self,
        options: AppleStrategyOptions,
        key_resolver: KeyResolver | None = None,
    ) -> None:
        self._options = options
        self._key_resolver = key_resolver or get_apple_key_resolver()

    @property
    def options(self) -> AppleStrategyOptions:
        return self._options

    def extract_credential(self, request: InboundRequest) -> Credential:
        token = require_token(request, self._options.identity_token_field, BODY_QUERY)
        user = parse_user_fragment(lookup_field(request, self._options.user_field, BODY_QUERY))
        return Credential(token=token, user=user)

    async def fetch_profile(self, credential: Credential) -> dict[str, Any]:
        try:
            header = jwt.get_unverified_header(credential.token)
            kid = header.get("kid")
            if not kid:
                raise jwt.InvalidTokenError("Identity token header has no kid")
            key = await self._key_resolver.get_signing_key(kid)
            return jwt.decode(
                credential.token,
                key=key,
                algorithms=[APPLE_SIGNING_ALGORITHM],
                audience=self._options.client_id,
                issuer=APPLE_ISSUER,
                options={"require": ["exp", "iss", "aud", "sub"]},
            )
        except (jwt.PyJWTError, KeySetRateLimitError) as exc:
            logger.warning(
                "profile.verify_failed provider=%s token=%s reason=%s",
                self.provider,
                safe_log_identifier(credential.token, prefix="tok"),
                type(exc).__name__,
            )
            raise TokenVerificationError("Failed to validate identity token") from exc

    def normalize_profile(self, payload: dict[str, Any], credential: Credential) -> Profile:
        if not payload.get("sub"):
            raise ProfileParseError("Identity token claims are missing sub")
        email = payload.get("email")
        try:
            return Profile(
                provider=self.provider,
                id=str(payload["sub"]),
                emails=[ProfileValue(value=email)] if email else [],
                # Apple sends these flags as the strings "true" / "false".
                email_verified=payload.get("email_verified") == "true",
                is_private_email=payload.get("is_private_email") == "true",
                name=_name_from_user(credential.user),
                raw=json.dumps(payload),
                parsed=payload,
            )
        except ValidationError as exc:
            raise ProfileParseError("Identity token claims have unexpected types") from exc

    def callback_tokens(self, credential: Credential) -> tuple[str | None, str | None]:
        return None, None


__all__ = ["AppleProfileSource", "parse_user_fragment"]
