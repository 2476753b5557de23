"""Strategy configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

INSTAGRAM_AUTHORIZATION_URL = "https://api.instagram.com/oauth/authorize/"
INSTAGRAM_TOKEN_URL = "https://api.instagram.com/oauth/access_token"
INSTAGRAM_PROFILE_URL = "https://api.instagram.com/v1/users/self"

APPLE_AUTHORIZATION_URL = "https://appleid.apple.com/auth/authorize"
APPLE_TOKEN_URL = "https://appleid.apple.com/auth/token"
APPLE_ISSUER = "https://appleid.apple.com"
APPLE_JWKS_URL = "https://appleid.apple.com/auth/keys"


class InstagramStrategyOptions(BaseModel):
    """Options for the Instagram access-token strategy."""

    model_config = ConfigDict(frozen=True)

    client_id: str | None = None
    client_secret: str | None = None
    authorization_url: str = INSTAGRAM_AUTHORIZATION_URL
    token_url: str = INSTAGRAM_TOKEN_URL
    profile_url: str = INSTAGRAM_PROFILE_URL
    access_token_field: str = Field(default="access_token", min_length=1)
    refresh_token_field: str = Field(default="refresh_token", min_length=1)
    enable_proof: bool = True
    pass_req_to_callback: bool = False

    @model_validator(mode="after")
    def _require_secret_for_proof(self) -> "InstagramStrategyOptions":
        if self.enable_proof and not self.client_secret:
            raise ValueError("enable_proof requires a client_secret")
        return self


class AppleStrategyOptions(BaseModel):
    """Options for the Sign in with Apple identity-token strategy.

    ``client_id`` is the Services ID (or bundle id) the identity token must
    be issued to; it is checked against the token audience.
    """

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(min_length=1)
    authorization_url: str = APPLE_AUTHORIZATION_URL
    token_url: str = APPLE_TOKEN_URL
    identity_token_field: str = Field(default="id_token", min_length=1)
    user_field: str = Field(default="user", min_length=1)
    pass_req_to_callback: bool = False


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    auth_provider: Literal["instagram", "apple"] = "instagram"
    instagram_client_id: str | None = None
    instagram_client_secret: str | None = None
    instagram_enable_proof: bool = True
    instagram_profile_url: str = INSTAGRAM_PROFILE_URL
    apple_client_id: str | None = None
    pass_req_to_callback: bool = False

    model_config = SettingsConfigDict(env_prefix="TOKEN_STRATEGIES_", extra="ignore")

    def instagram_options(self) -> InstagramStrategyOptions:
        return InstagramStrategyOptions(
            client_id=self.instagram_client_id,
            client_secret=self.instagram_client_secret,
            profile_url=self.instagram_profile_url,
            enable_proof=self.instagram_enable_proof,
            pass_req_to_callback=self.pass_req_to_callback,
        )

    def apple_options(self) -> AppleStrategyOptions:
        return AppleStrategyOptions(
            client_id=self.apple_client_id or "",
            pass_req_to_callback=self.pass_req_to_callback,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
