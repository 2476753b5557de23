"""Inbound request and extracted credential schemas."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class InboundRequest(BaseModel):
    """Transport-neutral view of the request being authenticated.

    ``source`` keeps the host's native request object so it can be handed
    to verify callbacks that asked for it.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    body: dict[str, Any] = Field(default_factory=dict)
    query: dict[str, Any] = Field(default_factory=dict)
    headers: dict[str, Any] = Field(default_factory=dict)
    source: Any = None


class Credential(BaseModel):
    """Tokens pulled out of a single request."""

    model_config = ConfigDict(frozen=True)

    token: str = Field(min_length=1)
    refresh_token: str | None = None
    user: dict[str, Any] | None = None
