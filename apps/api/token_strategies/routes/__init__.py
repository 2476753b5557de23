"""FastAPI integration."""

from .dependencies import get_token_strategy, read_inbound_request, require_authenticated_user

__all__ = ["get_token_strategy", "read_inbound_request", "require_authenticated_user"]
