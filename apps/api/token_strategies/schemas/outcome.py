"""Authentication outcome schemas."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from token_strategies.domain.auth_fsm import AuthState
from token_strategies.schemas.profile import Profile


class AuthOutcome(BaseModel):
    """Terminal result of one authentication attempt.

    ``kind`` is one of ``success`` (``user`` and ``info`` set), ``fail``
    (``info`` set) or ``error`` (``error`` set).
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    kind: Literal["success", "fail", "error"]
    user: Any = None
    info: Any = None
    error: BaseException | None = None
    profile: Profile | None = None
    states: list[AuthState] = Field(default_factory=list)

    @classmethod
    def success(cls, user: Any, info: Any = None, **extra: Any) -> "AuthOutcome":
        return cls(kind="success", user=user, info=info, **extra)

    @classmethod
    def fail(cls, info: Any = None, **extra: Any) -> "AuthOutcome":
        return cls(kind="fail", info=info, **extra)

    @classmethod
    def errored(cls, error: BaseException, **extra: Any) -> "AuthOutcome":
        return cls(kind="error", error=error, **extra)

    @property
    def succeeded(self) -> bool:
        return self.kind == "success"


class AuthenticatedUser(BaseModel):
    """What the FastAPI integration attaches to ``request.state.auth_user``."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    user: Any
    info: Any = None
    provider: str
