"""Authentication attempt lifecycle rules."""

from enum import Enum


class AuthState(str, Enum):
    START = "START"
    EXTRACTING_CREDENTIAL = "EXTRACTING_CREDENTIAL"
    FETCHING_PROFILE = "FETCHING_PROFILE"
    NORMALIZING_PROFILE = "NORMALIZING_PROFILE"
    DISPATCHING = "DISPATCHING"
    FAILED = "FAILED"
    ERRORED = "ERRORED"
    SUCCEEDED = "SUCCEEDED"


TERMINAL_STATES: frozenset[AuthState] = frozenset(
    {
        AuthState.FAILED,
        AuthState.ERRORED,
        AuthState.SUCCEEDED,
    }
)

_ALLOWED_TRANSITIONS: dict[AuthState, set[AuthState]] = {
    AuthState.START: {AuthState.EXTRACTING_CREDENTIAL},
    AuthState.EXTRACTING_CREDENTIAL: {AuthState.FAILED, AuthState.FETCHING_PROFILE},
    AuthState.FETCHING_PROFILE: {AuthState.ERRORED, AuthState.NORMALIZING_PROFILE},
    AuthState.NORMALIZING_PROFILE: {AuthState.ERRORED, AuthState.DISPATCHING},
    AuthState.DISPATCHING: {AuthState.ERRORED, AuthState.FAILED, AuthState.SUCCEEDED},
    AuthState.FAILED: set(),
    AuthState.ERRORED: set(),
    AuthState.SUCCEEDED: set(),
}


class InvalidAuthTransition(RuntimeError):
    """Raised when an attempt tries to leave a state along an undeclared edge."""

    def __init__(self, current: AuthState, attempted: AuthState) -> None:
        self.current = current
        self.attempted = attempted
        super().__init__(f"Invalid authentication transition {current.value} -> {attempted.value}")


def allowed_next_states(state: AuthState) -> list[AuthState]:
    """Return deterministically ordered allowed successors for a state."""
    return sorted(_ALLOWED_TRANSITIONS.get(state, set()), key=lambda s: s.value)


def ensure_transition(old_state: AuthState, new_state: AuthState) -> None:
    """Validate transition according to lifecycle rules."""
    if new_state not in _ALLOWED_TRANSITIONS.get(old_state, set()):
        raise InvalidAuthTransition(old_state, new_state)


class AuthAttempt:
    """Tracks the states a single authentication attempt passes through."""

    def __init__(self) -> None:
        self.history: list[AuthState] = [AuthState.START]

    @property
    def state(self) -> AuthState:
        return self.history[-1]

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def advance(self, new_state: AuthState) -> None:
        ensure_transition(self.state, new_state)
        self.history.append(new_state)
