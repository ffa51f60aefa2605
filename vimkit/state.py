"""Explicit state machines with a listener channel.

Hierarchy (file lifecycle)::

    InitializingState ─┬─> DownloadingState ─> LoadingState ─┬─> ReadyState  (terminal)
                       └─────────────────────> LoadingState ─┘
    any non-terminal ───────────────────────────────────────────> ErrorState  (terminal)

Listeners are invoked synchronously, in subscription order, after every
accepted transition.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, Field

from vimkit.errors import ErrorKind

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class InvalidTransitionError(Exception):
    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        self.message = f"Cannot transition from {current} to {requested}"
        super().__init__(self.message)


class StatefulModel(BaseModel):
    status: str


S = TypeVar("S", bound=StatefulModel)


class StateMachine(Generic[S]):
    """Validates transitions against a ``status -> allowed statuses`` table."""

    def __init__(self, initial: S, transitions: Mapping[str, frozenset[str]]) -> None:
        self._state = initial
        self._transitions = transitions
        self._listeners: list[Callable[[S, S], None]] = []

    @property
    def state(self) -> S:
        return self._state

    @property
    def status(self) -> str:
        return self._state.status

    @property
    def is_terminal(self) -> bool:
        return not self._transitions.get(self._state.status)

    def can_advance(self, status: str) -> bool:
        return status in self._transitions.get(self._state.status, frozenset())

    def advance(self, new: S) -> S:
        if not self.can_advance(new.status):
            raise InvalidTransitionError(self._state.status, new.status)
        previous, self._state = self._state, new
        logger.debug("State %s -> %s", previous.status, new.status)
        for listener in list(self._listeners):
            listener(previous, new)
        return new

    def force(self, new: S) -> S:
        """Replace the state without validation (explicit resets only)."""
        previous, self._state = self._state, new
        for listener in list(self._listeners):
            listener(previous, new)
        return new

    def subscribe(self, listener: Callable[[S, S], None]) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


# ---------------------------------------------------------------------------
# File lifecycle states
# ---------------------------------------------------------------------------


class InitializingState(StatefulModel):
    status: Literal["initializing"] = "initializing"
    timestamp: datetime = Field(default_factory=_utc_now)


class DownloadingState(StatefulModel):
    status: Literal["downloading"] = "downloading"
    url: str
    timestamp: datetime = Field(default_factory=_utc_now)


class LoadingState(StatefulModel):
    status: Literal["loading"] = "loading"
    path: str
    timestamp: datetime = Field(default_factory=_utc_now)


class ReadyState(StatefulModel):
    status: Literal["ready"] = "ready"
    ready_at: datetime = Field(default_factory=_utc_now)


class ErrorState(StatefulModel):
    status: Literal["error"] = "error"
    kind: ErrorKind
    error_message: str
    previous_status: str
    failed_at: datetime = Field(default_factory=_utc_now)

    @property
    def retryable(self) -> bool:
        return self.kind.retryable


ImportState = (
    InitializingState | DownloadingState | LoadingState | ReadyState | ErrorState
)

IMPORT_STATE_TRANSITIONS: dict[str, frozenset[str]] = {
    "initializing": frozenset({"downloading", "loading", "error"}),
    "downloading": frozenset({"loading", "error"}),
    "loading": frozenset({"ready", "error"}),
    "ready": frozenset(),
    "error": frozenset(),
}


def import_state_machine() -> StateMachine[ImportState]:
    return StateMachine(InitializingState(), IMPORT_STATE_TRANSITIONS)
