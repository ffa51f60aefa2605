"""States of the entity import pipeline.

Hierarchy::

    PendingState ─> ReadingTablesState ─> ResolvingReferencesState
                 ─> WritingEntitiesState ─> FinishedState   (terminal)
    any non-terminal ─────────────────────> FailedState     (terminal)

``WritingEntitiesState`` may re-enter itself once per table.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import Field

from vimkit.errors import ErrorKind
from vimkit.state import StatefulModel, StateMachine


def _utc_now() -> datetime:
    return datetime.now(UTC)


class PendingState(StatefulModel):
    status: Literal["PENDING"] = "PENDING"
    timestamp: datetime = Field(default_factory=_utc_now)


class ReadingTablesState(StatefulModel):
    status: Literal["READING_TABLES"] = "READING_TABLES"
    tables: list[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=_utc_now)


class ResolvingReferencesState(StatefulModel):
    status: Literal["RESOLVING_REFERENCES"] = "RESOLVING_REFERENCES"
    total_units: int
    started_at: datetime = Field(default_factory=_utc_now)


class WritingEntitiesState(StatefulModel):
    status: Literal["WRITING_ENTITIES"] = "WRITING_ENTITIES"
    entity: str
    started_at: datetime = Field(default_factory=_utc_now)


class FinishedState(StatefulModel):
    status: Literal["FINISHED"] = "FINISHED"
    completed_units: int
    completed_at: datetime = Field(default_factory=_utc_now)


class FailedState(StatefulModel):
    status: Literal["FAILED"] = "FAILED"
    kind: ErrorKind
    error_message: str
    previous_status: str
    failed_at: datetime = Field(default_factory=_utc_now)


PipelineState = (
    PendingState
    | ReadingTablesState
    | ResolvingReferencesState
    | WritingEntitiesState
    | FinishedState
    | FailedState
)

PIPELINE_TRANSITIONS: dict[str, frozenset[str]] = {
    "PENDING": frozenset({"READING_TABLES", "FAILED"}),
    "READING_TABLES": frozenset({"RESOLVING_REFERENCES", "FAILED"}),
    "RESOLVING_REFERENCES": frozenset({"WRITING_ENTITIES", "FINISHED", "FAILED"}),
    "WRITING_ENTITIES": frozenset({"WRITING_ENTITIES", "FINISHED", "FAILED"}),
    "FINISHED": frozenset(),
    "FAILED": frozenset(),
}


def pipeline_state_machine() -> StateMachine[PipelineState]:
    return StateMachine(PendingState(), PIPELINE_TRANSITIONS)
