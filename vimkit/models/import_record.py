from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime

from vimkit.models.utils import generate_id


class ImportStatus(enum.StrEnum):
    CREATED = "created"
    IMPORTING = "importing"
    IMPORTED = "imported"
    FAILED = "failed"


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class ImportRecord:
    """Outcome of one entity import of one source file."""

    source_hash: str
    source_name: str = ""
    status: str = ImportStatus.CREATED.value
    total_units: int = 0
    completed_units: int = 0
    entity_counts: dict[str, int] = field(default_factory=dict)
    error_kind: str | None = None
    error_message: str | None = None
    id: str = field(default_factory=generate_id)
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)
