from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ProgressSnapshot:
    """Immutable, consistent reading of an :class:`ImportProgress`."""

    total_units: int
    completed_units: int

    @property
    def fraction_completed(self) -> float:
        if self.total_units == 0:
            return 0.0
        return self.completed_units / self.total_units

    @property
    def is_finished(self) -> bool:
        return self.total_units > 0 and self.completed_units == self.total_units


class ImportProgress:
    """Monotone progress counter shared between the pipeline and observers.

    Only the pipeline mutates it; observers on any thread or task read
    a :class:`ProgressSnapshot` taken under the lock, so a total and a
    completed count are never read from different updates.
    """

    def __init__(self, total_units: int = 0) -> None:
        self._lock = threading.Lock()
        self._total = total_units
        self._completed = 0

    def start(self, total_units: int) -> None:
        if total_units < 0:
            raise ValueError("total_units must not be negative")
        with self._lock:
            self._total = total_units
            self._completed = 0

    def advance(self, units: int) -> ProgressSnapshot:
        """Add *units*, clamped so ``completed`` never exceeds ``total``."""
        if units < 0:
            raise ValueError("progress never decreases")
        with self._lock:
            self._completed = min(self._total, self._completed + units)
            return ProgressSnapshot(self._total, self._completed)

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return ProgressSnapshot(self._total, self._completed)

    @property
    def total_units(self) -> int:
        return self.snapshot().total_units

    @property
    def completed_units(self) -> int:
        return self.snapshot().completed_units

    @property
    def fraction_completed(self) -> float:
        return self.snapshot().fraction_completed

    @property
    def is_finished(self) -> bool:
        return self.snapshot().is_finished


@dataclass
class EntityRow:
    """Plain value object flowing from EntityPipe.transform() to the store.

    ``fields`` holds typed column values; ``references`` maps each
    reference field to the referenced row index, or ``None`` when the
    reference is empty or dangling.
    """

    entity: str
    index: int
    fields: dict[str, Any] = field(default_factory=dict)
    references: dict[str, int | None] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        if key in self.fields:
            return self.fields[key]
        return self.references[key]


@dataclass
class ImportResult:
    """Result returned from ImportPipeline.run()."""

    total_units: int = 0
    completed_units: int = 0
    entity_counts: dict[str, int] = field(default_factory=dict)
    skipped_tables: list[str] = field(default_factory=list)

    @property
    def entities_created(self) -> int:
        return sum(self.entity_counts.values())
