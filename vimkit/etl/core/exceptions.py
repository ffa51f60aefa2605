"""Custom exceptions for entity import operations."""

from __future__ import annotations

from dataclasses import dataclass


class EntityImportError(Exception):
    def __init__(self, message: str | None = None):
        self.message = f"Import failed: {message}" if message else "Import failed"
        super().__init__(self.message)


@dataclass(frozen=True)
class ReferenceMismatch:
    """One reference column that cannot point at the entity its field expects."""

    table: str
    column: str
    expected: str
    found: str

    def __str__(self) -> str:
        return f"{self.table}.{self.column}: expected {self.expected}, found {self.found}"


class ReferenceTypeMismatchError(EntityImportError):
    """Raised before any row is written when reference columns are mistyped.

    Every mismatch across all imported tables is collected into
    :attr:`mismatches` rather than stopping at the first one.
    """

    def __init__(self, mismatches: list[ReferenceMismatch]):
        self.mismatches = mismatches
        detail = "; ".join(str(m) for m in mismatches)
        super().__init__(f"{len(mismatches)} reference type mismatch(es): {detail}")


class StoreWriteFailedError(EntityImportError):
    """Raised when the entity sink rejects a chunk.

    Chunks committed before the failure stay in the sink.
    """

    def __init__(self, entity: str, chunk_start: int, cause: str):
        self.entity = entity
        self.chunk_start = chunk_start
        self.cause = cause
        super().__init__(
            f"writing {entity} rows from {chunk_start} failed: {cause}"
        )


class ImportCancelledError(EntityImportError):
    """Raised at the first chunk or table boundary after cancellation."""

    def __init__(self, completed_units: int, total_units: int):
        self.completed_units = completed_units
        self.total_units = total_units
        super().__init__(
            f"cancelled after {completed_units} of {total_units} rows"
        )
