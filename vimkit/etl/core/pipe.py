from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from vimkit.etl.core.exceptions import ReferenceMismatch
from vimkit.etl.core.types import EntityRow
from vimkit.tables.exceptions import InvalidColumnValueError
from vimkit.tables.reader import ColumnType, Table

if TYPE_CHECKING:
    from vimkit.etl.core.resolver import ReferenceResolver


@dataclass(frozen=True)
class IndexReference:
    """Reference stored as a row index in an ``index`` column."""

    field: str
    column: str
    target: str


@dataclass(frozen=True)
class NameReference:
    """Reference resolved by exact match on a name column of the target.

    Only consulted when the table has no index column for the same field.
    """

    field: str
    column: str
    target: str
    target_column: str = "Name"


Reference = IndexReference | NameReference


Record = TypeVar("Record", bound=BaseModel)


class EntityPipe(Generic[Record]):
    """Base class for all entity import pipes.

    A pipe encapsulates the **Extract** and **Transform** steps for one
    entity table: :meth:`extract` validates raw rows into ``Record``
    models and :meth:`transform` shapes each record plus its resolved
    references into an :class:`EntityRow`.

    The **Load** step is handled separately by the :class:`Store`.
    """

    entity: ClassVar[str]
    """Entity name (e.g. ``"Element"``); also the store's entity key."""

    table: ClassVar[str]
    """Source table name.  Defaults to :attr:`entity`."""

    record_schema: ClassVar[type[BaseModel]]
    """Runtime-accessible record type.  Must match the type parameter ``Record``.

    Python's generic type parameters are erased at runtime, so this
    ClassVar is needed for runtime introspection (store column mapping,
    schema checks).
    """

    references: ClassVar[tuple[Reference, ...]] = ()

    def __init_subclass__(cls, **kwargs: object) -> None:
        super().__init_subclass__(**kwargs)
        if "entity" in cls.__dict__ and "table" not in cls.__dict__:
            cls.table = cls.entity

    @classmethod
    def field_names(cls) -> list[str]:
        return list(cls.record_schema.model_fields)

    @classmethod
    def reference_fields(cls) -> list[str]:
        seen: dict[str, None] = {}
        for ref in cls.references:
            seen.setdefault(ref.field, None)
        return list(seen)

    @classmethod
    def required_tables(cls) -> list[str]:
        """Own table plus every table a name reference looks into."""
        tables = {cls.table: None}
        for ref in cls.references:
            if isinstance(ref, NameReference):
                tables.setdefault(ref.target, None)
        return list(tables)

    def check_references(self, table: Table) -> list[ReferenceMismatch]:
        """Return every reference column whose type cannot satisfy its field."""
        mismatches: list[ReferenceMismatch] = []
        for ref in self.references:
            if ref.column not in table:
                continue
            column = table.column(ref.column)
            if isinstance(ref, IndexReference):
                if column.type is not ColumnType.INDEX:
                    found = f"{column.type} column"
                elif column.target != ref.target:
                    found = f"index into {column.target}"
                else:
                    continue
                mismatches.append(
                    ReferenceMismatch(table.name, ref.column, ref.target, found)
                )
            elif column.type is not ColumnType.STRING:
                mismatches.append(
                    ReferenceMismatch(
                        table.name,
                        ref.column,
                        f"{ref.target} name",
                        f"{column.type} column",
                    )
                )
        return mismatches

    def extract(self, table: Table, start: int, stop: int) -> Iterator[tuple[int, Record]]:
        for index in range(start, min(stop, table.row_count)):
            try:
                record = self.record_schema.model_validate(table.row(index))
            except ValidationError as exc:
                error = exc.errors()[0]
                column = ".".join(str(part) for part in error["loc"]) or "?"
                raise InvalidColumnValueError(
                    table.name, index, column, error["msg"]
                ) from exc
            yield index, record

    def transform(
        self, record: Record, index: int, references: dict[str, int | None]
    ) -> EntityRow:
        """Convert one extracted record into an :class:`EntityRow`."""
        return EntityRow(
            entity=self.entity,
            index=index,
            fields=record.model_dump(),
            references=references,
        )

    def run(
        self,
        table: Table,
        resolver: ReferenceResolver,
        start: int,
        stop: int,
    ) -> Iterator[EntityRow]:
        """Run the extract → resolve → transform loop over ``[start, stop)``.

        After the iterator is fully consumed, :attr:`extracted_count` and
        :attr:`transformed_count` reflect the totals.
        """
        self.extracted_count: int = 0
        self.transformed_count: int = 0
        for index, record in self.extract(table, start, stop):
            self.extracted_count += 1
            row = self.transform(record, index, resolver.resolve(index))
            self.transformed_count += 1
            yield row
