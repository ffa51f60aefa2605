"""Columnar tables stored one column per buffer.

Buffer naming: ``table/<table>/<column>:<type>`` where *type* is one of
:class:`ColumnType`.  An ``index`` column holds row indices into another
table, named either explicitly (``index.<Target>``) or implicitly by the
column name.  ``string`` columns hold indices into the shared
:class:`~vimkit.tables.strings.StringPool`.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import numpy as np

from vimkit.container.decoder import Container, NamedBuffer
from vimkit.geometry.attribute import readonly_array
from vimkit.tables.exceptions import (
    InconsistentRowCountError,
    MissingTableError,
    TableError,
    UnsupportedColumnTypeError,
)
from vimkit.tables.strings import StringPool

logger = logging.getLogger(__name__)

TABLE_PREFIX = "table/"
EMPTY_INDEX = -1


class ColumnType(StrEnum):
    BYTE = "byte"
    INT = "int"
    LONG = "long"
    FLOAT = "float"
    DOUBLE = "double"
    STRING = "string"
    INDEX = "index"

    @property
    def numpy_dtype(self) -> np.dtype:
        return np.dtype(_NUMPY_TYPES[self])


_NUMPY_TYPES = {
    ColumnType.BYTE: "<u1",
    ColumnType.INT: "<i4",
    ColumnType.LONG: "<i8",
    ColumnType.FLOAT: "<f4",
    ColumnType.DOUBLE: "<f8",
    ColumnType.STRING: "<i4",
    ColumnType.INDEX: "<i4",
}


@dataclass(frozen=True)
class ColumnName:
    table: str
    column: str
    type: ColumnType
    target: str | None = None
    """Referenced table for ``index`` columns."""

    @classmethod
    def parse(cls, name: str) -> ColumnName | None:
        """Parse a table buffer name; ``None`` if *name* is not a table buffer."""
        if not name.startswith(TABLE_PREFIX):
            return None
        table, sep, rest = name[len(TABLE_PREFIX) :].partition("/")
        column, colon, type_name = rest.rpartition(":")
        if not sep or not colon or not table or not column:
            return None

        base, _, target = type_name.partition(".")
        try:
            column_type = ColumnType(base)
        except ValueError:
            raise UnsupportedColumnTypeError(name, type_name) from None
        if column_type is ColumnType.INDEX:
            return cls(table, column, column_type, target or column)
        if target:
            raise UnsupportedColumnTypeError(name, type_name)
        return cls(table, column, column_type)


class Column:
    """One immutable column: a read-only numpy view over its buffer."""

    def __init__(
        self,
        name: ColumnName,
        values: np.ndarray,
        strings: StringPool | None = None,
    ) -> None:
        self.spec = name
        self.values = values
        self._strings = strings

    @property
    def name(self) -> str:
        return self.spec.column

    @property
    def type(self) -> ColumnType:
        return self.spec.type

    @property
    def target(self) -> str | None:
        return self.spec.target

    def __len__(self) -> int:
        return int(self.values.shape[0])

    def __getitem__(self, row: int) -> Any:
        raw = self.values[row].item()
        if self.type is ColumnType.STRING:
            if self._strings is None:
                raise TableError(f"string column {self.name!r} has no string pool")
            return self._strings.get(raw)
        return raw

    def tolist(self) -> list[Any]:
        return [self[i] for i in range(len(self))]


class Table:
    def __init__(self, name: str, columns: list[Column], row_count: int) -> None:
        self.name = name
        self.columns: dict[str, Column] = {c.name: c for c in columns}
        self.row_count = row_count

    def __len__(self) -> int:
        return self.row_count

    def __contains__(self, column: object) -> bool:
        return column in self.columns

    @property
    def column_names(self) -> list[str]:
        return list(self.columns)

    def column(self, name: str) -> Column:
        try:
            return self.columns[name]
        except KeyError:
            raise KeyError(f"Table {self.name!r} has no column {name!r}") from None

    def row(self, index: int) -> dict[str, Any]:
        if not 0 <= index < self.row_count:
            raise IndexError(f"Row {index} out of range for table {self.name!r}")
        return {name: column[index] for name, column in self.columns.items()}

    def rows(self, start: int = 0, stop: int | None = None) -> Iterator[dict[str, Any]]:
        stop = self.row_count if stop is None else min(stop, self.row_count)
        for index in range(start, stop):
            yield self.row(index)

    def __repr__(self) -> str:
        return f"Table({self.name!r}, {len(self.columns)} columns, {self.row_count} rows)"


def table_names(buffers: Mapping[str, NamedBuffer]) -> list[str]:
    """Table names in first-seen buffer order."""
    names: dict[str, None] = {}
    for name in buffers:
        if not name.startswith(TABLE_PREFIX):
            continue
        table, sep, _ = name[len(TABLE_PREFIX) :].partition("/")
        if sep and table:
            names.setdefault(table, None)
    return list(names)


def read_table(
    buffers: Mapping[str, NamedBuffer],
    table_name: str,
    strings: StringPool | None = None,
) -> Table:
    prefix = f"{TABLE_PREFIX}{table_name}/"
    columns: list[Column] = []
    row_count: int | None = None

    for name, buffer in buffers.items():
        if not name.startswith(prefix):
            continue
        spec = ColumnName.parse(name)
        if spec is None:
            raise TableError(f"malformed column buffer name {name!r}")

        dtype = spec.type.numpy_dtype
        if buffer.byte_length % dtype.itemsize != 0:
            raise InconsistentRowCountError(table_name, spec.column, dtype.itemsize)
        count = buffer.byte_length // dtype.itemsize
        if row_count is None:
            row_count = count
        elif count != row_count:
            raise InconsistentRowCountError(table_name, spec.column, row_count, count)

        if spec.type is ColumnType.STRING and strings is None:
            raise TableError(
                f"string column {spec.column!r} of table {table_name!r} "
                "has no string pool"
            )
        values = readonly_array(buffer.view(), dtype, count)
        columns.append(Column(spec, values, strings))

    if row_count is None:
        raise MissingTableError(table_name)
    logger.debug(
        "Read table %s: %d columns, %d rows", table_name, len(columns), row_count
    )
    return Table(table_name, columns, row_count)


class TableSource:
    """Lazily reads tables out of an entities container.

    Each table is parsed at most once; reads are safe from worker threads.
    """

    def __init__(
        self,
        buffers: Mapping[str, NamedBuffer],
        strings: StringPool | None = None,
    ) -> None:
        self._buffers = buffers
        self.strings = strings
        self._names = table_names(buffers)
        self._tables: dict[str, Table] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_container(
        cls, entities: Container, strings: StringPool | None = None
    ) -> TableSource:
        return cls(entities.buffers, strings)

    @property
    def names(self) -> list[str]:
        return list(self._names)

    def __contains__(self, table_name: object) -> bool:
        return table_name in self._names

    def read(self, table_name: str) -> Table:
        with self._lock:
            table = self._tables.get(table_name)
        if table is not None:
            return table
        table = read_table(self._buffers, table_name, self.strings)
        with self._lock:
            return self._tables.setdefault(table_name, table)
