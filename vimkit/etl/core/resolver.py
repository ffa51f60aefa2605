from __future__ import annotations

import logging
from collections.abc import Mapping

import numpy as np

from vimkit.etl.core.pipe import EntityPipe, IndexReference, NameReference
from vimkit.tables.reader import Column, Table

logger = logging.getLogger(__name__)


def build_name_index(table: Table, column: str) -> dict[str, int]:
    """Map each name in *column* to the first row carrying it."""
    index: dict[str, int] = {}
    if column not in table:
        return index
    names = table.column(column)
    for row in range(len(names)):
        name = names[row]
        if name is not None:
            index.setdefault(name, row)
    return index


class ReferenceResolver:
    """Resolves one pipe's references for the rows of one table.

    Index references look the row index up against the target table's
    row count; negative (empty) or out-of-range indices resolve to
    ``None``.  Name references use a reverse index built here, once per
    foreign table and column, and discarded with the resolver.
    """

    def __init__(
        self,
        pipe: EntityPipe,
        table: Table,
        tables: Mapping[str, Table],
    ) -> None:
        self._fields = pipe.reference_fields()
        self._index_refs: dict[str, tuple[np.ndarray, int]] = {}
        self._name_refs: dict[str, tuple[Column, dict[str, int]]] = {}
        name_indices: dict[tuple[str, str], dict[str, int]] = {}

        for ref in pipe.references:
            if isinstance(ref, IndexReference) and ref.column in table:
                target = tables.get(ref.target)
                row_count = target.row_count if target is not None else 0
                self._index_refs[ref.field] = (table.column(ref.column).values, row_count)

        for ref in pipe.references:
            if not isinstance(ref, NameReference) or ref.field in self._index_refs:
                continue
            if ref.column not in table or ref.target not in tables:
                continue
            key = (ref.target, ref.target_column)
            if key not in name_indices:
                name_indices[key] = build_name_index(tables[ref.target], ref.target_column)
                logger.debug(
                    "Built name index %s.%s (%d names)",
                    ref.target,
                    ref.target_column,
                    len(name_indices[key]),
                )
            self._name_refs[ref.field] = (table.column(ref.column), name_indices[key])

    def resolve(self, row: int) -> dict[str, int | None]:
        resolved: dict[str, int | None] = dict.fromkeys(self._fields)
        for field, (values, row_count) in self._index_refs.items():
            target = int(values[row])
            resolved[field] = target if 0 <= target < row_count else None
        for field, (names, index) in self._name_refs.items():
            name = names[row]
            resolved[field] = index.get(name) if name is not None else None
        return resolved
