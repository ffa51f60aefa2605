"""Public return types for the vimkit API."""

from __future__ import annotations

from dataclasses import dataclass, field

from vimkit.container.decoder import Container, NamedBuffer
from vimkit.geometry.geometry import Geometry
from vimkit.tables.reader import TableSource
from vimkit.tables.strings import StringPool


@dataclass
class Sections:
    """Decoded top-level sections of a container file.

    Any section may be missing from a file; it is then left as ``None``.
    """

    container: Container
    content_hash: str
    header: dict[str, str] = field(default_factory=dict)
    strings: StringPool | None = None
    tables: TableSource | None = None
    geometry: Geometry | None = None
    assets: dict[str, NamedBuffer] = field(default_factory=dict)


@dataclass
class ImportSummary:
    """Result from :meth:`Vim.import_entities`."""

    import_id: str
    total_units: int = 0
    completed_units: int = 0
    entity_counts: dict[str, int] = field(default_factory=dict)
    skipped_tables: list[str] = field(default_factory=list)

    @property
    def entities_created(self) -> int:
        return sum(self.entity_counts.values())
