"""Domain models: plain Python dataclasses with no infrastructure dependencies.

The SQLAlchemy ORM models used by :class:`~vimkit.store.sql.SQLStore`
live separately in ``vimkit/db/models.py`` and map to/from these.
Imported entity rows travel as :class:`~vimkit.etl.core.types.EntityRow`.
"""

from vimkit.models.import_record import ImportRecord, ImportStatus
from vimkit.models.utils import generate_id

__all__ = [
    "ImportRecord",
    "ImportStatus",
    "generate_id",
]
