from vimkit.etl.core.exceptions import (
    EntityImportError,
    ImportCancelledError,
    ReferenceMismatch,
    ReferenceTypeMismatchError,
    StoreWriteFailedError,
)
from vimkit.etl.core.types import (
    EntityRow,
    ImportProgress,
    ImportResult,
    ProgressSnapshot,
)

__all__ = [
    "EntityImportError",
    "EntityRow",
    "ImportCancelledError",
    "ImportProgress",
    "ImportResult",
    "ProgressSnapshot",
    "ReferenceMismatch",
    "ReferenceTypeMismatchError",
    "StoreWriteFailedError",
]
