"""Terminal error classification shared by the file and import lifecycles."""

from __future__ import annotations

import asyncio
from enum import StrEnum

from vimkit.container.exceptions import DecodeError
from vimkit.etl.core.exceptions import (
    ImportCancelledError,
    ReferenceTypeMismatchError,
)
from vimkit.geometry.exceptions import AssemblyError
from vimkit.tables.exceptions import TableError


class ErrorKind(StrEnum):
    MALFORMED = "malformed"
    TRANSIENT_IO = "transient_io"
    CANCELLED = "cancelled"

    @property
    def retryable(self) -> bool:
        return self is ErrorKind.TRANSIENT_IO


def classify_error(exc: BaseException) -> ErrorKind:
    """Map an exception to the kind of failure it represents.

    Anything that is not a recognised structural or cancellation error
    is treated as transient I/O.
    """
    if isinstance(exc, (ImportCancelledError, asyncio.CancelledError)):
        return ErrorKind.CANCELLED
    if isinstance(
        exc, (DecodeError, AssemblyError, TableError, ReferenceTypeMismatchError)
    ):
        return ErrorKind.MALFORMED
    return ErrorKind.TRANSIENT_IO
