"""Copy vs. zero-copy construction of logical attribute buffers.

Rules:

* no attributes: ``None``;
* several attributes: always copied and concatenated in sequence order;
* one attribute at or above ``min_zero_copy_bytes``: a view over the
  source bytes;
* one attribute below the threshold: copied into a small owned buffer.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np
from numpy.typing import DTypeLike

from vimkit.geometry.attribute import GeometryAttribute, readonly_array
from vimkit.geometry.descriptor import DataType

logger = logging.getLogger(__name__)

DEFAULT_MIN_ZERO_COPY_BYTES = 1024 * 1000 * 8


def _as_dtype(dtype: DataType | DTypeLike) -> np.dtype:
    if isinstance(dtype, DataType):
        return dtype.numpy_dtype
    return np.dtype(dtype)


class AttributeBuffer:
    """Read-only handle over assembled attribute bytes."""

    def __init__(self, data: memoryview, *, is_zero_copy: bool, label: str = "") -> None:
        self._data = data.toreadonly()
        self.is_zero_copy = is_zero_copy
        self.label = label

    @property
    def byte_length(self) -> int:
        return self._data.nbytes

    def __len__(self) -> int:
        return self.byte_length

    def element_count(self, dtype: DataType | DTypeLike) -> int:
        """How many whole values of *dtype* fit in the buffer."""
        return self.byte_length // _as_dtype(dtype).itemsize

    def view(self, dtype: DataType | DTypeLike) -> np.ndarray:
        """Read-only typed view; never copies."""
        dt = _as_dtype(dtype)
        return readonly_array(self._data, dt, self.element_count(dt))

    def tobytes(self) -> bytes:
        return self._data.tobytes()

    def __repr__(self) -> str:
        kind = "zero-copy" if self.is_zero_copy else "copy"
        return f"AttributeBuffer({self.label!r}, {self.byte_length} bytes, {kind})"


def assemble(
    attributes: Sequence[GeometryAttribute],
    min_zero_copy_bytes: int = DEFAULT_MIN_ZERO_COPY_BYTES,
) -> AttributeBuffer | None:
    if not attributes:
        return None
    for attribute in attributes:
        attribute.validate()

    label = ",".join(a.buffer.name for a in attributes)

    if len(attributes) == 1:
        attribute = attributes[0]
        if attribute.byte_length >= min_zero_copy_bytes:
            return AttributeBuffer(attribute.buffer.view(), is_zero_copy=True, label=label)
        return AttributeBuffer(
            memoryview(attribute.buffer.tobytes()), is_zero_copy=False, label=label
        )

    total = sum(a.byte_length for a in attributes)
    combined = bytearray(total)
    offset = 0
    for attribute in attributes:
        combined[offset : offset + attribute.byte_length] = attribute.buffer.view()
        offset += attribute.byte_length
    logger.debug("Concatenated %d attributes into %d bytes", len(attributes), total)
    return AttributeBuffer(memoryview(combined), is_zero_copy=False, label=label)
