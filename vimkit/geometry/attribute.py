from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from vimkit.container.decoder import NamedBuffer
from vimkit.geometry.descriptor import AttributeDescriptor
from vimkit.geometry.exceptions import InconsistentAttributeSizeError


def readonly_array(data: memoryview, dtype: np.dtype, count: int) -> np.ndarray:
    if count == 0:
        empty = np.empty(0, dtype=dtype)
        empty.flags.writeable = False
        return empty
    return np.frombuffer(data, dtype=dtype, count=count)


@dataclass(frozen=True)
class GeometryAttribute:
    """A typed geometry stream: a descriptor plus the buffer it describes."""

    descriptor: AttributeDescriptor
    buffer: NamedBuffer

    def __post_init__(self) -> None:
        self.validate()

    @classmethod
    def from_buffer(cls, buffer: NamedBuffer) -> GeometryAttribute:
        return cls(AttributeDescriptor.parse(buffer.name), buffer)

    def validate(self) -> None:
        """Raise unless the byte length is a whole number of items."""
        item_size = self.descriptor.item_size
        if self.buffer.byte_length % item_size != 0:
            raise InconsistentAttributeSizeError(
                self.buffer.name, self.buffer.byte_length, item_size
            )

    @property
    def byte_length(self) -> int:
        return self.buffer.byte_length

    @property
    def element_count(self) -> int:
        """Number of scalar components."""
        return self.byte_length // self.descriptor.data_type.size

    @property
    def item_count(self) -> int:
        """Number of items (``element_count / arity``)."""
        return self.element_count // self.descriptor.arity

    def array(self) -> np.ndarray:
        """Read-only numpy view over the buffer, shaped ``(items, arity)``.

        Attributes of arity 1 come back one-dimensional.
        """
        data = readonly_array(
            self.buffer.view(), self.descriptor.data_type.numpy_dtype, self.element_count
        )
        if self.descriptor.arity > 1:
            return data.reshape(self.item_count, self.descriptor.arity)
        return data
