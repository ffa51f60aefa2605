from vimkit.geometry.assembler import (
    DEFAULT_MIN_ZERO_COPY_BYTES,
    AttributeBuffer,
    assemble,
)
from vimkit.geometry.attribute import GeometryAttribute
from vimkit.geometry.descriptor import (
    Association,
    AttributeDescriptor,
    DataType,
    Semantic,
)
from vimkit.geometry.exceptions import (
    AssemblyError,
    InconsistentAttributeSizeError,
    InvalidAttributeDescriptorError,
)
from vimkit.geometry.geometry import BoundingBox, Geometry

__all__ = [
    "DEFAULT_MIN_ZERO_COPY_BYTES",
    "AssemblyError",
    "Association",
    "AttributeBuffer",
    "AttributeDescriptor",
    "BoundingBox",
    "DataType",
    "Geometry",
    "GeometryAttribute",
    "InconsistentAttributeSizeError",
    "InvalidAttributeDescriptorError",
    "Semantic",
    "assemble",
]
