"""Parser for attribute buffer names.

Grammar: ``[g3d:]<association>:<semantic>:<index>:<dataType>:<arity>``.
Associations and semantics outside the known sets parse to ``UNKNOWN``;
an unknown data type or a malformed index/arity is an error.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

import numpy as np

from vimkit.geometry.exceptions import InvalidAttributeDescriptorError

_PREFIX = "g3d"


class Association(StrEnum):
    VERTEX = "vertex"
    FACE = "face"
    CORNER = "corner"
    EDGE = "edge"
    SUBGEOMETRY = "subgeometry"
    INSTANCE = "instance"
    SHAPEVERTEX = "shapevertex"
    SHAPE = "shape"
    MATERIAL = "material"
    MESH = "mesh"
    SUBMESH = "submesh"
    ALL = "all"
    NONE = "none"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str) -> Association:
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class Semantic(StrEnum):
    POSITION = "position"
    INDEX = "index"
    INDEXOFFSET = "indexoffset"
    VERTEXOFFSET = "vertexoffset"
    SUBMESHOFFSET = "submeshoffset"
    NORMAL = "normal"
    BINORMAL = "binormal"
    TANGENT = "tangent"
    MATERIAL = "material"
    MATERIALID = "materialid"
    VISIBILITY = "visibility"
    SIZE = "size"
    UV = "uv"
    COLOR = "color"
    SMOOTHING = "smoothing"
    WEIGHT = "weight"
    MAPCHANNEL = "mapchannel"
    ID = "id"
    JOINT = "joint"
    BOXES = "boxes"
    SPHERES = "spheres"
    TRANSFORM = "transform"
    PARENT = "parent"
    MESH = "mesh"
    WIDTH = "width"
    GLOSSINESS = "glossiness"
    SMOOTHNESS = "smoothness"
    USER = "user"
    FLAGS = "flags"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str) -> Semantic:
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class DataType(StrEnum):
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"

    @property
    def numpy_dtype(self) -> np.dtype:
        """Little-endian numpy dtype for this data type."""
        return np.dtype(self.value).newbyteorder("<")

    @property
    def size(self) -> int:
        return self.numpy_dtype.itemsize


@dataclass(frozen=True)
class AttributeDescriptor:
    association: Association
    semantic: Semantic
    index: int
    data_type: DataType
    arity: int
    name: str = field(default="", compare=False)
    """The buffer name this descriptor was parsed from."""

    @classmethod
    def parse(cls, name: str) -> AttributeDescriptor:
        parts = name.split(":")
        if parts and parts[0] == _PREFIX:
            parts = parts[1:]
        if len(parts) != 5:
            raise InvalidAttributeDescriptorError(
                name, f"expected 5 colon-separated fields, got {len(parts)}"
            )
        association, semantic, index, data_type, arity = parts

        try:
            dtype = DataType(data_type)
        except ValueError:
            raise InvalidAttributeDescriptorError(
                name, f"unknown data type {data_type!r}"
            ) from None
        parsed_index = _parse_int(name, "index", index)
        if parsed_index < 0:
            raise InvalidAttributeDescriptorError(name, "index must not be negative")
        parsed_arity = _parse_int(name, "arity", arity)
        if parsed_arity <= 0:
            raise InvalidAttributeDescriptorError(name, "arity must be positive")

        return cls(
            association=Association.parse(association),
            semantic=Semantic.parse(semantic),
            index=parsed_index,
            data_type=dtype,
            arity=parsed_arity,
            name=name,
        )

    @property
    def item_size(self) -> int:
        """Bytes per item (one element per component times arity)."""
        return self.data_type.size * self.arity

    def matches(
        self, association: Association, semantic: Semantic, index: int | None = None
    ) -> bool:
        if self.association != association or self.semantic != semantic:
            return False
        return index is None or self.index == index

    def __str__(self) -> str:
        return (
            f"{_PREFIX}:{self.association}:{self.semantic}:"
            f"{self.index}:{self.data_type}:{self.arity}"
        )


def _parse_int(name: str, field_name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise InvalidAttributeDescriptorError(
            name, f"{field_name} {value!r} is not an integer"
        ) from None
