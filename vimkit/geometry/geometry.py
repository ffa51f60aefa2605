from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from vimkit.cache.range_cache import ByteRangeCache
from vimkit.container.decoder import Container, NamedBuffer
from vimkit.container.exceptions import MalformedContainerError
from vimkit.container.source import ByteSource
from vimkit.geometry.assembler import (
    DEFAULT_MIN_ZERO_COPY_BYTES,
    AttributeBuffer,
    assemble,
)
from vimkit.geometry.attribute import GeometryAttribute
from vimkit.geometry.descriptor import Association, Semantic

logger = logging.getLogger(__name__)

META_BUFFER = "meta"


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned bounding box."""

    min: tuple[float, float, float]
    max: tuple[float, float, float]

    @classmethod
    def from_points(cls, points: np.ndarray) -> BoundingBox | None:
        if points.size == 0:
            return None
        lo = points.min(axis=0)
        hi = points.max(axis=0)
        return cls(
            (float(lo[0]), float(lo[1]), float(lo[2])),
            (float(hi[0]), float(hi[1]), float(hi[2])),
        )

    @property
    def center(self) -> tuple[float, float, float]:
        return (
            (self.min[0] + self.max[0]) / 2,
            (self.min[1] + self.max[1]) / 2,
            (self.min[2] + self.max[2]) / 2,
        )

    @property
    def extent(self) -> tuple[float, float, float]:
        return (
            self.max[0] - self.min[0],
            self.max[1] - self.min[1],
            self.max[2] - self.min[2],
        )

    def union(self, other: BoundingBox) -> BoundingBox:
        return BoundingBox(
            (
                min(self.min[0], other.min[0]),
                min(self.min[1], other.min[1]),
                min(self.min[2], other.min[2]),
            ),
            (
                max(self.max[0], other.max[0]),
                max(self.max[1], other.max[1]),
                max(self.max[2], other.max[2]),
            ),
        )


class Geometry:
    """Typed access to the attributes of a geometry container.

    Buffers at or above ``min_zero_copy_bytes`` are routed through the
    byte-range cache when one is supplied, so large attributes end up
    memory-mapped from their own cache file.
    """

    def __init__(
        self,
        container: Container,
        *,
        min_zero_copy_bytes: int = DEFAULT_MIN_ZERO_COPY_BYTES,
        cache: ByteRangeCache | None = None,
        content_hash: str | None = None,
    ) -> None:
        self.min_zero_copy_bytes = min_zero_copy_bytes
        self.meta: str | None = None
        self.attributes: list[GeometryAttribute] = []

        for buffer in container:
            if buffer.name == META_BUFFER:
                try:
                    self.meta = str(buffer.view(), "utf-8")
                except UnicodeDecodeError as exc:
                    raise MalformedContainerError(
                        f"geometry meta is not valid UTF-8: {exc.reason}"
                    ) from exc
                continue
            if (
                cache is not None
                and content_hash is not None
                and buffer.byte_length >= min_zero_copy_bytes
            ):
                buffer = _cached_buffer(cache, buffer, content_hash)
            self.attributes.append(GeometryAttribute.from_buffer(buffer))

        logger.info("Loaded %d geometry attributes", len(self.attributes))

    def find(
        self,
        association: Association,
        semantic: Semantic,
        index: int | None = None,
    ) -> list[GeometryAttribute]:
        return [
            a
            for a in self.attributes
            if a.descriptor.matches(association, semantic, index)
        ]

    def buffer(
        self,
        association: Association,
        semantic: Semantic,
        index: int | None = None,
    ) -> AttributeBuffer | None:
        """Assemble every matching attribute into one logical buffer."""
        return assemble(self.find(association, semantic, index), self.min_zero_copy_bytes)

    def _array(
        self, association: Association, semantic: Semantic, arity: int
    ) -> np.ndarray | None:
        attributes = self.find(association, semantic)
        buffer = assemble(attributes, self.min_zero_copy_bytes)
        if buffer is None:
            return None
        data = buffer.view(attributes[0].descriptor.data_type)
        if arity > 1:
            return data.reshape(-1, arity)
        return data

    def positions(self) -> np.ndarray | None:
        """Vertex positions shaped ``(n, 3)``."""
        return self._array(Association.VERTEX, Semantic.POSITION, 3)

    def indices(self) -> np.ndarray | None:
        """Corner indices into :meth:`positions`."""
        return self._array(Association.CORNER, Semantic.INDEX, 1)

    def instance_transforms(self) -> np.ndarray | None:
        """Per-instance 4x4 transforms shaped ``(n, 4, 4)``."""
        data = self._array(Association.INSTANCE, Semantic.TRANSFORM, 16)
        if data is None:
            return None
        return data.reshape(-1, 4, 4)

    @property
    def vertex_count(self) -> int:
        return sum(a.item_count for a in self.find(Association.VERTEX, Semantic.POSITION))

    @property
    def index_count(self) -> int:
        return sum(a.item_count for a in self.find(Association.CORNER, Semantic.INDEX))

    @property
    def instance_count(self) -> int:
        return sum(
            a.item_count for a in self.find(Association.INSTANCE, Semantic.TRANSFORM)
        )

    def bounding_box(self) -> BoundingBox | None:
        """Per-axis min/max over every vertex position."""
        positions = self.positions()
        if positions is None:
            return None
        return BoundingBox.from_points(positions)


def _cached_buffer(
    cache: ByteRangeCache, buffer: NamedBuffer, content_hash: str
) -> NamedBuffer:
    view = cache.materialize_buffer(buffer, content_hash)
    arena = ByteSource(view, name=buffer.name)
    return NamedBuffer(buffer.name, 0, arena.size, arena)
