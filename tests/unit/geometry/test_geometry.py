from __future__ import annotations

import numpy as np
import pytest

from tests.conftest import (
    SAMPLE_POSITIONS,
    build_container,
    decode_bytes,
    geometry_buffers,
)
from vimkit.cache import ByteRangeCache, make_cache_key
from vimkit.container import MalformedContainerError
from vimkit.geometry import Association, BoundingBox, Geometry, Semantic


def _geometry(entries: dict[str, bytes], **kwargs) -> Geometry:
    return Geometry(decode_bytes(build_container(entries)), **kwargs)


class TestGeometry:
    def test_meta_is_not_an_attribute(self):
        geometry = _geometry(geometry_buffers(SAMPLE_POSITIONS, [0, 1, 2]))
        assert geometry.meta == "sample geometry"
        assert len(geometry.attributes) == 2

    def test_meta_not_utf8_is_malformed(self):
        with pytest.raises(MalformedContainerError, match="meta"):
            _geometry({"meta": b"\xc3\x28"})

    def test_positions_and_indices(self):
        geometry = _geometry(geometry_buffers(SAMPLE_POSITIONS, [0, 1, 2, 2, 1, 0]))

        np.testing.assert_array_equal(geometry.positions(), SAMPLE_POSITIONS)
        np.testing.assert_array_equal(geometry.indices(), [0, 1, 2, 2, 1, 0])
        assert geometry.vertex_count == 3
        assert geometry.index_count == 6
        assert geometry.instance_count == 0
        assert geometry.instance_transforms() is None

    def test_bounding_box_is_per_axis_min_max(self):
        geometry = _geometry(geometry_buffers(SAMPLE_POSITIONS, [0, 1, 2]))
        box = geometry.bounding_box()

        assert box == BoundingBox((0.0, -1.0, -2.0), (2.0, 3.0, 0.5))
        assert box.extent == (2.0, 4.0, 2.5)
        assert box.center == (1.0, 1.0, -0.75)

    def test_no_positions_means_no_bounding_box(self):
        geometry = _geometry({"meta": b""})
        assert geometry.positions() is None
        assert geometry.bounding_box() is None

    def test_positions_across_several_attributes(self):
        second = np.array([[5.0, 5.0, 5.0]], dtype="<f4")
        geometry = _geometry(
            {
                "g3d:vertex:position:0:float32:3": SAMPLE_POSITIONS.tobytes(),
                "g3d:vertex:position:1:float32:3": second.tobytes(),
            }
        )
        assert geometry.positions().shape == (4, 3)
        assert geometry.bounding_box().max == (5.0, 5.0, 5.0)
        assert len(geometry.find(Association.VERTEX, Semantic.POSITION, 1)) == 1

    def test_buffer_lookup(self):
        geometry = _geometry(geometry_buffers(SAMPLE_POSITIONS, [0, 1, 2]))
        assert geometry.buffer(Association.FACE, Semantic.NORMAL) is None
        buffer = geometry.buffer(Association.CORNER, Semantic.INDEX, 0)
        assert buffer.byte_length == 12

    def test_instance_transforms(self):
        transforms = np.stack([np.eye(4), np.eye(4) * 2]).astype("<f4")
        geometry = _geometry({"g3d:instance:transform:0:float32:16": transforms.tobytes()})
        result = geometry.instance_transforms()
        assert result.shape == (2, 4, 4)
        assert geometry.instance_count == 2
        assert result[1, 0, 0] == pytest.approx(2.0)

    def test_large_buffers_go_through_cache(self, cache: ByteRangeCache):
        container = decode_bytes(
            build_container(geometry_buffers(SAMPLE_POSITIONS, [0, 1, 2]))
        )
        geometry = Geometry(
            container,
            min_zero_copy_bytes=16,
            cache=cache,
            content_hash=container.sha256_hash,
        )

        positions_key = make_cache_key(
            container.sha256_hash, "g3d:vertex:position:0:float32:3"
        )
        indices_key = make_cache_key(container.sha256_hash, "g3d:corner:index:0:int32:1")
        assert cache.contains(positions_key)
        assert not cache.contains(indices_key)
        np.testing.assert_array_equal(geometry.positions(), SAMPLE_POSITIONS)
