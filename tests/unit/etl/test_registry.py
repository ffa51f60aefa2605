from __future__ import annotations

import pytest

from vimkit.etl.entities import CategoryPipe, ElementPipe, FamilyInstancePipe
from vimkit.etl.registry import ENTITY_REGISTRY, Entity, default_pipes, get_pipe_class


class TestEntityRegistry:
    def test_every_entity_registered(self):
        assert set(ENTITY_REGISTRY) == set(Entity)

    def test_pipe_entity_matches_key(self):
        for entity, pipe_cls in ENTITY_REGISTRY.items():
            assert pipe_cls.entity == entity.value

    def test_lookup_by_name(self):
        assert get_pipe_class("Element") is ElementPipe
        assert get_pipe_class(Entity.FAMILY_INSTANCE) is FamilyInstancePipe

    def test_unknown_entity(self):
        with pytest.raises(KeyError):
            get_pipe_class("Spaceship")

    def test_default_pipes_keep_registry_order(self):
        pipes = default_pipes([Entity.ELEMENT, Entity.CATEGORY])
        assert [type(p) for p in pipes] == [CategoryPipe, ElementPipe]

    def test_default_pipes_all(self):
        assert len(default_pipes()) == len(Entity)

    def test_referenced_tables_come_first(self):
        order = [e.value for e in ENTITY_REGISTRY]
        assert order.index("Category") < order.index("Element")
        assert order.index("FamilyType") < order.index("FamilyInstance")
        assert order.index("ParameterDescriptor") < order.index("Parameter")
