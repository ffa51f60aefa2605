"""Entity registry -- maps Entity enum values to their import pipes."""

from __future__ import annotations

from enum import StrEnum

from vimkit.etl.core.pipe import EntityPipe
from vimkit.etl.entities import (
    BimDocumentPipe,
    CameraPipe,
    CategoryPipe,
    DisplayUnitPipe,
    ElementPipe,
    FamilyInstancePipe,
    FamilyPipe,
    FamilyTypePipe,
    LevelPipe,
    MaterialPipe,
    ParameterDescriptorPipe,
    ParameterPipe,
    RoomPipe,
    ViewPipe,
    WorksetPipe,
)


class Entity(StrEnum):
    BIM_DOCUMENT = "BimDocument"
    CAMERA = "Camera"
    CATEGORY = "Category"
    DISPLAY_UNIT = "DisplayUnit"
    ELEMENT = "Element"
    FAMILY = "Family"
    FAMILY_INSTANCE = "FamilyInstance"
    FAMILY_TYPE = "FamilyType"
    LEVEL = "Level"
    MATERIAL = "Material"
    PARAMETER = "Parameter"
    PARAMETER_DESCRIPTOR = "ParameterDescriptor"
    ROOM = "Room"
    VIEW = "View"
    WORKSET = "Workset"


# ---------------------------------------------------------------------------
# Registry (import order: referenced tables first)
# ---------------------------------------------------------------------------

ENTITY_REGISTRY: dict[Entity, type[EntityPipe]] = {
    Entity.BIM_DOCUMENT: BimDocumentPipe,
    Entity.CATEGORY: CategoryPipe,
    Entity.FAMILY: FamilyPipe,
    Entity.FAMILY_TYPE: FamilyTypePipe,
    Entity.LEVEL: LevelPipe,
    Entity.WORKSET: WorksetPipe,
    Entity.ROOM: RoomPipe,
    Entity.MATERIAL: MaterialPipe,
    Entity.ELEMENT: ElementPipe,
    Entity.FAMILY_INSTANCE: FamilyInstancePipe,
    Entity.DISPLAY_UNIT: DisplayUnitPipe,
    Entity.PARAMETER_DESCRIPTOR: ParameterDescriptorPipe,
    Entity.PARAMETER: ParameterPipe,
    Entity.CAMERA: CameraPipe,
    Entity.VIEW: ViewPipe,
}


def get_pipe_class(entity: Entity | str) -> type[EntityPipe]:
    """Look up the pipe for *entity*. Raises ``KeyError`` for unknown entities."""
    try:
        return ENTITY_REGISTRY[Entity(entity)]
    except ValueError:
        raise KeyError(f"Unknown entity: {entity!r}") from None


def default_pipes(entities: list[Entity] | None = None) -> list[EntityPipe]:
    """Instantiate pipes for *entities* (default: all) in registry order."""
    wanted = set(entities) if entities is not None else set(ENTITY_REGISTRY)
    return [cls() for entity, cls in ENTITY_REGISTRY.items() if entity in wanted]
