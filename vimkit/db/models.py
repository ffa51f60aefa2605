"""SQLAlchemy ORM models for imported entities and import records.

Each entity table carries the source row position (``row_index``), its
typed fields and one nullable ``<field>_index`` column per reference.
References are stored as row indices rather than foreign keys so a chunk
can be committed before the rows it points at.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Float, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from vimkit.models.utils import generate_id


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    pass


class TimeStampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False,
    )


class EntityMixin:
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    row_index: Mapped[int] = mapped_column(Integer, nullable=False, index=True)


class ImportRecord(TimeStampMixin, Base):
    __tablename__ = "imports"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    source_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    source_name: Mapped[str] = mapped_column(String, nullable=False, default="")
    status: Mapped[str] = mapped_column(String, nullable=False)
    total_units: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_units: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    entity_counts: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    error_kind: Mapped[str | None] = mapped_column(String, nullable=True)
    error_message: Mapped[str | None] = mapped_column(String, nullable=True)


class BimDocument(EntityMixin, Base):
    __tablename__ = "bim_documents"

    title: Mapped[str | None] = mapped_column(String)
    path_name: Mapped[str | None] = mapped_column(String)


class Category(EntityMixin, Base):
    __tablename__ = "categories"

    name: Mapped[str | None] = mapped_column(String)
    category_type: Mapped[str | None] = mapped_column(String)
    built_in_category: Mapped[str | None] = mapped_column(String)
    parent_index: Mapped[int | None] = mapped_column(Integer)
    material_index: Mapped[int | None] = mapped_column(Integer)


class Family(EntityMixin, Base):
    __tablename__ = "families"

    name: Mapped[str | None] = mapped_column(String, index=True)
    is_system_family: Mapped[bool | None] = mapped_column(Boolean)
    is_in_place: Mapped[bool | None] = mapped_column(Boolean)
    category_index: Mapped[int | None] = mapped_column(Integer)
    element_index: Mapped[int | None] = mapped_column(Integer)


class FamilyType(EntityMixin, Base):
    __tablename__ = "family_types"

    name: Mapped[str | None] = mapped_column(String)
    is_system_family_type: Mapped[bool | None] = mapped_column(Boolean)
    family_index: Mapped[int | None] = mapped_column(Integer)
    element_index: Mapped[int | None] = mapped_column(Integer)


class FamilyInstance(EntityMixin, Base):
    __tablename__ = "family_instances"

    facing_flipped: Mapped[bool | None] = mapped_column(Boolean)
    hand_flipped: Mapped[bool | None] = mapped_column(Boolean)
    family_type_index: Mapped[int | None] = mapped_column(Integer)
    element_index: Mapped[int | None] = mapped_column(Integer)
    host_index: Mapped[int | None] = mapped_column(Integer)


class Element(EntityMixin, Base):
    __tablename__ = "elements"

    element_id: Mapped[int | None] = mapped_column(BigInteger)
    unique_id: Mapped[str | None] = mapped_column(String)
    name: Mapped[str | None] = mapped_column(String)
    type: Mapped[str | None] = mapped_column(String)
    family_name: Mapped[str | None] = mapped_column(String)
    category_index: Mapped[int | None] = mapped_column(Integer)
    family_index: Mapped[int | None] = mapped_column(Integer)
    level_index: Mapped[int | None] = mapped_column(Integer)
    workset_index: Mapped[int | None] = mapped_column(Integer)
    room_index: Mapped[int | None] = mapped_column(Integer)
    bim_document_index: Mapped[int | None] = mapped_column(Integer)


class Level(EntityMixin, Base):
    __tablename__ = "levels"

    name: Mapped[str | None] = mapped_column(String)
    elevation: Mapped[float | None] = mapped_column(Float)
    element_index: Mapped[int | None] = mapped_column(Integer)


class Workset(EntityMixin, Base):
    __tablename__ = "worksets"

    name: Mapped[str | None] = mapped_column(String)
    kind: Mapped[str | None] = mapped_column(String)
    is_open: Mapped[bool | None] = mapped_column(Boolean)
    is_editable: Mapped[bool | None] = mapped_column(Boolean)
    bim_document_index: Mapped[int | None] = mapped_column(Integer)


class DisplayUnit(EntityMixin, Base):
    __tablename__ = "display_units"

    spec: Mapped[str | None] = mapped_column(String)
    label: Mapped[str | None] = mapped_column(String)


class ParameterDescriptor(EntityMixin, Base):
    __tablename__ = "parameter_descriptors"

    name: Mapped[str | None] = mapped_column(String)
    group: Mapped[str | None] = mapped_column(String)
    parameter_type: Mapped[str | None] = mapped_column(String)
    is_instance: Mapped[bool | None] = mapped_column(Boolean)
    is_shared: Mapped[bool | None] = mapped_column(Boolean)
    is_read_only: Mapped[bool | None] = mapped_column(Boolean)
    display_unit_index: Mapped[int | None] = mapped_column(Integer)


class Parameter(EntityMixin, Base):
    __tablename__ = "parameters"

    value: Mapped[str | None] = mapped_column(String)
    formatted_value: Mapped[str | None] = mapped_column(String)
    descriptor_index: Mapped[int | None] = mapped_column(Integer)
    element_index: Mapped[int | None] = mapped_column(Integer, index=True)


class Room(EntityMixin, Base):
    __tablename__ = "rooms"

    number: Mapped[str | None] = mapped_column(String)
    area: Mapped[float | None] = mapped_column(Float)
    perimeter: Mapped[float | None] = mapped_column(Float)
    volume: Mapped[float | None] = mapped_column(Float)
    unbounded_height: Mapped[float | None] = mapped_column(Float)
    element_index: Mapped[int | None] = mapped_column(Integer)


class Material(EntityMixin, Base):
    __tablename__ = "materials"

    name: Mapped[str | None] = mapped_column(String)
    material_category: Mapped[str | None] = mapped_column(String)
    color_texture_file: Mapped[str | None] = mapped_column(String)
    normal_texture_file: Mapped[str | None] = mapped_column(String)
    element_index: Mapped[int | None] = mapped_column(Integer)


class Camera(EntityMixin, Base):
    __tablename__ = "cameras"

    is_perspective: Mapped[bool | None] = mapped_column(Boolean)
    far_distance: Mapped[float | None] = mapped_column(Float)
    target_distance: Mapped[float | None] = mapped_column(Float)
    horizontal_extent: Mapped[float | None] = mapped_column(Float)
    vertical_extent: Mapped[float | None] = mapped_column(Float)
    right_offset: Mapped[float | None] = mapped_column(Float)
    up_offset: Mapped[float | None] = mapped_column(Float)


class View(EntityMixin, Base):
    __tablename__ = "views"

    title: Mapped[str | None] = mapped_column(String)
    view_type: Mapped[str | None] = mapped_column(String)
    scale: Mapped[float | None] = mapped_column(Float)
    origin_x: Mapped[float | None] = mapped_column(Float)
    origin_y: Mapped[float | None] = mapped_column(Float)
    origin_z: Mapped[float | None] = mapped_column(Float)
    view_direction_x: Mapped[float | None] = mapped_column(Float)
    view_direction_y: Mapped[float | None] = mapped_column(Float)
    view_direction_z: Mapped[float | None] = mapped_column(Float)
    view_position_x: Mapped[float | None] = mapped_column(Float)
    view_position_y: Mapped[float | None] = mapped_column(Float)
    view_position_z: Mapped[float | None] = mapped_column(Float)
    camera_index: Mapped[int | None] = mapped_column(Integer)
    element_index: Mapped[int | None] = mapped_column(Integer)


ENTITY_MODELS: dict[str, type[EntityMixin]] = {
    "BimDocument": BimDocument,
    "Camera": Camera,
    "Category": Category,
    "DisplayUnit": DisplayUnit,
    "Element": Element,
    "Family": Family,
    "FamilyInstance": FamilyInstance,
    "FamilyType": FamilyType,
    "Level": Level,
    "Material": Material,
    "Parameter": Parameter,
    "ParameterDescriptor": ParameterDescriptor,
    "Room": Room,
    "View": View,
    "Workset": Workset,
}
