"""Record schemas and pipes for every imported entity table.

Field aliases are the column names used in the entities container.
Columns that are absent from a file leave the field at its default.
Reference columns are not part of the records; they are declared on
each pipe and resolved separately.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from vimkit.etl.core.pipe import EntityPipe, IndexReference, NameReference
from vimkit.etl.core.types import EntityRow


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ── Schemas ──────────────────────────────────────────────────────────


class BimDocumentRecord(_Record):
    title: str | None = Field(default=None, alias="Title")
    path_name: str | None = Field(default=None, alias="PathName")


class CategoryRecord(_Record):
    name: str | None = Field(default=None, alias="Name")
    category_type: str | None = Field(default=None, alias="CategoryType")
    built_in_category: str | None = Field(default=None, alias="BuiltInCategory")


class FamilyRecord(_Record):
    name: str | None = Field(default=None, alias="Name")
    is_system_family: bool | None = Field(default=None, alias="IsSystemFamily")
    is_in_place: bool | None = Field(default=None, alias="IsInPlace")


class FamilyTypeRecord(_Record):
    name: str | None = Field(default=None, alias="Name")
    is_system_family_type: bool | None = Field(default=None, alias="IsSystemFamilyType")


class FamilyInstanceRecord(_Record):
    facing_flipped: bool | None = Field(default=None, alias="FacingFlipped")
    hand_flipped: bool | None = Field(default=None, alias="HandFlipped")


class ElementRecord(_Record):
    element_id: int | None = Field(default=None, alias="Id")
    unique_id: str | None = Field(default=None, alias="UniqueId")
    name: str | None = Field(default=None, alias="Name")
    type: str | None = Field(default=None, alias="Type")
    family_name: str | None = Field(default=None, alias="FamilyName")


class LevelRecord(_Record):
    name: str | None = Field(default=None, alias="Name")
    elevation: float | None = Field(default=None, alias="Elevation")


class WorksetRecord(_Record):
    name: str | None = Field(default=None, alias="Name")
    kind: str | None = Field(default=None, alias="Kind")
    is_open: bool | None = Field(default=None, alias="IsOpen")
    is_editable: bool | None = Field(default=None, alias="IsEditable")


class DisplayUnitRecord(_Record):
    spec: str | None = Field(default=None, alias="Spec")
    label: str | None = Field(default=None, alias="Label")


class ParameterDescriptorRecord(_Record):
    name: str | None = Field(default=None, alias="Name")
    group: str | None = Field(default=None, alias="Group")
    parameter_type: str | None = Field(default=None, alias="ParameterType")
    is_instance: bool | None = Field(default=None, alias="IsInstance")
    is_shared: bool | None = Field(default=None, alias="IsShared")
    is_read_only: bool | None = Field(default=None, alias="IsReadOnly")


class ParameterRecord(_Record):
    value: str | None = Field(default=None, alias="Value")
    formatted_value: str | None = None


class RoomRecord(_Record):
    number: str | None = Field(default=None, alias="Number")
    area: float | None = Field(default=None, alias="Area")
    perimeter: float | None = Field(default=None, alias="Perimeter")
    volume: float | None = Field(default=None, alias="Volume")
    unbounded_height: float | None = Field(default=None, alias="UnboundedHeight")


class MaterialRecord(_Record):
    name: str | None = Field(default=None, alias="Name")
    material_category: str | None = Field(default=None, alias="MaterialCategory")
    color_texture_file: str | None = Field(default=None, alias="ColorTextureFile")
    normal_texture_file: str | None = Field(default=None, alias="NormalTextureFile")


class CameraRecord(_Record):
    is_perspective: bool | None = Field(default=None, alias="IsPerspective")
    far_distance: float | None = Field(default=None, alias="FarDistance")
    target_distance: float | None = Field(default=None, alias="TargetDistance")
    horizontal_extent: float | None = Field(default=None, alias="HorizontalExtent")
    vertical_extent: float | None = Field(default=None, alias="VerticalExtent")
    right_offset: float | None = Field(default=None, alias="RightOffset")
    up_offset: float | None = Field(default=None, alias="UpOffset")


class ViewRecord(_Record):
    title: str | None = Field(default=None, alias="Title")
    view_type: str | None = Field(default=None, alias="ViewType")
    scale: float | None = Field(default=None, alias="Scale")
    origin_x: float | None = Field(default=None, alias="Origin.X")
    origin_y: float | None = Field(default=None, alias="Origin.Y")
    origin_z: float | None = Field(default=None, alias="Origin.Z")
    view_direction_x: float | None = Field(default=None, alias="ViewDirection.X")
    view_direction_y: float | None = Field(default=None, alias="ViewDirection.Y")
    view_direction_z: float | None = Field(default=None, alias="ViewDirection.Z")
    view_position_x: float | None = Field(default=None, alias="ViewPosition.X")
    view_position_y: float | None = Field(default=None, alias="ViewPosition.Y")
    view_position_z: float | None = Field(default=None, alias="ViewPosition.Z")


# ── Pipes ────────────────────────────────────────────────────────────


class BimDocumentPipe(EntityPipe[BimDocumentRecord]):
    entity = "BimDocument"
    record_schema = BimDocumentRecord


class CategoryPipe(EntityPipe[CategoryRecord]):
    entity = "Category"
    record_schema = CategoryRecord
    references = (
        IndexReference("parent", "Parent", "Category"),
        IndexReference("material", "Material", "Material"),
    )


class FamilyPipe(EntityPipe[FamilyRecord]):
    entity = "Family"
    record_schema = FamilyRecord
    references = (
        IndexReference("category", "FamilyCategory", "Category"),
        NameReference("category", "CategoryName", "Category"),
        IndexReference("element", "Element", "Element"),
    )


class FamilyTypePipe(EntityPipe[FamilyTypeRecord]):
    entity = "FamilyType"
    record_schema = FamilyTypeRecord
    references = (
        IndexReference("family", "Family", "Family"),
        IndexReference("element", "Element", "Element"),
    )


class FamilyInstancePipe(EntityPipe[FamilyInstanceRecord]):
    entity = "FamilyInstance"
    record_schema = FamilyInstanceRecord
    references = (
        IndexReference("family_type", "FamilyType", "FamilyType"),
        IndexReference("element", "Element", "Element"),
        IndexReference("host", "Host", "Element"),
    )


class ElementPipe(EntityPipe[ElementRecord]):
    entity = "Element"
    record_schema = ElementRecord
    references = (
        IndexReference("category", "Category", "Category"),
        IndexReference("family", "Family", "Family"),
        NameReference("family", "FamilyName", "Family"),
        IndexReference("level", "Level", "Level"),
        NameReference("level", "LevelName", "Level"),
        IndexReference("workset", "Workset", "Workset"),
        IndexReference("room", "Room", "Room"),
        IndexReference("bim_document", "BimDocument", "BimDocument"),
    )


class LevelPipe(EntityPipe[LevelRecord]):
    entity = "Level"
    record_schema = LevelRecord
    references = (IndexReference("element", "Element", "Element"),)


class WorksetPipe(EntityPipe[WorksetRecord]):
    entity = "Workset"
    record_schema = WorksetRecord
    references = (IndexReference("bim_document", "BimDocument", "BimDocument"),)


class DisplayUnitPipe(EntityPipe[DisplayUnitRecord]):
    entity = "DisplayUnit"
    record_schema = DisplayUnitRecord


class ParameterDescriptorPipe(EntityPipe[ParameterDescriptorRecord]):
    entity = "ParameterDescriptor"
    record_schema = ParameterDescriptorRecord
    references = (IndexReference("display_unit", "DisplayUnit", "DisplayUnit"),)


class ParameterPipe(EntityPipe[ParameterRecord]):
    entity = "Parameter"
    record_schema = ParameterRecord
    references = (
        IndexReference("descriptor", "ParameterDescriptor", "ParameterDescriptor"),
        IndexReference("element", "Element", "Element"),
    )

    def transform(
        self,
        record: ParameterRecord,
        index: int,
        references: dict[str, int | None],
    ) -> EntityRow:
        # Values are stored as "<native>|<formatted>"; the display value is
        # the last segment.
        if record.value is not None:
            record = record.model_copy(
                update={"formatted_value": record.value.rsplit("|", 1)[-1]}
            )
        return super().transform(record, index, references)


class RoomPipe(EntityPipe[RoomRecord]):
    entity = "Room"
    record_schema = RoomRecord
    references = (IndexReference("element", "Element", "Element"),)


class MaterialPipe(EntityPipe[MaterialRecord]):
    entity = "Material"
    record_schema = MaterialRecord
    references = (IndexReference("element", "Element", "Element"),)


class CameraPipe(EntityPipe[CameraRecord]):
    entity = "Camera"
    record_schema = CameraRecord


class ViewPipe(EntityPipe[ViewRecord]):
    entity = "View"
    record_schema = ViewRecord
    references = (
        IndexReference("camera", "Camera", "Camera"),
        IndexReference("element", "Element", "Element"),
    )
