from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Dict, Optional, Tuple, Union

from .cursor import BBox


class ElementKind(enum.Enum):
    GROUP = "Group"
    META_DATA = "MetaData"
    PART = "Part"
    INSTANCE = "Instance"
    RANGE_LOD = "RangeLOD"
    PARTITION = "Partition"
    TRI_STRIP_SET = "TriStripSet"
    POLYLINE_SET = "PolylineSet"
    POINT_SET = "PointSet"
    MATERIAL = "Material"
    GEOMETRIC_TRANSFORM = "GeometricTransform"
    LINE_STYLE = "LineStyle"
    STRING_PROPERTY = "StringProperty"
    INTEGER_PROPERTY = "IntegerProperty"
    FLOAT32_PROPERTY = "Float32Property"
    DATE_PROPERTY = "DateProperty"
    LATE_LOADED_PROPERTY = "LateLoadedProperty"
    PROPERTY_META_DATA = "PropertyMetaData"
    PMI_META_DATA = "PMIMetaData"
    UNSUPPORTED = "Unsupported"


SHAPE_KINDS = frozenset({ElementKind.TRI_STRIP_SET, ElementKind.POLYLINE_SET, ElementKind.POINT_SET})
LSG_NODE_KINDS = frozenset(
    {
        ElementKind.GROUP,
        ElementKind.META_DATA,
        ElementKind.PART,
        ElementKind.INSTANCE,
        ElementKind.RANGE_LOD,
        ElementKind.PARTITION,
    }
) | SHAPE_KINDS
ATTRIBUTE_KINDS = frozenset({ElementKind.MATERIAL, ElementKind.GEOMETRIC_TRANSFORM, ElementKind.LINE_STYLE})
PROPERTY_KINDS = frozenset(
    {
        ElementKind.STRING_PROPERTY,
        ElementKind.INTEGER_PROPERTY,
        ElementKind.FLOAT32_PROPERTY,
        ElementKind.DATE_PROPERTY,
        ElementKind.LATE_LOADED_PROPERTY,
    }
)
# ancestors whose names make up a layer name
NAMED_KINDS = frozenset({ElementKind.META_DATA, ElementKind.INSTANCE, ElementKind.PART, ElementKind.PARTITION})

RGBA = Tuple[float, float, float, float]


@dataclass(frozen=True)
class LSGElement:
    kind: ClassVar[ElementKind]
    object_id: int
    node_flags: int
    attribute_ids: Tuple[int, ...]
    child_ids: Tuple[int, ...]

    @property
    def type_name(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class GroupNode(LSGElement):
    kind: ClassVar[ElementKind] = ElementKind.GROUP


@dataclass(frozen=True)
class MetaDataNode(LSGElement):
    kind: ClassVar[ElementKind] = ElementKind.META_DATA


@dataclass(frozen=True)
class PartNode(LSGElement):
    kind: ClassVar[ElementKind] = ElementKind.PART
    reserved: int


@dataclass(frozen=True)
class InstanceNode(LSGElement):
    kind: ClassVar[ElementKind] = ElementKind.INSTANCE


@dataclass(frozen=True)
class RangeLODNode(LSGElement):
    kind: ClassVar[ElementKind] = ElementKind.RANGE_LOD
    range_limits: Tuple[float, ...]
    center: Tuple[float, float, float]


@dataclass(frozen=True)
class PartitionNode(LSGElement):
    kind: ClassVar[ElementKind] = ElementKind.PARTITION
    partition_flags: int
    file_name: Optional[str]
    bbox: BBox
    area: float
    vertex_count_range: Tuple[int, int]
    node_count_range: Tuple[int, int]
    polygon_count_range: Tuple[int, int]
    untransformed_bbox: Optional[BBox]


@dataclass(frozen=True)
class ShapeNode(LSGElement):
    bbox: BBox
    untransformed_bbox: BBox
    area: float
    vertex_count_range: Tuple[int, int]
    node_count_range: Tuple[int, int]
    polygon_count_range: Tuple[int, int]
    size: int
    compression_level: float
    quantization_bits: Tuple[int, int, int, int]


@dataclass(frozen=True)
class TriStripSetShapeNode(ShapeNode):
    kind: ClassVar[ElementKind] = ElementKind.TRI_STRIP_SET


@dataclass(frozen=True)
class PolylineSetShapeNode(ShapeNode):
    kind: ClassVar[ElementKind] = ElementKind.POLYLINE_SET
    area_factor: float


@dataclass(frozen=True)
class PointSetShapeNode(ShapeNode):
    kind: ClassVar[ElementKind] = ElementKind.POINT_SET
    area_factor: float


@dataclass(frozen=True)
class AttributeElement:
    kind: ClassVar[ElementKind]
    object_id: int
    state_flags: int
    field_inhibit_flags: int

    @property
    def type_name(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class MaterialAttribute(AttributeElement):
    kind: ClassVar[ElementKind] = ElementKind.MATERIAL
    data_flags: int
    ambient: RGBA
    diffuse: RGBA
    specular: RGBA
    emission: RGBA
    shininess: float


@dataclass(frozen=True)
class GeometricTransformAttribute(AttributeElement):
    """``elements`` is the stored 4x4 matrix, row-major, row-vector convention."""

    kind: ClassVar[ElementKind] = ElementKind.GEOMETRIC_TRANSFORM
    stored_values_mask: int
    elements: Tuple[float, ...]


@dataclass(frozen=True)
class LineStyleAttribute(AttributeElement):
    kind: ClassVar[ElementKind] = ElementKind.LINE_STYLE
    data_flags: int
    line_width: float


@dataclass(frozen=True)
class PropertyAtom:
    kind: ClassVar[ElementKind]
    object_id: int
    state_flags: int

    @property
    def type_name(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class StringPropertyAtom(PropertyAtom):
    kind: ClassVar[ElementKind] = ElementKind.STRING_PROPERTY
    value: Optional[str]


@dataclass(frozen=True)
class IntegerPropertyAtom(PropertyAtom):
    kind: ClassVar[ElementKind] = ElementKind.INTEGER_PROPERTY
    value: int


@dataclass(frozen=True)
class Float32PropertyAtom(PropertyAtom):
    kind: ClassVar[ElementKind] = ElementKind.FLOAT32_PROPERTY
    value: float


@dataclass(frozen=True)
class DatePropertyAtom(PropertyAtom):
    kind: ClassVar[ElementKind] = ElementKind.DATE_PROPERTY
    value: datetime


@dataclass(frozen=True)
class LateLoadedPropertyAtom(PropertyAtom):
    kind: ClassVar[ElementKind] = ElementKind.LATE_LOADED_PROPERTY
    segment_id: str
    segment_type: int
    payload_object_id: int


MetaValue = Union[str, int, float, datetime]


@dataclass(frozen=True)
class PropertyMetaData:
    kind: ClassVar[ElementKind] = ElementKind.PROPERTY_META_DATA
    object_id: int
    properties: Dict[str, MetaValue]


@dataclass(frozen=True)
class PMIMetaData:
    kind: ClassVar[ElementKind] = ElementKind.PMI_META_DATA
    object_id: int
    version: int


@dataclass(frozen=True)
class UnsupportedElement:
    kind: ClassVar[ElementKind] = ElementKind.UNSUPPORTED
    type_id: str


JTElement = Union[LSGElement, AttributeElement, PropertyAtom]
SegmentObject = Union[PropertyMetaData, PMIMetaData]
