"""
Readers for the logical scene graph elements found in a partition's
graph-element run.  Every reader starts right after the element header and
returns an immutable element keyed by its object id; the caller owns the
cursor bookkeeping between elements.
"""

from __future__ import annotations

from typing import Callable, Dict, Tuple, Union

from .cursor import ByteCursor
from .entities import (
    AttributeElement,
    GeometricTransformAttribute,
    GroupNode,
    InstanceNode,
    LineStyleAttribute,
    LSGElement,
    MaterialAttribute,
    MetaDataNode,
    PartitionNode,
    PartNode,
    PointSetShapeNode,
    PolylineSetShapeNode,
    RangeLODNode,
    TriStripSetShapeNode,
)
from .errors import FormatError
from .guid import (
    GEOMETRIC_TRANSFORM_ATTRIBUTE,
    GROUP_NODE,
    INSTANCE_NODE,
    LINE_STYLE_ATTRIBUTE,
    MATERIAL_ATTRIBUTE,
    META_DATA_NODE,
    PART_NODE,
    PARTITION_NODE,
    POINT_SET_SHAPE_NODE,
    POLYLINE_SET_SHAPE_NODE,
    RANGE_LOD_NODE,
    TRI_STRIP_SET_SHAPE_NODE,
)

IDENTITY = (
    1.0, 0.0, 0.0, 0.0,
    0.0, 1.0, 0.0, 0.0,
    0.0, 0.0, 1.0, 0.0,
    0.0, 0.0, 0.0, 1.0,
)

PARTITION_HAS_UNTRANSFORMED_BBOX = 0x1

ElementReader = Callable[[ByteCursor, float, int], Union[LSGElement, AttributeElement]]


def _read_base_node(cursor: ByteCursor, version: float) -> Tuple[int, int, Tuple[int, ...]]:
    object_id = cursor.read_i32()
    cursor.read_local_version(version)
    node_flags = cursor.read_u32()
    attribute_ids = tuple(cursor.read_vec_i32())
    return object_id, node_flags, attribute_ids


def _read_group_node(cursor: ByteCursor, version: float) -> Tuple[int, int, Tuple[int, ...], Tuple[int, ...]]:
    object_id, node_flags, attribute_ids = _read_base_node(cursor, version)
    cursor.read_local_version(version)
    child_ids = tuple(cursor.read_vec_i32())
    return object_id, node_flags, attribute_ids, child_ids


def read_group_node(cursor: ByteCursor, version: float, element_end: int) -> GroupNode:
    return GroupNode(*_read_group_node(cursor, version))


def read_meta_data_node(cursor: ByteCursor, version: float, element_end: int) -> MetaDataNode:
    data = _read_group_node(cursor, version)
    cursor.read_local_version(version)
    return MetaDataNode(*data)


def read_part_node(cursor: ByteCursor, version: float, element_end: int) -> PartNode:
    data = _read_group_node(cursor, version)
    cursor.read_local_version(version)
    cursor.read_local_version(version)
    return PartNode(*data, reserved=cursor.read_i32())


def read_instance_node(cursor: ByteCursor, version: float, element_end: int) -> InstanceNode:
    object_id, node_flags, attribute_ids = _read_base_node(cursor, version)
    cursor.read_local_version(version)
    child_id = cursor.read_i32()
    return InstanceNode(object_id, node_flags, attribute_ids, (child_id,))


def read_range_lod_node(cursor: ByteCursor, version: float, element_end: int) -> RangeLODNode:
    data = _read_group_node(cursor, version)
    # LOD node data
    cursor.read_local_version(version)
    cursor.read_vec_f32()
    cursor.read_i32()
    cursor.read_local_version(version)
    range_limits = tuple(cursor.read_vec_f32())
    center = cursor.read_coord_f32()
    return RangeLODNode(*data, range_limits=range_limits, center=center)


def read_partition_node(cursor: ByteCursor, version: float, element_end: int) -> PartitionNode:
    data = _read_group_node(cursor, version)
    if version >= 10.0:
        local_version = cursor.read_u8()
        if local_version > 10:
            raise FormatError(f"Found invalid version number: {local_version}")
    partition_flags = cursor.read_i32()
    file_name = cursor.read_mb_string()
    bbox = cursor.read_bbox_f32()
    area = cursor.read_f32()
    vertex_count_range = cursor.read_range()
    node_count_range = cursor.read_range()
    polygon_count_range = cursor.read_range()
    untransformed_bbox = None
    if partition_flags & PARTITION_HAS_UNTRANSFORMED_BBOX and element_end - cursor.position >= 24:
        untransformed_bbox = cursor.read_bbox_f32()
        low, high = untransformed_bbox
        if any(high[axis] < low[axis] for axis in range(3)):
            untransformed_bbox = None
    return PartitionNode(
        *data,
        partition_flags=partition_flags,
        file_name=file_name,
        bbox=bbox,
        area=area,
        vertex_count_range=vertex_count_range,
        node_count_range=node_count_range,
        polygon_count_range=polygon_count_range,
        untransformed_bbox=untransformed_bbox,
    )


def _read_shape_node(cursor: ByteCursor, version: float) -> dict:
    object_id, node_flags, attribute_ids = _read_base_node(cursor, version)
    cursor.read_local_version(version)
    fields = dict(
        object_id=object_id,
        node_flags=node_flags,
        attribute_ids=attribute_ids,
        child_ids=(),
        bbox=cursor.read_bbox_f32(),
        untransformed_bbox=cursor.read_bbox_f32(),
        area=cursor.read_f32(),
        vertex_count_range=cursor.read_range(),
        node_count_range=cursor.read_range(),
        polygon_count_range=cursor.read_range(),
        size=cursor.read_i32(),
        compression_level=cursor.read_f32(),
    )
    # vertex shape data
    cursor.read_local_version(version)
    fields["quantization_bits"] = tuple(cursor.read_bytes(4))
    return fields


def read_tri_strip_set_shape_node(cursor: ByteCursor, version: float, element_end: int) -> TriStripSetShapeNode:
    return TriStripSetShapeNode(**_read_shape_node(cursor, version))


def read_polyline_set_shape_node(cursor: ByteCursor, version: float, element_end: int) -> PolylineSetShapeNode:
    fields = _read_shape_node(cursor, version)
    cursor.read_local_version(version)
    return PolylineSetShapeNode(**fields, area_factor=cursor.read_f32())


def read_point_set_shape_node(cursor: ByteCursor, version: float, element_end: int) -> PointSetShapeNode:
    fields = _read_shape_node(cursor, version)
    cursor.read_local_version(version)
    return PointSetShapeNode(**fields, area_factor=cursor.read_f32())


def _read_base_attribute(cursor: ByteCursor, version: float) -> Tuple[int, int, int]:
    object_id = cursor.read_i32()
    cursor.read_local_version(version)
    state_flags = cursor.read_u8()
    field_inhibit_flags = cursor.read_u32()
    if version >= 10.0:
        cursor.read_u32()  # field final flags
    return object_id, state_flags, field_inhibit_flags


def _read_rgba(cursor: ByteCursor) -> Tuple[float, float, float, float]:
    r, g, b, a = cursor.read_array("f", 4)
    return (r, g, b, a)


def read_material_attribute(cursor: ByteCursor, version: float, element_end: int) -> MaterialAttribute:
    base = _read_base_attribute(cursor, version)
    cursor.read_local_version(version)
    data_flags = cursor.read_u16()
    ambient = _read_rgba(cursor)
    diffuse = _read_rgba(cursor)
    specular = _read_rgba(cursor)
    emission = _read_rgba(cursor)
    shininess = cursor.read_f32()
    if version >= 10.0:
        cursor.read_f32()  # reflectivity
    return MaterialAttribute(
        *base,
        data_flags=data_flags,
        ambient=ambient,
        diffuse=diffuse,
        specular=specular,
        emission=emission,
        shininess=shininess,
    )


def read_geometric_transform_attribute(
    cursor: ByteCursor, version: float, element_end: int
) -> GeometricTransformAttribute:
    base = _read_base_attribute(cursor, version)
    cursor.read_local_version(version)
    mask = cursor.read_u16()
    stored = bin(mask).count("1")
    width = 8 if version >= 10.0 else 4
    if cursor.position + stored * width > element_end:
        raise FormatError(
            f"Transform {base[0]} stores {stored} values but only {element_end - cursor.position} bytes remain"
        )
    elements = list(IDENTITY)
    for index in range(16):
        if mask & (0x8000 >> index):
            elements[index] = cursor.read_f64() if width == 8 else cursor.read_f32()
    return GeometricTransformAttribute(*base, stored_values_mask=mask, elements=tuple(elements))


def read_line_style_attribute(cursor: ByteCursor, version: float, element_end: int) -> LineStyleAttribute:
    base = _read_base_attribute(cursor, version)
    cursor.read_local_version(version)
    data_flags = cursor.read_i32()
    return LineStyleAttribute(*base, data_flags=data_flags, line_width=cursor.read_f32())


GRAPH_READERS: Dict[str, ElementReader] = {
    GROUP_NODE: read_group_node,
    META_DATA_NODE: read_meta_data_node,
    PART_NODE: read_part_node,
    INSTANCE_NODE: read_instance_node,
    RANGE_LOD_NODE: read_range_lod_node,
    PARTITION_NODE: read_partition_node,
    TRI_STRIP_SET_SHAPE_NODE: read_tri_strip_set_shape_node,
    POLYLINE_SET_SHAPE_NODE: read_polyline_set_shape_node,
    POINT_SET_SHAPE_NODE: read_point_set_shape_node,
    MATERIAL_ATTRIBUTE: read_material_attribute,
    GEOMETRIC_TRANSFORM_ATTRIBUTE: read_geometric_transform_attribute,
    LINE_STYLE_ATTRIBUTE: read_line_style_attribute,
}
