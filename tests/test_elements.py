from datetime import datetime, timezone

import pytest

from jtdecode.cursor import ByteCursor
from jtdecode.elements import (
    GRAPH_READERS,
    IDENTITY,
    read_geometric_transform_attribute,
    read_partition_node,
)
from jtdecode.entities import ATTRIBUTE_KINDS, ElementKind, MaterialAttribute
from jtdecode.errors import FormatError, MalformedDateError
from jtdecode.framing import read_plain_element_header
from jtdecode.guid import LINE_STYLE_ATTRIBUTE, POLYLINE_SET_SHAPE_NODE, RANGE_LOD_NODE
from jtdecode.properties import PROPERTY_READERS, read_pmi_meta_data, read_property_meta_data, read_property_table

from jtwriter import JTWriter, translation


def read_element(w: JTWriter, data: bytes, readers=GRAPH_READERS):
    cursor = ByteCursor(data, byteorder=w.order)
    header = read_plain_element_header(cursor)
    reader = readers[str(header.type_id)]
    if readers is GRAPH_READERS:
        element = reader(cursor, w.version, header.body_end)
    else:
        element = reader(cursor, w.version)
    assert cursor.position == header.body_end
    return element


@pytest.mark.parametrize("version", ["8.1", "9.5", "10.5"])
def test_part_and_instance_nodes(version):
    w = JTWriter(version)
    part = read_element(w, w.part_node(7, [8, 9], [20]))
    assert part.kind is ElementKind.PART
    assert part.child_ids == (8, 9)
    assert part.attribute_ids == (20,)

    instance = read_element(w, w.instance_node(5, 7))
    assert instance.kind is ElementKind.INSTANCE
    assert instance.child_ids == (7,)


@pytest.mark.parametrize("version", ["9.5", "10.5"])
def test_partition_node_with_file_name(version):
    w = JTWriter(version)
    partition = read_element(w, w.partition_node(1, [2], file_name="sub/wheel.jt"))
    assert partition.kind is ElementKind.PARTITION
    assert partition.file_name == "sub/wheel.jt"
    assert partition.untransformed_bbox is None


def test_partition_untransformed_bbox():
    w = JTWriter()
    partition = read_element(w, w.partition_node(1, untransformed=((0.0, 0.0, 0.0), (2.0, 3.0, 4.0))))
    assert partition.untransformed_bbox == ((0.0, 0.0, 0.0), (2.0, 3.0, 4.0))


def test_inverted_untransformed_bbox_is_dropped():
    w = JTWriter()
    partition = read_element(w, w.partition_node(1, untransformed=((0.0, 5.0, 0.0), (2.0, 3.0, 4.0))))
    assert partition.untransformed_bbox is None


def test_partition_flag_without_room_for_bbox():
    w = JTWriter()
    body = w.partition_body(1, untransformed=((0.0, 0.0, 0.0), (1.0, 1.0, 1.0)))[:-24]
    cursor = ByteCursor(body)
    partition = read_partition_node(cursor, w.version, len(body))
    assert partition.partition_flags == 1
    assert partition.untransformed_bbox is None
    assert cursor.remaining == 0


def test_partition_rejects_newer_local_version():
    w = JTWriter("10.5")
    body = bytearray(w.partition_body(1))
    # local version byte sits after the group data
    body[len(w.group_data(1))] = 11
    with pytest.raises(FormatError):
        read_partition_node(ByteCursor(bytes(body)), w.version, len(body))


def test_range_lod_node():
    w = JTWriter()
    node = read_element(w, w.range_lod_node(4, [5, 6], [10.0, 100.0]))
    assert node.kind is ElementKind.RANGE_LOD
    assert node.range_limits == (10.0, 100.0)
    assert RANGE_LOD_NODE in GRAPH_READERS


def test_polyline_shape_node():
    w = JTWriter("10.5")
    node = read_element(w, w.shape_node(POLYLINE_SET_SHAPE_NODE, 3, [20]))
    assert node.kind is ElementKind.POLYLINE_SET
    assert node.child_ids == ()
    assert node.area_factor == 1.0


@pytest.mark.parametrize("version", ["9.5", "10.5"])
def test_material_attribute(version):
    w = JTWriter(version)
    material = read_element(w, w.material(20, (0.25, 0.5, 0.75, 1.0)))
    assert isinstance(material, MaterialAttribute)
    assert material.diffuse == (0.25, 0.5, 0.75, 1.0)
    assert material.kind in ATTRIBUTE_KINDS


@pytest.mark.parametrize("version", ["9.5", "10.5"])
def test_full_transform(version):
    w = JTWriter(version)
    transform = read_element(w, w.transform(21, translation(1.0, 2.0, 3.0)))
    assert transform.elements[12:15] == (1.0, 2.0, 3.0)


def test_partial_transform_mask_fills_identity():
    w = JTWriter()
    values = [0.0] * 16
    values[12] = 4.0
    # only the x translation is stored
    transform = read_element(w, w.transform(21, values, mask=0x8000 >> 12))
    expected = list(IDENTITY)
    expected[12] = 4.0
    assert transform.elements == tuple(expected)


def test_transform_values_past_element_end():
    w = JTWriter()
    element = w.transform(21, translation(1.0, 0.0, 0.0))
    body = element[21:-8]
    with pytest.raises(FormatError):
        read_geometric_transform_attribute(ByteCursor(body), w.version, len(body))


def test_line_style_attribute():
    w = JTWriter()
    style = read_element(w, w.line_style(22, 2.5))
    assert style.object_id == 22
    assert style.line_width == 2.5
    assert LINE_STYLE_ATTRIBUTE in GRAPH_READERS


@pytest.mark.parametrize("version", ["8.1", "9.5", "10.5"])
def test_property_atoms(version):
    w = JTWriter(version)
    assert read_element(w, w.string_atom(100, "JT_PROP_NAME"), PROPERTY_READERS).value == "JT_PROP_NAME"
    assert read_element(w, w.integer_atom(101, -3), PROPERTY_READERS).value == -3
    assert read_element(w, w.float_atom(102, 0.5), PROPERTY_READERS).value == 0.5
    date = read_element(w, w.date_atom(103, (2020, 2, 29, 12, 0, 0)), PROPERTY_READERS)
    assert date.value == datetime(2020, 2, 29, 12, 0, 0, tzinfo=timezone.utc)


def test_late_loaded_atom():
    w = JTWriter()
    atom = read_element(w, w.late_loaded_atom(104, "a0a0a0a0-b1b1-c2c2-d3-e4-f5-6-17-28-39-4a"), PROPERTY_READERS)
    assert atom.kind is ElementKind.LATE_LOADED_PROPERTY
    assert atom.segment_id == "a0a0a0a0-b1b1-c2c2-d3-e4-f5-6-17-28-39-4a"
    assert atom.segment_type == 6


def test_invalid_date_atom():
    w = JTWriter()
    with pytest.raises(MalformedDateError):
        read_element(w, w.date_atom(103, (2020, 2, 30, 12, 0, 0)), PROPERTY_READERS)


def test_property_table():
    w = JTWriter()
    table = read_property_table(ByteCursor(w.property_table({2: [(100, 101), (102, 103)], 3: []})), w.version)
    assert table == {2: [(100, 101), (102, 103)], 3: []}


@pytest.mark.parametrize("version", ["8.1", "9.5"])
def test_property_meta_data(version):
    w = JTWriter(version)
    data = w.property_meta_data(
        {"Material": "Steel", "Revision": 4, "Mass": 2.5, "Released": (2019, 6, 1, 8, 30, 0)}
    )
    cursor = ByteCursor(data)
    read_plain_element_header(cursor)
    meta = read_property_meta_data(cursor, w.version)
    assert meta.properties == {
        "Material": "Steel",
        "Revision": 4,
        "Mass": 2.5,
        "Released": datetime(2019, 6, 1, 8, 30, 0, tzinfo=timezone.utc),
    }
    assert meta.object_id == (900 if w.version >= 9.0 else -1)


def test_property_meta_data_unknown_value_type():
    w = JTWriter()
    body = w.i32(900) + w.lv() + w.mb_string("Key") + w.u8(9)
    with pytest.raises(FormatError):
        read_property_meta_data(ByteCursor(body), w.version)


def test_pmi_meta_data_header():
    w = JTWriter()
    meta = read_pmi_meta_data(ByteCursor(w.i16(5) + w.i16(0)), w.version)
    assert meta.kind is ElementKind.PMI_META_DATA
    assert meta.version == 5

    with pytest.raises(FormatError):
        read_pmi_meta_data(ByteCursor(w.i16(11) + w.i16(0)), w.version)
