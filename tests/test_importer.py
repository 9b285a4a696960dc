import struct

import pytest

import jtdecode.context
import jtdecode.importer
from jtdecode import (
    DuplicateObjectIdError,
    InvalidSegmentSizeError,
    JTImporter,
    LoadOptions,
    SignatureError,
    UnsupportedVersionError,
    load_file,
    parse_signature,
    write_load_report,
)
from jtdecode.errors import FormatError
from jtdecode.guid import (
    POINT_SET_SHAPE_NODE,
    POLYLINE_SET_SHAPE_NODE,
    TRI_STRIP_SET_SHAPE_LOD,
    TRI_STRIP_SET_SHAPE_NODE,
)

from jtwriter import (
    LSG_SEGMENT,
    META_SEGMENT,
    PART_ID,
    SEGMENT_LSG,
    SEGMENT_META,
    SEGMENT_SHAPE_LOD,
    JTWriter,
    part_document,
    translation,
)

TRIANGLE = [(0.0, 0.0, 0.0), (2.0, 0.0, 0.0), (0.0, 3.0, 0.0)]
SQUARE = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (1.0, 1.0, 0.0)]
UNKNOWN_ELEMENT = "12345678-1-2-3-4-5-6-7-8-9-a"
NEAR_SEGMENT = "beef0001-1-2-3-4-5-6-7-8-9-a"
FAR_SEGMENT = "beef0002-1-2-3-4-5-6-7-8-9-a"


def triangle_lod(w, vertices=TRIANGLE):
    if w.version < 9.0:
        return w.lod_v8([0, len(vertices)], vertices)
    return w.lod_v9([0, 3], [0, 1, 2], vertices, [0, -1, -1], [(0.0, 0.0, 1.0)])


def load(data, options=None, source="memory.jt"):
    importer = JTImporter(options)
    return importer.load_bytes(data, source), importer


def test_parse_signature_variants():
    assert parse_signature("Version 8.1 JT" + " " * 50) == ("8.1", " JT" + " " * 45)
    version, comment = parse_signature("Version 10.0 " + "x" * 45 + " \n\r\n ")
    assert version == "10.0"
    assert comment.strip() == "x" * 45


def test_not_a_jt_file():
    with pytest.raises(SignatureError):
        load(b"PK\x03\x04 definitely a zip archive".ljust(200, b"\0"))


@pytest.mark.parametrize("version", ["7.9", "11.0", "12.0"])
def test_unsupported_versions(version):
    w = JTWriter(version)
    importer = JTImporter()
    with pytest.raises(UnsupportedVersionError):
        importer.load_bytes(w.build_file([]))
    assert ("ERROR", f"Found unsupported JT major version: {float(version)}") in importer.context.load_information


def test_v95_document_with_material_and_transform():
    w = JTWriter("9.5")
    data = part_document(w, triangle_lod(w), diffuse=(0.0, 1.0, 0.0, 1.0), transform=translation(0.0, 0.0, 5.0))
    model, importer = load(data)

    assert model.version == 9.5
    assert model.version_string == "9.5"
    assert model.load_information[0] == ("JT File Version", "9.5")
    assert importer.context.warnings == []
    (batch,) = model.faces["Bracket"]
    assert batch.indices.tolist() == [[0, 1, 2]]
    assert batch.vertices.tolist() == [[0.0, 0.0, 5.0], [2.0, 0.0, 5.0], [0.0, 3.0, 5.0]]
    assert batch.normals.tolist() == [[0.0, 0.0, 1.0]] * 3
    assert batch.colors.tolist() == [[0.0, 1.0, 0.0]]
    assert model.extreme_values == ((0.0, 0.0, 5.0), (2.0, 3.0, 5.0))
    assert model.scene.lsg_as_string().splitlines()[1] == '    Part[2] "Bracket.part;1"'


def test_v80_document_uses_strip_ranges():
    w = JTWriter("8.0")
    model, importer = load(part_document(w, w.lod_v8([0, 4], SQUARE)))
    assert model.version == 8.0
    (batch,) = model.faces["Bracket"]
    assert batch.indices.tolist() == [[0, 1, 2], [1, 2, 3]]
    # one default color per face
    assert batch.colors.tolist() == [[1.0, 1.0, 1.0]] * 2


def test_v105_little_endian_lzma_document():
    w = JTWriter("10.5", byteorder="<")
    data = part_document(w, triangle_lod(w), algorithm=3, transform=translation(1.0, 0.0, 0.0))
    model, importer = load(data)
    assert model.version == 10.5
    (batch,) = model.faces["Bracket"]
    assert batch.vertices[:, 0].tolist() == [1.0, 3.0, 1.0]
    assert importer.context.warnings == []


def test_plain_lsg_segment():
    w = JTWriter()
    model, _ = load(part_document(w, triangle_lod(w), algorithm=None, name=None))
    assert model.triangle_count == 1
    assert list(model.faces) == ["0"]


def test_polyline_and_point_documents():
    w = JTWriter()
    lines = w.lod_v9([0, 2, 4], [0, 1, 2, 3], SQUARE)
    model, _ = load(part_document(w, lines, shape_type=POLYLINE_SET_SHAPE_NODE))
    assert model.polyline_count == 2

    cloud = w.lod_v9([0, 3], [0, 1, 2], SQUARE)
    model, _ = load(part_document(w, cloud, shape_type=POINT_SET_SHAPE_NODE))
    assert model.point_count == 3


def test_range_lod_only_uses_first_child():
    w = JTWriter()
    graph = [
        w.range_lod_node(4, [5, 6], [10.0]),
        w.shape_node(TRI_STRIP_SET_SHAPE_NODE, 5),
        w.shape_node(TRI_STRIP_SET_SHAPE_NODE, 6),
    ]
    properties = [
        w.string_atom(102, "JT_LLPROP_SHAPEIMPL"),
        w.late_loaded_atom(103, NEAR_SEGMENT),
        w.late_loaded_atom(104, FAR_SEGMENT),
    ]
    stream = w.partition_stream(w.partition_node(1, [4]), graph, properties, {5: [(102, 103)], 6: [(102, 104)]})
    data = w.build_file(
        [
            (LSG_SEGMENT, SEGMENT_LSG, w.compressed(stream)),
            (NEAR_SEGMENT, SEGMENT_SHAPE_LOD, w.element(TRI_STRIP_SET_SHAPE_LOD, triangle_lod(w))),
            (FAR_SEGMENT, SEGMENT_SHAPE_LOD, w.element(TRI_STRIP_SET_SHAPE_LOD, triangle_lod(w, SQUARE[1:]))),
        ]
    )
    model, _ = load(data)
    (batch,) = model.faces["0"]
    assert batch.vertices.tolist() == [list(vertex) for vertex in TRIANGLE]


def test_late_loaded_meta_data_segment():
    w = JTWriter()
    meta = w.uncompressed(w.property_meta_data({"Material": "Steel", "Revision": 2}))
    data = part_document(
        w,
        triangle_lod(w),
        extra_properties=[w.string_atom(110, "JT_LLPROP_METADATA"), w.late_loaded_atom(111, META_SEGMENT, 4)],
        extra_table={PART_ID: [(110, 111)]},
        extra_segments=[(META_SEGMENT, SEGMENT_META, meta)],
    )
    model, importer = load(data)
    (part,) = model.scene.find(PART_ID)
    assert part.late_loaded == {"Material": "Steel", "Revision": 2}
    # the meta data atom is not mistaken for geometry
    assert model.triangle_count == 1
    assert importer.context.warnings == []


def test_duplicate_object_id():
    w = JTWriter()
    importer = JTImporter()
    with pytest.raises(DuplicateObjectIdError):
        importer.load_bytes(part_document(w, triangle_lod(w), extra_graph=[w.group_node(PART_ID)]))
    assert ("ERROR", "Found duplicate ObjectId: 2") in importer.context.load_information


def test_duplicate_toc_entry_for_root_segment():
    w = JTWriter()
    model, _ = load(part_document(w, triangle_lod(w), duplicate_toc=[LSG_SEGMENT]))
    assert model.triangle_count == 1


def test_first_partition_is_root_without_designated_root():
    w = JTWriter()
    model, _ = load(part_document(w, triangle_lod(w), reserved=1))
    assert model.scene.root_node.object_id == 1
    assert model.triangle_count == 1


def test_unknown_elements_are_skipped_and_recorded():
    w = JTWriter()
    data = part_document(
        w,
        triangle_lod(w),
        extra_graph=[w.element(UNKNOWN_ELEMENT, b"\0" * 12)],
        extra_properties=[w.element(UNKNOWN_ELEMENT, b"\0" * 3)],
    )
    model, _ = load(data)
    assert model.unsupported_entities == [UNKNOWN_ELEMENT]
    assert model.triangle_count == 1


def test_invalid_date_property():
    w = JTWriter()
    model, importer = load(part_document(w, triangle_lod(w), extra_properties=[w.date_atom(300, (2021, 13, 1, 0, 0, 0))]))
    assert importer.context.warnings == ["At least 1 date property on file memory.jt is invalid"]
    assert model.triangle_count == 1


def test_element_reading_past_its_length():
    w = JTWriter()
    broken = w.adjust_length(w.material(30, (1.0, 1.0, 1.0, 1.0)), -4)
    with pytest.raises(InvalidSegmentSizeError):
        load(part_document(w, triangle_lod(w), extra_graph=[broken]))


def test_undecodable_lod_is_a_warning():
    w = JTWriter()
    truncated = w.lv() + w.lv() + w.i16(1) + w.u64(0) + bytes(4) + w.u8(0) + w.i32(1_000_000)
    model, importer = load(part_document(w, truncated))
    assert model.faces == {}
    (warning,) = importer.context.warnings
    assert warning.startswith("Failed decoding node element: Bracket (")


@pytest.mark.parametrize("error", [IndexError("list index out of range"), struct.error("unpack requires a buffer")])
def test_stray_decoding_error_only_skips_the_shape(monkeypatch, error):
    def broken(*args):
        raise error

    monkeypatch.setattr(jtdecode.importer, "read_shape_lod", broken)
    w = JTWriter()
    model, importer = load(part_document(w, triangle_lod(w)))
    assert model.faces == {}
    assert len(model.scene) == 3
    assert importer.context.warnings == [f"Failed decoding node element: Bracket ({error})"]


def test_unsupported_codec_is_a_warning():
    w = JTWriter()
    huffman = w.lv() + w.lv() + w.i16(1) + w.u64(0) + bytes(4) + w.u8(2)
    model, importer = load(part_document(w, huffman))
    assert importer.context.warnings == ["Unsupported codec: Huffman"]


def test_missing_lod_segment():
    w = JTWriter()
    model, importer = load(part_document(w, triangle_lod(w), lod_segment=None))
    assert model.faces == {}
    (warning,) = importer.context.warnings
    assert warning.startswith("Missing LOD element")


def test_empty_lod():
    w = JTWriter()
    model, importer = load(part_document(w, w.lod_v9([], [], [])))
    assert importer.context.warnings == ["Found empty element! (Bracket)"]


def test_skip_geometry():
    w = JTWriter()
    model, _ = load(part_document(w, triangle_lod(w)), LoadOptions(skip_geometry=True))
    assert model.faces == {}
    assert len(model.scene) == 3


class RecordingProgress:
    def __init__(self):
        self.values = []

    def progress_changed(self, percent):
        self.values.append(percent)


def test_progress_listener(monkeypatch):
    monkeypatch.setattr(jtdecode.context, "PROGRESS_UPDATE_FREQUENCY", 1)
    listener = RecordingProgress()
    w = JTWriter()
    load(part_document(w, triangle_lod(w)), LoadOptions(progress_listeners=[listener]))
    assert listener.values
    assert all(0 <= value <= 100 for value in listener.values)


def test_load_file_and_report(tmp_path):
    w = JTWriter()
    path = tmp_path / "bracket.jt"
    path.write_bytes(part_document(w, triangle_lod(w), extra_graph=[w.element(UNKNOWN_ELEMENT, b"")]))
    model = load_file(path)
    assert model.triangle_count == 1

    report = tmp_path / "out" / "report.txt"
    write_load_report(model, report)
    text = report.read_text(encoding="utf-8")
    assert "[model]" in text
    assert "JT File Version" in text
    assert f"  {UNKNOWN_ELEMENT}" in text
    assert '    Part[2] "Bracket.part;1"' in text


def test_load_file_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_file(tmp_path / "missing.jt")
    empty = tmp_path / "empty.jt"
    empty.write_bytes(b"")
    with pytest.raises(FormatError):
        load_file(empty)
