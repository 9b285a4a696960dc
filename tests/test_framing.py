import pytest

from jtdecode.cursor import ByteCursor
from jtdecode.errors import FormatError
from jtdecode.framing import ZIPPED_SEGMENT_TYPES, read_element_header, read_segment_header, read_toc
from jtdecode.guid import GROUP_NODE, GUID, PARTITION_NODE, describe

from jtwriter import JTWriter, LSG_SEGMENT

BODY = b"\x01\x02\x03\x04\x05\x06"


def test_guid_string_round_trip():
    guid = GUID.parse(PARTITION_NODE)
    assert guid.data1 == 0x10DD103E
    assert guid.data4 == (0x9B, 0x6B, 0x00, 0x80, 0xC7, 0xBB, 0x59, 0x97)
    assert str(guid) == PARTITION_NODE


def test_guid_parse_rejects_short_text():
    with pytest.raises(ValueError):
        GUID.parse("10dd103e-2ac8-11d1")


def test_guid_read_uses_cursor_byte_order():
    little = JTWriter(byteorder="<")
    cursor = ByteCursor(little.guid(GROUP_NODE))
    cursor.set_little_endian()
    assert str(GUID.read(cursor)) == GROUP_NODE


def test_describe_labels_known_unsupported_types():
    assert describe("873a70c0-2ac8-11d1-9b-6b-0-80-c7-bb-59-97").endswith("(JT B-Rep Element)")
    assert describe(GROUP_NODE) == GROUP_NODE


def test_plain_element_body_bounds():
    w = JTWriter()
    data = w.element(GROUP_NODE, BODY) + b"\xff"
    cursor = ByteCursor(data)
    element = read_element_header(cursor, zipped=False)
    assert str(element.type_id) == GROUP_NODE
    assert element.body_start == 21
    assert element.body_end == 21 + len(BODY)
    # the element ends four bytes after the declared length
    assert element.body_end == element.length + 4
    assert element.cursor is cursor
    assert not element.compressed


@pytest.mark.parametrize("algorithm", [2, 3])
def test_compressed_element_inflates_into_own_buffer(algorithm):
    w = JTWriter()
    data = w.compressed(w.element(GROUP_NODE, BODY), algorithm) + b"tail"
    cursor = ByteCursor(data)
    element = read_element_header(cursor, zipped=True)
    assert element.compressed
    assert element.cursor is not cursor
    assert str(element.type_id) == GROUP_NODE
    assert element.cursor.read_bytes(element.body_end - element.body_start) == BODY
    assert cursor.read_bytes(4) == b"tail"


def test_unknown_compression_pair_reads_plain():
    w = JTWriter()
    # flag 2 with the LZMA algorithm byte is not a known pair
    data = w.i32(2) + w.i32(1) + w.u8(3) + w.element(GROUP_NODE, BODY)
    cursor = ByteCursor(data)
    element = read_element_header(cursor, zipped=True)
    assert not element.compressed
    assert element.cursor is cursor
    assert cursor.read_bytes(len(BODY)) == BODY


def test_uncompressed_triplet():
    w = JTWriter()
    cursor = ByteCursor(w.uncompressed(w.element(GROUP_NODE, BODY)))
    element = read_element_header(cursor, zipped=True)
    assert element.body_start == 9 + 21


def test_impossible_length_is_rejected():
    w = JTWriter()
    data = w.i32(16) + w.guid(GROUP_NODE) + w.u8(0)
    with pytest.raises(FormatError):
        read_element_header(ByteCursor(data), zipped=False)


def test_zipped_segment_types():
    assert 1 in ZIPPED_SEGMENT_TYPES
    assert 4 in ZIPPED_SEGMENT_TYPES
    assert 6 not in ZIPPED_SEGMENT_TYPES


def test_segment_header():
    w = JTWriter()
    cursor = ByteCursor(w.guid(LSG_SEGMENT) + w.i32(1) + w.i32(120))
    header = read_segment_header(cursor)
    assert str(header.segment_id) == LSG_SEGMENT
    assert header.zipped
    assert header.length == 120


@pytest.mark.parametrize("version", ["9.5", "10.0"])
def test_toc_offset_width_follows_version(version):
    w = JTWriter(version)
    offset = w.u64(0xAB_0000_1234) if w.version >= 10.0 else w.i32(0x1234)
    data = w.i32(1) + w.guid(LSG_SEGMENT) + offset + w.i32(300) + w.u32(6 << 24)
    (entry,) = read_toc(ByteCursor(data), w.version)
    assert str(entry.segment_id) == LSG_SEGMENT
    # 64-bit offsets only keep their low 32 bits
    assert entry.offset == 0x1234
    assert entry.length == 300
    assert entry.segment_type == 6


def test_negative_toc_count():
    w = JTWriter()
    with pytest.raises(FormatError):
        read_toc(ByteCursor(w.i32(-1)), 9.5)
