"""
Segment, element and table-of-contents framing.

A JT file is a table of contents pointing at independently framed segments.
Each segment starts with a header and one root element; for the segment
types listed in ``ZIPPED_SEGMENT_TYPES`` every element carries its own
compression triplet and the element body lives in a freshly inflated buffer.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional

from .cursor import ByteCursor
from .errors import FormatError
from .guid import GUID
from .inflate_io import ALGORITHM_LZMA, ALGORITHM_ZLIB, inflate

ZIPPED_SEGMENT_TYPES = frozenset({1, 2, 3, 4, 17, 18, 20, 24})

# I32 length + GUID + U8 base type
ELEMENT_HEADER_SIZE = 21
# bytes covered by the length field that belong to the header (GUID + base type)
LENGTH_HEADER_OVERLAP = ELEMENT_HEADER_SIZE - 4

ProgressHook = Optional[Callable[[int], None]]


@dataclass(frozen=True)
class TOCEntry:
    segment_id: GUID
    offset: int
    length: int
    attributes: int

    @property
    def segment_type(self) -> int:
        return self.attributes >> 24


@dataclass(frozen=True)
class SegmentHeader:
    segment_id: GUID
    segment_type: int
    length: int

    @property
    def zipped(self) -> bool:
        return self.segment_type in ZIPPED_SEGMENT_TYPES


@dataclass(frozen=True)
class ElementHeader:
    length: int
    type_id: GUID
    base_type: int
    cursor: ByteCursor
    body_start: int
    compressed_length: int = 0

    @property
    def compressed(self) -> bool:
        return self.compressed_length > 0

    @property
    def body_end(self) -> int:
        return self.body_start + self.length - LENGTH_HEADER_OVERLAP

    def __post_init__(self) -> None:
        if self.length < LENGTH_HEADER_OVERLAP:
            raise FormatError(f"Element {self.type_id} declares impossible length {self.length}")


def read_toc(cursor: ByteCursor, file_version: float) -> List[TOCEntry]:
    count = cursor.read_i32()
    if count < 0:
        raise FormatError(f"Negative TOC entry count {count}")
    entries: List[TOCEntry] = []
    for _ in range(count):
        segment_id = GUID.read(cursor)
        if file_version >= 10.0:
            offset = cursor.read_u64() & 0xFFFFFFFF
        else:
            offset = cursor.read_i32()
        length = cursor.read_i32()
        attributes = cursor.read_u32()
        entries.append(TOCEntry(segment_id, offset, length, attributes))
    return entries


def read_segment_header(cursor: ByteCursor) -> SegmentHeader:
    segment_id = GUID.read(cursor)
    segment_type = cursor.read_i32()
    length = cursor.read_i32()
    return SegmentHeader(segment_id, segment_type, length)


def read_plain_element_header(cursor: ByteCursor, progress: ProgressHook = None) -> ElementHeader:
    length = cursor.read_i32()
    type_id = GUID.read(cursor)
    base_type = cursor.read_u8()
    if progress is not None:
        progress(length)
    return ElementHeader(length, type_id, base_type, cursor, cursor.position)


def read_element_header(cursor: ByteCursor, zipped: bool, progress: ProgressHook = None) -> ElementHeader:
    """
    Read the root element header of a segment.  For zipped segments the
    compression triplet decides whether the element is inflated into a new
    buffer; the returned header's ``cursor`` then points into that buffer and
    the caller's ``cursor`` sits right after the compressed block.
    """

    if not zipped:
        return read_plain_element_header(cursor, progress)

    compression_flag = cursor.read_i32()
    # the stored length includes the algorithm byte
    compressed_length = cursor.read_i32() - 1
    algorithm = cursor.read_u8()

    zlib_compressed = compression_flag == 2 and algorithm == ALGORITHM_ZLIB
    lzma_compressed = compression_flag == 3 and algorithm == ALGORITHM_LZMA
    if not (zlib_compressed or lzma_compressed):
        # TODO: decide whether unknown flag/algorithm pairs should fail instead of reading plain
        return read_plain_element_header(cursor, progress)

    if compressed_length < 0:
        raise FormatError(f"Negative compressed element length {compressed_length}")
    plaintext = inflate(cursor.read_bytes(compressed_length), algorithm)
    inner = cursor.derive(plaintext)
    length = inner.read_i32()
    type_id = GUID.read(inner)
    base_type = inner.read_u8()
    if progress is not None:
        progress(compressed_length)
    return ElementHeader(length, type_id, base_type, inner, inner.position, compressed_length=compressed_length)
