from __future__ import annotations

from typing import Callable, Dict, List, Tuple

from .cursor import ByteCursor
from .entities import (
    DatePropertyAtom,
    Float32PropertyAtom,
    IntegerPropertyAtom,
    LateLoadedPropertyAtom,
    MetaValue,
    PMIMetaData,
    PropertyAtom,
    PropertyMetaData,
    StringPropertyAtom,
)
from .errors import FormatError
from .guid import (
    DATE_PROPERTY_ATOM,
    FLOAT32_PROPERTY_ATOM,
    GUID,
    INTEGER_PROPERTY_ATOM,
    LATE_LOADED_PROPERTY_ATOM,
    STRING_PROPERTY_ATOM,
)

META_STRING = 1
META_INT32 = 2
META_FLOAT32 = 3
META_DATE = 4

# object id -> [(key atom id, value atom id), ...]
PropertyTable = Dict[int, List[Tuple[int, int]]]


def _read_base_atom(cursor: ByteCursor, version: float) -> Tuple[int, int]:
    object_id = cursor.read_i32()
    cursor.read_local_version(version)
    state_flags = cursor.read_u32()
    return object_id, state_flags


def read_string_atom(cursor: ByteCursor, version: float) -> StringPropertyAtom:
    object_id, state_flags = _read_base_atom(cursor, version)
    cursor.read_local_version(version)
    return StringPropertyAtom(object_id, state_flags, cursor.read_mb_string())


def read_integer_atom(cursor: ByteCursor, version: float) -> IntegerPropertyAtom:
    object_id, state_flags = _read_base_atom(cursor, version)
    cursor.read_local_version(version)
    return IntegerPropertyAtom(object_id, state_flags, cursor.read_i32())


def read_float32_atom(cursor: ByteCursor, version: float) -> Float32PropertyAtom:
    object_id, state_flags = _read_base_atom(cursor, version)
    cursor.read_local_version(version)
    return Float32PropertyAtom(object_id, state_flags, cursor.read_f32())


def read_date_atom(cursor: ByteCursor, version: float) -> DatePropertyAtom:
    object_id, state_flags = _read_base_atom(cursor, version)
    if version >= 10.0:
        local_version = cursor.read_local_version(version)
        if local_version > 5:
            raise FormatError(f"Found invalid version number: {local_version}")
    return DatePropertyAtom(object_id, state_flags, cursor.read_date_time())


def read_late_loaded_atom(cursor: ByteCursor, version: float) -> LateLoadedPropertyAtom:
    object_id, state_flags = _read_base_atom(cursor, version)
    cursor.read_local_version(version)
    segment_id = GUID.read(cursor)
    segment_type = cursor.read_i32()
    payload_object_id = -1
    if version >= 9.0:
        payload_object_id = cursor.read_i32()
        cursor.read_i32()
    return LateLoadedPropertyAtom(object_id, state_flags, str(segment_id), segment_type, payload_object_id)


PROPERTY_READERS: Dict[str, Callable[[ByteCursor, float], PropertyAtom]] = {
    STRING_PROPERTY_ATOM: read_string_atom,
    INTEGER_PROPERTY_ATOM: read_integer_atom,
    FLOAT32_PROPERTY_ATOM: read_float32_atom,
    DATE_PROPERTY_ATOM: read_date_atom,
    LATE_LOADED_PROPERTY_ATOM: read_late_loaded_atom,
}


def read_property_table(cursor: ByteCursor, version: float) -> PropertyTable:
    cursor.read_local_version(version)
    count = cursor.read_i32()
    if count < 0:
        raise FormatError(f"Negative property table count {count}")
    table: PropertyTable = {}
    for _ in range(count):
        object_id = cursor.read_i32()
        pairs = table.setdefault(object_id, [])
        while True:
            key_id = cursor.read_i32()
            if key_id == 0:
                break
            pairs.append((key_id, cursor.read_i32()))
    return table


def read_property_meta_data(cursor: ByteCursor, version: float) -> PropertyMetaData:
    object_id = -1
    if version >= 9.0:
        object_id = cursor.read_i32()
        local_version = cursor.read_local_version(version)
        if local_version > 2 or local_version < 0:
            raise FormatError(f"Found invalid version number: {local_version}")

    properties: Dict[str, MetaValue] = {}
    while True:
        key = cursor.read_mb_string()
        if key is None:
            break
        value_type = cursor.read_u8()
        if value_type == META_STRING:
            value: MetaValue = cursor.read_mb_string() or ""
        elif value_type == META_INT32:
            value = cursor.read_i32()
        elif value_type == META_FLOAT32:
            value = cursor.read_f32()
        elif value_type == META_DATE:
            value = cursor.read_date_time()
        else:
            raise FormatError(f"Unexpected value type: {value_type}")
        properties[key] = value
    return PropertyMetaData(object_id, properties)


def read_pmi_meta_data(cursor: ByteCursor, version: float) -> PMIMetaData:
    # Only the header is decoded; the PMI payload itself is skipped by the caller.
    local_version = cursor.read_i16()
    if local_version > 10 or local_version < 0:
        raise FormatError(f"Found invalid version number: {local_version}")
    cursor.read_i16()
    return PMIMetaData(0, local_version)
