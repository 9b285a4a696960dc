from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from .cursor import ByteCursor


@dataclass(frozen=True)
class GUID:
    data1: int
    data2: int
    data3: int
    data4: Tuple[int, ...]

    @classmethod
    def read(cls, cursor: ByteCursor) -> "GUID":
        data1 = cursor.read_u32()
        data2 = cursor.read_u16()
        data3 = cursor.read_u16()
        data4 = tuple(cursor.read_bytes(8))
        return cls(data1, data2, data3, data4)

    @classmethod
    def parse(cls, text: str) -> "GUID":
        parts = [int(part, 16) for part in text.split("-")]
        if len(parts) != 11:
            raise ValueError(f"Not a GUID string: {text!r}")
        return cls(parts[0], parts[1], parts[2], tuple(parts[3:]))

    def __str__(self) -> str:
        return "-".join(f"{value:x}" for value in (self.data1, self.data2, self.data3, *self.data4))


END_OF_ELEMENTS = "ffffffff-ffff-ffff-ff-ff-ff-ff-ff-ff-ff-ff"

# LSG nodes
PARTITION_NODE = "10dd103e-2ac8-11d1-9b-6b-0-80-c7-bb-59-97"
GROUP_NODE = "10dd101b-2ac8-11d1-9b-6b-0-80-c7-bb-59-97"
INSTANCE_NODE = "10dd102a-2ac8-11d1-9b-6b-0-80-c7-bb-59-97"
PART_NODE = "ce357244-38fb-11d1-a5-6-0-60-97-bd-c6-e1"
META_DATA_NODE = "ce357245-38fb-11d1-a5-6-0-60-97-bd-c6-e1"
RANGE_LOD_NODE = "10dd104c-2ac8-11d1-9b-6b-0-80-c7-bb-59-97"
TRI_STRIP_SET_SHAPE_NODE = "10dd1077-2ac8-11d1-9b-6b-0-80-c7-bb-59-97"
POLYLINE_SET_SHAPE_NODE = "10dd1046-2ac8-11d1-9b-6b-0-80-c7-bb-59-97"
POINT_SET_SHAPE_NODE = "98134716-10-818-19-98-8-0-9-83-5d-5a"

# Attributes
MATERIAL_ATTRIBUTE = "10dd1030-2ac8-11d1-9b-6b-0-80-c7-bb-59-97"
GEOMETRIC_TRANSFORM_ATTRIBUTE = "10dd1083-2ac8-11d1-9b-6b-0-80-c7-bb-59-97"
LINE_STYLE_ATTRIBUTE = "10dd10c4-2ac8-11d1-9b-6b-0-80-c7-bb-59-97"

# Property atoms
STRING_PROPERTY_ATOM = "10dd106e-2ac8-11d1-9b-6b-0-80-c7-bb-59-97"
INTEGER_PROPERTY_ATOM = "10dd10b0-2ac8-11d1-9b-6b-0-80-c7-bb-59-97"
FLOAT32_PROPERTY_ATOM = "10dd1019-2ac8-11d1-9b-6b-0-80-c7-bb-59-97"
DATE_PROPERTY_ATOM = "ce357246-38fb-11d1-a5-6-0-60-97-bd-c6-e1"
LATE_LOADED_PROPERTY_ATOM = "e0b05be5-fbbd-11d1-a3-a7-0-aa-0-d1-9-54"

# Segment root elements
TRI_STRIP_SET_SHAPE_LOD = "10dd10ab-2ac8-11d1-9b-6b-0-80-c7-bb-59-97"
POLYLINE_SET_SHAPE_LOD = "10dd10a1-2ac8-11d1-9b-6b-0-80-c7-bb-59-97"
POINT_SET_SHAPE_LOD = "98134716-11-818-19-98-8-0-9-83-5d-5a"
PROPERTY_META_DATA = "ce357247-38fb-11d1-a5-6-0-60-97-bd-c6-e1"
PMI_META_DATA = "ce357249-38fb-11d1-a5-6-0-60-97-bd-c6-e1"

SHAPE_LOD_ELEMENTS = frozenset({TRI_STRIP_SET_SHAPE_LOD, POLYLINE_SET_SHAPE_LOD, POINT_SET_SHAPE_LOD})

# Type ids we know by name but do not decode.
UNSUPPORTED_LABELS = {
    "873a70c0-2ac8-11d1-9b-6b-0-80-c7-bb-59-97": "JT B-Rep Element",
    "ce357249-38fb-11d1-a5-6-0-60-97-bd-c6-e1": "PMI Manager Meta Data",
    "10dd1083-2ac8-11d1-9b-6b-0-80-c7-bb-59-97": "Geometric Transform Attribute Element",
    "10dd1073-2ac8-11d1-9b-6b-0-80-c7-bb-59-97": "Texture Image Attribute Element",
    "10dd1014-2ac8-11d1-9b-6b-0-80-c7-bb-59-97": "Draw Style Attribute Element",
    "10dd10c4-2ac8-11d1-9b-6b-0-80-c7-bb-59-97": "Linestyle Attribute Element",
    "ce357247-38fb-11d1-a5-6-0-60-97-bd-c6-e1": "Property Proxy Meta Data Element",
    "873a70e0-2ac9-11d1-9b-6b-0-80-c7-bb-59-97": "XT B-Rep Element",
    "873a70d0-2ac8-11d1-9b-6b-0-80-c7-bb-59-97": "Wireframe Rep Element",
}


def describe(type_id: str) -> str:
    label = UNSUPPORTED_LABELS.get(type_id)
    return f"{type_id} ({label})" if label else type_id
