"""
Shape LOD elements: the compacted vertex data that shape nodes point at
through their late-loaded property.  Nothing here is decoded during the TOC
scan; the importer seeks back to the recorded body position once the scene
graph walk reaches the shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from .codecs import read_float_array, read_int32_cdp
from .cursor import ByteCursor
from .errors import FormatError
from .guid import POINT_SET_SHAPE_LOD, POLYLINE_SET_SHAPE_LOD, TRI_STRIP_SET_SHAPE_LOD

BINDING_NORMALS = 0x8
BINDING_COLORS = 0x10


@dataclass
class VertexData:
    """
    Decoded representation of one shape LOD.

    Before 9.0 ``primitive_indices`` holds the vertex-range boundaries of each
    strip and the attribute arrays are addressed directly.  From 9.0 on the
    vertices and normals are addressed through ``vertex_indices`` and
    ``normal_indices``.
    """

    version: float
    primitive_indices: List[int]
    vertices: np.ndarray
    normals: Optional[np.ndarray] = None
    colors: Optional[np.ndarray] = None
    texture_coords: Optional[np.ndarray] = None
    vertex_indices: List[int] = field(default_factory=list)
    normal_indices: List[int] = field(default_factory=list)

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)


@dataclass
class ShapeLOD:
    type_id: str
    data: VertexData


def _triplets(flat: np.ndarray, what: str) -> np.ndarray:
    if flat.size % 3:
        raise FormatError(f"{what} array of {flat.size} values is not a multiple of 3")
    return flat.reshape(-1, 3)


def read_vertex_data_v8(cursor: ByteCursor, version: float) -> VertexData:
    cursor.read_i16()
    normal_binding = cursor.read_u8()
    texture_binding = cursor.read_u8()
    color_binding = cursor.read_u8()
    vertex_bits, normal_bits, color_bits, texture_bits = cursor.read_bytes(4)

    primitive_indices = read_int32_cdp(cursor)
    vertices = _triplets(read_float_array(cursor, 3, vertex_bits), "Vertex")
    normals = colors = texture_coords = None
    if normal_binding:
        normals = _triplets(read_float_array(cursor, 3, normal_bits), "Normal")
    if texture_binding:
        texture_coords = read_float_array(cursor, 2, texture_bits).reshape(-1, 2)
    if color_binding:
        colors = _triplets(read_float_array(cursor, 3, color_bits), "Color")
    return VertexData(version, primitive_indices, vertices, normals, colors, texture_coords)


def read_vertex_data_v9(cursor: ByteCursor, version: float) -> VertexData:
    cursor.read_i16()
    binding = cursor.read_u64()
    vertex_bits, normal_bits, color_bits, _texture_bits = cursor.read_bytes(4)
    has_normals = bool(binding & BINDING_NORMALS)
    has_colors = bool(binding & BINDING_COLORS)

    primitive_indices = read_int32_cdp(cursor)
    vertex_indices = read_int32_cdp(cursor)
    normal_indices = read_int32_cdp(cursor) if has_normals else []
    vertices = _triplets(read_float_array(cursor, 3, vertex_bits), "Vertex")
    normals = _triplets(read_float_array(cursor, 3, normal_bits), "Normal") if has_normals else None
    colors = _triplets(read_float_array(cursor, 3, color_bits), "Color") if has_colors else None
    return VertexData(
        version,
        primitive_indices,
        vertices,
        normals,
        colors,
        vertex_indices=vertex_indices,
        normal_indices=normal_indices,
    )


def read_shape_lod(cursor: ByteCursor, version: float, type_id: str) -> ShapeLOD:
    if type_id not in (TRI_STRIP_SET_SHAPE_LOD, POLYLINE_SET_SHAPE_LOD, POINT_SET_SHAPE_LOD):
        raise FormatError(f"Not a shape LOD element: {type_id}")
    # LOD element data, vertex shape LOD data
    cursor.read_local_version(version)
    cursor.read_local_version(version)
    if version < 9.0:
        data = read_vertex_data_v8(cursor, version)
    else:
        data = read_vertex_data_v9(cursor, version)
    cursor.read_local_version(version)
    return ShapeLOD(type_id, data)
