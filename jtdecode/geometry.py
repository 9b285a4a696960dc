"""
Geometry reconstruction: turns decoded shape LOD vertex data into flat
triangle, polyline and point batches in world coordinates.

Matrices use the row-vector convention of the file (translation in the last
row), so a point maps as ``p @ M[:3, :3] + M[3, :3]``.  Normals only ever see
the rotation part.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import numpy as np

from .entities import ElementKind
from .errors import FormatError
from .model import JTModel, PointBatch, PolylineBatch, TriangleBatch
from .shapes import VertexData

RGB = Tuple[float, float, float]

DEFAULT_COLOR: RGB = (1.0, 1.0, 1.0)


def matrix_from_elements(elements: Sequence[float]) -> np.ndarray:
    if len(elements) != 16:
        raise FormatError(f"Transform needs 16 values, got {len(elements)}")
    return np.asarray(elements, dtype=np.float64).reshape(4, 4)


def rotation_only(matrix: np.ndarray) -> np.ndarray:
    rotation = np.array(matrix, dtype=np.float64, copy=True)
    rotation[3, :3] = 0.0
    return rotation


def transform_points(points: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    return points @ matrix[:3, :3] + matrix[3, :3]


def transform_triangle_batch(batch: TriangleBatch, matrix: np.ndarray) -> TriangleBatch:
    return TriangleBatch(
        transform_points(batch.vertices, matrix),
        batch.indices,
        batch.colors,
        transform_points(batch.normals, rotation_only(matrix)),
    )


def fan_indices(start: int, end: int) -> List[Tuple[int, int, int]]:
    """Triangles covering the vertex range ``[start, end)``; n vertices give n - 2 triangles."""
    return [(j, j + 1, j + 2) for j in range(start, end - 2)]


def resolve_normal_indices(indices: Sequence[int], previous: int = -1) -> List[int]:
    """Replace every -1 with the last resolved normal index."""
    resolved: List[int] = []
    for index in indices:
        if index == -1:
            if previous == -1:
                raise FormatError("Normal index -1 has no preceding normal to reuse")
            index = previous
        resolved.append(index)
        previous = index
    return resolved


def filled_colors(color: RGB, count: int) -> np.ndarray:
    return np.tile(np.asarray(color, dtype=np.float64), (count, 1))


def _stored_or_filled_colors(data: VertexData, color: RGB, count: int, what: str) -> np.ndarray:
    if data.colors is None or len(data.colors) == 0:
        return filled_colors(color, count)
    colors = np.asarray(data.colors, dtype=np.float64)
    if len(colors) < count:
        raise FormatError(f"{len(colors)} colors stored for {count} {what}")
    return colors


def _ranges(boundaries: Sequence[int], limit: int) -> List[Tuple[int, int]]:
    spans = []
    for start, end in zip(boundaries, boundaries[1:]):
        if start < 0 or end > limit or end < start:
            raise FormatError(f"Primitive range [{start}, {end}) outside {limit} vertices")
        spans.append((start, end))
    return spans


def _gather(array: np.ndarray, indices: Sequence[int], what: str) -> np.ndarray:
    index_array = np.asarray(indices, dtype=np.int64)
    if index_array.size and (index_array.min() < 0 or index_array.max() >= len(array)):
        raise FormatError(f"{what} index outside {len(array)} stored values")
    return array[index_array]


def triangles_v8(data: VertexData, matrix: np.ndarray, color: RGB) -> Optional[TriangleBatch]:
    if data.vertex_count == 0:
        return None
    spans = _ranges(data.primitive_indices, data.vertex_count)
    faces: List[Tuple[int, int, int]] = []
    for start, end in spans:
        faces.extend(fan_indices(start, end))
    used = max((end for _start, end in spans), default=0)

    vertices = transform_points(data.vertices[:used], matrix)
    if data.normals is not None:
        if len(data.normals) < used:
            raise FormatError(f"{len(data.normals)} normals for {used} vertices")
        normals = transform_points(data.normals[:used], rotation_only(matrix))
    else:
        normals = np.zeros_like(vertices)

    colors = _stored_or_filled_colors(data, color, len(faces), "faces")
    indices = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    return TriangleBatch(vertices, indices, colors, normals)


def triangles_v9(data: VertexData, matrix: np.ndarray, color: RGB) -> Optional[TriangleBatch]:
    corner_count = len(data.vertex_indices) - len(data.vertex_indices) % 3
    if data.vertex_count == 0 or corner_count == 0:
        return None
    corners = data.vertex_indices[:corner_count]
    vertices = transform_points(_gather(data.vertices, corners, "Vertex"), matrix)

    if data.normals is not None:
        normal_indices = resolve_normal_indices(data.normal_indices[:corner_count])
        if len(normal_indices) < corner_count:
            raise FormatError(f"{len(normal_indices)} normal indices for {corner_count} corners")
        normals = transform_points(_gather(data.normals, normal_indices, "Normal"), rotation_only(matrix))
    else:
        normals = np.zeros_like(vertices)

    # one color per triangle, as on the pre-9 path
    colors = _stored_or_filled_colors(data, color, corner_count // 3, "triangles")
    indices = np.arange(corner_count, dtype=np.int64).reshape(-1, 3)
    return TriangleBatch(vertices, indices, colors, normals)


def polylines(data: VertexData, matrix: np.ndarray, color: RGB) -> List[PolylineBatch]:
    if data.vertex_count == 0:
        return []
    if data.colors is None or len(data.colors) == 0:
        colors = filled_colors(color, data.vertex_count)
    else:
        colors = np.asarray(data.colors, dtype=np.float64)

    if data.version < 9.0:
        lookup = list(range(data.vertex_count))
    else:
        lookup = list(data.vertex_indices)
    batches = []
    for start, end in _ranges(data.primitive_indices, len(lookup)):
        selected = lookup[start:end]
        batches.append(
            PolylineBatch(
                transform_points(_gather(data.vertices, selected, "Vertex"), matrix),
                _gather(colors, selected, "Color"),
            )
        )
    return batches


def points(data: VertexData, matrix: np.ndarray, color: RGB) -> Optional[PointBatch]:
    if data.vertex_count == 0:
        return None
    if data.version >= 9.0 and data.vertex_indices:
        vertices = _gather(data.vertices, data.vertex_indices, "Vertex")
    else:
        vertices = data.vertices
    if data.colors is None or len(data.colors) == 0:
        colors = filled_colors(color, len(vertices))
    elif data.version >= 9.0 and data.vertex_indices:
        colors = _gather(np.asarray(data.colors, dtype=np.float64), data.vertex_indices, "Color")
    else:
        colors = _stored_or_filled_colors(data, color, len(vertices), "points")
    return PointBatch(transform_points(vertices, matrix), colors)


def emit_shape(
    model: JTModel,
    kind: ElementKind,
    data: VertexData,
    matrix: np.ndarray,
    color: RGB,
    layer: str,
) -> int:
    """Add the geometry of one shape to ``model`` and return the number of batches added."""

    if kind is ElementKind.TRI_STRIP_SET:
        batch = triangles_v8(data, matrix, color) if data.version < 9.0 else triangles_v9(data, matrix, color)
        if batch is None:
            return 0
        model.add_triangles(batch, layer)
        return 1
    if kind is ElementKind.POLYLINE_SET:
        lines = polylines(data, matrix, color)
        for line in lines:
            model.add_polyline(line, layer)
        return len(lines)
    if kind is ElementKind.POINT_SET:
        cloud = points(data, matrix, color)
        if cloud is None:
            return 0
        model.add_points(cloud, layer)
        return 1
    raise FormatError(f"{kind.value} is not a shape")
