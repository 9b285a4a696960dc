from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

import numpy as np

if TYPE_CHECKING:
    from .scene import SceneGraph

Extremes = Tuple[Tuple[float, float, float], Tuple[float, float, float]]


@dataclass
class TriangleBatch:
    """Flat triangle soup of one shape; ``indices`` only address ``vertices``."""

    vertices: np.ndarray
    indices: np.ndarray
    colors: np.ndarray
    normals: np.ndarray

    @property
    def triangle_count(self) -> int:
        return len(self.indices)


@dataclass
class PolylineBatch:
    vertices: np.ndarray
    colors: np.ndarray


@dataclass
class PointBatch:
    vertices: np.ndarray
    colors: np.ndarray


@dataclass
class ExternalReference:
    file_name: Optional[str]
    resolved: bool


@dataclass
class JTModel:
    version: float = 0.0
    version_string: str = ""
    comment: str = ""
    faces: Dict[str, List[TriangleBatch]] = field(default_factory=dict)
    polylines: Dict[str, List[PolylineBatch]] = field(default_factory=dict)
    points: Dict[str, List[PointBatch]] = field(default_factory=dict)
    layer_visibility: Dict[str, bool] = field(default_factory=dict)
    external_references: List[ExternalReference] = field(default_factory=list)
    scene: Optional["SceneGraph"] = None
    load_information: List[Tuple[str, str]] = field(default_factory=list)
    unsupported_entities: List[str] = field(default_factory=list)
    _low: Optional[np.ndarray] = field(default=None, repr=False)
    _high: Optional[np.ndarray] = field(default=None, repr=False)

    def _register(self, layer: str, vertices: np.ndarray) -> None:
        self.layer_visibility.setdefault(layer, True)
        if len(vertices) == 0:
            return
        low = vertices.min(axis=0)
        high = vertices.max(axis=0)
        self._low = low if self._low is None else np.minimum(self._low, low)
        self._high = high if self._high is None else np.maximum(self._high, high)

    def add_triangles(self, batch: TriangleBatch, layer: str) -> None:
        self.faces.setdefault(layer, []).append(batch)
        self._register(layer, batch.vertices)

    def add_polyline(self, batch: PolylineBatch, layer: str) -> None:
        self.polylines.setdefault(layer, []).append(batch)
        self._register(layer, batch.vertices)

    def add_points(self, batch: PointBatch, layer: str) -> None:
        self.points.setdefault(layer, []).append(batch)
        self._register(layer, batch.vertices)

    def add_external_reference(self, file_name: Optional[str], resolved: bool) -> None:
        self.external_references.append(ExternalReference(file_name, resolved))

    @property
    def extreme_values(self) -> Extremes:
        if self._low is None or self._high is None:
            return ((0.0, 0.0, 0.0), (0.0, 0.0, 0.0))
        return (tuple(float(v) for v in self._low), tuple(float(v) for v in self._high))

    def is_2d(self) -> bool:
        low, high = self.extreme_values
        return any(low[axis] == high[axis] for axis in range(3))

    @property
    def triangle_count(self) -> int:
        return sum(batch.triangle_count for batches in self.faces.values() for batch in batches)

    @property
    def polyline_count(self) -> int:
        return sum(len(batches) for batches in self.polylines.values())

    @property
    def point_count(self) -> int:
        return sum(len(batch.vertices) for batches in self.points.values() for batch in batches)

    def model_information(self) -> List[Tuple[str, str]]:
        low, high = self.extreme_values
        resolved = sum(1 for ref in self.external_references if ref.resolved)
        return [
            ("JT Version", self.version_string),
            ("Comment", self.comment.strip()),
            ("Layers", str(len(self.layer_visibility))),
            ("Triangles", str(self.triangle_count)),
            ("Polylines", str(self.polyline_count)),
            ("Points", str(self.point_count)),
            ("External references", f"{resolved}/{len(self.external_references)} resolved"),
            ("Extents", f"({low[0]:.6g}, {low[1]:.6g}, {low[2]:.6g}) - ({high[0]:.6g}, {high[1]:.6g}, {high[2]:.6g})"),
        ]
