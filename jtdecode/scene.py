"""
Logical scene graph stored as an arena of nodes.

Nodes are addressed by their handle (index into the arena); the parent link
is a handle as well, so the tree never holds reference cycles.  A scene node
wraps the immutable element read from the file and owns its per-placement
state: attribute list, property map and late-loaded properties.  When an
element is placed a second time the whole placed subtree is copied with
``clone_subtree``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterator, List, Mapping, Optional, Set, Tuple

import numpy as np

from .context import LoadContext
from .entities import (
    ATTRIBUTE_KINDS,
    LSG_NODE_KINDS,
    NAMED_KINDS,
    PROPERTY_KINDS,
    AttributeElement,
    ElementKind,
    GeometricTransformAttribute,
    JTElement,
    LateLoadedPropertyAtom,
    LSGElement,
    MaterialAttribute,
    MetaValue,
    PropertyAtom,
    PropertyMetaData,
    SegmentObject,
    StringPropertyAtom,
)
from .errors import RecursionLimitError
from .geometry import DEFAULT_COLOR, RGB, matrix_from_elements
from .properties import PropertyTable

logger = logging.getLogger(__name__)

DEFAULT_LAYER = "0"
NAME_PROPERTY = "JT_PROP_NAME"
LATE_LOADED_METADATA_PROPERTY = "JT_LLPROP_METADATA"
INSTANCE_NAME_SUFFIXES = ("_SOLIDS", "_FACETS", "_WF")


def strip_name_suffix(raw_name: str) -> str:
    """Drop a trailing ``.part;N`` / ``.asm;N`` revision suffix."""
    last_dot = raw_name.rfind(".")
    if last_dot > 0:
        suffix = raw_name[last_dot + 1:]
        if suffix.startswith("part;") or suffix.startswith("asm;"):
            return raw_name[:last_dot]
    return raw_name


@dataclass
class SceneNode:
    handle: int
    element: LSGElement
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)
    attributes: List[AttributeElement] = field(default_factory=list)
    properties: Dict[PropertyAtom, PropertyAtom] = field(default_factory=dict)
    late_loaded: Dict[str, MetaValue] = field(default_factory=dict)

    @property
    def object_id(self) -> int:
        return self.element.object_id

    @property
    def kind(self) -> ElementKind:
        return self.element.kind

    @property
    def type_name(self) -> str:
        return self.element.type_name

    def add_attribute(self, attribute: AttributeElement) -> None:
        if not any(existing is attribute for existing in self.attributes):
            self.attributes.append(attribute)

    def property_node(self, key: str) -> Optional[PropertyAtom]:
        for key_atom, value_atom in self.properties.items():
            if isinstance(key_atom, StringPropertyAtom) and key_atom.value == key:
                return value_atom
        return None

    def property_value(self, key: str) -> Optional[MetaValue]:
        value_atom = self.property_node(key)
        if value_atom is None or isinstance(value_atom, LateLoadedPropertyAtom):
            return None
        return getattr(value_atom, "value", None)

    @property
    def raw_name(self) -> Optional[str]:
        value = self.property_value(NAME_PROPERTY)
        return value if isinstance(value, str) else None

    @property
    def name(self) -> Optional[str]:
        raw = self.raw_name
        return strip_name_suffix(raw) if raw is not None else None

    def late_loaded_atoms(self) -> List[LateLoadedPropertyAtom]:
        return [value for value in self.properties.values() if isinstance(value, LateLoadedPropertyAtom)]


class SceneGraph:
    def __init__(self) -> None:
        self._nodes: List[SceneNode] = []
        self.root: Optional[int] = None

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[SceneNode]:
        return iter(self._nodes)

    def node(self, handle: int) -> SceneNode:
        return self._nodes[handle]

    @property
    def root_node(self) -> Optional[SceneNode]:
        return None if self.root is None else self._nodes[self.root]

    def add_node(self, element: LSGElement, parent: Optional[int] = None) -> int:
        handle = len(self._nodes)
        self._nodes.append(SceneNode(handle, element))
        if parent is None:
            if self.root is None:
                self.root = handle
        else:
            self.attach(parent, handle)
        return handle

    def attach(self, parent: int, child: int) -> None:
        self._nodes[child].parent = parent
        self._nodes[parent].children.append(child)

    def clone_subtree(self, handle: int, new_parent: int) -> int:
        """Deep-copy the subtree at ``handle`` under ``new_parent`` and return the new handle."""
        source = self._nodes[handle]
        clone = self.add_node(source.element, new_parent)
        node = self._nodes[clone]
        node.attributes = list(source.attributes)
        node.properties = dict(source.properties)
        node.late_loaded = dict(source.late_loaded)
        for child in list(source.children):
            self.clone_subtree(child, clone)
        return clone

    def children(self, handle: int) -> List[SceneNode]:
        return [self._nodes[child] for child in self._nodes[handle].children]

    def ancestors(self, handle: int, *, include_self: bool = True) -> Iterator[SceneNode]:
        current: Optional[int] = handle if include_self else self._nodes[handle].parent
        while current is not None:
            node = self._nodes[current]
            yield node
            current = node.parent

    def find(self, object_id: int) -> List[SceneNode]:
        return [node for node in self._nodes if node.object_id == object_id]

    def layer_name(self, handle: int) -> str:
        names: List[str] = []
        for node in self.ancestors(handle):
            if node.kind not in NAMED_KINDS:
                continue
            name = node.name
            if name is None or (names and names[0] == name):
                continue
            if node.kind is ElementKind.INSTANCE:
                for suffix in INSTANCE_NAME_SUFFIXES:
                    if name.endswith(suffix):
                        name = name[: -len(suffix)]
                        break
            names.insert(0, name)
        return "#".join(names) if names else DEFAULT_LAYER

    def inherited_color(self, handle: int) -> RGB:
        for node in self.ancestors(handle):
            for attribute in node.attributes:
                if isinstance(attribute, MaterialAttribute):
                    r, g, b, _alpha = attribute.diffuse
                    return (r, g, b)
        return DEFAULT_COLOR

    def accumulated_transform(self, handle: int) -> np.ndarray:
        """Node-to-world matrix (row-vector convention) composed up to the root."""
        matrix = np.identity(4)
        for node in self.ancestors(handle):
            for attribute in node.attributes:
                if isinstance(attribute, GeometricTransformAttribute):
                    matrix = matrix @ matrix_from_elements(attribute.elements)
        return matrix

    def is_monolithic(self) -> bool:
        if self.root is None:
            return True
        stack = [self.root]
        while stack:
            for child in self._nodes[stack.pop()].children:
                if self._nodes[child].kind is ElementKind.PARTITION:
                    return False
                stack.append(child)
        return True

    def lsg_as_string(self) -> str:
        lines: List[str] = []
        if self.root is not None:
            self._describe(self.root, 0, lines)
        return "".join(lines)

    def _describe(self, handle: int, depth: int, lines: List[str]) -> None:
        node = self._nodes[handle]
        name = node.raw_name
        label = f'"{name}"' if name is not None else "<>"
        lines.append(f"{'    ' * depth}{node.type_name}[{node.object_id}] {label}\n")
        for child in node.children:
            self._describe(child, depth + 1, lines)


class SceneAssembler:
    """
    Wires the flat object table of one file into a ``SceneGraph``.

    Links that do not resolve are dropped with a warning.  A node that is
    reached a second time is attached as a clone of its first placement.
    """

    def __init__(
        self,
        objects: Mapping[int, JTElement],
        property_table: PropertyTable,
        segment_objects: Mapping[str, SegmentObject],
        context: LoadContext,
    ) -> None:
        self.objects = objects
        self.property_table = property_table
        self.segment_objects = segment_objects
        self.context = context
        self.graph = SceneGraph()
        self._placed: Dict[int, int] = {}
        self._path: Set[int] = set()

    def _lookup(self, object_id: int, kinds: FrozenSet[ElementKind]) -> Optional[JTElement]:
        element = self.objects.get(object_id)
        if element is None or element.kind not in kinds:
            return None
        return element

    def assemble(self, root_id: int) -> SceneGraph:
        root = self._lookup(root_id, LSG_NODE_KINDS)
        if root is None:
            self.context.warning(f"Root object {root_id} is missing or not a scene graph node")
            return self.graph
        handle = self.graph.add_node(root)
        self._placed[root_id] = handle
        self._link(handle, 0)
        return self.graph

    def _link(self, handle: int, depth: int) -> None:
        if depth > self.context.options.max_depth:
            raise RecursionLimitError(
                f"Scene graph nesting exceeds {self.context.options.max_depth} levels at object {self.graph.node(handle).object_id}"
            )
        node = self.graph.node(handle)
        self._attach_attributes(node)
        self._attach_properties(node)
        self._bind_late_loaded(node)

        self._path.add(node.object_id)
        try:
            self._link_children(node, depth)
        finally:
            self._path.discard(node.object_id)

    def _attach_attributes(self, node: SceneNode) -> None:
        for attribute_id in node.element.attribute_ids:
            attribute = self._lookup(attribute_id, ATTRIBUTE_KINDS)
            if attribute is None:
                self.context.warning(
                    f"Object {node.object_id} ({node.type_name}) references a not existing / unsupported attribute: {attribute_id}"
                )
                continue
            node.add_attribute(attribute)

    def _attach_properties(self, node: SceneNode) -> None:
        for key_id, value_id in self.property_table.get(node.object_id, ()):
            key = self._lookup(key_id, PROPERTY_KINDS)
            value = self._lookup(value_id, PROPERTY_KINDS)
            if key is None or value is None:
                self.context.warning(f"Ignoring missing prop key/value: {key_id}->{value_id}")
                continue
            node.properties[key] = value

    def _bind_late_loaded(self, node: SceneNode) -> None:
        atom = node.property_node(LATE_LOADED_METADATA_PROPERTY)
        if not isinstance(atom, LateLoadedPropertyAtom):
            return
        meta = self.segment_objects.get(atom.segment_id)
        if not isinstance(meta, PropertyMetaData):
            self.context.warning(
                f"Object {node.object_id} references missing property meta data segment {atom.segment_id}"
            )
            return
        node.late_loaded = dict(meta.properties)

    def _link_children(self, node: SceneNode, depth: int) -> None:
        child_ids: Tuple[int, ...] = node.element.child_ids
        for position, child_id in enumerate(child_ids):
            child = self._lookup(child_id, LSG_NODE_KINDS)
            if child is None:
                self.context.warning(
                    f"Object {node.object_id} ({node.type_name}) references a not existing / unsupported child node: {child_id}"
                )
                continue
            if child_id in self._path:
                self.context.warning(f"Object {node.object_id} ({node.type_name}) closes a cycle through {child_id}")
                continue

            first = self._placed.get(child_id)
            if first is not None:
                self.graph.clone_subtree(first, node.handle)
                remaining = len(child_ids) - position - 1
                if self.context.options.break_after_clone:
                    if remaining:
                        logger.warning(
                            "Object %d: %d child reference(s) after the cloned child %d are not linked",
                            node.object_id,
                            remaining,
                            child_id,
                        )
                    break
                continue

            handle = self.graph.add_node(child, node.handle)
            self._placed[child_id] = handle
            self._link(handle, depth + 1)
