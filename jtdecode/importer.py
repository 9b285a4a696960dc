"""
Top-level JT import pipeline.

    header -> TOC scan -> partition element streams -> scene assembly -> walk

The TOC scan only records where shape LOD elements live; geometry is decoded
while walking the assembled scene graph, where the accumulated transform,
the inherited color and the layer name of each shape are known.  Partition
nodes below the root name other JT files, which are loaded with a fresh
importer and merged under the partition's transform.
"""

from __future__ import annotations

import logging
import re
import struct
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from .context import LoadContext, LoadOptions
from .cursor import ByteCursor
from .elements import GRAPH_READERS, read_partition_node
from .entities import SHAPE_KINDS, ElementKind, JTElement, PartitionNode, SegmentObject, UnsupportedElement
from .errors import (
    CodecError,
    DuplicateObjectIdError,
    FormatError,
    InvalidSegmentSizeError,
    JTError,
    MalformedDateError,
    SignatureError,
    UnsupportedCodecError,
    UnsupportedVersionError,
)
from .framing import ElementHeader, read_element_header, read_plain_element_header, read_segment_header, read_toc
from .geometry import emit_shape, transform_points, transform_triangle_batch
from .guid import (
    END_OF_ELEMENTS,
    GUID,
    PARTITION_NODE,
    PMI_META_DATA,
    PROPERTY_META_DATA,
    SHAPE_LOD_ELEMENTS,
)
from .model import JTModel, PointBatch, PolylineBatch
from .properties import PROPERTY_READERS, PropertyTable, read_pmi_meta_data, read_property_meta_data, read_property_table
from .references import read_source, resolve_reference, to_url, url_exists
from .scene import SceneAssembler, SceneGraph
from .shapes import read_shape_lod

logger = logging.getLogger(__name__)

SIGNATURE_LENGTH = 80
SIGNATURE_PATTERNS = (
    re.compile(r"Version (\d\.\d)(.{40,}) {5}"),
    re.compile(r"Version (\d\.\d)(.{40,}) \n\r\n "),
    re.compile(r"Version (\d{1,2}\.\d)(.{40,}) \n\r\n "),
)
MIN_VERSION = 8.0
MAX_VERSION = 11.0


def parse_signature(signature: str) -> Tuple[str, str]:
    """Return ``(version, comment)`` from the 80 byte file signature."""
    for pattern in SIGNATURE_PATTERNS:
        match = pattern.search(signature)
        if match:
            return match.group(1), match.group(2)
    raise SignatureError(f"Not a JT file signature: {signature[:40]!r}")


def check_version(version: float) -> None:
    if version < MIN_VERSION or version >= MAX_VERSION:
        raise UnsupportedVersionError(version)


@dataclass(frozen=True)
class LODLocation:
    type_id: str
    cursor: ByteCursor
    position: int


@dataclass
class FileHeader:
    version_string: str
    comment: str
    version: float
    toc_offset: int
    root_segment: Optional[str]


class JTImporter:
    """
    Loads one JT document into a ``JTModel``.

    A fresh ``LoadContext`` is created per load unless one is handed in for a
    nested external reference load; ``context`` stays readable after a fatal
    error so callers can inspect the recorded load information.
    """

    def __init__(self, options: Optional[LoadOptions] = None, *, context: Optional[LoadContext] = None) -> None:
        self.options = options or (context.options if context else LoadOptions())
        self._given_context = context
        self.context: Optional[LoadContext] = context
        self.model = JTModel()
        self.objects: Dict[int, JTElement] = {}
        self.segment_objects: Dict[str, SegmentObject] = {}
        self.lod_locations: Dict[str, LODLocation] = {}
        self.property_table: PropertyTable = {}
        self.root_object_id: Optional[int] = None
        self.version = 0.0

    # -- entry points -----------------------------------------------------

    def load_file(self, path: Union[str, Path]) -> JTModel:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"File '{path}' doesn't exist")
        if path.stat().st_size == 0:
            raise FormatError(f"File '{path}' is empty")
        return self.load_url(to_url(path))

    def load_url(self, url: str) -> JTModel:
        return self.load_bytes(read_source(url, self.options.timeout), url)

    def load_bytes(self, data: bytes, source: str = "<memory>") -> JTModel:
        context = self._given_context or LoadContext(source, self.options)
        self.context = context
        context.file_length = len(data)
        try:
            self._load(ByteCursor(data), context)
        except JTError as exc:
            context.error(str(exc))
            raise
        self.model.load_information = context.load_information
        self.model.unsupported_entities = context.unsupported_entities
        return self.model

    # -- pipeline ---------------------------------------------------------

    def _load(self, cursor: ByteCursor, context: LoadContext) -> None:
        started = time.perf_counter()
        header = self._read_header(cursor, context)
        self._read_toc(cursor, header, context)
        started = self._log_timer("Load nodes", started)

        if self.root_object_id is None:
            raise FormatError("No logical scene graph partition found")
        assembler = SceneAssembler(self.objects, self.property_table, self.segment_objects, context)
        graph = assembler.assemble(self.root_object_id)
        self.model.scene = graph
        started = self._log_timer("Create LSG", started)

        if graph.root is not None:
            self._walk(graph, graph.root, context)
        self._log_timer("Walk the LSG", started)

    def _log_timer(self, description: str, started: float) -> float:
        now = time.perf_counter()
        if self.options.profiling_enabled:
            logger.info("%s Time: %.3f ms", description, (now - started) * 1000.0)
        return now

    def _read_header(self, cursor: ByteCursor, context: LoadContext) -> FileHeader:
        version_string, comment = parse_signature(cursor.read_fixed_string(SIGNATURE_LENGTH))
        version = float(version_string)
        self.model.version = version
        self.model.version_string = version_string
        self.model.comment = comment
        context.add_information("JT File Version", version_string)
        if version < MIN_VERSION or version >= MAX_VERSION:
            context.error(f"Found unsupported JT major version: {version}")
        check_version(version)
        self.version = version

        if cursor.read_u8() == 0:
            cursor.set_little_endian()
        reserved = cursor.read_i32()
        toc_offset = (cursor.read_u64() & 0xFFFFFFFF) if version >= 10.0 else cursor.read_i32()
        root_segment: Optional[str] = str(GUID.read(cursor))
        if reserved != 0:
            root_segment = None
        return FileHeader(version_string, comment, version, toc_offset, root_segment)

    def _read_toc(self, cursor: ByteCursor, header: FileHeader, context: LoadContext) -> None:
        cursor.seek(header.toc_offset)
        for entry in read_toc(cursor, self.version):
            cursor.seek(entry.offset)
            segment = read_segment_header(cursor)
            segment_id = str(segment.segment_id)
            element = read_element_header(cursor, segment.zipped, context.update_progress)
            type_id = str(element.type_id)

            if type_id in SHAPE_LOD_ELEMENTS:
                self.lod_locations[segment_id] = LODLocation(type_id, element.cursor, element.body_start)
            elif type_id == PARTITION_NODE:
                is_root = segment_id == header.root_segment or (
                    header.root_segment is None and self.root_object_id is None
                )
                if is_root and self.root_object_id is not None:
                    # some writers list the LSG segment twice
                    logger.debug("Skipping duplicate LSG segment %s", segment_id)
                    continue
                partition = read_partition_node(element.cursor, self.version, element.body_end)
                self._register(partition, context)
                if is_root:
                    self.root_object_id = partition.object_id
                element.cursor.seek(element.body_end)
                self._read_partition_stream(element.cursor, context)
            elif type_id == PROPERTY_META_DATA:
                try:
                    self.segment_objects[segment_id] = read_property_meta_data(element.cursor, self.version)
                except MalformedDateError as exc:
                    context.warning(f"Skipping property meta data segment {segment_id}: {exc}")
            elif type_id == PMI_META_DATA:
                self.segment_objects[segment_id] = read_pmi_meta_data(element.cursor, self.version)
            else:
                context.add_unsupported(type_id)

    def _register(self, element: Union[JTElement, UnsupportedElement], context: LoadContext) -> None:
        if element.kind is ElementKind.UNSUPPORTED:
            context.add_unsupported(element.type_id)
            return
        object_id = element.object_id
        if object_id < 0:
            logger.debug("Ignoring %s without object id", element.type_name)
            return
        if object_id in self.objects:
            raise DuplicateObjectIdError(object_id)
        self.objects[object_id] = element

    def _at_end_of_elements(self, cursor: ByteCursor) -> bool:
        mark = cursor.position
        cursor.read_i32()
        if str(GUID.read(cursor)) == END_OF_ELEMENTS:
            return True
        cursor.seek(mark)
        return False

    def _finish_element(self, cursor: ByteCursor, element: ElementHeader) -> None:
        overrun = cursor.position - element.body_end
        if overrun > 0:
            raise InvalidSegmentSizeError(
                f"Invalid segment size: {element.type_id} read {overrun} bytes past its declared length"
            )
        cursor.seek(element.body_end)

    def _read_partition_stream(self, cursor: ByteCursor, context: LoadContext) -> None:
        # graph elements
        while not self._at_end_of_elements(cursor):
            element = read_plain_element_header(cursor, context.update_progress)
            type_id = str(element.type_id)
            reader = GRAPH_READERS.get(type_id)
            if reader is None:
                self._register(UnsupportedElement(type_id), context)
            else:
                self._register(reader(cursor, self.version, element.body_end), context)
            self._finish_element(cursor, element)

        # property atoms
        while not self._at_end_of_elements(cursor):
            element = read_plain_element_header(cursor, context.update_progress)
            type_id = str(element.type_id)
            reader = PROPERTY_READERS.get(type_id)
            if reader is None:
                self._register(UnsupportedElement(type_id), context)
            else:
                try:
                    self._register(reader(cursor, self.version), context)
                except MalformedDateError as exc:
                    logger.debug("Dropping date property: %s", exc)
                    context.warning(f"At least 1 date property on file {context.source} is invalid")
            self._finish_element(cursor, element)

        for object_id, pairs in read_property_table(cursor, self.version).items():
            self.property_table.setdefault(object_id, []).extend(pairs)

    # -- scene graph walk -------------------------------------------------

    def _walk(self, graph: SceneGraph, handle: int, context: LoadContext) -> None:
        node = graph.node(handle)
        if node.kind in SHAPE_KINDS:
            if not self.options.skip_geometry:
                self._emit_shape(graph, handle, context)
        elif node.kind is ElementKind.PARTITION and not self.options.skip_sub_partitions:
            self._load_reference(graph, handle, context)

        for child in node.children:
            self._walk(graph, child, context)
            # only the most detailed LOD
            if node.kind is ElementKind.RANGE_LOD:
                break

    def _emit_shape(self, graph: SceneGraph, handle: int, context: LoadContext) -> None:
        node = graph.node(handle)
        atoms = node.late_loaded_atoms()
        if not atoms:
            return
        if len(atoms) > 1:
            context.warning(f"Object {node.object_id} has multiple LateLoadedPropertyAtomElement assignments!")
        location = self.lod_locations.get(atoms[0].segment_id)
        layer = graph.layer_name(handle)
        if location is None:
            context.warning(f"Missing LOD element {atoms[0].segment_id} for object {node.object_id} ({layer})")
            return

        cursor = location.cursor
        resume = cursor.position
        try:
            cursor.seek(location.position)
            lod = read_shape_lod(cursor, self.version, location.type_id)
            matrix = graph.accumulated_transform(handle)
            color = graph.inherited_color(handle)
            if emit_shape(self.model, node.kind, lod.data, matrix, color, layer) == 0:
                context.warning(f"Found empty element! ({layer})")
        except UnsupportedCodecError as exc:
            context.warning(str(exc))
        except (FormatError, CodecError, ValueError, IndexError, struct.error) as exc:
            context.warning(f"Failed decoding node element: {layer} ({exc})")
        finally:
            cursor.seek(resume)

    def _load_reference(self, graph: SceneGraph, handle: int, context: LoadContext) -> None:
        node = graph.node(handle)
        if node.parent is None:
            return
        partition: PartitionNode = node.element
        file_name = partition.file_name

        if context.reference_depth >= self.options.max_reference_depth:
            self.model.add_external_reference(file_name, False)
            context.warning(f"External reference {file_name} exceeds nesting limit of {self.options.max_reference_depth}")
            return
        try:
            url = resolve_reference(context.base_url, file_name or "")
        except ValueError:
            self.model.add_external_reference(file_name, False)
            context.warning(f"Found malformed external reference: {file_name}")
            return

        exists = self.options.url_exists or (lambda target: url_exists(target, self.options.timeout))
        if not exists(url):
            self.model.add_external_reference(file_name, False)
            context.warning(f"Found missing external reference: {url}")
            return

        nested_context = context.child(url)
        try:
            referenced = JTImporter(self.options, context=nested_context).load_url(url)
        except (JTError, OSError, ValueError) as exc:
            self.model.add_external_reference(file_name, False)
            context.warning(f"Failed loading external reference: {url} ({exc})")
            return

        self.model.add_external_reference(file_name, True)
        context.merge(nested_context)
        for reference in referenced.external_references:
            self.model.add_external_reference(reference.file_name, reference.resolved)
        if self.options.skip_geometry:
            return

        matrix = graph.accumulated_transform(handle)
        for layer, batches in referenced.faces.items():
            for batch in batches:
                self.model.add_triangles(transform_triangle_batch(batch, matrix), layer)
        for layer, lines in referenced.polylines.items():
            for line in lines:
                self.model.add_polyline(PolylineBatch(transform_points(line.vertices, matrix), line.colors), layer)
        for layer, clouds in referenced.points.items():
            for cloud in clouds:
                self.model.add_points(PointBatch(transform_points(cloud.vertices, matrix), cloud.colors), layer)


def load_file(path: Union[str, Path], options: Optional[LoadOptions] = None) -> JTModel:
    return JTImporter(options).load_file(path)


def load_url(url: str, options: Optional[LoadOptions] = None) -> JTModel:
    return JTImporter(options).load_url(url)
