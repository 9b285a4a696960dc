"""
JT scene-interchange decoding: binary framing, logical scene graph assembly
and geometry reconstruction.
"""

from .context import LoadContext, LoadOptions, PROGRESS_UPDATE_FREQUENCY
from .cursor import ByteCursor
from .entities import ElementKind
from .errors import (
    CodecError,
    CursorError,
    DuplicateObjectIdError,
    FormatError,
    InvalidSegmentSizeError,
    JTError,
    MalformedDateError,
    RecursionLimitError,
    SignatureError,
    UnsupportedCodecError,
    UnsupportedVersionError,
)
from .guid import GUID
from .importer import JTImporter, load_file, load_url, parse_signature
from .logging import setup_logging, write_load_report
from .model import JTModel, PointBatch, PolylineBatch, TriangleBatch
from .scene import DEFAULT_LAYER, SceneAssembler, SceneGraph, SceneNode, strip_name_suffix

__all__ = [
    "LoadContext",
    "LoadOptions",
    "PROGRESS_UPDATE_FREQUENCY",
    "ByteCursor",
    "ElementKind",
    "JTError",
    "FormatError",
    "CursorError",
    "DuplicateObjectIdError",
    "InvalidSegmentSizeError",
    "RecursionLimitError",
    "SignatureError",
    "UnsupportedVersionError",
    "CodecError",
    "UnsupportedCodecError",
    "MalformedDateError",
    "GUID",
    "JTImporter",
    "load_file",
    "load_url",
    "parse_signature",
    "setup_logging",
    "write_load_report",
    "JTModel",
    "TriangleBatch",
    "PolylineBatch",
    "PointBatch",
    "DEFAULT_LAYER",
    "SceneAssembler",
    "SceneGraph",
    "SceneNode",
    "strip_name_suffix",
]
