from __future__ import annotations


class JTError(Exception):
    """Base class for everything the JT reader raises."""


class FormatError(JTError):
    """The byte stream does not follow the expected layout. Aborts the load."""


class CursorError(FormatError):
    pass


class SignatureError(FormatError):
    pass


class UnsupportedVersionError(FormatError):
    def __init__(self, version: float) -> None:
        super().__init__(f"Unsupported JT version: {version}")
        self.version = version


class DuplicateObjectIdError(FormatError):
    def __init__(self, object_id: int) -> None:
        super().__init__(f"Found duplicate ObjectId: {object_id}")
        self.object_id = object_id


class InvalidSegmentSizeError(FormatError):
    pass


class RecursionLimitError(FormatError):
    pass


class CodecError(JTError):
    """A compressed block could not be inflated."""


class UnsupportedCodecError(JTError):
    """Geometry payload relies on a codec this reader does not implement."""


class MalformedDateError(JTError):
    pass
