"""
Per-load state: options, load information, unsupported entities and
progress accounting.  Every top-level load and every external reference
load gets its own ``LoadContext``; nothing here is module-global.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from .guid import describe

logger = logging.getLogger(__name__)

ERROR = "ERROR"
WARNING = "WARNING"
INFO = "INFO"

# bytes of element data between two progress notifications
PROGRESS_UPDATE_FREQUENCY = 64 * 1024


class ProgressListener(Protocol):
    def progress_changed(self, percent: int) -> None:
        ...


@dataclass
class LoadOptions:
    skip_geometry: bool = False
    skip_sub_partitions: bool = False
    break_after_clone: bool = True
    max_depth: int = 256
    max_reference_depth: int = 16
    url_exists: Optional[Callable[[str], bool]] = None
    progress_listeners: Sequence[ProgressListener] = ()
    timeout: float = 30.0
    profiling_enabled: bool = False


@dataclass
class LoadContext:
    source: str
    options: LoadOptions = field(default_factory=LoadOptions)
    base_url: Optional[str] = None
    reference_depth: int = 0
    file_length: int = 0
    load_information: List[Tuple[str, str]] = field(default_factory=list)
    unsupported_ids: List[str] = field(default_factory=list)
    read_bytes: int = 0
    _progress_interval: int = field(default=0, repr=False)

    def __post_init__(self) -> None:
        if self.base_url is None:
            self.base_url = self.source

    def add_information(self, severity: str, message: str) -> None:
        entry = (severity, message)
        if entry in self.load_information:
            return
        self.load_information.append(entry)
        if severity == ERROR:
            logger.error(message)
        elif severity == WARNING:
            logger.warning(message)
        else:
            logger.info("%s: %s", severity, message)

    def warning(self, message: str) -> None:
        self.add_information(WARNING, message)

    def error(self, message: str) -> None:
        self.add_information(ERROR, message)

    def add_unsupported(self, type_id: str) -> None:
        if type_id not in self.unsupported_ids:
            logger.debug("Skipping unsupported element %s", describe(type_id))
            self.unsupported_ids.append(type_id)

    @property
    def unsupported_entities(self) -> List[str]:
        return [describe(type_id) for type_id in self.unsupported_ids]

    @property
    def warnings(self) -> List[str]:
        return [message for severity, message in self.load_information if severity == WARNING]

    def merge(self, other: "LoadContext") -> None:
        """Take over the load information and unsupported ids of a nested load."""
        for severity, message in other.load_information:
            self.add_information(severity, message)
        for type_id in other.unsupported_ids:
            self.add_unsupported(type_id)

    def child(self, source: str) -> "LoadContext":
        return LoadContext(
            source=source,
            options=self.options,
            base_url=self.base_url,
            reference_depth=self.reference_depth + 1,
        )

    def update_progress(self, byte_count: int) -> None:
        self.read_bytes += byte_count
        self._progress_interval += byte_count
        if not self.options.progress_listeners or self._progress_interval <= PROGRESS_UPDATE_FREQUENCY:
            return
        self._progress_interval -= PROGRESS_UPDATE_FREQUENCY
        percent = int(self.read_bytes * 100.0 / self.file_length) if self.file_length else 0
        for listener in self.options.progress_listeners:
            if listener is not None:
                listener.progress_changed(min(percent, 100))
