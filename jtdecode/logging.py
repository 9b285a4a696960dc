from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Union

from .model import JTModel

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(level: Union[int, str] = logging.INFO, log_file: Optional[Path] = None) -> logging.Logger:
    """Attach console (and optional file) handlers to the ``jtdecode`` logger namespace."""

    root = logging.getLogger("jtdecode")
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    formatter = logging.Formatter(LOG_FORMAT)
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    return root


def write_load_report(model: JTModel, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    lines: List[str] = []
    lines.append("[model]")
    for key, value in model.model_information():
        lines.append(f"  {key:<20} {value}")

    lines.append("[load information]")
    for idx, (severity, message) in enumerate(model.load_information, start=1):
        lines.append(f"#{idx:04d} {severity:<16} {message}")

    lines.append("[unsupported entities]")
    for entity in model.unsupported_entities:
        lines.append(f"  {entity}")

    lines.append("[external references]")
    for ref in model.external_references:
        state = "resolved" if ref.resolved else "missing"
        lines.append(f"  {state:<8} {ref.file_name}")

    if model.scene is not None:
        lines.append("[scene graph]")
        lines.extend(model.scene.lsg_as_string().splitlines())
    destination.write_text("\n".join(lines) + "\n", encoding="utf-8")
