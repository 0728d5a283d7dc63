"""JSON file helpers for GeoMapAgent.

The reference store and exported map specs are plain JSON files. Writes go
to a temporary file in the target directory that is then renamed over the
target, so a reader sees either the old file or the new one, never a torn
write.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


def _encode(obj: Any) -> Any:
    """json.dumps ``default`` hook for models, dataclasses and paths."""
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, Path):
        return str(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def dumps(data: Any, indent: Optional[int] = 2) -> str:
    """JSON text with non-ASCII place names left readable."""
    return json.dumps(data, indent=indent, ensure_ascii=False, default=_encode)


def _replace_atomically(path: Path, text: str) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp_name, path)
    except OSError:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def save_json(data: Any, path: str | Path, indent: int = 2) -> None:
    """Write ``data`` as JSON to ``path``, creating parent directories.

    Raises:
        TypeError: If ``data`` holds values JSON cannot represent.
        OSError: If the file cannot be written or renamed into place.
    """
    path = Path(path)
    try:
        text = dumps(data, indent=indent)
    except (TypeError, ValueError) as exc:
        logger.error("Persistence: cannot serialize data for %s: %s", path, exc)
        raise

    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        _replace_atomically(path, text)
    except OSError as exc:
        logger.error("Persistence: write to %s failed: %s", path, exc)
        raise
    logger.debug("Persistence: wrote %s (%d chars)", path, len(text))


def load_json(path: str | Path) -> Optional[Any]:
    """Parsed contents of ``path``; None when it is missing, empty or corrupt."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("Persistence: %s does not exist", path)
        return None
    except OSError as exc:
        logger.warning("Persistence: cannot read %s: %s", path, exc)
        return None

    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("Persistence: %s is not valid JSON: %s", path, exc)
        return None


def remove_file(path: str | Path) -> bool:
    """Delete ``path``; False when there was nothing to delete."""
    path = Path(path)
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    logger.debug("Persistence: removed %s", path)
    return True
