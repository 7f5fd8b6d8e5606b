"""JSON settings file helpers.

Reading never raises: a missing, blank or unreadable file gives the caller's
default. Writing goes through a sibling temp file that replaces the target,
so an interrupted save leaves the previous file intact.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

__all__ = ["load_json", "save_json"]

logger = logging.getLogger("stardewmodmgr.json_utils")


def load_json(path: Path, default: Any = None) -> Any:
    """Read a JSON file.

    Args:
        path: File to read. A UTF-8 byte order mark is accepted.
        default: Returned when the file is missing, blank or not valid
            JSON. None means an empty dict.

    Returns:
        The decoded value, or ``default``.
    """
    fallback = {} if default is None else default

    try:
        text = path.read_text(encoding="utf-8-sig")
    except FileNotFoundError:
        return fallback
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Cannot read %s: %s", path, exc)
        return fallback

    if not text.strip():
        logger.warning("JSON file is empty: %s", path)
        return fallback

    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        logger.warning("Invalid JSON in %s (line %d): %s", path, exc.lineno, exc.msg)
        return fallback


def save_json(path: Path, data: Any, ensure_parents: bool = True) -> bool:
    """Write ``data`` as indented UTF-8 JSON, replacing ``path`` atomically.

    Args:
        path: Target file.
        data: JSON-serializable value.
        ensure_parents: Create missing parent directories first.

    Returns:
        True if the file was replaced, False otherwise (the error is logged).
    """
    try:
        payload = json.dumps(data, indent=2, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        logger.error("Cannot serialize data for %s: %s", path, exc)
        return False

    tmp_name: str | None = None
    try:
        if ensure_parents:
            path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, path)
        return True
    except OSError as exc:
        logger.error("Failed to save JSON to %s: %s", path, exc)
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        return False
