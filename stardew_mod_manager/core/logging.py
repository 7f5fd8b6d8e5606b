"""Logging setup for Stardew Mod Manager.

Every module logs through ``logging.getLogger("stardewmodmgr.<area>")``; the
handlers live on the ``stardewmodmgr`` parent configured here.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from stardew_mod_manager.config import get_app_data_dir

__all__ = ["logger", "setup_logging", "default_log_file", "level_from_env"]

logger = logging.getLogger("stardewmodmgr")

LOG_FILE_NAME = "stardewmodmgr.log"
LOG_MAX_BYTES = 1_000_000
LOG_BACKUP_COUNT = 3


def default_log_file() -> Path:
    """Returns the log file path inside the per-user application data folder."""
    return get_app_data_dir() / "logs" / LOG_FILE_NAME


def level_from_env(default: int = logging.INFO) -> int:
    """Reads the level name from SMM_LOG_LEVEL, falling back to ``default``."""
    name = os.getenv("SMM_LOG_LEVEL", "").strip().upper()
    if not name:
        return default
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else default


def setup_logging(level: int = logging.INFO, log_file: Path | None = None) -> None:
    """Attach console and (optionally) rotating file handlers to ``logger``.

    The console shows ``level`` and above. The file, when given, keeps every
    DEBUG record across up to ``LOG_BACKUP_COUNT`` rotated copies. Calling
    this again after handlers exist only adjusts the logger level.
    """
    logger.setLevel(logging.DEBUG if log_file is not None else level)
    if logger.handlers:
        return

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s %(message)s", "%H:%M:%S"))
    logger.addHandler(console)

    if log_file is None:
        return
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
        )
    except OSError as exc:
        logger.warning("File logging disabled, cannot open %s: %s", log_file, exc)
        return
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    logger.addHandler(file_handler)
