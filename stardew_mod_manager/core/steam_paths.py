"""Steam installation path detection.

Probes, in order: the Windows registry, the STEAM_PATH environment variable,
the Program Files environment variables, conventional folders on every fixed
drive (plus the usual home directory locations on Linux and macOS), and
finally a hard-coded Windows default that is returned without checking it.
"""

from __future__ import annotations

import logging
import os
import platform
from pathlib import Path

import psutil

try:
    import winreg
except ImportError:  # Not on Windows
    winreg = None

__all__ = [
    "FALLBACK_STEAM_PATH",
    "find_steam_path",
    "steam_path_from_registry",
    "steam_path_from_environment",
    "default_steam_paths",
]

logger = logging.getLogger("stardewmodmgr.steam_paths")

FALLBACK_STEAM_PATH = r"C:\Program Files (x86)\Steam"

# (hive name, key, value name)
_REGISTRY_LOCATIONS = (
    ("HKEY_LOCAL_MACHINE", r"SOFTWARE\WOW6432Node\Valve\Steam", "InstallPath"),
    ("HKEY_LOCAL_MACHINE", r"SOFTWARE\Valve\Steam", "InstallPath"),
    ("HKEY_CURRENT_USER", r"SOFTWARE\Valve\Steam", "SteamPath"),
)

_DRIVE_RELATIVE_PATHS = (
    ("Program Files", "Steam"),
    ("Program Files (x86)", "Steam"),
    ("Games", "Steam"),
    ("Steam",),
    ("Portable Steam", "Steam"),
)


def find_steam_path() -> str:
    """Resolve the Steam installation directory.

    Returns:
        The first candidate that exists, or FALLBACK_STEAM_PATH.
    """
    logger.debug("Resolving Steam installation path")

    registry_path = steam_path_from_registry()
    if registry_path:
        logger.debug("Using Steam path from registry: %s", registry_path)
        return registry_path

    env_path = steam_path_from_environment()
    if env_path:
        logger.debug("Using Steam path from environment: %s", env_path)
        return env_path

    for path in default_steam_paths():
        if os.path.isdir(path):
            logger.debug("Using default Steam path: %s", path)
            return path

    logger.warning("Using fallback Steam path: %s", FALLBACK_STEAM_PATH)
    return FALLBACK_STEAM_PATH


def steam_path_from_registry() -> str | None:
    """Read Steam's install path from the registry (Windows only)."""
    if winreg is None:
        return None

    for hive_name, key_path, value_name in _REGISTRY_LOCATIONS:
        try:
            hive = getattr(winreg, hive_name)
            with winreg.OpenKey(hive, key_path) as key:
                value, _ = winreg.QueryValueEx(key, value_name)
        except OSError:
            continue

        if isinstance(value, str) and value and os.path.isdir(value):
            # HKCU stores the path with forward slashes
            return os.path.abspath(value) if value_name == "SteamPath" else value

    return None


def steam_path_from_environment() -> str | None:
    """STEAM_PATH override, then ProgramFiles(x86)/ProgramFiles + Steam."""
    steam_path = os.getenv("STEAM_PATH")
    if steam_path and os.path.isdir(steam_path):
        return steam_path

    program_files = os.getenv("ProgramFiles(x86)") or os.getenv("ProgramFiles")
    if program_files:
        candidate = os.path.join(program_files, "Steam")
        if os.path.isdir(candidate):
            return candidate

    return None


def default_steam_paths() -> list[str]:
    """Conventional install locations to probe, in priority order."""
    paths: list[str] = []

    for drive in _fixed_drives():
        for parts in _DRIVE_RELATIVE_PATHS:
            paths.append(os.path.join(drive, *parts))

    system = platform.system()
    home = Path.home()
    if system == "Linux":
        paths.extend(
            str(p)
            for p in (
                home / ".local" / "share" / "Steam",
                home / ".steam" / "steam",
                home / ".var" / "app" / "com.valvesoftware.Steam" / ".local" / "share" / "Steam",
            )
        )
    elif system == "Darwin":
        paths.append(str(home / "Library" / "Application Support" / "Steam"))

    logger.debug("Generated %d default Steam paths", len(paths))
    return paths


def _fixed_drives() -> list[str]:
    """Mount points of fixed drives on Windows (empty elsewhere)."""
    if platform.system() != "Windows":
        return []

    try:
        partitions = psutil.disk_partitions(all=False)
    except (psutil.Error, OSError) as e:
        logger.warning("Failed to enumerate drives: %s", e)
        return []

    return [p.mountpoint for p in partitions if "fixed" in p.opts.split(",")]
