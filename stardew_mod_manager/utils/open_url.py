# stardew_mod_manager/utils/open_url.py

"""Hands ``steam://`` and https URIs to the handler the OS registered for them.

Bundled builds (PyInstaller, AppImage) run with their own LD_LIBRARY_PATH,
which breaks the Steam client or browser started through xdg-open, so those
builds launch the opener with the pre-bundle library paths restored.
"""

from __future__ import annotations

import logging
import os
import platform
import subprocess
import sys
import webbrowser

logger = logging.getLogger("stardewmodmgr.open_url")

__all__ = ["open_url"]

_BUNDLE_ENV_KEYS = ("LD_LIBRARY_PATH", "LD_PRELOAD")


def open_url(url: str) -> bool:
    """Opens ``url`` and returns whether a handler could be started.

    The handler runs detached; True does not mean Steam accepted the URI.
    """
    system = platform.system()
    if system == "Windows":
        return _start_windows(url)

    bundled = getattr(sys, "frozen", False) or bool(os.environ.get("APPIMAGE"))
    if not bundled and _start_qt(url):
        return True

    opener = "open" if system == "Darwin" else "xdg-open"
    return _start_opener(opener, url) or _start_browser(url)


def _start_windows(url: str) -> bool:
    try:
        os.startfile(url)  # type: ignore[attr-defined]
    except OSError as exc:
        logger.error("No handler accepted %s: %s", url, exc)
        return False
    return True


def _start_qt(url: str) -> bool:
    try:
        from PyQt6.QtCore import QUrl
        from PyQt6.QtGui import QDesktopServices
    except ImportError:
        return False
    return bool(QDesktopServices.openUrl(QUrl(url)))


def _unbundled_env() -> dict[str, str]:
    """Environment with the library paths saved by the bundler as ``*_ORIG``."""
    env = dict(os.environ)
    for key in _BUNDLE_ENV_KEYS:
        original = env.pop(f"{key}_ORIG", None)
        if original is not None:
            env[key] = original
        else:
            env.pop(key, None)
    return env


def _start_opener(opener: str, url: str) -> bool:
    try:
        subprocess.Popen(
            [opener, url],
            env=_unbundled_env(),
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except FileNotFoundError:
        logger.warning("%s is not installed", opener)
        return False
    except OSError as exc:
        logger.warning("Could not run %s for %s: %s", opener, url, exc)
        return False
    return True


def _start_browser(url: str) -> bool:
    try:
        return webbrowser.open(url)
    except webbrowser.Error as exc:
        logger.error("Could not open %s: %s", url, exc)
        return False
