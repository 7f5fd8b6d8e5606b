"""Stardew Mod Manager: SMAPI installation and Steam launch option management."""

from __future__ import annotations

from stardew_mod_manager.version import __version__

__all__ = ["__version__"]
