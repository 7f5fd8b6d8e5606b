from __future__ import annotations

from stardew_mod_manager.services.mod_manager import ModManager
from stardew_mod_manager.services.smapi_installer import SmapiInstaller

__all__: list[str] = [
    "ModManager",
    "SmapiInstaller",
]
