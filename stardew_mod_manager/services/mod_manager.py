"""Mod folder management and mod pack import/export.

Mods live as folders in ``<game>/Mods`` (enabled) and ``<game>/DisabledMods``
(disabled). A mod pack is a zip snapshot of the Mods folder.
"""

from __future__ import annotations

import logging
import shutil
import zipfile
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from stardew_mod_manager.config import ModPackInfo

if TYPE_CHECKING:
    from stardew_mod_manager.config import JsonConfigurationService
    from stardew_mod_manager.services.smapi_installer import SmapiInstaller

__all__ = ["ModManager", "Mod", "MODS_FOLDER", "DISABLED_MODS_FOLDER"]

logger = logging.getLogger("stardewmodmgr.mods")

MODS_FOLDER = "Mods"
DISABLED_MODS_FOLDER = "DisabledMods"


@dataclass(frozen=True)
class Mod:
    """A mod folder.

    Attributes:
        name: Folder name.
        is_enabled: True if it lives in Mods, False if in DisabledMods.
    """

    name: str
    is_enabled: bool


class ModManager:
    """Lists, toggles, exports and installs mods for the game folder of an installer."""

    def __init__(self, installer: SmapiInstaller, config_service: JsonConfigurationService) -> None:
        self._installer = installer
        self._config_service = config_service
        self.mods: list[Mod] = []
        self.refresh_mods()

    @property
    def mods_path(self) -> Path:
        return self._installer.stardew_path / MODS_FOLDER

    @property
    def disabled_mods_path(self) -> Path:
        return self._installer.stardew_path / DISABLED_MODS_FOLDER

    @property
    def recent_mod_packs(self) -> tuple[ModPackInfo, ...]:
        return self._config_service.config.recent_mod_packs

    def refresh_mods(self) -> list[Mod]:
        """Rescan both folders; mods are sorted by name."""
        mods = [Mod(p.name, True) for p in _subdirectories(self.mods_path)]
        mods += [Mod(p.name, False) for p in _subdirectories(self.disabled_mods_path)]
        self.mods = sorted(mods, key=lambda m: m.name)
        logger.debug("Found %d mods", len(self.mods))
        return self.mods

    def toggle_mod(self, mod: Mod) -> Mod:
        """Move a mod folder to the other side.

        Returns:
            The mod with its new enabled state.

        Raises:
            FileNotFoundError: The mod folder does not exist where expected.
        """
        self.mods_path.mkdir(parents=True, exist_ok=True)
        self.disabled_mods_path.mkdir(parents=True, exist_ok=True)

        if mod.is_enabled:
            source, target = self.mods_path / mod.name, self.disabled_mods_path / mod.name
        else:
            source, target = self.disabled_mods_path / mod.name, self.mods_path / mod.name

        if not source.is_dir():
            raise FileNotFoundError(f"Mod folder not found: {source}")

        shutil.move(str(source), str(target))
        logger.info("%s mod %s", "Disabled" if mod.is_enabled else "Enabled", mod.name)

        toggled = replace(mod, is_enabled=not mod.is_enabled)
        self.refresh_mods()
        return toggled

    def export_mod_pack(self, path: str | Path) -> Path:
        """Zip the Mods folder into ``path``, replacing an existing file."""
        pack_path = Path(path)
        if pack_path.exists():
            pack_path.unlink()

        self.mods_path.mkdir(parents=True, exist_ok=True)
        archive_base = pack_path.with_suffix("") if pack_path.suffix == ".zip" else pack_path
        created = Path(shutil.make_archive(str(archive_base), "zip", root_dir=self.mods_path))
        if created != pack_path:
            created.replace(pack_path)

        logger.info("Exported mod pack to %s", pack_path)
        return pack_path

    def install_mod_pack(self, path: str | Path) -> list[Mod]:
        """Replace all mods with the contents of a mod pack.

        Both Mods and DisabledMods are emptied first; the pack is extracted
        into Mods and recorded as the most recent pack.

        Raises:
            FileNotFoundError: The pack does not exist.
            zipfile.BadZipFile: The pack is not a zip archive.
        """
        pack_path = Path(path)
        if not pack_path.is_file():
            raise FileNotFoundError(f"Mod pack not found: {pack_path}")

        with zipfile.ZipFile(pack_path) as archive:
            _clear_or_create(self.mods_path)
            _clear_or_create(self.disabled_mods_path)
            archive.extractall(self.mods_path)

        logger.info("Installed mod pack %s", pack_path)
        self._remember_mod_pack(pack_path)
        return self.refresh_mods()

    def delete_recent_mod_pack(self, info: ModPackInfo) -> None:
        packs = tuple(p for p in self.recent_mod_packs if p.path != info.path)
        self._config_service.update_config(self._config_service.config.with_changes(recent_mod_packs=packs))

    def _remember_mod_pack(self, pack_path: Path) -> None:
        entry = ModPackInfo(path=str(pack_path), last_install_time=datetime.now(timezone.utc))
        others = tuple(p for p in self.recent_mod_packs if p.path != entry.path)
        self._config_service.update_config(self._config_service.config.with_changes(recent_mod_packs=(entry, *others)))


def _subdirectories(folder: Path) -> list[Path]:
    if not folder.is_dir():
        return []
    return [p for p in folder.iterdir() if p.is_dir()]


def _clear_or_create(folder: Path) -> None:
    if not folder.is_dir():
        folder.mkdir(parents=True)
        return

    for child in folder.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()
