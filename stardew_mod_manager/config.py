"""
Configuration - persisted mod manager settings.

Holds the user's custom Steam/Stardew paths and the list of recently installed
mod packs in a camelCase JSON file under the per-user application data folder.
Loading never fails: a missing, empty or corrupt file yields the defaults.
"""

from __future__ import annotations

import logging
import os
import platform
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from stardew_mod_manager.utils.json_utils import load_json, save_json

logger = logging.getLogger("stardewmodmgr.config")


__all__ = ["ModPackInfo", "ModManagerConfig", "JsonConfigurationService", "get_app_data_dir", "APP_FOLDER_NAME"]

APP_FOLDER_NAME = "StardewModManager"
CONFIG_FILE_NAME = "modmanagerconfig.json"

_INVALID = object()


def get_app_data_dir() -> Path:
    """Per-user application data folder (APPDATA on Windows, XDG config elsewhere)."""
    if platform.system() == "Windows":
        base = os.getenv("APPDATA")
        if base:
            return Path(base) / APP_FOLDER_NAME
        return Path.home() / "AppData" / "Roaming" / APP_FOLDER_NAME

    base = os.getenv("XDG_CONFIG_HOME")
    return (Path(base) if base else Path.home() / ".config") / APP_FOLDER_NAME


@dataclass(frozen=True)
class ModPackInfo:
    """A mod pack archive that was installed at some point.

    Attributes:
        path: Path of the zip archive.
        last_install_time: When it was last installed (UTC).
    """

    path: str
    last_install_time: datetime

    def to_json(self) -> dict[str, str]:
        return {"path": self.path, "lastInstallTime": self.last_install_time.isoformat()}

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> ModPackInfo | None:
        values = {str(k).lower(): v for k, v in data.items()}
        path = values.get("path")
        raw_time = values.get("lastinstalltime")
        if not isinstance(path, str) or not path:
            return None
        try:
            installed = datetime.fromisoformat(raw_time) if isinstance(raw_time, str) else None
        except ValueError:
            installed = None
        if installed is None:
            installed = datetime.fromtimestamp(0, tz=timezone.utc)
        return cls(path=path, last_install_time=installed)


@dataclass(frozen=True)
class ModManagerConfig:
    """Persisted settings.

    Attributes:
        custom_steam_path: Overrides Steam path detection when set.
        custom_stardew_path: Overrides the default game folder when set.
        recent_mod_packs: Recently installed packs, most recent first.
    """

    custom_steam_path: str | None = None
    custom_stardew_path: str | None = None
    recent_mod_packs: tuple[ModPackInfo, ...] = field(default_factory=tuple)

    def to_json(self) -> dict[str, Any]:
        return {
            "customSteamPath": self.custom_steam_path,
            "customStardewPath": self.custom_stardew_path,
            "recentModPacks": [pack.to_json() for pack in self.recent_mod_packs],
        }

    @classmethod
    def from_json(cls, data: Any) -> ModManagerConfig:
        if not isinstance(data, dict):
            return cls()

        # Property names are matched case-insensitively
        values = {str(k).lower(): v for k, v in data.items()}

        packs: list[ModPackInfo] = []
        for raw_pack in values.get("recentmodpacks") or []:
            if isinstance(raw_pack, dict):
                pack = ModPackInfo.from_json(raw_pack)
                if pack is not None:
                    packs.append(pack)

        return cls(
            custom_steam_path=_optional_str(values.get("customsteampath")),
            custom_stardew_path=_optional_str(values.get("customstardewpath")),
            recent_mod_packs=tuple(packs),
        )

    def with_changes(self, **changes: Any) -> ModManagerConfig:
        """Returns a copy with the given fields replaced."""
        return replace(self, **changes)


def _optional_str(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


class JsonConfigurationService:
    """Loads and saves ModManagerConfig as JSON.

    Also loads a ``.env`` file so STEAM_PATH, GITHUB_TOKEN and SMM_LOG_LEVEL
    can be provided without touching the environment.
    """

    def __init__(self, config_path: Path | None = None):
        """Initializes the service and loads the current configuration.

        Args:
            config_path: JSON file to use. Defaults to the application data folder.
        """
        load_dotenv()
        self.config_path = config_path or get_app_data_dir() / CONFIG_FILE_NAME
        self._config = self._load_config()

    @property
    def config(self) -> ModManagerConfig:
        return self._config

    @property
    def github_token(self) -> str | None:
        """Runtime-only GitHub access token, never persisted."""
        return os.getenv("GITHUB_TOKEN") or None

    def update_config(self, new_config: ModManagerConfig) -> None:
        """Saves ``new_config`` and makes it current.

        Raises:
            OSError: If the file could not be written; the current
                configuration stays unchanged.
        """
        self._save_config(new_config)
        self._config = new_config
        logger.info("Configuration updated: %s", self.config_path)

    def _load_config(self) -> ModManagerConfig:
        if not self.config_path.exists():
            logger.warning("Config file not found, creating defaults: %s", self.config_path)
            defaults = ModManagerConfig()
            try:
                self._save_config(defaults)
            except OSError:
                # Already logged by save_json; defaults still apply
                pass
            return defaults

        data = load_json(self.config_path, default=_INVALID)
        if data is _INVALID or not isinstance(data, dict):
            logger.warning("Config file empty or invalid, using defaults: %s", self.config_path)
            return ModManagerConfig()

        logger.info("Configuration loaded: %s", self.config_path)
        return ModManagerConfig.from_json(data)

    def _save_config(self, new_config: ModManagerConfig) -> None:
        if not save_json(self.config_path, new_config.to_json()):
            raise OSError(f"Failed to save configuration to {self.config_path}")
        logger.debug("Configuration saved: %s", self.config_path)
