# stardew_mod_manager/core/localconfig_store.py

"""
Reads and rewrites launch options in Steam's per-user localconfig.vdf.

The file is located somewhere beneath userdata/<account id>/ and is handled
as a whole: parse, find the app block, replace LaunchOptions, serialize,
overwrite. There is no file locking; Steam must be closed before writing or
the client may overwrite the change on exit.
"""
from __future__ import annotations

import logging
from pathlib import Path

from stardew_mod_manager.core import vdf_codec
from stardew_mod_manager.core.errors import LocalConfigNotFoundError, SteamUserdataNotFoundError
from stardew_mod_manager.core.steam_user import SteamUser
from stardew_mod_manager.core.vdf_document import VdfDocument, find_entry, replace_first

__all__ = ["LocalConfigStore", "LOCALCONFIG_FILE_NAME", "LAUNCH_OPTIONS_KEY"]

logger = logging.getLogger("stardewmodmgr.localconfig")

LOCALCONFIG_FILE_NAME = "localconfig.vdf"
LAUNCH_OPTIONS_KEY = "LaunchOptions"


class LocalConfigStore:
    """Launch option access for the localconfig.vdf files of one Steam install."""

    def __init__(self, steam_path: str | Path):
        """Initialize the store.

        Args:
            steam_path: Steam installation directory (contains userdata/)
        """
        self.steam_path = Path(steam_path)

    @property
    def userdata_path(self) -> Path:
        return self.steam_path / "userdata"

    # ===== LOCATING FILES =====

    def find_all_localconfigs(self, user: SteamUser | None = None) -> list[Path]:
        """Find every localconfig.vdf below userdata (or below one user's folder).

        Args:
            user: Restrict the search to this user's directory

        Returns:
            Matching files in sorted path order

        Raises:
            SteamUserdataNotFoundError: The directory to search does not exist
            LocalConfigNotFoundError: No localconfig.vdf was found
        """
        search_root = self.userdata_path
        if user is not None:
            search_root = search_root / user.id

        logger.debug("Searching for %s in %s", LOCALCONFIG_FILE_NAME, search_root)

        if not search_root.is_dir():
            logger.error("Steam userdata directory not found: %s", search_root)
            raise SteamUserdataNotFoundError(f"Steam userdata directory not found: {search_root}")

        config_files = sorted(p for p in search_root.rglob(LOCALCONFIG_FILE_NAME) if p.is_file())
        if not config_files:
            logger.error("No %s files found in %s", LOCALCONFIG_FILE_NAME, search_root)
            raise LocalConfigNotFoundError(f"No {LOCALCONFIG_FILE_NAME} found in {search_root}")

        logger.debug("Found %d local config files", len(config_files))
        return config_files

    def find_localconfig(self, user: SteamUser) -> Path:
        """Returns the localconfig.vdf used for ``user`` (first match)."""
        config_path = self.find_all_localconfigs(user)[0]
        logger.debug("Selected local config for user %s: %s", user.id, config_path)
        return config_path

    # ===== LOAD / SAVE =====

    @staticmethod
    def read_document(config_path: Path) -> VdfDocument:
        with open(config_path, "r", encoding="utf-8-sig", errors="replace") as f:
            return vdf_codec.parse(f.read())

    @staticmethod
    def save(config_path: Path, doc: VdfDocument) -> None:
        with open(config_path, "w", encoding="utf-8", newline="") as f:
            f.write(vdf_codec.serialize(doc))

    def load(self, user: SteamUser) -> tuple[Path, VdfDocument]:
        config_path = self.find_localconfig(user)
        return config_path, self.read_document(config_path)

    # ===== LAUNCH OPTIONS =====

    def get_launch_options(self, user: SteamUser, app_id: str) -> str | None:
        """Get the unescaped launch options of an app.

        Args:
            user: Steam user whose config is read
            app_id: Steam app ID

        Returns:
            The launch options, or None if the app block or key is absent
        """
        _require_app_id(app_id)
        logger.debug("Getting launch options for app %s", app_id)

        _, doc = self.load(user)
        options = extract_launch_options(doc, app_id)

        logger.debug("Launch options for app %s: %s", app_id, options)
        return options

    def set_launch_options(self, user: SteamUser, app_id: str, launch_options: str) -> bool:
        """Replace the launch options of an app and rewrite the file.

        Args:
            user: Steam user whose config is modified
            app_id: Steam app ID
            launch_options: New, unescaped launch options

        Returns:
            True if the file was rewritten, False if the app block or its
            LaunchOptions key is missing (the file is left untouched)
        """
        _require_app_id(app_id)
        logger.info("Setting launch options for app %s: %s", app_id, launch_options)

        config_path, doc = self.load(user)
        if not update_launch_options(doc, app_id, launch_options):
            logger.warning("No changes made to launch options for app %s", app_id)
            return False

        self.save(config_path, doc)
        logger.info("Updated launch options for app %s in %s", app_id, config_path)
        return True


def extract_launch_options(doc: VdfDocument, app_id: str) -> str | None:
    """Reads LaunchOptions from the first block keyed by ``app_id``."""
    game_entry = find_entry(doc, app_id)
    if not isinstance(game_entry, dict):
        logger.debug("Game entry not found for app %s", app_id)
        return None

    options = find_entry(game_entry, LAUNCH_OPTIONS_KEY)
    if not isinstance(options, str):
        logger.debug("LaunchOptions not found for app %s", app_id)
        return None

    return vdf_codec.unescape_vdf_string(_strip_one_quote_layer(options))


def update_launch_options(doc: VdfDocument, app_id: str, launch_options: str) -> bool:
    """Stores escaped, quoted launch options in the ``app_id`` block."""
    game_entry = find_entry(doc, app_id)
    if not isinstance(game_entry, dict):
        logger.warning("Game entry not found for app %s", app_id)
        return False

    quoted = f'"{vdf_codec.escape_vdf_string(launch_options)}"'
    if not replace_first(game_entry, LAUNCH_OPTIONS_KEY, quoted):
        logger.warning("LaunchOptions key not found for app %s", app_id)
        return False

    return True


def _strip_one_quote_layer(value: str) -> str:
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value[1:-1]
    return value.strip('"')


def _require_app_id(app_id: str) -> None:
    if not app_id:
        raise ValueError("App ID cannot be empty")
