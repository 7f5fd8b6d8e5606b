"""
Steam session.

Resolves the Steam installation, lists the local profiles found in their
localconfig.vdf files, tracks the current profile and exposes launch option
access, game launching and closing the Steam client.
"""

from __future__ import annotations

import logging
import platform
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Callable

import psutil
from PyQt6.QtCore import QObject, pyqtSignal

from stardew_mod_manager.core.errors import NoSteamUserError, SteamEnvironmentError
from stardew_mod_manager.core.localconfig_store import LocalConfigStore
from stardew_mod_manager.core.steam_paths import find_steam_path
from stardew_mod_manager.core.steam_user import SteamUser
from stardew_mod_manager.core.vdf_document import find_entry
from stardew_mod_manager.utils.open_url import open_url

if TYPE_CHECKING:
    from stardew_mod_manager.config import JsonConfigurationService

__all__ = ["SteamSession", "STEAM_PROCESS_NAMES", "read_steam_user"]

logger = logging.getLogger("stardewmodmgr.steam")

STEAM_PROCESS_NAMES = ("steam", "steam.exe")

GRACEFUL_CLOSE_TIMEOUT = 3.0
KILL_TIMEOUT = 1.0

UserCallback = Callable[[SteamUser], None]


def read_steam_user(config_path: Path) -> SteamUser | None:
    """Extract the profile stored in one localconfig.vdf.

    The account id is the first key of the "friends" block and the nickname
    the first PersonaName inside it.

    Args:
        config_path: Path to a localconfig.vdf.

    Returns:
        The SteamUser, or None if the file has no usable friends block.
    """
    doc = LocalConfigStore.read_document(config_path)

    friends = find_entry(doc, "friends")
    if not isinstance(friends, dict) or not friends:
        logger.warning("Friends node not found in config: %s", config_path)
        return None

    user_id = next(iter(friends))
    nickname = find_entry(friends, "PersonaName")
    nickname = nickname.strip('"') if isinstance(nickname, str) else None

    if not user_id or not nickname:
        logger.warning("Invalid user data in config %s: id=%r nickname=%r", config_path, user_id, nickname)
        return None

    return SteamUser(id=user_id, nickname=nickname)


class SteamSession(QObject):
    """One Steam installation and the currently selected profile.

    Signals:
        current_user_changed: Emitted with the new SteamUser whenever a
            non-None user becomes current.
    """

    current_user_changed = pyqtSignal(object)

    def __init__(self, config_service: JsonConfigurationService, parent: QObject | None = None):
        """Resolves the Steam path and selects the first local user.

        Args:
            config_service: Source of the custom Steam path.
            parent: Parent QObject.
        """
        super().__init__(parent)
        self._config_service = config_service
        self._subscribers: list[UserCallback] = []
        self._current_user: SteamUser | None = None

        self.steam_path = self.resolve_steam_path()
        self.store = LocalConfigStore(self.steam_path)

        try:
            users = self.get_local_users()
        except SteamEnvironmentError as e:
            logger.warning("No local Steam users available: %s", e)
            users = []
        if users:
            self.current_user = users[0]

        logger.info("SteamSession initialized with path: %s", self.steam_path)

    # ===== STEAM PATH =====

    def resolve_steam_path(self) -> str:
        custom = self._config_service.config.custom_steam_path
        path = custom or find_steam_path()
        logger.debug("Resolved Steam path: %s", path)
        return path

    def set_custom_steam_path(self, path: str | None) -> None:
        """Persist a custom Steam path (None restores detection) and re-resolve."""
        logger.info("Setting custom Steam path: %s", path)
        self._config_service.update_config(self._config_service.config.with_changes(custom_steam_path=path or None))
        self.steam_path = self.resolve_steam_path()
        self.store = LocalConfigStore(self.steam_path)
        logger.info("Steam path updated to: %s", self.steam_path)

    # ===== USERS =====

    def get_local_users(self) -> list[SteamUser]:
        """List the profiles found in every localconfig.vdf under userdata.

        Unreadable files and files without a friends/PersonaName pair are
        logged and skipped.

        Raises:
            SteamUserdataNotFoundError: userdata does not exist.
            LocalConfigNotFoundError: userdata contains no localconfig.vdf.
        """
        logger.debug("Retrieving local users list")
        users: list[SteamUser] = []

        for config_path in self.store.find_all_localconfigs():
            try:
                user = read_steam_user(config_path)
            except (OSError, ValueError, RecursionError) as e:
                logger.error("Failed to parse user config %s: %s", config_path, e)
                continue
            if user is not None:
                logger.debug("Found Steam user: %s - %s", user.id, user.nickname)
                users.append(user)

        logger.info("Retrieved %d local Steam users", len(users))
        return users

    @property
    def current_user(self) -> SteamUser | None:
        return self._current_user

    @current_user.setter
    def current_user(self, user: SteamUser | None) -> None:
        self._current_user = user
        if user is None:
            return

        logger.info("Current Steam user: %s", user)
        self.current_user_changed.emit(user)
        for callback in list(self._subscribers):
            callback(user)

    def subscribe_current_user(self, callback: UserCallback) -> None:
        """Call ``callback(user)`` whenever a new current user is set."""
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe_current_user(self, callback: UserCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _require_user(self) -> SteamUser:
        if self._current_user is None:
            logger.error("No user selected when resolving local config path")
            raise NoSteamUserError("No Steam user selected")
        return self._current_user

    # ===== LAUNCH OPTIONS =====

    def get_launch_options(self, app_id: str) -> str | None:
        return self.store.get_launch_options(self._require_user(), app_id)

    def set_launch_options(self, app_id: str, launch_options: str) -> bool:
        return self.store.set_launch_options(self._require_user(), app_id, launch_options)

    # ===== PROCESS CONTROL =====

    @staticmethod
    def launch_game(app_id: str) -> bool:
        """Ask the Steam URI handler to run a game. No launch confirmation."""
        logger.info("Launching Steam game: %s", app_id)
        return open_url(f"steam://rungameid/{app_id}")

    @staticmethod
    def is_steam_running() -> bool:
        return bool(_find_steam_processes())

    @staticmethod
    def close_steam() -> None:
        """Close every Steam client process.

        Unresponsive processes are killed right away. Others get a close
        request, 3 seconds to exit, then a kill and 1 more second. A failure
        on one process is logged and the remaining ones are still handled.
        """
        logger.info("Closing Steam")
        processes = _find_steam_processes()
        logger.debug("Found %d Steam processes", len(processes))

        for proc in processes:
            try:
                _close_process(proc)
                logger.debug("Closed Steam process %d", proc.pid)
            except (psutil.Error, OSError, subprocess.SubprocessError) as e:
                logger.warning("Failed to close Steam process %d: %s", proc.pid, e)

        logger.info("Steam closure completed")


def _find_steam_processes() -> list[psutil.Process]:
    processes = []
    for proc in psutil.process_iter(["name", "pid"]):
        try:
            name = (proc.info["name"] or "").lower()
            if name in STEAM_PROCESS_NAMES:
                processes.append(proc)
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return processes


def _close_process(proc: psutil.Process) -> None:
    try:
        status = proc.status()
    except psutil.NoSuchProcess:
        return

    if status in (psutil.STATUS_ZOMBIE, psutil.STATUS_STOPPED):
        logger.debug("Killing unresponsive Steam process %d", proc.pid)
        proc.kill()
        return

    _request_close(proc)
    try:
        proc.wait(timeout=GRACEFUL_CLOSE_TIMEOUT)
        return
    except psutil.TimeoutExpired:
        pass

    logger.debug("Forcibly killing Steam process %d", proc.pid)
    proc.kill()
    try:
        proc.wait(timeout=KILL_TIMEOUT)
    except psutil.TimeoutExpired:
        logger.warning("Steam process %d still running after kill", proc.pid)


def _request_close(proc: psutil.Process) -> None:
    """Graceful close: WM_CLOSE via taskkill on Windows, SIGTERM elsewhere."""
    if platform.system() == "Windows":
        subprocess.run(
            ["taskkill", "/PID", str(proc.pid)],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    else:
        proc.terminate()
    logger.debug("Sent close request to Steam process %d", proc.pid)
