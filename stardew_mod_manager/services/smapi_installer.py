"""SMAPI installation and enable-toggle workflow.

Installs the latest SMAPI release into the Stardew Valley folder and routes
the game's Steam launch options through the SMAPI loader.

The install workflow is a linear state machine:

    IDLE -> FETCHING_RELEASE -> DOWNLOADING -> EXTRACTING -> INSTALLING
         -> VERIFYING -> DONE | FAILED | CANCELLED

It runs synchronously (callers put it on a worker thread, see
``workers.smapi_install_worker``) and reports each stage and its progress as
LoadingProgress events. Temporary files are removed whatever the outcome.

Only one workflow may run at a time against a given Steam user's config.
This is a caller contract; nothing here enforces it.
"""

from __future__ import annotations

import logging
import os
import platform
import shutil
import subprocess
import tempfile
import threading
import uuid
import zipfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import IO, TYPE_CHECKING

import requests

from stardew_mod_manager.core.errors import (
    InstallCancelledError,
    InstallerFailedError,
    InstallerNotFoundError,
    ReleaseLookupError,
    SmapiInstallError,
    SteamEnvironmentError,
)
from stardew_mod_manager.core.loading_progress import UNKNOWN_TOTAL, LoadingProgress, ProgressCallback
from stardew_mod_manager.core.steam_user import SteamUser
from stardew_mod_manager.integrations.github_releases import GitHubReleaseClient, ReleaseAsset, ReleaseInfo

if TYPE_CHECKING:
    from stardew_mod_manager.config import JsonConfigurationService
    from stardew_mod_manager.core.steam_session import SteamSession

__all__ = [
    "SmapiInstaller",
    "InstallStage",
    "InstallStatus",
    "InstallResult",
    "select_installer_asset",
    "find_installer_executable",
    "STARDEW_APP_ID",
]

logger = logging.getLogger("stardewmodmgr.smapi")

STARDEW_APP_ID = "413150"
SMAPI_REPO_OWNER = "Pathoschild"
SMAPI_REPO_NAME = "SMAPI"
PRODUCT_PREFIX = "SMAPI"
INSTALLER_SUFFIX = "installer.zip"

_SMAPI_EXECUTABLES = {"Windows": "StardewModdingAPI.exe"}
_DEFAULT_SMAPI_EXECUTABLE = "StardewModdingAPI"

_INSTALLER_RELATIVE_PATHS = {
    "Windows": ("internal", "windows", "SMAPI.Installer.exe"),
    "Linux": ("internal", "linux", "SMAPI.Installer"),
    "Darwin": ("internal", "macOS", "SMAPI.Installer"),
}

_PROCESS_POLL_INTERVAL = 0.5


class InstallStage(Enum):
    """States of the install workflow."""

    IDLE = "idle"
    FETCHING_RELEASE = "fetching_release"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    INSTALLING = "installing"
    VERIFYING = "verifying"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class InstallStatus(Enum):
    """Outcome reported to the caller."""

    INSTALLED = "installed"
    NOTHING_TO_DO = "nothing_to_do"
    FAILED = "failed"
    CANCELLED = "cancelled"


STAGE_NAMES = {
    InstallStage.FETCHING_RELEASE: "Looking up latest SMAPI release...",
    InstallStage.DOWNLOADING: "Downloading files...",
    InstallStage.EXTRACTING: "Extracting installer...",
    InstallStage.INSTALLING: "Installing SMAPI...",
    InstallStage.VERIFYING: "Verifying installation...",
}


@dataclass(frozen=True)
class InstallResult:
    """Result of one install_latest() run.

    Attributes:
        status: Overall outcome.
        stage: Stage the workflow was in when it ended (DONE on success).
        version: Release tag that was processed, if one was found.
        error: The exception that ended the run, if any.
    """

    status: InstallStatus
    stage: InstallStage
    version: str | None = None
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is InstallStatus.INSTALLED


def select_installer_asset(release: ReleaseInfo) -> ReleaseAsset | None:
    """First asset named ``SMAPI*installer.zip``, or None."""
    for asset in release.assets:
        if asset.name.startswith(PRODUCT_PREFIX) and asset.name.endswith(INSTALLER_SUFFIX):
            return asset
    return None


def find_installer_executable(extract_path: Path, system: str | None = None) -> Path:
    """Locate the platform installer inside an extracted release.

    Args:
        extract_path: Directory the release archive was extracted into.
        system: platform.system() value to resolve for (defaults to current).

    Returns:
        Path to the installer executable.

    Raises:
        InstallerNotFoundError: The installer directory or executable is missing.
    """
    installer_dir = next(
        (
            d
            for d in sorted(extract_path.iterdir())
            if d.is_dir() and PRODUCT_PREFIX in d.name and "installer" in d.name
        ),
        None,
    )
    if installer_dir is None:
        raise InstallerNotFoundError("SMAPI installer directory not found in extracted files")

    relative = _INSTALLER_RELATIVE_PATHS.get(system or platform.system(), _INSTALLER_RELATIVE_PATHS["Windows"])
    installer_exe = installer_dir.joinpath(*relative)
    if not installer_exe.is_file():
        raise InstallerNotFoundError(f"SMAPI installer not found at: {installer_exe}")

    return installer_exe


class SmapiInstaller:
    """Installs SMAPI and toggles whether Steam launches the game through it.

    Attributes:
        stage: Current InstallStage.
        stardew_path: Game folder SMAPI is installed into.
        is_installed: Whether the SMAPI executable exists in the game folder.
        is_enabled: Whether the current user's launch options match the
            SMAPI wrapper command exactly.
    """

    def __init__(
        self,
        session: SteamSession,
        config_service: JsonConfigurationService,
        release_client: GitHubReleaseClient | None = None,
    ):
        """Initializes the installer and reads the current SMAPI state.

        Args:
            session: Steam session used for launch options and closing Steam.
            config_service: Source of the custom Stardew path.
            release_client: GitHub client; built with the configured token if omitted.
        """
        self._session = session
        self._config_service = config_service
        self._release_client = release_client or GitHubReleaseClient(config_service.github_token)
        self._cancelled = False

        self.stage = InstallStage.IDLE
        self.stardew_path = self.resolve_stardew_path()
        self.is_installed = self.check_is_installed()
        self.is_enabled = self.check_is_enabled()

        session.subscribe_current_user(self._on_current_user_changed)

    # ===== PATHS =====

    def resolve_stardew_path(self) -> Path:
        custom = self._config_service.config.custom_stardew_path
        if custom:
            return Path(custom)
        return Path(self._session.steam_path) / "steamapps" / "common" / "Stardew Valley"

    def set_custom_stardew_path(self, path: str | None) -> None:
        """Persist a custom game folder (None restores the default) and re-check."""
        logger.info("Setting custom Stardew path: %s", path)
        self._config_service.update_config(self._config_service.config.with_changes(custom_stardew_path=path or None))
        self.stardew_path = self.resolve_stardew_path()
        self.is_installed = self.check_is_installed()
        self.is_enabled = self.check_is_enabled()

    @property
    def smapi_path(self) -> Path:
        return self.stardew_path / _SMAPI_EXECUTABLES.get(platform.system(), _DEFAULT_SMAPI_EXECUTABLE)

    @property
    def expected_launch_options(self) -> str:
        return f'"{self.smapi_path}" %command%'

    # ===== STATE =====

    def check_is_installed(self) -> bool:
        return self.smapi_path.is_file()

    def check_is_enabled(self) -> bool:
        try:
            launch_options = self._session.get_launch_options(STARDEW_APP_ID)
        except (SteamEnvironmentError, OSError) as e:
            logger.warning("Could not read launch options: %s", e)
            return False
        return launch_options == self.expected_launch_options

    def _on_current_user_changed(self, user: SteamUser) -> None:
        self.is_enabled = self.check_is_enabled()
        logger.debug("SMAPI enabled for %s: %s", user, self.is_enabled)

    def toggle_is_enabled(self) -> bool:
        """Switch the game's launch options between SMAPI and plain Steam.

        Steam is closed first so the client cannot overwrite localconfig.vdf.

        Returns:
            The new enabled state (unchanged if the launch options could not
            be written).
        """
        self._session.close_steam()

        launch_options = "" if self.is_enabled else self.expected_launch_options
        if self._session.set_launch_options(STARDEW_APP_ID, launch_options):
            self.is_enabled = not self.is_enabled
        else:
            logger.warning("Launch options unchanged; SMAPI enabled stays %s", self.is_enabled)

        return self.is_enabled

    # ===== INSTALL WORKFLOW =====

    def cancel(self) -> None:
        """Request cancellation of a running install_latest()."""
        self._cancelled = True

    def install_latest(
        self,
        progress_callback: ProgressCallback | None = None,
        raise_on_error: bool = False,
    ) -> InstallResult:
        """Download and run the latest SMAPI installer.

        A missing release or installer asset ends the run quietly with
        NOTHING_TO_DO. On success SMAPI is enabled in the launch options if
        it was not already.

        Args:
            progress_callback: Receives a LoadingProgress for every stage
                announcement and progress update.
            raise_on_error: Re-raise fatal errors instead of returning them
                in the result.

        Returns:
            The InstallResult.
        """
        self._cancelled = False
        temp_paths: list[Path] = []
        version: str | None = None

        try:
            self._enter(InstallStage.FETCHING_RELEASE, progress_callback)
            logger.info("Looking up latest SMAPI release...")
            release = self._release_client.get_latest_release(SMAPI_REPO_OWNER, SMAPI_REPO_NAME)
            if release is None:
                logger.warning("No SMAPI release available")
                return self._finish(InstallStatus.NOTHING_TO_DO, InstallStage.IDLE)

            version = release.tag_name
            logger.info("Release found: %s", version)

            asset = select_installer_asset(release)
            if asset is None:
                logger.warning("Release %s has no installer asset", version)
                return self._finish(InstallStatus.NOTHING_TO_DO, InstallStage.IDLE, version)

            logger.info("Asset found: %s", asset.name)
            self._check_cancelled()

            archive_path = self._download(asset, temp_paths, progress_callback)
            self._check_cancelled()

            extract_path = self._extract(archive_path, temp_paths, progress_callback)
            self._check_cancelled()

            self._enter(InstallStage.INSTALLING, progress_callback)
            self._run_installer(find_installer_executable(extract_path))

            self._enter(InstallStage.VERIFYING, progress_callback)
            self.is_installed = self.check_is_installed()
            if not self.is_installed:
                raise SmapiInstallError(f"Installation completed, but SMAPI not found at {self.smapi_path}")

            logger.info("SMAPI %s installation completed successfully", version)
            self._enable_after_install()
            return self._finish(InstallStatus.INSTALLED, InstallStage.DONE, version)

        except InstallCancelledError as e:
            logger.warning("SMAPI installation cancelled during %s", self.stage.value)
            return self._finish(InstallStatus.CANCELLED, InstallStage.CANCELLED, version, e)
        except (SmapiInstallError, ReleaseLookupError, requests.RequestException, zipfile.BadZipFile, OSError) as e:
            logger.error("SMAPI installation failed during %s: %s", self.stage.value, e)
            failed_stage = self.stage
            self.stage = InstallStage.FAILED
            if raise_on_error:
                raise
            return InstallResult(InstallStatus.FAILED, failed_stage, version, e)
        finally:
            self._cleanup(temp_paths)

    def _enable_after_install(self) -> None:
        if self.is_enabled:
            return
        try:
            self.toggle_is_enabled()
        except (SteamEnvironmentError, OSError) as e:
            logger.error("SMAPI installed but could not be enabled: %s", e)

    def _enter(self, stage: InstallStage, progress_callback: ProgressCallback | None, total: int = UNKNOWN_TOTAL) -> LoadingProgress:
        self.stage = stage
        progress = LoadingProgress(STAGE_NAMES[stage], total, 0)
        if progress_callback is not None:
            progress_callback(progress)
        return progress

    def _finish(
        self,
        status: InstallStatus,
        stage: InstallStage,
        version: str | None = None,
        error: BaseException | None = None,
    ) -> InstallResult:
        self.stage = stage
        return InstallResult(status, stage, version, error)

    def _check_cancelled(self) -> None:
        if self._cancelled:
            raise InstallCancelledError(f"Cancelled during {self.stage.value}")

    # ----- downloading -----

    def _download(
        self,
        asset: ReleaseAsset,
        temp_paths: list[Path],
        progress_callback: ProgressCallback | None,
    ) -> Path:
        stage = self._enter(InstallStage.DOWNLOADING, progress_callback, total=100)

        fd, name = tempfile.mkstemp(suffix=".zip", prefix="SMAPI_")
        os.close(fd)
        archive_path = Path(name)
        temp_paths.append(archive_path)

        last_percent = 0

        def on_progress(fraction: float) -> None:
            nonlocal last_percent
            percent = int(fraction * 100)
            if percent > last_percent:
                last_percent = percent
                logger.debug("Download progress: %d%%", percent)
                if progress_callback is not None:
                    progress_callback(stage.advanced_to(percent))

        self._release_client.download_asset(
            asset,
            archive_path,
            progress_callback=on_progress,
            should_cancel=lambda: self._cancelled,
        )
        return archive_path

    # ----- extracting -----

    def _extract(
        self,
        archive_path: Path,
        temp_paths: list[Path],
        progress_callback: ProgressCallback | None,
    ) -> Path:
        logger.info("Extracting SMAPI installer...")
        extract_path = Path(tempfile.gettempdir()) / f"SMAPI_Installer_{uuid.uuid4().hex[:8]}"
        extract_path.mkdir(parents=True)
        temp_paths.append(extract_path)

        with zipfile.ZipFile(archive_path) as archive:
            entries = archive.infolist()
            stage = self._enter(InstallStage.EXTRACTING, progress_callback, total=len(entries))

            for processed, entry in enumerate(entries, start=1):
                self._check_cancelled()
                try:
                    _extract_entry(archive, entry, extract_path)
                except Exception as e:
                    logger.warning("Failed to extract entry %s: %s", entry.filename, e)
                if progress_callback is not None:
                    progress_callback(stage.advanced_to(processed))

        logger.info("Extraction completed to: %s", extract_path)
        return extract_path

    # ----- installing -----

    def _run_installer(self, installer_exe: Path) -> None:
        logger.info("Found SMAPI installer at: %s", installer_exe)
        if platform.system() != "Windows":
            # zipfile does not restore the executable bit
            installer_exe.chmod(installer_exe.stat().st_mode | 0o755)

        args = [str(installer_exe), "--install", "--no-prompt", "--game-path", str(self.stardew_path)]
        logger.info("Starting SMAPI installation...")
        try:
            process = subprocess.Popen(
                args,
                cwd=installer_exe.parent,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise InstallerFailedError(f"Failed to start SMAPI installer: {e}") from e

        readers = [
            threading.Thread(target=_log_stream, args=(process.stdout, logging.INFO), daemon=True),
            threading.Thread(target=_log_stream, args=(process.stderr, logging.ERROR), daemon=True),
        ]
        for reader in readers:
            reader.start()

        exit_code = self._wait_for_process(process)
        for reader in readers:
            reader.join(timeout=5)

        if exit_code != 0:
            raise InstallerFailedError(f"SMAPI installer failed with exit code: {exit_code}", exit_code)

        logger.info("SMAPI installer finished")

    def _wait_for_process(self, process: subprocess.Popen) -> int:
        while True:
            try:
                return process.wait(timeout=_PROCESS_POLL_INTERVAL)
            except subprocess.TimeoutExpired:
                if self._cancelled:
                    logger.warning("Killing SMAPI installer (pid %d)", process.pid)
                    process.kill()
                    process.wait()
                    raise InstallCancelledError("Cancelled while the installer was running")

    # ----- cleanup -----

    @staticmethod
    def _cleanup(paths: list[Path]) -> None:
        for path in paths:
            try:
                if path.is_file():
                    path.unlink()
                    logger.info("Temporary file deleted: %s", path)
                elif path.is_dir():
                    shutil.rmtree(path)
                    logger.info("Temporary directory deleted: %s", path)
            except OSError as e:
                logger.warning("Failed to clean up %s: %s", path, e)


def _extract_entry(archive: zipfile.ZipFile, entry: zipfile.ZipInfo, extract_path: Path) -> None:
    target = (extract_path / entry.filename).resolve()
    if not target.is_relative_to(extract_path.resolve()):
        raise ValueError(f"Entry escapes extraction directory: {entry.filename}")

    if entry.is_dir():
        target.mkdir(parents=True, exist_ok=True)
        return

    target.parent.mkdir(parents=True, exist_ok=True)
    with archive.open(entry) as source, open(target, "wb") as dest:
        shutil.copyfileobj(source, dest)


def _log_stream(stream: IO[str] | None, level: int) -> None:
    if stream is None:
        return
    prefix = "SMAPI Installer" if level < logging.ERROR else "SMAPI Installer Error"
    for line in stream:
        line = line.rstrip()
        if line:
            logger.log(level, "%s: %s", prefix, line)
    stream.close()
