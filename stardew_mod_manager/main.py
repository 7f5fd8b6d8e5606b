#!/usr/bin/env python3
"""Stardew Mod Manager - command line entry point.

Builds one instance of each service, wires them explicitly and runs a single
command against them.
"""

from __future__ import annotations

import argparse
import logging
import sys

from PyQt6.QtCore import QCoreApplication

from stardew_mod_manager.config import JsonConfigurationService
from stardew_mod_manager.core.errors import SteamEnvironmentError
from stardew_mod_manager.core.loading_progress import LoadingProgress
from stardew_mod_manager.core.logging import default_log_file, level_from_env, logger, setup_logging
from stardew_mod_manager.core.steam_session import SteamSession
from stardew_mod_manager.services.mod_manager import ModManager
from stardew_mod_manager.services.smapi_installer import STARDEW_APP_ID, InstallStatus, SmapiInstaller
from stardew_mod_manager.version import __app_name__, __version__

__all__ = ["main", "build_parser"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stardew-mod-manager", description=f"{__app_name__} {__version__}")
    parser.add_argument("--steam-path", help="Use and remember a custom Steam installation path")
    parser.add_argument("--user", help="Steam account id to act on (defaults to the first local user)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to the console")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("users", help="List local Steam users")
    sub.add_parser("status", help="Show SMAPI install/enable state")
    sub.add_parser("install-smapi", help="Download and install the latest SMAPI")
    sub.add_parser("toggle-smapi", help="Enable or disable SMAPI in Steam launch options")
    sub.add_parser("launch", help="Launch Stardew Valley through Steam")
    sub.add_parser("mods", help="List installed mods")
    export = sub.add_parser("export-pack", help="Zip the Mods folder into a mod pack")
    export.add_argument("path")
    import_ = sub.add_parser("import-pack", help="Replace all mods with a mod pack")
    import_.add_argument("path")
    return parser


def _print_progress(progress: LoadingProgress) -> None:
    if progress.processed_tasks_quantity == 0:
        print(progress.stage_name)
    elif progress.fraction is not None:
        print(f"  {progress.fraction:.0%}", end="\r")


def run(args: argparse.Namespace) -> int:
    config_service = JsonConfigurationService()
    session = SteamSession(config_service)
    if args.steam_path:
        session.set_custom_steam_path(args.steam_path)

    if args.command == "users":
        for user in session.get_local_users():
            marker = "*" if user == session.current_user else " "
            print(f"{marker} {user}")
        return 0

    if args.user:
        match = next((u for u in session.get_local_users() if u.id == args.user), None)
        if match is None:
            logger.error("Steam user %s not found", args.user)
            return 1
        session.current_user = match

    installer = SmapiInstaller(session, config_service)

    if args.command == "status":
        print(f"Steam path:   {session.steam_path}")
        print(f"Steam user:   {session.current_user or '-'}")
        print(f"Stardew path: {installer.stardew_path}")
        print(f"SMAPI installed: {installer.is_installed}")
        print(f"SMAPI enabled:   {installer.is_enabled}")
        return 0

    if args.command == "install-smapi":
        result = installer.install_latest(_print_progress)
        print()
        print(f"{result.status.value} ({result.version or 'no release'})")
        return 0 if result.status in (InstallStatus.INSTALLED, InstallStatus.NOTHING_TO_DO) else 1

    if args.command == "toggle-smapi":
        enabled = installer.toggle_is_enabled()
        print(f"SMAPI enabled: {enabled}")
        return 0

    if args.command == "launch":
        return 0 if session.launch_game(STARDEW_APP_ID) else 1

    mod_manager = ModManager(installer, config_service)

    if args.command == "mods":
        for mod in mod_manager.mods:
            print(f"[{'x' if mod.is_enabled else ' '}] {mod.name}")
        return 0

    if args.command == "export-pack":
        print(mod_manager.export_mod_pack(args.path))
        return 0

    if args.command == "import-pack":
        mods = mod_manager.install_mod_pack(args.path)
        print(f"Installed {len(mods)} mods")
        return 0

    return 2


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, configure logging and run one command."""
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else level_from_env(logging.WARNING)
    setup_logging(level, default_log_file())

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app.setApplicationName(__app_name__)

    try:
        return run(args)
    except SteamEnvironmentError as e:
        logger.error("%s", e)
        return 1
    except Exception:
        logger.exception("Unhandled error")
        return 1


if __name__ == "__main__":
    sys.exit(main())
