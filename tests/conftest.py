# tests/conftest.py
import os
from pathlib import Path
from unittest.mock import MagicMock

# Ensure Qt can run headless (CI runners have no display server)
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PyQt6.QtWidgets import QApplication
from pytestqt.qtbot import QtBot


@pytest.fixture(scope="session")
def qapp():
    """QApplication instance for all Qt tests."""
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    yield app


@pytest.fixture
def qtbot(qapp, request):
    """Provide qtbot fixture with automatic cleanup."""
    bot = QtBot(request)
    yield bot
    if hasattr(bot, "cleanup"):
        bot.cleanup()


LOCALCONFIG_TEMPLATE = """"UserLocalConfigStore"
{
\t"friends"
\t{
\t\t"{user_id}"
\t\t{
\t\t\t"name"\t\t"{nickname}"
\t\t}
\t\t"PersonaName"\t\t"{nickname}"
\t}
\t"Software"
\t{
\t\t"Valve"
\t\t{
\t\t\t"Steam"
\t\t\t{
\t\t\t\t"apps"
\t\t\t\t{
\t\t\t\t\t"413150"
\t\t\t\t\t{
\t\t\t\t\t\t"LastPlayed"\t\t"1700000000"
\t\t\t\t\t\t"LaunchOptions"\t\t"{launch_options}"
\t\t\t\t\t}
\t\t\t\t\t"440"
\t\t\t\t\t{
\t\t\t\t\t\t"LaunchOptions"\t\t"-novid"
\t\t\t\t\t}
\t\t\t\t}
\t\t\t}
\t\t}
\t}
}
"""


def make_localconfig(user_id: str = "12345678", nickname: str = "Farmer", launch_options: str = "") -> str:
    """Realistic localconfig.vdf content (TAB indented, as Steam writes it)."""
    return (
        LOCALCONFIG_TEMPLATE.replace("{user_id}", user_id)
        .replace("{nickname}", nickname)
        .replace("{launch_options}", launch_options)
    )


def write_localconfig(steam_root: Path, user_id: str, content: str) -> Path:
    """Write a localconfig.vdf at userdata/<id>/config/ and return its path."""
    config_dir = steam_root / "userdata" / user_id / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    path = config_dir / "localconfig.vdf"
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def localconfig_content() -> str:
    """Minimal localconfig.vdf with one user and a Stardew Valley block."""
    return make_localconfig()


@pytest.fixture
def steam_root(tmp_path, localconfig_content) -> Path:
    """Fake Steam installation with one user (12345678 / Farmer)."""
    root = tmp_path / "Steam"
    write_localconfig(root, "12345678", localconfig_content)
    return root


@pytest.fixture
def config_service(tmp_path, monkeypatch):
    """JsonConfigurationService writing to a temp file, isolated from .env."""
    from stardew_mod_manager.config import JsonConfigurationService

    monkeypatch.setattr("stardew_mod_manager.config.load_dotenv", lambda *args, **kwargs: False)
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    return JsonConfigurationService(tmp_path / "settings" / "modmanagerconfig.json")


@pytest.fixture
def steam_session(qapp, steam_root, config_service):
    """SteamSession pointed at the fake Steam installation."""
    from stardew_mod_manager.core.steam_session import SteamSession

    config_service.update_config(config_service.config.with_changes(custom_steam_path=str(steam_root)))
    return SteamSession(config_service)


@pytest.fixture
def mock_release_client():
    """A GitHubReleaseClient stand-in with no network access."""
    return MagicMock()
