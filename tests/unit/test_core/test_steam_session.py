"""Tests for SteamSession: users, launch options and process control."""

from __future__ import annotations

from unittest.mock import MagicMock

import psutil
import pytest

from conftest import make_localconfig, write_localconfig
from stardew_mod_manager.core.errors import NoSteamUserError
from stardew_mod_manager.core.steam_session import SteamSession, read_steam_user
from stardew_mod_manager.core.steam_user import SteamUser


def _process(name: str, pid: int = 100, status: str = psutil.STATUS_RUNNING) -> MagicMock:
    proc = MagicMock()
    proc.pid = pid
    proc.info = {"name": name, "pid": pid}
    proc.status.return_value = status
    return proc


@pytest.fixture
def processes(monkeypatch):
    """Replace psutil.process_iter with a controllable list."""
    running: list[MagicMock] = []
    monkeypatch.setattr(psutil, "process_iter", lambda *args, **kwargs: iter(running))
    monkeypatch.setattr("stardew_mod_manager.core.steam_session.platform.system", lambda: "Linux")
    return running


class TestUsers:
    """Tests for local profile discovery."""

    def test_first_user_selected_on_init(self, steam_session) -> None:
        assert steam_session.current_user == SteamUser(id="12345678", nickname="Farmer")

    def test_read_steam_user_strips_nickname_quotes(self, steam_root) -> None:
        path = steam_root / "userdata" / "12345678" / "config" / "localconfig.vdf"
        user = read_steam_user(path)
        assert user.nickname == "Farmer"
        assert str(user) == "Farmer (12345678)"

    def test_lists_every_user(self, steam_session, steam_root) -> None:
        write_localconfig(steam_root, "87654321", make_localconfig("87654321", "Haley"))
        users = steam_session.get_local_users()
        assert [u.id for u in users] == ["12345678", "87654321"]
        assert users[1].nickname == "Haley"

    def test_config_without_friends_is_skipped(self, steam_session, steam_root) -> None:
        write_localconfig(steam_root, "00000001", '"UserLocalConfigStore"\n{\n\t"Software"\n\t{\n\t}\n}\n')
        assert [u.id for u in steam_session.get_local_users()] == ["12345678"]

    def test_no_userdata_leaves_user_unset(self, qapp, config_service, tmp_path) -> None:
        config_service.update_config(config_service.config.with_changes(custom_steam_path=str(tmp_path / "Empty")))
        session = SteamSession(config_service)
        assert session.current_user is None
        with pytest.raises(NoSteamUserError):
            session.get_launch_options("413150")


class TestCurrentUser:
    """Tests for current-user notifications."""

    def test_signal_emitted(self, qtbot, steam_session) -> None:
        user = SteamUser(id="1", nickname="Sam")
        with qtbot.waitSignal(steam_session.current_user_changed, timeout=1000) as blocker:
            steam_session.current_user = user
        assert blocker.args == [user]

    def test_subscribers_called_until_unsubscribed(self, steam_session) -> None:
        seen: list[SteamUser] = []
        steam_session.subscribe_current_user(seen.append)
        steam_session.subscribe_current_user(seen.append)

        steam_session.current_user = SteamUser(id="1", nickname="Sam")
        steam_session.unsubscribe_current_user(seen.append)
        steam_session.current_user = SteamUser(id="2", nickname="Leah")

        assert [u.id for u in seen] == ["1"]

    def test_none_does_not_notify(self, steam_session) -> None:
        callback = MagicMock()
        steam_session.subscribe_current_user(callback)
        steam_session.current_user = None
        callback.assert_not_called()
        assert steam_session.current_user is None


class TestSteamPath:
    """Tests for Steam path resolution."""

    def test_custom_path_used(self, steam_session, steam_root) -> None:
        assert steam_session.steam_path == str(steam_root)

    def test_clearing_custom_path_falls_back_to_detection(self, steam_session, monkeypatch) -> None:
        monkeypatch.setattr("stardew_mod_manager.core.steam_session.find_steam_path", lambda: "/detected/Steam")
        steam_session.set_custom_steam_path(None)
        assert steam_session.steam_path == "/detected/Steam"
        assert steam_session.store.steam_path.as_posix() == "/detected/Steam"

    def test_custom_path_persisted(self, steam_session, config_service, tmp_path) -> None:
        steam_session.set_custom_steam_path(str(tmp_path / "Other"))
        assert config_service.config.custom_steam_path == str(tmp_path / "Other")


class TestLaunchOptions:
    """Launch options go through the current user's localconfig."""

    def test_get_and_set(self, steam_session) -> None:
        assert steam_session.get_launch_options("413150") == ""
        assert steam_session.set_launch_options("413150", "X") is True
        assert steam_session.get_launch_options("413150") == "X"

    def test_without_user_raises(self, steam_session) -> None:
        steam_session.current_user = None
        with pytest.raises(NoSteamUserError):
            steam_session.set_launch_options("413150", "X")


class TestProcessControl:
    """Tests for launching, detecting and closing Steam."""

    def test_launch_game_uses_steam_uri(self, monkeypatch) -> None:
        opened = MagicMock(return_value=True)
        monkeypatch.setattr("stardew_mod_manager.core.steam_session.open_url", opened)
        assert SteamSession.launch_game("413150") is True
        opened.assert_called_once_with("steam://rungameid/413150")

    def test_is_steam_running(self, processes) -> None:
        assert SteamSession.is_steam_running() is False
        processes.append(_process("Steam.exe"))
        assert SteamSession.is_steam_running() is True

    def test_other_processes_ignored(self, processes) -> None:
        other = _process("steamwebhelper")
        processes.append(other)
        SteamSession.close_steam()
        other.terminate.assert_not_called()
        other.kill.assert_not_called()

    def test_close_without_processes_is_noop(self, processes) -> None:
        SteamSession.close_steam()

    def test_graceful_close(self, processes) -> None:
        proc = _process("steam")
        processes.append(proc)
        SteamSession.close_steam()
        proc.terminate.assert_called_once()
        proc.wait.assert_called_once_with(timeout=3.0)
        proc.kill.assert_not_called()

    def test_kill_after_timeout(self, processes) -> None:
        proc = _process("steam")
        proc.wait.side_effect = [psutil.TimeoutExpired(3.0), None]
        processes.append(proc)
        SteamSession.close_steam()
        proc.kill.assert_called_once()
        assert proc.wait.call_count == 2

    def test_zombie_killed_immediately(self, processes) -> None:
        proc = _process("steam", status=psutil.STATUS_ZOMBIE)
        processes.append(proc)
        SteamSession.close_steam()
        proc.kill.assert_called_once()
        proc.terminate.assert_not_called()

    def test_failure_on_one_process_does_not_stop_others(self, processes) -> None:
        broken = _process("steam", pid=1)
        broken.terminate.side_effect = psutil.AccessDenied(1)
        healthy = _process("steam", pid=2)
        processes.extend([broken, healthy])

        SteamSession.close_steam()

        healthy.terminate.assert_called_once()

    def test_windows_uses_taskkill(self, processes, monkeypatch) -> None:
        run = MagicMock()
        monkeypatch.setattr("stardew_mod_manager.core.steam_session.platform.system", lambda: "Windows")
        monkeypatch.setattr("stardew_mod_manager.core.steam_session.subprocess.run", run)
        proc = _process("steam.exe", pid=321)
        processes.append(proc)

        SteamSession.close_steam()

        assert run.call_args.args[0] == ["taskkill", "/PID", "321"]
        proc.terminate.assert_not_called()
