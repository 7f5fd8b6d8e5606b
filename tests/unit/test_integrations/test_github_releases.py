"""Tests for GitHubReleaseClient."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from stardew_mod_manager.core.errors import DownloadCancelledError, ReleaseLookupError
from stardew_mod_manager.integrations.github_releases import (
    DOWNLOAD_USER_AGENT,
    GitHubReleaseClient,
    ReleaseAsset,
    ReleaseInfo,
)

RELEASE_JSON = {
    "tag_name": "4.0.0",
    "name": "4.0.0",
    "html_url": "https://github.com/Pathoschild/SMAPI/releases/tag/4.0.0",
    "assets": [
        {
            "name": "SMAPI-4.0.0-installer.zip",
            "browser_download_url": "https://github.com/Pathoschild/SMAPI/releases/download/4.0.0/SMAPI-4.0.0-installer.zip",
            "size": 12,
        },
        {"name": "SMAPI-4.0.0-installer-for-developers.zip", "browser_download_url": "https://x/dev.zip"},
    ],
}

ASSET = ReleaseAsset("SMAPI-4.0.0-installer.zip", "https://example.invalid/SMAPI-4.0.0-installer.zip", 12)


def _response(status_code: int = 200, json_data=None, chunks=(), headers=None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = json_data
    resp.headers = headers or {}
    resp.iter_content.return_value = list(chunks)
    resp.__enter__.return_value = resp
    return resp


class TestGetLatestRelease:
    def test_parses_release(self) -> None:
        client = GitHubReleaseClient()
        client._session.get = MagicMock(return_value=_response(json_data=RELEASE_JSON))

        release = client.get_latest_release("Pathoschild", "SMAPI")

        assert release.tag_name == "4.0.0"
        assert [a.name for a in release.assets] == [
            "SMAPI-4.0.0-installer.zip",
            "SMAPI-4.0.0-installer-for-developers.zip",
        ]
        assert release.assets[0].size == 12
        assert release.assets[1].size == 0
        url = client._session.get.call_args.args[0]
        assert url == "https://api.github.com/repos/Pathoschild/SMAPI/releases/latest"

    def test_token_sent_as_bearer(self) -> None:
        client = GitHubReleaseClient(access_token="secret")
        client._session.get = MagicMock(return_value=_response(json_data=RELEASE_JSON))
        client.get_latest_release("Pathoschild", "SMAPI")
        assert client._session.get.call_args.kwargs["headers"]["Authorization"] == "Bearer secret"

    def test_no_token_no_authorization(self) -> None:
        client = GitHubReleaseClient()
        client._session.get = MagicMock(return_value=_response(json_data=RELEASE_JSON))
        client.get_latest_release("Pathoschild", "SMAPI")
        assert "Authorization" not in client._session.get.call_args.kwargs["headers"]

    def test_no_release_returns_none(self) -> None:
        client = GitHubReleaseClient()
        client._session.get = MagicMock(return_value=_response(status_code=404))
        assert client.get_latest_release("Pathoschild", "SMAPI") is None

    @pytest.mark.parametrize("status", [403, 500])
    def test_http_errors_raise(self, status: int) -> None:
        client = GitHubReleaseClient()
        client._session.get = MagicMock(return_value=_response(status_code=status))
        with pytest.raises(ReleaseLookupError):
            client.get_latest_release("Pathoschild", "SMAPI")

    def test_network_error_raises(self) -> None:
        client = GitHubReleaseClient()
        client._session.get = MagicMock(side_effect=requests.ConnectionError("offline"))
        with pytest.raises(ReleaseLookupError):
            client.get_latest_release("Pathoschild", "SMAPI")

    def test_invalid_json_raises(self) -> None:
        client = GitHubReleaseClient()
        resp = _response()
        resp.json.side_effect = ValueError("not json")
        client._session.get = MagicMock(return_value=resp)
        with pytest.raises(ReleaseLookupError):
            client.get_latest_release("Pathoschild", "SMAPI")


def test_release_name_defaults_to_tag() -> None:
    assert ReleaseInfo.from_api({"tag_name": "3.18.6"}).name == "3.18.6"


class TestDownloadAsset:
    def test_writes_file_and_reports_progress(self, tmp_path) -> None:
        client = GitHubReleaseClient()
        client._session.get = MagicMock(
            return_value=_response(chunks=[b"abcd", b"", b"efgh", b"ijkl"], headers={"content-length": "12"})
        )
        fractions: list[float] = []

        dest = client.download_asset(ASSET, tmp_path / "smapi.zip", progress_callback=fractions.append)

        assert dest.read_bytes() == b"abcdefghijkl"
        assert fractions == pytest.approx([1 / 3, 2 / 3, 1.0, 1.0])

    def test_download_headers(self, tmp_path) -> None:
        client = GitHubReleaseClient(access_token="secret")
        client._session.get = MagicMock(return_value=_response(chunks=[b"x"]))

        client.download_asset(ASSET, tmp_path / "smapi.zip")

        kwargs = client._session.get.call_args.kwargs
        assert kwargs["stream"] is True
        assert kwargs["headers"]["User-Agent"] == DOWNLOAD_USER_AGENT
        assert kwargs["headers"]["Accept"] == "application/octet-stream"
        assert kwargs["headers"]["Authorization"] == "Bearer secret"

    def test_size_from_asset_when_length_missing(self, tmp_path) -> None:
        client = GitHubReleaseClient()
        client._session.get = MagicMock(return_value=_response(chunks=[b"abcdef"]))
        fractions: list[float] = []

        client.download_asset(ASSET, tmp_path / "smapi.zip", progress_callback=fractions.append)

        assert fractions == [0.5, 1.0]

    def test_http_error_raises(self, tmp_path) -> None:
        client = GitHubReleaseClient()
        resp = _response(status_code=404)
        resp.raise_for_status.side_effect = requests.HTTPError("404")
        client._session.get = MagicMock(return_value=resp)

        with pytest.raises(requests.HTTPError):
            client.download_asset(ASSET, tmp_path / "smapi.zip")

    def test_cancel_between_chunks(self, tmp_path) -> None:
        client = GitHubReleaseClient()
        client._session.get = MagicMock(return_value=_response(chunks=[b"abcd", b"efgh"]))
        polls = iter([False, True])

        with pytest.raises(DownloadCancelledError):
            client.download_asset(ASSET, tmp_path / "smapi.zip", should_cancel=lambda: next(polls))
