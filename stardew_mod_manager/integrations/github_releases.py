"""GitHub Releases client.

Looks up the latest release of a repository and streams release assets to
disk with progress reporting. A missing release is reported as None; lookup
and download failures raise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import requests

from stardew_mod_manager.core.errors import DownloadCancelledError, ReleaseLookupError
from stardew_mod_manager.version import __version__

logger = logging.getLogger("stardewmodmgr.github")

__all__ = ["GitHubReleaseClient", "ReleaseInfo", "ReleaseAsset"]

# Legacy browser agent; the asset CDN accepts it without an API version header
DOWNLOAD_USER_AGENT = "Mozilla/4.0 (compatible; MSIE 6.0; Windows NT 5.2; .NET CLR 1.0.3705;)"

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class ReleaseAsset:
    """A file attached to a release.

    Attributes:
        name: File name shown on the release page.
        browser_download_url: Direct download URL.
        size: Size in bytes (0 if unknown).
    """

    name: str
    browser_download_url: str
    size: int = 0


@dataclass(frozen=True)
class ReleaseInfo:
    """The parts of a GitHub release the installer needs.

    Attributes:
        tag_name: Release tag, e.g. "4.0.0".
        name: Release title.
        html_url: Release page.
        assets: Attached files in API order.
    """

    tag_name: str
    name: str = ""
    html_url: str = ""
    assets: tuple[ReleaseAsset, ...] = ()

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ReleaseInfo:
        assets = tuple(
            ReleaseAsset(
                name=asset.get("name", ""),
                browser_download_url=asset.get("browser_download_url", ""),
                size=int(asset.get("size") or 0),
            )
            for asset in data.get("assets", [])
        )
        tag_name = data.get("tag_name", "")
        return cls(
            tag_name=tag_name,
            name=data.get("name") or tag_name,
            html_url=data.get("html_url", ""),
            assets=assets,
        )


class GitHubReleaseClient:
    """Client for the public GitHub REST API releases endpoints."""

    API_URL = "https://api.github.com"

    def __init__(self, access_token: str | None = None, timeout: float = 15.0) -> None:
        """Initializes the client with a configured session.

        Args:
            access_token: Optional token sent as a bearer credential.
            timeout: Per-request timeout in seconds.
        """
        self._access_token = access_token
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": f"StardewModManager/{__version__}"})

    def get_latest_release(self, owner: str, repo: str) -> ReleaseInfo | None:
        """Fetches the latest published release.

        Args:
            owner: Repository owner.
            repo: Repository name.

        Returns:
            The release, or None if the repository has no published release.

        Raises:
            ReleaseLookupError: On network errors, unexpected HTTP status
                (rate limiting included) or an unreadable payload.
        """
        url = f"{self.API_URL}/repos/{owner}/{repo}/releases/latest"
        headers = {"Accept": "application/vnd.github+json"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"

        try:
            response = self._session.get(url, headers=headers, timeout=self._timeout)
        except requests.RequestException as exc:
            logger.warning("GitHub: network error for %s/%s: %s", owner, repo, exc)
            raise ReleaseLookupError(f"Network error querying {owner}/{repo}: {exc}") from exc

        if response.status_code == 404:
            logger.info("GitHub: no release for %s/%s", owner, repo)
            return None

        if response.status_code != 200:
            logger.warning(
                "GitHub: unexpected status %d for %s/%s",
                response.status_code,
                owner,
                repo,
            )
            raise ReleaseLookupError(f"GitHub returned status {response.status_code} for {owner}/{repo}")

        try:
            return ReleaseInfo.from_api(response.json())
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            logger.warning("GitHub: parse error for %s/%s: %s", owner, repo, exc)
            raise ReleaseLookupError(f"Unreadable release data for {owner}/{repo}: {exc}") from exc

    def download_asset(
        self,
        asset: ReleaseAsset,
        dest_path: Path,
        progress_callback: Callable[[float], None] | None = None,
        should_cancel: Callable[[], bool] | None = None,
    ) -> Path:
        """Streams a release asset to ``dest_path``.

        Args:
            asset: Asset to download.
            dest_path: Target file (overwritten).
            progress_callback: Called with the completed fraction (0..1).
            should_cancel: Polled between chunks; returning True aborts.

        Returns:
            ``dest_path``.

        Raises:
            requests.RequestException: On network or HTTP errors.
            DownloadCancelledError: If ``should_cancel`` returned True.
        """
        logger.info("Downloading asset: %s -> %s", asset.browser_download_url, dest_path)

        headers = {"User-Agent": DOWNLOAD_USER_AGENT, "Accept": "application/octet-stream"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"

        with self._session.get(
            asset.browser_download_url, headers=headers, stream=True, timeout=self._timeout
        ) as response:
            response.raise_for_status()
            total = int(response.headers.get("content-length") or 0) or asset.size

            downloaded = 0
            with open(dest_path, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if should_cancel is not None and should_cancel():
                        raise DownloadCancelledError(f"Download of {asset.name} cancelled")
                    if not chunk:
                        continue
                    f.write(chunk)
                    downloaded += len(chunk)
                    if progress_callback is not None and total > 0:
                        progress_callback(min(downloaded / total, 1.0))

        if progress_callback is not None:
            progress_callback(1.0)

        logger.info("Downloaded %d bytes to %s", downloaded, dest_path)
        return dest_path
