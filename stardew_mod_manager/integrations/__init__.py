from __future__ import annotations

__all__: list[str] = ["GitHubReleaseClient", "ReleaseAsset", "ReleaseInfo"]

from stardew_mod_manager.integrations.github_releases import GitHubReleaseClient, ReleaseAsset, ReleaseInfo
