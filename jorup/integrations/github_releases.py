# jorup/integrations/github_releases.py
"""
Release finder backed by the GitHub releases API.

Given a VersionRequirement it scans the remote tags and picks one release with
the same rule used locally (max for LATEST, exact match otherwise), then the
archive built for the current platform.
"""

from __future__ import annotations

import logging
import platform
import sys
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from jorup.integrations.download_client import DownloadClient, DownloadError
from jorup.models.version import (
    InvalidVersionString,
    NoCandidateSatisfiesRequirement,
    Version,
    VersionRequirement,
)

logger = logging.getLogger(__name__)

GITHUB_REPOSITORY = "input-output-hk/jormungandr"
RELEASES_URL = f"https://api.github.com/repos/{GITHUB_REPOSITORY}/releases"
ARCHIVE_SUFFIXES = (".tar.gz", ".zip")

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x86_64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "aarch64": "aarch64",
    "armv7l": "armv7",
}


class GitHubError(RuntimeError):
    """Base error for the remote release feed."""


class ReleaseFeedError(GitHubError):
    """The release feed could not be queried or returned garbage."""


class NoMatchingRemoteRelease(GitHubError):
    def __init__(self, requirement: VersionRequirement) -> None:
        self.requirement = requirement
        super().__init__(f"No remote release matches requirement '{requirement}'")


class NoAssetForPlatform(GitHubError):
    def __init__(self, version: Version, target: str) -> None:
        self.version = version
        self.target = target
        super().__init__(f"Release {version} has no asset for platform '{target}'")


@dataclass(frozen=True)
class RemoteRelease:
    version: Version
    tag: str
    asset_name: str
    asset_url: str
    prerelease: bool = False


def platform_target(system: Optional[str] = None, machine: Optional[str] = None) -> str:
    """Rust-style target triple of the running platform."""
    sys_name = (system or sys.platform).lower()
    raw_arch = (machine or platform.machine() or "").lower()
    arch = _ARCH_ALIASES.get(raw_arch, raw_arch)

    if sys_name.startswith("linux"):
        return f"{arch}-unknown-linux-gnu"
    if sys_name.startswith("darwin"):
        return f"{arch}-apple-darwin"
    if sys_name.startswith("win"):
        return f"{arch}-pc-windows-msvc"
    return f"{arch}-unknown-{sys_name}"


def select_asset(assets: List[Dict[str, Any]], target: str) -> Optional[Dict[str, Any]]:
    matching = [
        a
        for a in assets
        if isinstance(a, dict)
        and isinstance(a.get("name"), str)
        and target in a["name"]
        and a["name"].endswith(ARCHIVE_SUFFIXES)
    ]
    if not matching:
        return None
    # prefer the portable ("generic") build when several exist
    matching.sort(key=lambda a: ("generic" not in a["name"], a["name"]))
    return matching[0]


class ReleaseFinder:
    def __init__(
        self,
        client: DownloadClient,
        *,
        releases_url: str = RELEASES_URL,
        target: Optional[str] = None,
    ) -> None:
        self.client = client
        self.releases_url = releases_url
        self.target = target or platform_target()

    def _iter_remote(self) -> Iterator[Dict[str, Any]]:
        url: Optional[str] = self.releases_url
        params: Optional[Dict[str, Any]] = {"per_page": 100}
        while url:
            try:
                payload, url = self.client.get_json(url, params=params)
            except DownloadError as exc:
                raise ReleaseFeedError("Cannot query the release feed") from exc
            if not isinstance(payload, list):
                raise ReleaseFeedError("release feed did not return a list")
            # the next-page URL already carries the query string
            params = None
            for item in payload:
                if isinstance(item, dict):
                    yield item

    def find_matching_release(
        self,
        requirement: VersionRequirement,
        *,
        include_prereleases: bool = False,
    ) -> RemoteRelease:
        by_version: Dict[Version, Dict[str, Any]] = {}
        for item in self._iter_remote():
            if item.get("draft"):
                continue
            tag = item.get("tag_name")
            try:
                version = Version.from_tag(tag if isinstance(tag, str) else "")
            except InvalidVersionString:
                logger.debug("skipping remote tag that is not a version: %r", tag)
                continue
            is_pre = bool(item.get("prerelease")) or version.is_prerelease
            if is_pre and not include_prereleases and requirement.is_latest:
                continue
            by_version[version] = item

        try:
            version = requirement.select(by_version.keys())
        except NoCandidateSatisfiesRequirement as exc:
            raise NoMatchingRemoteRelease(requirement) from exc

        item = by_version[version]
        asset = select_asset(item.get("assets") or [], self.target)
        if asset is None:
            raise NoAssetForPlatform(version, self.target)

        found = RemoteRelease(
            version=version,
            tag=str(item.get("tag_name")),
            asset_name=asset["name"],
            asset_url=str(asset.get("browser_download_url") or ""),
            prerelease=bool(item.get("prerelease")),
        )
        logger.info("remote release found: version=%s asset=%s", found.version, found.asset_name)
        return found
