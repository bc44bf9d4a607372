# jorup/services/install_pipeline.py
"""
INSTALL PIPELINE

requirement -> (local hit?) -> ReleaseFinder -> download asset (if absent)
            -> unpack -> register (release.json)

Every step re-checks what is already on disk, so re-running after an
interrupted install picks up where it stopped.
"""

from __future__ import annotations

import logging
import os
import stat
import tarfile
import zipfile
from pathlib import Path
from typing import Optional

from jorup.integrations.download_client import DownloadClient, DownloadError
from jorup.integrations.github_releases import ReleaseFinder, RemoteRelease
from jorup.models.version import VersionRequirement
from jorup.services.release_inventory import (
    BINARIES,
    NoCompatibleReleaseInstalled,
    Release,
    ReleaseInventory,
)

logger = logging.getLogger(__name__)


class InstallError(RuntimeError):
    """Base error for download / unpack failures."""


class OfflineViolation(InstallError):
    def __init__(self, what: str = "this operation") -> None:
        super().__init__(f"Cannot run {what} offline")


class CannotUpdate(InstallError):
    """Asset download failed."""


class UnpackFailed(InstallError):
    def __init__(self, asset: Path) -> None:
        self.asset = asset
        super().__init__(f"Cannot unpack asset {asset}")


def unpack_asset(asset: Path, dest: Path) -> None:
    name = asset.name
    try:
        if name.endswith(".tar.gz") or name.endswith(".tgz"):
            with tarfile.open(asset, "r:gz") as tar:
                tar.extractall(dest, filter="data")
        elif name.endswith(".zip"):
            with zipfile.ZipFile(asset) as zf:
                zf.extractall(dest)
        else:
            raise UnpackFailed(asset)
    except (OSError, tarfile.TarError, zipfile.BadZipFile) as exc:
        raise UnpackFailed(asset) from exc

    if os.name == "posix":
        for bin_name in BINARIES:
            p = dest / bin_name
            if p.is_file():
                p.chmod(p.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


class InstallPipeline:
    def __init__(
        self,
        inventory: ReleaseInventory,
        *,
        client: Optional[DownloadClient] = None,
        finder: Optional[ReleaseFinder] = None,
        offline: bool = False,
    ) -> None:
        self.inventory = inventory
        self.offline = offline
        self._client = client
        self._finder = finder

    # network collaborators are only built when a step needs them
    @property
    def client(self) -> DownloadClient:
        if self.offline:
            raise OfflineViolation("a download")
        if self._client is None:
            self._client = DownloadClient()
        return self._client

    @property
    def finder(self) -> ReleaseFinder:
        if self.offline:
            raise OfflineViolation("a release feed query")
        if self._finder is None:
            self._finder = ReleaseFinder(self.client)
        return self._finder

    def install(
        self,
        requirement: VersionRequirement,
        *,
        refresh_latest: bool = False,
        include_prereleases: bool = False,
    ) -> Release:
        """
        Return an installed Release satisfying `requirement`, installing one
        when needed.

        refresh_latest: for LATEST, ask the feed which version is newest
        instead of settling for the newest local one (ignored offline).
        """
        if not (refresh_latest and requirement.is_latest and not self.offline):
            try:
                release = self.inventory.load(
                    requirement, include_prereleases=include_prereleases
                )
            except NoCompatibleReleaseInstalled as exc:
                if self.offline:
                    raise OfflineViolation(f"install of '{requirement}'") from exc
            else:
                # a stable local hit does not settle a pre-release-enabled LATEST
                stale = (
                    include_prereleases
                    and requirement.is_latest
                    and not release.version.is_prerelease
                    and not self.offline
                )
                if not stale:
                    logger.info("release already installed: %s", release.version)
                    return release

        remote = self.finder.find_matching_release(
            requirement, include_prereleases=include_prereleases
        )
        if self.inventory.is_installed(remote.version):
            logger.info("release already installed: %s", remote.version)
            return self.inventory.get(remote.version)
        return self.install_remote(remote)

    def install_remote(self, remote: RemoteRelease) -> Release:
        version = remote.version
        if self.inventory.is_installed(version):
            return self.inventory.get(version)

        release_dir = self.inventory.release_path(version)
        try:
            release_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise InstallError(f"Cannot create release directory {release_dir}") from exc

        asset = release_dir / remote.asset_name
        if asset.is_file():
            logger.info("asset already downloaded: %s", asset)
        else:
            try:
                self.client.download_file(remote.asset_url, asset)
            except DownloadError as exc:
                raise CannotUpdate(f"Cannot download and install {version}") from exc

        try:
            unpack_asset(asset, release_dir)
        except UnpackFailed:
            # drop the bad archive so the next run downloads it again
            logger.warning("discarding unusable asset: %s", asset)
            asset.unlink(missing_ok=True)
            raise
        return self.inventory.register(
            version, asset_name=remote.asset_name, asset_url=remote.asset_url
        )
