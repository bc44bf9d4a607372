# jorup/services/release_inventory.py
"""
RELEASE INVENTORY

One directory per installed version under `<home>/release/<version>/`:

    release/1.2.0/
        jormungandr-v1.2.0-x86_64-unknown-linux-gnu.tar.gz   (downloaded asset)
        jormungandr, jcli                                     (unpacked binaries)
        release.json                                          (registration, written last)

A directory without `release.json` is an interrupted install and does not
count as installed.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import stat
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from jorup.models.channel import ChannelDescriptor
from jorup.models.version import (
    InvalidVersionString,
    NoCandidateSatisfiesRequirement,
    Version,
    VersionRequirement,
)
from jorup.services.config import JorupConfig
from jorup.utils.helpers import utc_now

logger = logging.getLogger(__name__)

METADATA_FILE = "release.json"
EXE_SUFFIX = ".exe" if sys.platform.startswith("win") else ""
BINARIES = ("jormungandr", "jcli")


class ReleaseError(RuntimeError):
    """Base error for the local release inventory."""


class NoCompatibleReleaseInstalled(ReleaseError):
    def __init__(self, requirement: VersionRequirement) -> None:
        self.requirement = requirement
        super().__init__(f"No installed release matches requirement '{requirement}'")


class ReleaseNotInstalled(ReleaseError):
    def __init__(self, version: Version) -> None:
        self.version = version
        super().__init__(f"Release {version} is not installed")


class RemoveFailed(ReleaseError):
    def __init__(self, version: Version, path: Path) -> None:
        self.version = version
        self.path = path
        super().__init__(f"Failed to remove release {version} [={path}]")


class ReleaseLoadFailed(ReleaseError):
    """Release directory exists but its metadata cannot be read/written."""


class MakeDefaultFailed(ReleaseError):
    def __init__(self, version: Version, path: Path) -> None:
        self.version = version
        self.path = path
        super().__init__(f"Cannot install release {version} binaries into {path}")


class ReleaseMetadata(BaseModel):
    version: str
    asset_name: str
    asset_url: str = ""
    installed_at: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


@dataclass(frozen=True)
class Release:
    version: Version
    dir: Path
    metadata: ReleaseMetadata

    @property
    def asset_path(self) -> Path:
        return self.dir / self.metadata.asset_name

    def binary(self, name: str) -> Path:
        return self.dir / f"{name}{EXE_SUFFIX}"

    @property
    def node_binary(self) -> Path:
        return self.binary("jormungandr")

    @property
    def cli_binary(self) -> Path:
        return self.binary("jcli")

    def __str__(self) -> str:
        return str(self.version)


class ReleaseInventory:
    def __init__(self, cfg: JorupConfig) -> None:
        self.cfg = cfg

    @property
    def root(self) -> Path:
        return self.cfg.release_dir

    def release_path(self, version: Version) -> Path:
        return self.root / str(version)

    def is_installed(self, version: Version) -> bool:
        return (self.release_path(version) / METADATA_FILE).is_file()

    # =========================================================
    # READ
    # =========================================================
    def _read(self, version: Version) -> Release:
        path = self.release_path(version)
        meta_file = path / METADATA_FILE
        try:
            data = json.loads(meta_file.read_text(encoding="utf-8"))
            metadata = ReleaseMetadata.model_validate(data)
        except (OSError, ValueError, ValidationError) as exc:
            raise ReleaseLoadFailed(f"Cannot read release metadata {meta_file}") from exc
        return Release(version=version, dir=path, metadata=metadata)

    def installed_versions(self) -> List[Version]:
        if not self.root.is_dir():
            return []
        out: List[Version] = []
        for child in self.root.iterdir():
            if not child.is_dir():
                continue
            try:
                version = Version.parse(child.name)
            except InvalidVersionString:
                logger.debug("ignoring foreign directory in release root: %s", child)
                continue
            # canonical name only: exactly one directory per version
            if str(version) != child.name:
                continue
            if (child / METADATA_FILE).is_file():
                out.append(version)
        out.sort()
        return out

    def releases(self) -> Iterator[Release]:
        for version in self.installed_versions():
            try:
                yield self._read(version)
            except ReleaseLoadFailed as exc:
                logger.warning("skipping unreadable release %s: %s", version, exc.__cause__ or exc)

    def __iter__(self) -> Iterator[Release]:
        return self.releases()

    def load(self, requirement: VersionRequirement, *, include_prereleases: bool = False) -> Release:
        """
        Pick an installed release satisfying `requirement`.

        For LATEST, pre-releases only count when `include_prereleases` is set
        (same rule as the remote feed).
        """
        by_version = {r.version: r for r in self.releases()}
        candidates = [
            v
            for v in by_version
            if not (requirement.is_latest and v.is_prerelease and not include_prereleases)
        ]
        try:
            version = requirement.select(candidates)
        except NoCandidateSatisfiesRequirement as exc:
            raise NoCompatibleReleaseInstalled(requirement) from exc
        return by_version[version]

    def get(self, version: Version) -> Release:
        if not self.is_installed(version):
            raise ReleaseNotInstalled(version)
        return self._read(version)

    # =========================================================
    # WRITE
    # =========================================================
    def register(self, version: Version, *, asset_name: str, asset_url: str = "") -> Release:
        """Write the registration record; the last step of an install."""
        path = self.release_path(version)
        metadata = ReleaseMetadata(
            version=str(version),
            asset_name=asset_name,
            asset_url=asset_url,
            installed_at=utc_now(),
        )
        try:
            (path / METADATA_FILE).write_text(
                json.dumps(metadata.model_dump(), indent=2, ensure_ascii=False, sort_keys=True),
                encoding="utf-8",
            )
        except OSError as exc:
            raise ReleaseLoadFailed(f"Cannot register release {version} in {path}") from exc
        logger.info("release registered: version=%s path=%s", version, path)
        return Release(version=version, dir=path, metadata=metadata)

    def remove(self, version: Version) -> None:
        # removal is always exact; partial (unregistered) directories count too
        path = self.release_path(version)
        if not path.is_dir():
            raise ReleaseNotInstalled(version)
        try:
            shutil.rmtree(path)
        except OSError as exc:
            raise RemoveFailed(version, path) from exc
        logger.info("release removed: version=%s", version)

    def set_default(self, channel: ChannelDescriptor) -> None:
        self.cfg.set_default_channel(channel)

    def make_default(self, release: Release, channel: ChannelDescriptor) -> None:
        bin_dir = self.cfg.bin_dir
        for name in BINARIES:
            src = release.binary(name)
            if not src.is_file():
                logger.warning("release %s ships no %s binary", release.version, name)
                continue
            dest = bin_dir / src.name
            try:
                bin_dir.mkdir(parents=True, exist_ok=True)
                shutil.copy2(src, dest)
                if os.name == "posix":
                    mode = dest.stat().st_mode
                    dest.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
            except OSError as exc:
                raise MakeDefaultFailed(release.version, dest) from exc

        self.set_default(channel)
        logger.info("release %s is now the default (%s)", release.version, channel)
