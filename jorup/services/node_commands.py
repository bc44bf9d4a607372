# jorup/services/node_commands.py
"""
NODE COMMANDS: install / list / remove / default / channel

Turns a user request (nothing, an explicit version, or a blockchain name)
into one concrete local release. Request validation happens before any disk
or network access.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from jorup.integrations.github_releases import GitHubError
from jorup.models.channel import ChannelDescriptor, InvalidChannelString
from jorup.models.version import Version, VersionRequirement
from jorup.services.channel_index import ChannelIndexError, Entry
from jorup.services.channel_workspace import ChannelWorkspace, WorkspaceError
from jorup.services.config import ConfigError, JorupConfig
from jorup.services.install_pipeline import InstallError, InstallPipeline, OfflineViolation
from jorup.services.release_inventory import Release, ReleaseError, ReleaseInventory

logger = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """Top-level command failure; the underlying error is chained as __cause__."""


class ConflictingRequest(CommandError):
    def __init__(self) -> None:
        super().__init__("Cannot specify blockchain and version at the same time")


class NoValidBlockchain(CommandError):
    def __init__(self, blockchain: str) -> None:
        self.blockchain = blockchain
        super().__init__(f"Cannot load the requested blockchain '{blockchain}'")


class InstallFailed(CommandError):
    pass


class ReleasesListFailed(CommandError):
    pass


class RemoveReleaseFailed(CommandError):
    pass


class DefaultChannelFailed(CommandError):
    pass


class ChannelPrepareFailed(CommandError):
    pass


@dataclass(frozen=True)
class InstallResult:
    release: Release
    entry: Optional[Entry] = None
    workspace: Optional[ChannelWorkspace] = None


def _load_entry(cfg: JorupConfig, blockchain: str) -> tuple[ChannelDescriptor, Entry]:
    try:
        channel = ChannelDescriptor.parse(blockchain)
        entry = cfg.load_index().resolve(channel)
    except (InvalidChannelString, ChannelIndexError) as exc:
        raise NoValidBlockchain(blockchain) from exc
    return channel, entry


def install(
    cfg: JorupConfig,
    *,
    version: Optional[Version] = None,
    blockchain: Optional[str] = None,
    make_default: bool = False,
    pipeline: Optional[InstallPipeline] = None,
) -> InstallResult:
    if version is not None and blockchain is not None:
        raise ConflictingRequest()

    entry: Optional[Entry] = None
    refresh_latest = False
    include_prereleases = False

    if blockchain is not None:
        channel, entry = _load_entry(cfg, blockchain)
        requirement = entry.jormungandr_versions
        include_prereleases = entry.is_nightly()
    elif version is not None:
        requirement = VersionRequirement.exact(version)
        channel = ChannelDescriptor.nightly() if version.is_prerelease else ChannelDescriptor.stable()
    else:
        requirement = VersionRequirement.latest()
        channel = ChannelDescriptor.stable()
        refresh_latest = True

    inventory = pipeline.inventory if pipeline is not None else ReleaseInventory(cfg)
    if pipeline is None:
        pipeline = InstallPipeline(inventory, offline=cfg.offline)

    try:
        release = pipeline.install(
            requirement,
            refresh_latest=refresh_latest,
            include_prereleases=include_prereleases,
        )
    except OfflineViolation:
        raise
    except (ReleaseError, InstallError, GitHubError) as exc:
        raise InstallFailed(f"Cannot install a release matching '{requirement}'") from exc

    if make_default:
        try:
            inventory.make_default(release, channel)
        except (ReleaseError, ConfigError) as exc:
            raise InstallFailed(f"Cannot make release {release.version} the default") from exc

    workspace: Optional[ChannelWorkspace] = None
    if entry is not None:
        workspace = _prepare_workspace(cfg, entry)

    return InstallResult(release=release, entry=entry, workspace=workspace)


def list_releases(cfg: JorupConfig) -> Iterator[Release]:
    inventory = ReleaseInventory(cfg)
    try:
        yield from inventory.releases()
    except ReleaseError as exc:
        raise ReleasesListFailed("Error while listing releases") from exc


def remove(cfg: JorupConfig, version: Version) -> None:
    try:
        ReleaseInventory(cfg).remove(version)
    except ReleaseError as exc:
        raise RemoveReleaseFailed(f"Failed to remove release {version}") from exc


def get_default(cfg: JorupConfig) -> ChannelDescriptor:
    return cfg.current_channel


def set_default(cfg: JorupConfig, channel: str) -> ChannelDescriptor:
    # parse first: a malformed channel never reaches the settings file
    try:
        descriptor = ChannelDescriptor.parse(channel)
    except InvalidChannelString as exc:
        raise DefaultChannelFailed(f"Invalid channel '{channel}'") from exc
    try:
        ReleaseInventory(cfg).set_default(descriptor)
    except ConfigError as exc:
        raise DefaultChannelFailed(f"Cannot set default channel to '{descriptor}'") from exc
    return descriptor


def _prepare_workspace(cfg: JorupConfig, entry: Entry) -> ChannelWorkspace:
    try:
        workspace = ChannelWorkspace.open(cfg, entry)
        workspace.prepare()
    except WorkspaceError as exc:
        raise ChannelPrepareFailed(f"Cannot prepare channel {entry.channel}") from exc
    return workspace


def prepare_channel(cfg: JorupConfig, channel: Optional[str] = None) -> ChannelWorkspace:
    """Resolve `channel` (or the default one) and prepare its workspace."""
    try:
        descriptor = ChannelDescriptor.parse(channel) if channel is not None else None
        index = cfg.load_index()
        entry = index.select(descriptor, cfg.current_channel)
    except (InvalidChannelString, ChannelIndexError) as exc:
        raise ChannelPrepareFailed(
            f"No jorfile entry for channel '{channel or cfg.current_channel}'"
        ) from exc
    return _prepare_workspace(cfg, entry)
