# jorup/services/channel_workspace.py
from __future__ import annotations

import logging
from pathlib import Path

from jorup.services.channel_index import Entry
from jorup.services.config import JorupConfig
from jorup.utils.helpers import ensure_dir, write_if_absent

logger = logging.getLogger(__name__)


class WorkspaceError(RuntimeError):
    """Channel workspace directory or genesis file could not be written."""


class ChannelWorkspace:
    """
    Per-channel runtime directory: `<home>/channel/<network>/<date>/`.

    Only the directory and the genesis block hash are written here; every
    other path is handed to the node runner as-is.
    """

    def __init__(self, cfg: JorupConfig, entry: Entry) -> None:
        self.entry = entry
        self.path = cfg.channel_dir / entry.channel.network / entry.channel.date.isoformat()

    @classmethod
    def open(cls, cfg: JorupConfig, entry: Entry) -> "ChannelWorkspace":
        ws = cls(cfg, entry)
        try:
            ensure_dir(ws.path)
        except OSError as exc:
            raise WorkspaceError(f"Error while creating directory '{ws.path}'") from exc
        return ws

    def prepare(self) -> bool:
        """Install the genesis block hash; never overwrites an existing file."""
        path = self.genesis_block_hash
        try:
            written = write_if_absent(path, self.entry.block0_hash)
        except OSError as exc:
            raise WorkspaceError(f"with file {path}") from exc
        if not written:
            logger.debug("genesis hash already present, left untouched: %s", path)
        return written

    @property
    def dir(self) -> Path:
        return self.path

    @property
    def genesis_block_hash(self) -> Path:
        return self.path / "genesis.block.hash"

    @property
    def log_file(self) -> Path:
        return self.path / "NODE.logs"

    @property
    def runner_file(self) -> Path:
        return self.path / "running_config.toml"

    @property
    def node_storage(self) -> Path:
        return self.path / "node-storage"

    @property
    def node_config(self) -> Path:
        return self.path / "node-config.yaml"

    @property
    def node_secret(self) -> Path:
        return self.path / "node-secret.yaml"

    @property
    def wallet_secret(self) -> Path:
        return self.path / "wallet.secret.key"
