from __future__ import annotations

from conftest import GENESIS_A, GENESIS_B, jor_entry
from jorup.services.channel_index import ChannelIndex
from jorup.services.channel_workspace import ChannelWorkspace
from jorup.services.config import JorupConfig


def _entry(genesis: str):
    return next(ChannelIndex.from_payload({"entries": [jor_entry("mainnet", "2021-01-01", genesis)]}).entries())


def test_workspace_path_is_deterministic(cfg: JorupConfig) -> None:
    ws = ChannelWorkspace.open(cfg, _entry(GENESIS_A))
    assert ws.dir == cfg.channel_dir / "mainnet" / "2021-01-01"
    assert ws.dir.is_dir()
    # idempotent
    assert ChannelWorkspace.open(cfg, _entry(GENESIS_A)).dir == ws.dir


def test_genesis_hash_is_write_once(cfg: JorupConfig) -> None:
    first = ChannelWorkspace.open(cfg, _entry(GENESIS_A))
    assert first.prepare() is True
    assert first.genesis_block_hash.read_text(encoding="utf-8") == GENESIS_A

    # same (network, date), different genesis: the committed file stays
    second = ChannelWorkspace.open(cfg, _entry(GENESIS_B))
    assert second.prepare() is False
    assert second.genesis_block_hash.read_text(encoding="utf-8") == GENESIS_A


def test_runtime_paths_are_not_created(cfg: JorupConfig) -> None:
    ws = ChannelWorkspace.open(cfg, _entry(GENESIS_A))
    ws.prepare()
    paths = {
        ws.node_config: "node-config.yaml",
        ws.node_storage: "node-storage",
        ws.node_secret: "node-secret.yaml",
        ws.runner_file: "running_config.toml",
        ws.log_file: "NODE.logs",
        ws.wallet_secret: "wallet.secret.key",
    }
    for path, name in paths.items():
        assert path == ws.dir / name
        assert not path.exists()
    assert sorted(p.name for p in ws.dir.iterdir()) == ["genesis.block.hash"]
