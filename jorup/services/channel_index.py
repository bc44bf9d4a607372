# jorup/services/channel_index.py
"""
CHANNEL INDEX ("jorfile"): READ-ONLY CATALOG

Role:
- loads the jorfile JSON document wholesale (never partially mutated)
- keeps entries in document order
- resolves a ChannelDescriptor (possibly partial) to exactly one Entry

Document shape:

    {
      "entries": [
        {
          "network": "mainnet",
          "date": "2021-01-01",
          "genesis": {"block0_hash": "<hex>"},
          "jormungandr_versions": ">=1.0.0"
        }
      ]
    }
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from jorup.models.channel import ChannelDescriptor, ChannelName, InvalidChannelString, parse_date, parse_network
from jorup.models.version import InvalidVersionRequirement, InvalidVersionString, VersionRequirement

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")


class ChannelIndexError(RuntimeError):
    """Base error for jorfile loading / resolution."""


class IndexUnavailable(ChannelIndexError):
    """Index file missing, unreadable or not a valid jorfile."""


class NoEntryForChannel(ChannelIndexError):
    def __init__(self, channel: Optional[ChannelDescriptor]) -> None:
        self.channel = channel
        label = str(channel) if channel is not None else "<default>"
        super().__init__(f"No entry available for channel '{label}'")


# =========================================================
# DATA CONTRACT
# =========================================================


@dataclass(frozen=True)
class Entry:
    channel: ChannelName
    block0_hash: str
    jormungandr_versions: VersionRequirement
    version_range: str = "*"

    def is_nightly(self) -> bool:
        return self.channel.is_nightly()

    @property
    def network(self) -> str:
        return self.channel.network


def _parse_entry(raw: Any, idx: int) -> Entry:
    if not isinstance(raw, dict):
        raise ValueError(f"entry #{idx} must be an object")

    genesis = raw.get("genesis")
    if not isinstance(genesis, dict):
        raise ValueError(f"entry #{idx} missing 'genesis' object")
    block0_hash = genesis.get("block0_hash")
    if not isinstance(block0_hash, str) or not _HEX_RE.match(block0_hash) or len(block0_hash) % 2:
        raise ValueError(f"entry #{idx} has an invalid genesis block0_hash")

    version_range = raw.get("jormungandr_versions", "*")
    if not isinstance(version_range, str):
        raise ValueError(f"entry #{idx} 'jormungandr_versions' must be a string")

    try:
        channel = ChannelName(
            parse_network(str(raw.get("network", ""))),
            parse_date(str(raw.get("date", ""))),
        )
        requirement = VersionRequirement.parse_range(version_range)
    except (InvalidChannelString, InvalidVersionString, InvalidVersionRequirement) as exc:
        raise ValueError(f"entry #{idx}: {exc}") from exc

    return Entry(
        channel=channel,
        block0_hash=block0_hash.lower(),
        jormungandr_versions=requirement,
        version_range=version_range,
    )


# =========================================================
# INDEX
# =========================================================


class ChannelIndex:
    def __init__(self, entries: List[Entry]) -> None:
        seen: Dict[Tuple[str, Any], Entry] = {}
        for e in entries:
            key = (e.channel.network, e.channel.date)
            if key in seen:
                raise ValueError(f"duplicate entry for channel '{e.channel}'")
            seen[key] = e
        self._entries: Tuple[Entry, ...] = tuple(entries)

    @classmethod
    def from_payload(cls, payload: Any) -> "ChannelIndex":
        if not isinstance(payload, dict):
            raise ValueError("jorfile root must be an object")
        items = payload.get("entries")
        if not isinstance(items, list):
            raise ValueError("jorfile missing 'entries' list")
        return cls([_parse_entry(raw, i) for i, raw in enumerate(items)])

    @classmethod
    def load(cls, path: Path) -> "ChannelIndex":
        p = Path(path)
        try:
            with open(p, "r", encoding="utf-8-sig") as f:
                payload = json.load(f)
        except OSError as exc:
            raise IndexUnavailable(f"Cannot open file {p}") from exc
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise IndexUnavailable(f"cannot parse file {p}") from exc

        try:
            index = cls.from_payload(payload)
        except ValueError as exc:
            raise IndexUnavailable(f"invalid jorfile {p}") from exc

        logger.debug("jorfile loaded: path=%s entries=%d", p, len(index))
        return index

    def entries(self) -> Iterator[Entry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def resolve(self, channel: ChannelDescriptor) -> Entry:
        """Last matching entry in document order wins."""
        found: Optional[Entry] = None
        for entry in self._entries:
            if channel.matches(entry.channel):
                found = entry
        if found is None:
            raise NoEntryForChannel(channel)
        return found

    def default_entry(self, default: ChannelDescriptor) -> Entry:
        """First entry sharing the default channel's nightly-ness."""
        wanted = default.is_nightly()
        for entry in self._entries:
            if entry.is_nightly() == wanted:
                return entry
        raise NoEntryForChannel(default)

    def select(self, channel: Optional[ChannelDescriptor], default: ChannelDescriptor) -> Entry:
        if channel is None:
            return self.default_entry(default)
        return self.resolve(channel)
