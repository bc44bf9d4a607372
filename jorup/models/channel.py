# jorup/models/channel.py
"""
CHANNEL DESCRIPTORS

A channel descriptor is what a user types to pick a blockchain:

    stable                  -> every non-nightly entry
    nightly                 -> every nightly entry
    mainnet                 -> network only (date is a wildcard)
    mainnet-2021-01-01      -> network + date
    2021-01-01              -> date only (network is a wildcard)

`ChannelName` is the fully specified (network, date) identity carried by
index entries.
"""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

NIGHTLY_NETWORK = "nightly"

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_NETWORK_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
_WITH_DATE_RE = re.compile(r"^(?P<network>.+)-(?P<date>\d{4}-\d{2}-\d{2})$")


class InvalidChannelString(ValueError):
    """Raised when a channel token (or one of its parts) is malformed."""


def parse_date(text: str) -> dt.date:
    raw = (text or "").strip()
    if not _DATE_RE.match(raw):
        raise InvalidChannelString(f"Invalid channel date (want YYYY-MM-DD): {text!r}")
    try:
        return dt.date.fromisoformat(raw)
    except ValueError as exc:
        raise InvalidChannelString(f"Invalid channel date: {text!r}") from exc


def parse_network(text: str) -> str:
    raw = (text or "").strip()
    if not _NETWORK_RE.match(raw) or _DATE_RE.match(raw):
        raise InvalidChannelString(f"Invalid network name: {text!r}")
    return raw


@dataclass(frozen=True)
class ChannelName:
    """Fully specified channel identity of an index entry."""

    network: str
    date: dt.date

    @classmethod
    def parse(cls, text: str) -> "ChannelName":
        m = _WITH_DATE_RE.match((text or "").strip())
        if not m:
            raise InvalidChannelString(
                f"Invalid channel name (want <network>-YYYY-MM-DD): {text!r}"
            )
        return cls(parse_network(m.group("network")), parse_date(m.group("date")))

    def is_nightly(self) -> bool:
        return self.network == NIGHTLY_NETWORK

    def __str__(self) -> str:
        return f"{self.network}-{self.date.isoformat()}"


class ChannelKind(str, Enum):
    STABLE = "stable"
    NIGHTLY = "nightly"
    SPECIFIC = "specific"


@dataclass(frozen=True)
class ChannelDescriptor:
    kind: ChannelKind
    network: Optional[str] = None
    date: Optional[dt.date] = None

    def __post_init__(self) -> None:
        if self.kind is not ChannelKind.SPECIFIC and (
            self.network is not None or self.date is not None
        ):
            raise InvalidChannelString(f"{self.kind.value} channel takes no fields")
        if self.kind is ChannelKind.SPECIFIC and self.network is None and self.date is None:
            raise InvalidChannelString("specific channel needs a network or a date")
        if self.date is None and self.network in (ChannelKind.STABLE.value, ChannelKind.NIGHTLY.value):
            # would render as the coarse stable/nightly selector
            raise InvalidChannelString(f"network {self.network!r} needs a date")
        if self.network is not None:
            if parse_network(self.network) != self.network:
                raise InvalidChannelString(f"Invalid network name: {self.network!r}")
            if self.date is None and _WITH_DATE_RE.match(self.network):
                # would read back as <network>-<date>
                raise InvalidChannelString(f"network {self.network!r} ends with a date")

    # ------------------------------------------------------------
    # constructors
    # ------------------------------------------------------------
    @classmethod
    def stable(cls) -> "ChannelDescriptor":
        return cls(ChannelKind.STABLE)

    @classmethod
    def nightly(cls) -> "ChannelDescriptor":
        return cls(ChannelKind.NIGHTLY)

    @classmethod
    def specific(
        cls, network: Optional[str] = None, on: Optional[dt.date] = None
    ) -> "ChannelDescriptor":
        return cls(ChannelKind.SPECIFIC, network, on)

    @classmethod
    def for_channel(cls, name: ChannelName) -> "ChannelDescriptor":
        return cls(ChannelKind.SPECIFIC, name.network, name.date)

    @classmethod
    def parse(cls, text: str) -> "ChannelDescriptor":
        if not isinstance(text, str):
            raise InvalidChannelString(f"channel must be a string, got {text!r}")
        raw = text.strip()
        if raw == "stable":
            return cls.stable()
        if raw == "nightly":
            return cls.nightly()
        if not raw:
            raise InvalidChannelString("empty channel")

        if _DATE_RE.match(raw):
            return cls.specific(on=parse_date(raw))

        m = _WITH_DATE_RE.match(raw)
        if m:
            return cls.specific(parse_network(m.group("network")), parse_date(m.group("date")))

        return cls.specific(parse_network(raw))

    # ------------------------------------------------------------
    # behaviour
    # ------------------------------------------------------------
    def is_nightly(self) -> bool:
        if self.kind is ChannelKind.NIGHTLY:
            return True
        if self.kind is ChannelKind.STABLE:
            return False
        if self.kind is ChannelKind.SPECIFIC:
            return self.network == NIGHTLY_NETWORK
        raise AssertionError(f"unhandled channel kind: {self.kind}")

    def matches(self, channel: ChannelName) -> bool:
        """Unset fields are wildcards; stable/nightly partition by nightly-ness."""
        if self.kind is ChannelKind.STABLE:
            return not channel.is_nightly()
        if self.kind is ChannelKind.NIGHTLY:
            return channel.is_nightly()
        if self.kind is ChannelKind.SPECIFIC:
            if self.network is not None and self.network != channel.network:
                return False
            if self.date is not None and self.date != channel.date:
                return False
            return True
        raise AssertionError(f"unhandled channel kind: {self.kind}")

    def __str__(self) -> str:
        if self.kind is not ChannelKind.SPECIFIC:
            return self.kind.value
        if self.network is None:
            return self.date.isoformat()  # type: ignore[union-attr]
        if self.date is None:
            return self.network
        return f"{self.network}-{self.date.isoformat()}"
