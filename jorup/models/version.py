# jorup/models/version.py
"""
VERSION + VERSION REQUIREMENT

- Version: semantic version of a jormungandr release (canonical string form)
- VersionRequirement: LATEST (pick the max) or EXACT(version)

Range algebra is NOT modeled. The index document's range strings are mapped
onto the two supported requirement kinds by `VersionRequirement.parse_range`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import total_ordering
from typing import Iterable, Optional, Tuple, Union


class InvalidVersionString(ValueError):
    """Raised when a string is not a valid semantic version."""


class InvalidVersionRequirement(ValueError):
    """Raised when a range string cannot be mapped to Latest/Exact."""


class NoCandidateSatisfiesRequirement(LookupError):
    """Raised when selecting from a candidate set yields nothing."""


_VERSION_RE = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

_PreKey = Tuple[Tuple[int, Union[int, str]], ...]


def _prerelease_key(pre: Tuple[str, ...]) -> _PreKey:
    out = []
    for ident in pre:
        if ident.isdigit():
            out.append((0, int(ident)))
        else:
            out.append((1, ident))
    return tuple(out)


@total_ordering
@dataclass(frozen=True)
class Version:
    major: int
    minor: int
    patch: int
    pre: Tuple[str, ...] = ()
    build: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: str) -> "Version":
        if not isinstance(text, str):
            raise InvalidVersionString(f"version must be a string, got {text!r}")
        m = _VERSION_RE.match(text.strip())
        if not m:
            raise InvalidVersionString(f"Invalid version string: {text!r}")

        major, minor, patch, pre, build = m.groups()
        pre_parts = tuple(pre.split(".")) if pre else ()
        for ident in pre_parts:
            if ident.isdigit() and len(ident) > 1 and ident.startswith("0"):
                raise InvalidVersionString(
                    f"Invalid version string: {text!r} (leading zero in {ident!r})"
                )
        return cls(
            major=int(major),
            minor=int(minor),
            patch=int(patch),
            pre=pre_parts,
            build=tuple(build.split(".")) if build else (),
        )

    @classmethod
    def from_tag(cls, tag: str) -> "Version":
        """Parse a remote release tag, tolerating a leading `v` (e.g. `v0.9.1`)."""
        t = (tag or "").strip()
        if t[:1] in ("v", "V"):
            t = t[1:]
        return cls.parse(t)

    @property
    def is_prerelease(self) -> bool:
        return bool(self.pre)

    def _key(self) -> tuple:
        # a release sorts after all of its pre-releases
        return (
            self.major,
            self.minor,
            self.patch,
            0 if self.pre else 1,
            _prerelease_key(self.pre),
            self.build,
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def __str__(self) -> str:
        out = f"{self.major}.{self.minor}.{self.patch}"
        if self.pre:
            out += "-" + ".".join(self.pre)
        if self.build:
            out += "+" + ".".join(self.build)
        return out


class RequirementKind(str, Enum):
    LATEST = "latest"
    EXACT = "exact"


@dataclass(frozen=True)
class VersionRequirement:
    kind: RequirementKind
    version: Optional[Version] = None

    def __post_init__(self) -> None:
        if self.kind is RequirementKind.EXACT and self.version is None:
            raise InvalidVersionRequirement("exact requirement needs a version")
        if self.kind is RequirementKind.LATEST and self.version is not None:
            raise InvalidVersionRequirement("latest requirement takes no version")

    @classmethod
    def latest(cls) -> "VersionRequirement":
        return cls(RequirementKind.LATEST)

    @classmethod
    def exact(cls, version: Version) -> "VersionRequirement":
        return cls(RequirementKind.EXACT, version)

    @classmethod
    def parse_range(cls, text: str) -> "VersionRequirement":
        """
        Map an index range string onto LATEST / EXACT.

        - "", "*", "latest", ">=X", ">X"  -> LATEST
        - "X", "=X", "==X"                -> EXACT(X)
        """
        raw = (text or "").strip()
        if raw in ("", "*") or raw.lower() == "latest":
            return cls.latest()

        for op in (">=", ">"):
            if raw.startswith(op):
                # the bound itself must still be a valid version
                Version.parse(raw[len(op):].strip())
                return cls.latest()

        for op in ("==", "="):
            if raw.startswith(op):
                return cls.exact(Version.parse(raw[len(op):].strip()))

        try:
            return cls.exact(Version.parse(raw))
        except InvalidVersionString as exc:
            raise InvalidVersionRequirement(
                f"Unsupported version requirement: {text!r}"
            ) from exc

    @property
    def is_latest(self) -> bool:
        return self.kind is RequirementKind.LATEST

    def matches(self, version: Version) -> bool:
        if self.kind is RequirementKind.EXACT:
            return version == self.version
        if self.kind is RequirementKind.LATEST:
            return True
        raise AssertionError(f"unhandled requirement kind: {self.kind}")

    def select(self, candidates: Iterable[Version]) -> Version:
        pool = list(candidates)
        if self.kind is RequirementKind.EXACT:
            for v in pool:
                if v == self.version:
                    return v
            raise NoCandidateSatisfiesRequirement(
                f"version {self.version} is not available"
            )
        if self.kind is RequirementKind.LATEST:
            if not pool:
                raise NoCandidateSatisfiesRequirement("no version available")
            return max(pool)
        raise AssertionError(f"unhandled requirement kind: {self.kind}")

    def __str__(self) -> str:
        if self.kind is RequirementKind.EXACT:
            return f"={self.version}"
        return "latest"
