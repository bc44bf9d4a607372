# tests/conftest.py
from __future__ import annotations

import io
import json
import tarfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest
import requests

from jorup.services.config import JorupConfig

TARGET = "x86_64-unknown-linux-gnu"
GENESIS_A = "aa" * 32
GENESIS_B = "bb" * 32


@pytest.fixture(autouse=True)
def no_network(monkeypatch):
    # Any real requests traffic in tests is a bug.
    def _blocked(self, method, url, *args, **kwargs):
        raise RuntimeError(f"Network disabled in tests: {method} {url}")

    monkeypatch.setattr(requests.Session, "request", _blocked)
    monkeypatch.delenv("JORUP_HOME", raising=False)
    monkeypatch.delenv("JORUP_HTTP_TIMEOUT", raising=False)


def make_tarball(files: Dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


class DummyResp:
    def __init__(
        self,
        payload: Any = None,
        *,
        content: bytes = b"",
        status_code: int = 200,
        links: Optional[Dict[str, Dict[str, str]]] = None,
    ) -> None:
        self._payload = payload
        self.content = content
        self.status_code = status_code
        self.links = links or {}
        self.closed = False

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload

    def iter_content(self, chunk_size: int = 1024):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i : i + chunk_size]

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Routes GET urls to canned responses and records every call."""

    def __init__(self, routes: Optional[Dict[str, DummyResp]] = None) -> None:
        self.routes: Dict[str, DummyResp] = dict(routes or {})
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def get(self, url: str, **kwargs: Any) -> DummyResp:
        self.calls.append((url, kwargs))
        if url not in self.routes:
            raise requests.ConnectionError(f"no route for {url}")
        return self.routes[url]


def remote_release(
    tag: str,
    *,
    prerelease: bool = False,
    draft: bool = False,
    target: str = TARGET,
) -> Dict[str, Any]:
    name = f"jormungandr-{tag}-{target}.tar.gz"
    return {
        "tag_name": tag,
        "prerelease": prerelease,
        "draft": draft,
        "assets": [
            {"name": f"jormungandr-{tag}-other-arch.tar.gz", "browser_download_url": "https://dl/other"},
            {"name": name, "browser_download_url": f"https://dl/{name}"},
        ],
    }


@pytest.fixture
def home(tmp_path: Path) -> Path:
    return tmp_path / "jorup-home"


@pytest.fixture
def cfg(home: Path) -> JorupConfig:
    return JorupConfig.open(home, check_path=False)


@pytest.fixture
def write_jorfile(tmp_path: Path):
    def _write(entries: List[Dict[str, Any]], name: str = "jorfile.json") -> Path:
        p = tmp_path / name
        p.write_text(json.dumps({"entries": entries}, indent=2), encoding="utf-8")
        return p

    return _write


def jor_entry(network: str, date: str, block0_hash: str = GENESIS_A, versions: str = "*") -> Dict[str, Any]:
    return {
        "network": network,
        "date": date,
        "genesis": {"block0_hash": block0_hash},
        "jormungandr_versions": versions,
    }
