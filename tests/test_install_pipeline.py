from __future__ import annotations

import io
import zipfile
from pathlib import Path

import pytest

from conftest import TARGET, DummyResp, FakeSession, make_tarball, remote_release
from jorup.integrations.download_client import DownloadClient
from jorup.integrations.github_releases import RELEASES_URL, ReleaseFinder, RemoteRelease
from jorup.models.version import Version, VersionRequirement
from jorup.services.config import JorupConfig
from jorup.services.install_pipeline import (
    CannotUpdate,
    InstallPipeline,
    OfflineViolation,
    UnpackFailed,
    unpack_asset,
)
from jorup.services.release_inventory import ReleaseInventory


def _feed(*tags: str) -> FakeSession:
    releases = [remote_release(t) for t in tags]
    routes = {RELEASES_URL: DummyResp(releases)}
    for r in releases:
        for a in r["assets"]:
            routes[a["browser_download_url"]] = DummyResp(
                content=make_tarball({"jormungandr": b"node " + r["tag_name"].encode(), "jcli": b"cli"})
            )
    return FakeSession(routes)


def _pipeline(cfg: JorupConfig, session: FakeSession, *, offline: bool = False) -> InstallPipeline:
    client = DownloadClient(session=session)
    return InstallPipeline(
        ReleaseInventory(cfg),
        client=client,
        finder=ReleaseFinder(client, target=TARGET),
        offline=offline,
    )


def _downloads(session: FakeSession) -> int:
    return sum(1 for url, _ in session.calls if url.startswith("https://dl/"))


def test_install_latest_downloads_unpacks_and_registers(cfg: JorupConfig) -> None:
    session = _feed("v1.0.0", "v1.2.0")
    release = _pipeline(cfg, session).install(VersionRequirement.latest(), refresh_latest=True)

    assert release.version == Version.parse("1.2.0")
    assert release.node_binary.read_bytes() == b"node v1.2.0"
    assert release.asset_path.is_file()
    assert [str(v) for v in ReleaseInventory(cfg).installed_versions()] == ["1.2.0"]
    assert _downloads(session) == 1


def test_install_is_idempotent_without_network(cfg: JorupConfig) -> None:
    session = _feed("v1.0.0", "v1.2.0")
    req = VersionRequirement.exact(Version.parse("1.0.0"))
    first = _pipeline(cfg, session).install(req)

    quiet = FakeSession()
    second = _pipeline(cfg, quiet).install(req)
    assert second == first
    assert quiet.calls == []


def test_refresh_latest_skips_download_when_newest_is_local(cfg: JorupConfig) -> None:
    session = _feed("v1.2.0")
    _pipeline(cfg, session).install(VersionRequirement.latest(), refresh_latest=True)

    again = _feed("v1.2.0")
    release = _pipeline(cfg, again).install(VersionRequirement.latest(), refresh_latest=True)
    assert release.version == Version.parse("1.2.0")
    assert _downloads(again) == 0
    assert [u for u, _ in again.calls] == [RELEASES_URL]


def test_offline_uses_local_release(cfg: JorupConfig) -> None:
    _pipeline(cfg, _feed("v1.0.0")).install(VersionRequirement.latest(), refresh_latest=True)

    quiet = FakeSession()
    release = _pipeline(cfg, quiet, offline=True).install(VersionRequirement.latest(), refresh_latest=True)
    assert release.version == Version.parse("1.0.0")
    assert quiet.calls == []


def test_offline_miss_is_a_violation(cfg: JorupConfig) -> None:
    quiet = FakeSession()
    with pytest.raises(OfflineViolation):
        _pipeline(cfg, quiet, offline=True).install(VersionRequirement.exact(Version.parse("1.0.0")))
    assert quiet.calls == []
    assert list(cfg.release_dir.iterdir()) == []


def test_interrupted_install_is_resumed(cfg: JorupConfig) -> None:
    session = _feed("v1.0.0")
    inv = ReleaseInventory(cfg)
    version = Version.parse("1.0.0")
    asset_name = f"jormungandr-v1.0.0-{TARGET}.tar.gz"

    # asset fully downloaded, but never registered
    d = inv.release_path(version)
    d.mkdir(parents=True)
    (d / asset_name).write_bytes(make_tarball({"jormungandr": b"cached", "jcli": b"cli"}))
    assert not inv.is_installed(version)

    release = _pipeline(cfg, session).install(VersionRequirement.exact(version))
    assert inv.is_installed(version)
    assert release.node_binary.read_bytes() == b"cached"
    assert _downloads(session) == 0


def test_corrupt_cached_asset_is_refetched_on_next_run(cfg: JorupConfig) -> None:
    inv = ReleaseInventory(cfg)
    version = Version.parse("1.0.0")
    asset_name = f"jormungandr-v1.0.0-{TARGET}.tar.gz"
    d = inv.release_path(version)
    d.mkdir(parents=True)
    (d / asset_name).write_bytes(b"<html>not an archive</html>")

    req = VersionRequirement.exact(version)
    with pytest.raises(UnpackFailed):
        _pipeline(cfg, _feed("v1.0.0")).install(req)
    assert not (d / asset_name).exists()
    assert not inv.is_installed(version)

    session = _feed("v1.0.0")
    release = _pipeline(cfg, session).install(req)
    assert release.node_binary.read_bytes() == b"node v1.0.0"
    assert _downloads(session) == 1


def test_stable_latest_ignores_local_prerelease(cfg: JorupConfig) -> None:
    nightly = _feed("v1.2.0", "v1.3.0-nightly.1")
    got = _pipeline(cfg, nightly).install(VersionRequirement.exact(Version.parse("1.3.0-nightly.1")))
    assert got.version.is_prerelease

    session = _feed("v1.2.0")
    release = _pipeline(cfg, session).install(VersionRequirement.latest())
    assert release.version == Version.parse("1.2.0")
    assert _downloads(session) == 1


def test_prerelease_latest_consults_feed_over_local_stable(cfg: JorupConfig) -> None:
    _pipeline(cfg, _feed("v1.2.0")).install(VersionRequirement.latest(), refresh_latest=True)

    session = FakeSession(
        {
            RELEASES_URL: DummyResp(
                [remote_release("v1.2.0"), remote_release("v1.3.0-nightly.1", prerelease=True)]
            ),
            f"https://dl/jormungandr-v1.3.0-nightly.1-{TARGET}.tar.gz": DummyResp(
                content=make_tarball({"jormungandr": b"nightly", "jcli": b"cli"})
            ),
        }
    )
    release = _pipeline(cfg, session).install(VersionRequirement.latest(), include_prereleases=True)
    assert release.version == Version.parse("1.3.0-nightly.1")

    # once installed, the nightly is a local hit even offline
    quiet = FakeSession()
    again = _pipeline(cfg, quiet, offline=True).install(VersionRequirement.latest(), include_prereleases=True)
    assert again.version == Version.parse("1.3.0-nightly.1")
    assert quiet.calls == []


def test_download_failure_leaves_release_unregistered(cfg: JorupConfig) -> None:
    session = _feed("v1.0.0")
    remote = RemoteRelease(
        version=Version.parse("1.0.0"),
        tag="v1.0.0",
        asset_name="jormungandr-v1.0.0.tar.gz",
        asset_url="https://dl/missing",
    )
    with pytest.raises(CannotUpdate):
        _pipeline(cfg, session).install_remote(remote)
    assert not ReleaseInventory(cfg).is_installed(remote.version)


def test_unpack_zip_and_reject_unknown(tmp_path: Path) -> None:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("jormungandr.exe", b"win")
    asset = tmp_path / "a.zip"
    asset.write_bytes(buf.getvalue())
    out = tmp_path / "out"
    out.mkdir()
    unpack_asset(asset, out)
    assert (out / "jormungandr.exe").read_bytes() == b"win"

    bogus = tmp_path / "a.rar"
    bogus.write_bytes(b"?")
    with pytest.raises(UnpackFailed):
        unpack_asset(bogus, out)

    broken = tmp_path / "b.tar.gz"
    broken.write_bytes(b"not a tarball")
    with pytest.raises(UnpackFailed):
        unpack_asset(broken, out)
