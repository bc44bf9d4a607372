# jorup/services/config.py
"""
JORUP CONFIG: explicit runtime configuration

Constructed once by the CLI and passed to every component:
- home directory layout (bin/, channel/, release/, settings.toml, jorfile.json)
- persisted settings (default channel)
- jorfile location / offline flag
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from jorup.models.channel import ChannelDescriptor
from jorup.models.settings import InvalidSettingsDocument, JorupSettings, settings_from_toml, settings_to_toml
from jorup.services.channel_index import ChannelIndex

logger = logging.getLogger(__name__)

JORUP_HOME_ENV = "JORUP_HOME"
NODE_BINARY = "jormungandr"


class ConfigError(RuntimeError):
    """Home directory / settings related failures."""


class NoHomeDir(ConfigError):
    def __init__(self) -> None:
        super().__init__(
            f"No $HOME directory and no ${JORUP_HOME_ENV} set, cannot locate the jorup home"
        )


class CannotCreateDir(ConfigError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Cannot create directory [={path}]")


class SettingsLoadFailed(ConfigError):
    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"Cannot {reason} settings file: {path}")


class SettingsPersistFailed(ConfigError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Cannot save settings [={path}]")


class SyncStatus(str, Enum):
    SKIPPED_OVERRIDE = "skipped_override"
    SKIPPED_OFFLINE = "skipped_offline"
    UNAVAILABLE = "unavailable"


def resolve_home_dir(explicit: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Path:
    """
    Resolution order (first match wins):
        1. explicit value (--jorup-home)
        2. JORUP_HOME environment variable
        3. ~/.jorup
    """
    if explicit:
        return Path(explicit).expanduser()

    environ = os.environ if env is None else env
    env_home = (environ.get(JORUP_HOME_ENV) or "").strip()
    if env_home:
        return Path(env_home).expanduser()

    try:
        return Path.home() / ".jorup"
    except RuntimeError as exc:
        raise NoHomeDir() from exc


class JorupConfig:
    def __init__(
        self,
        home_dir: Path,
        *,
        jor_file: Optional[Path] = None,
        offline: bool = False,
    ) -> None:
        self.home_dir = Path(home_dir)
        self.jor_file = Path(jor_file) if jor_file else None
        self.offline = bool(offline)
        self._settings = JorupSettings()

    @classmethod
    def open(
        cls,
        home_dir: Path,
        *,
        jor_file: Optional[Path] = None,
        offline: bool = False,
        check_path: bool = True,
    ) -> "JorupConfig":
        """Create the home layout if needed and load the settings."""
        cfg = cls(home_dir, jor_file=jor_file, offline=offline)
        cfg.init()
        cfg.load_settings()
        if check_path:
            cfg.detect_installed_path()
        return cfg

    # =========================================================
    # LAYOUT
    # =========================================================
    @property
    def bin_dir(self) -> Path:
        return self.home_dir / "bin"

    @property
    def channel_dir(self) -> Path:
        return self.home_dir / "channel"

    @property
    def release_dir(self) -> Path:
        return self.home_dir / "release"

    @property
    def settings_file(self) -> Path:
        return self.home_dir / "settings.toml"

    @property
    def jorfile(self) -> Path:
        return self.jor_file or (self.home_dir / "jorfile.json")

    def init(self) -> None:
        try:
            self.home_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CannotCreateDir(self.home_dir) from exc

        for d in (self.bin_dir, self.channel_dir, self.release_dir):
            try:
                d.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise CannotCreateDir(d) from exc

        if not self.settings_file.is_file():
            logger.info("creating default settings: %s", self.settings_file)
            self.save_settings()

    def detect_installed_path(self, path_env: Optional[str] = None) -> None:
        bin_dir = self.bin_dir if self.bin_dir.is_absolute() else Path.cwd() / self.bin_dir
        raw = os.environ.get("PATH") if path_env is None else path_env
        if not raw:
            logger.warning("no environment PATH recognized on this system")
            return

        paths = [Path(p) for p in raw.split(os.pathsep) if p]
        if bin_dir not in paths:
            logger.warning("environment PATH does not contain bin dir: %s", bin_dir)

        others = sorted(
            {p for p in paths if p != bin_dir and (p / NODE_BINARY).is_file()}
        )
        for other in others:
            logger.warning("found competing installation in %s", other)

    # =========================================================
    # SETTINGS
    # =========================================================
    @property
    def settings(self) -> JorupSettings:
        return self._settings

    @property
    def current_channel(self) -> ChannelDescriptor:
        return self._settings.default

    def load_settings(self) -> JorupSettings:
        path = self.settings_file
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise SettingsLoadFailed(path, "open") from exc
        try:
            self._settings = settings_from_toml(text)
        except InvalidSettingsDocument as exc:
            raise SettingsLoadFailed(path, "parse") from exc
        return self._settings

    def save_settings(self) -> None:
        # full document replace, never a partial field update
        path = self.settings_file
        try:
            path.write_text(settings_to_toml(self._settings), encoding="utf-8")
        except OSError as exc:
            raise SettingsPersistFailed(path) from exc

    def set_default_channel(self, channel: ChannelDescriptor) -> None:
        previous = self._settings
        candidate = JorupSettings(default=channel)
        self._settings = candidate
        try:
            self.save_settings()
        except SettingsPersistFailed:
            self._settings = previous
            raise
        logger.info("default channel set to %s", channel)

    # =========================================================
    # JORFILE
    # =========================================================
    def sync_index(self) -> SyncStatus:
        if self.jor_file is not None:
            return SyncStatus.SKIPPED_OVERRIDE
        if self.offline:
            return SyncStatus.SKIPPED_OFFLINE
        logger.warning(
            "fetching the jorfile from the network is not supported yet, using local copy: %s",
            self.jorfile,
        )
        return SyncStatus.UNAVAILABLE

    def load_index(self) -> ChannelIndex:
        self.sync_index()
        return ChannelIndex.load(self.jorfile)
