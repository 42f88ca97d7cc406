from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from logscrobbler.errors import ConfigError

APP_NAME = "logscrobbler"
CONFIG_NAME = "config"
LASTFM_API_ROOT = "https://ws.audioscrobbler.com/2.0/"
MIN_UTC_OFFSET = -12.0
MAX_UTC_OFFSET = 14.0


def default_config_dir() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(base) / APP_NAME


def default_cache_dir() -> Path:
    base = os.environ.get("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return Path(base) / APP_NAME


def parse_utc_offset(value: str) -> float:
    """Hours from UTC, e.g. "3", "-5" or "5.5"; raises ValueError outside UTC-12..UTC+14."""
    try:
        offset = float(value)
    except ValueError:
        raise ValueError(f"expected a number of hours, got {value!r}")
    if not MIN_UTC_OFFSET <= offset <= MAX_UTC_OFFSET:
        raise ValueError(f"non-existent timezone UTC{offset:+g}")
    return offset


@dataclass(frozen=True)
class Config:
    user: str
    api_key: str
    api_secret: str
    config_dir: Path
    cache_dir: Path
    api_root: str = LASTFM_API_ROOT
    utc_offset: float = 0.0

    @property
    def path(self) -> Path:
        return self.config_dir / CONFIG_NAME


def _required(cp: configparser.ConfigParser, section: str, option: str, path: Path) -> str:
    value = cp.get(section, option, fallback="").strip()
    if not value:
        raise ConfigError(f"{path}: missing [{section}] {option}")
    return value


def load_config(config_dir: Optional[Path] = None, cache_dir: Optional[Path] = None) -> Config:
    """
    Read <config_dir>/config. [core] user, [api] key and [api] secret are required;
    [api] url and [scrobble] utc_offset are optional.
    """
    config_dir = Path(config_dir) if config_dir else default_config_dir()
    cache_dir = Path(cache_dir) if cache_dir else default_cache_dir()
    path = config_dir / CONFIG_NAME

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    cp = configparser.ConfigParser(interpolation=None)
    try:
        with path.open("r", encoding="utf-8") as fh:
            cp.read_file(fh)
    except (OSError, configparser.Error) as exc:
        raise ConfigError(f"Could not read {path}: {exc}") from exc

    raw_offset = cp.get("scrobble", "utc_offset", fallback="0").strip() or "0"
    try:
        utc_offset = parse_utc_offset(raw_offset)
    except ValueError as exc:
        raise ConfigError(f"{path}: [scrobble] utc_offset: {exc}")

    return Config(
        user=_required(cp, "core", "user", path),
        api_key=_required(cp, "api", "key", path),
        api_secret=_required(cp, "api", "secret", path),
        config_dir=config_dir,
        cache_dir=cache_dir,
        api_root=cp.get("api", "url", fallback=LASTFM_API_ROOT).strip() or LASTFM_API_ROOT,
        utc_offset=utc_offset,
    )
