import pytest

from logscrobbler.config import (
    LASTFM_API_ROOT,
    default_cache_dir,
    default_config_dir,
    load_config,
    parse_utc_offset,
)
from logscrobbler.errors import ConfigError


def write_config(d, text):
    d.mkdir(exist_ok=True)
    (d / "config").write_text(text, encoding="utf-8")
    return d


def test_loads_required_values(config_dir, cache_dir):
    cfg = load_config(config_dir, cache_dir)
    assert (cfg.user, cfg.api_key, cfg.api_secret) == ("alice", "KEY", "SECRET")
    assert cfg.api_root == LASTFM_API_ROOT
    assert cfg.utc_offset == 0.0
    assert cfg.cache_dir == cache_dir
    assert cfg.path == config_dir / "config"


def test_optional_values(tmp_path):
    d = write_config(tmp_path / "c", (
        "[core]\nuser = bob\n[api]\nkey = k\nsecret = s\nurl = http://localhost/2.0/\n"
        "[scrobble]\nutc_offset = -3.5\n"
    ))
    cfg = load_config(d, tmp_path / "cache")
    assert cfg.api_root == "http://localhost/2.0/"
    assert cfg.utc_offset == -3.5


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(tmp_path / "absent", tmp_path / "cache")


@pytest.mark.parametrize(
    "text, missing",
    [
        ("[api]\nkey = k\nsecret = s\n", "user"),
        ("[core]\nuser = u\n[api]\nsecret = s\n", "key"),
        ("[core]\nuser = u\n[api]\nkey = k\nsecret =\n", "secret"),
    ],
)
def test_incomplete_config(tmp_path, text, missing):
    d = write_config(tmp_path / "c", text)
    with pytest.raises(ConfigError, match=missing):
        load_config(d, tmp_path / "cache")


@pytest.mark.parametrize("offset", ["three", "15", "-13"])
def test_bad_offset(tmp_path, offset):
    d = write_config(tmp_path / "c", f"[core]\nuser = u\n[api]\nkey = k\nsecret = s\n[scrobble]\nutc_offset = {offset}\n")
    with pytest.raises(ConfigError):
        load_config(d, tmp_path / "cache")


def test_unparsable_file(tmp_path):
    d = write_config(tmp_path / "c", "user = nobody\n")
    with pytest.raises(ConfigError, match="Could not read"):
        load_config(d, tmp_path / "cache")


def test_default_dirs_follow_xdg(monkeypatch, tmp_path):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xc"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xk"))
    assert default_config_dir() == tmp_path / "xc" / "logscrobbler"
    assert default_cache_dir() == tmp_path / "xk" / "logscrobbler"


@pytest.mark.parametrize("value, expected", [("0", 0.0), ("-12", -12.0), ("14", 14.0), ("5.5", 5.5)])
def test_parse_utc_offset(value, expected):
    assert parse_utc_offset(value) == expected


@pytest.mark.parametrize("value", ["300", "-12.5", "14.1", "nan", "east"])
def test_parse_utc_offset_rejects(value):
    with pytest.raises(ValueError):
        parse_utc_offset(value)
