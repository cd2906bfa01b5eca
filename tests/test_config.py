from pathlib import Path

import pytest

from questlines.core.config import ConfigError, load_settings, parse_mode


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "QUESTLINES_APP_MODE",
        "QUESTLINES_API_BASE",
        "QUESTLINES_STORE_PATH",
        "QUESTLINES_EXPORT_DIR",
        "QUESTLINES_HTTP_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    s = load_settings()
    assert s.mode == "remote"
    assert s.api_base == "http://localhost:8080/api"
    assert s.store_path == Path("~/.questlines/store.json").expanduser()
    assert s.export_dir == Path(".")
    assert s.http_timeout == 10.0


def test_env_overrides_defaults(monkeypatch, tmp_path):
    monkeypatch.setenv("QUESTLINES_APP_MODE", "browser_only")
    monkeypatch.setenv("QUESTLINES_API_BASE", "https://example.test/api/")
    monkeypatch.setenv("QUESTLINES_STORE_PATH", str(tmp_path / "s.json"))
    monkeypatch.setenv("QUESTLINES_HTTP_TIMEOUT", "2.5")
    s = load_settings()
    assert s.mode == "local"
    assert s.api_base == "https://example.test/api"
    assert s.store_path == tmp_path / "s.json"
    assert s.http_timeout == 2.5


def test_arguments_override_env(monkeypatch):
    monkeypatch.setenv("QUESTLINES_APP_MODE", "local")
    assert load_settings(mode="remote").mode == "remote"


def test_parse_mode():
    assert parse_mode(" Local ") == "local"
    assert parse_mode("api") == "remote"
    with pytest.raises(ConfigError):
        parse_mode("cloud")


def test_invalid_values(monkeypatch):
    with pytest.raises(ConfigError):
        load_settings(api_base="ftp://nope")
    monkeypatch.setenv("QUESTLINES_HTTP_TIMEOUT", "soon")
    with pytest.raises(ConfigError):
        load_settings()
    monkeypatch.setenv("QUESTLINES_HTTP_TIMEOUT", "0")
    with pytest.raises(ConfigError):
        load_settings()
