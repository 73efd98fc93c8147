from pathlib import Path

import pytest

from dispatch.config import BotConfig, load_config

DEFAULTS_PATH = Path(__file__).parent.parent / "config" / "bot.defaults.yml"


def test_load_config_defaults(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("log_level: debug", encoding="utf-8")

    cfg = load_config(path)

    assert isinstance(cfg, BotConfig)
    assert cfg.log_level == "DEBUG"
    assert cfg.application_id is None
    assert cfg.cache.max_entries == 200
    assert cfg.cache.default_ttl_sec == 120
    assert cfg.cache.max_memory_bytes == 100 * 1024 * 1024
    assert cfg.registration.endpoint is None


def test_shipped_defaults_file():
    cfg = load_config(DEFAULTS_PATH)

    assert cfg.cache.command_ttls == {"status": 30.0}
    assert cfg.cache.sweep_interval_sec == 60
    assert cfg.registration.timeout_sec == 30


def test_env_overrides(monkeypatch, tmp_path):
    source = tmp_path / "config.yml"
    source.write_text("cache:\n  max_entries: 50\nregistration:\n", encoding="utf-8")

    monkeypatch.setenv("CACHE_MAX_ENTRIES", "10")
    monkeypatch.setenv("CACHE_MAX_MEMORY_MB", "0.5")
    monkeypatch.setenv("REGISTRATION_ENDPOINT", "https://commands.example.test")
    monkeypatch.setenv("BOT_APPLICATION_ID", "1234")

    cfg = load_config(source)

    assert cfg.cache.max_entries == 10
    assert cfg.cache.max_memory_bytes == 512 * 1024
    assert cfg.registration.endpoint == "https://commands.example.test"
    assert cfg.application_id == "1234"


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yml")


def test_build_store(clock):
    cfg = BotConfig.from_dict({"cache": {"max_entries": 3, "command_ttls": {"status": 30}}})
    store = cfg.cache.build_store(clock=clock)

    assert store.max_entries == 3
    assert store.resolve_ttl("status") == 30
    assert store.resolve_ttl("ping") == 120
