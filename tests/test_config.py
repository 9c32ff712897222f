import pytest

from promptcache.config import CacheConfig, load_config


def test_load_config_defaults(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("key_prefix: myapp_", encoding="utf-8")

    cfg = load_config(path)

    assert isinstance(cfg, CacheConfig)
    assert cfg.key_prefix == "myapp_"
    assert cfg.log_level == "INFO"
    assert cfg.db_path.endswith("responses.db")


def test_env_overrides(monkeypatch, tmp_path):
    source = tmp_path / "config.yml"
    source.write_text("key_prefix: from_yaml_\nlog_level: info", encoding="utf-8")

    monkeypatch.setenv("PROMPTCACHE_KEY_PREFIX", "from_env_")
    monkeypatch.setenv("PROMPTCACHE_DB_PATH", str(tmp_path / "env.db"))

    cfg = load_config(source)

    assert cfg.key_prefix == "from_env_"
    assert cfg.db_path == str(tmp_path / "env.db")
    assert cfg.log_level == "INFO"


def test_config_path_from_env(monkeypatch, tmp_path):
    source = tmp_path / "cache.yml"
    source.write_text("log_level: debug", encoding="utf-8")
    monkeypatch.setenv("PROMPTCACHE_CONFIG", str(source))

    cfg = load_config()

    assert cfg.log_level == "DEBUG"


def test_no_config_uses_defaults(monkeypatch):
    for name in ("PROMPTCACHE_CONFIG", "PROMPTCACHE_DB_PATH",
                 "PROMPTCACHE_KEY_PREFIX", "PROMPTCACHE_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    cfg = load_config()

    assert cfg.key_prefix == "promptcache_"
    assert "~" not in cfg.db_path


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yml")


def test_empty_yaml_file(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("", encoding="utf-8")

    assert load_config(path) == CacheConfig.from_dict({})
