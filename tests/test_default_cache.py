import promptcache
from promptcache import get_cache, reset_default_cache


def test_version():
    assert promptcache.__version__ == "1.0.0"


def test_default_cache_is_shared(monkeypatch, tmp_path):
    monkeypatch.delenv("PROMPTCACHE_CONFIG", raising=False)
    monkeypatch.setenv("PROMPTCACHE_DB_PATH", str(tmp_path / "default.db"))
    reset_default_cache()
    try:
        cache1 = get_cache()
        cache2 = get_cache()

        assert cache1 is cache2
        assert cache1.storage.backend.db_path == str(tmp_path / "default.db")
    finally:
        reset_default_cache()


def test_reset_rebuilds_default(monkeypatch, tmp_path):
    monkeypatch.delenv("PROMPTCACHE_CONFIG", raising=False)
    monkeypatch.setenv("PROMPTCACHE_DB_PATH", str(tmp_path / "default.db"))
    reset_default_cache()
    try:
        first = get_cache()
        first.cache_response("persisted", "yes")
        reset_default_cache()

        second = get_cache()
        assert second is not first
        assert second.get_cached_response("persisted") == "yes"
    finally:
        reset_default_cache()
