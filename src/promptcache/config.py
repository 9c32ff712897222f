"""Configuration loader for the prompt cache."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .storage import DEFAULT_KEY_PREFIX

DEFAULT_DB_PATH = "~/.cache/promptcache/responses.db"


@dataclass(frozen=True)
class CacheConfig:
    db_path: str = DEFAULT_DB_PATH
    key_prefix: str = DEFAULT_KEY_PREFIX
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheConfig":
        db_path = str(data.get("db_path", DEFAULT_DB_PATH))
        if db_path != ":memory:":
            db_path = os.path.expanduser(db_path)
        return cls(
            db_path=db_path,
            key_prefix=str(data.get("key_prefix", DEFAULT_KEY_PREFIX)),
            log_level=str(data.get("log_level", "INFO")).upper(),
        )


ENV_MAP = {
    "db_path": "PROMPTCACHE_DB_PATH",
    "key_prefix": "PROMPTCACHE_KEY_PREFIX",
    "log_level": "PROMPTCACHE_LOG_LEVEL",
}

CONFIG_PATH_ENV = "PROMPTCACHE_CONFIG"


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def merge_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(config_data)
    for key, env_name in ENV_MAP.items():
        if env_name in os.environ:
            merged[key] = os.environ[env_name]
    return merged


def load_config(config_path: Optional[str | Path] = None) -> CacheConfig:
    """
    Build a CacheConfig from YAML plus environment overrides.

    Without an explicit path, ``PROMPTCACHE_CONFIG`` may name the YAML file;
    if neither is set, defaults apply.
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_PATH_ENV)

    data: Dict[str, Any] = {}
    if config_path is not None:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        data = load_yaml(path)

    data = merge_env_overrides(data)
    return CacheConfig.from_dict(data)
