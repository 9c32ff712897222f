#!/usr/bin/env python3
"""
Prompt Storage
Namespaced persistence of cached prompt responses.

Implements:
- KeyValueStore protocol: get / set / delete / keys over raw bytes
- SQLiteKeyValueStore: durable default backend
- MemoryKeyValueStore: dict backend for isolated caches and tests
- PromptStorage: store / retrieve / exists / remove / clear_all / count,
  scoped to one key prefix

PromptStorage never raises to its caller. Unencodable writes are dropped,
corrupt entries are deleted on first read, backend faults read as misses.
"""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from jsonschema import Draft7Validator

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "promptcache_"

RECORD_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["response", "prompt", "timestamp"],
    "properties": {
        "response": {"type": "string"},
        "prompt": {"type": "string"},
        "timestamp": {"type": "string", "format": "date-time"},
    },
}

_validator = Draft7Validator(RECORD_SCHEMA)


class RecordDecodeError(ValueError):
    """Stored bytes are not a valid cached response record."""


@dataclass(frozen=True)
class CachedResponse:
    response: str
    prompt: str  # original prompt, kept for debugging only
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_bytes(self) -> bytes:
        payload = {
            "response": self.response,
            "prompt": self.prompt,
            "timestamp": self.timestamp.isoformat(),
        }
        # ASCII escapes keep lone surrogates encodable; json.loads restores them
        return json.dumps(payload).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "CachedResponse":
        try:
            payload = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError, RecursionError) as e:
            raise RecordDecodeError(f"not a JSON record: {e}") from e

        errors = sorted(_validator.iter_errors(payload), key=lambda e: e.path)
        if errors:
            messages = ", ".join(error.message for error in errors)
            raise RecordDecodeError(f"record validation failed: {messages}")

        try:
            timestamp = datetime.fromisoformat(payload["timestamp"])
        except ValueError as e:
            raise RecordDecodeError(f"bad timestamp: {e}") from e

        return cls(response=payload["response"], prompt=payload["prompt"], timestamp=timestamp)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[bytes]: ...

    def set(self, key: str, value: bytes) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> List[str]: ...

    def close(self) -> None: ...


class MemoryKeyValueStore:
    """In-process dict backend. Nothing survives the process."""

    def __init__(self) -> None:
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data)

    def close(self) -> None:
        pass


class UnavailableKeyValueStore:
    """
    Stand-in when the real store cannot be opened.

    Every read misses and every write is dropped.
    """

    def __init__(self, reason: str = "") -> None:
        self.reason = reason

    def get(self, key: str) -> Optional[bytes]:
        return None

    def set(self, key: str, value: bytes) -> None:
        pass

    def delete(self, key: str) -> None:
        pass

    def keys(self) -> List[str]:
        return []

    def close(self) -> None:
        pass


class SQLiteKeyValueStore:
    """
    SQLite-backed key/value table.

    One connection is shared across threads; a mutex serializes its use.
    """

    def __init__(self, db_path: str = None):
        if db_path is None:
            db_path = os.path.expanduser("~/.cache/promptcache/responses.db")

        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self.conn = sqlite3.connect(db_path, check_same_thread=False, timeout=10.0)
        self._init_schema()

        logger.info(f"SQLiteKeyValueStore opened at {db_path}")

    def _init_schema(self):
        with self._lock:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL
                )
            """)
            self.conn.commit()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            row = self.conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        value = row[0]
        # TEXT written by other tools comes back as str
        return value.encode("utf-8") if isinstance(value, str) else bytes(value)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self.conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                (key, sqlite3.Binary(value)),
            )
            self.conn.commit()

    def delete(self, key: str) -> None:
        with self._lock:
            self.conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            self.conn.commit()

    def keys(self) -> List[str]:
        with self._lock:
            rows = self.conn.execute("SELECT key FROM kv_store").fetchall()
        return [row[0] for row in rows]

    def close(self):
        """Close database connection."""
        with self._lock:
            if self.conn:
                self.conn.close()
                self.conn = None
                logger.info("SQLiteKeyValueStore closed")


class PromptStorage:
    """Cached responses under one key prefix of a KeyValueStore."""

    def __init__(self, backend: KeyValueStore, key_prefix: str = DEFAULT_KEY_PREFIX):
        self.backend = backend
        self.key_prefix = key_prefix

    def _key(self, prompt_hash: str) -> str:
        return self.key_prefix + prompt_hash

    def store(self, prompt_hash: str, response: str, original_prompt: str) -> None:
        """Write (or overwrite) the response for ``prompt_hash``."""
        key = self._key(prompt_hash)
        if not isinstance(response, str) or not isinstance(original_prompt, str):
            logger.error(
                f"Refusing to cache non-str response for {key} "
                f"({type(response).__name__}), write dropped"
            )
            return

        try:
            data = CachedResponse(response=response, prompt=original_prompt).to_bytes()
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to encode cached response for {key}, write dropped: {e}")
            return

        try:
            self.backend.set(key, data)
        except Exception as e:
            logger.error(f"Cache write error for {key}: {e}")

    def retrieve(self, prompt_hash: str) -> Optional[str]:
        """
        Return the cached response, or None.

        An entry that fails to decode is deleted so the key is usable again.
        """
        key = self._key(prompt_hash)
        try:
            data = self.backend.get(key)
        except Exception as e:
            logger.error(f"Cache read error for {key}: {e}")
            return None

        if data is None:
            return None

        try:
            return CachedResponse.from_bytes(data).response
        except RecordDecodeError as e:
            logger.warning(f"Corrupt cache entry {key}, evicting: {e}")
            self._delete(key)
            return None

    def exists(self, prompt_hash: str) -> bool:
        return self.retrieve(prompt_hash) is not None

    def remove(self, prompt_hash: str) -> None:
        self._delete(self._key(prompt_hash))

    def clear_all(self) -> int:
        """Delete every key under the prefix. Returns how many were removed."""
        cleared = 0
        for key in self._namespaced_keys():
            if self._delete(key):
                cleared += 1
        if cleared:
            logger.info(f"Cleared {cleared} cached responses")
        return cleared

    def count(self) -> int:
        return len(self._namespaced_keys())

    def _namespaced_keys(self) -> List[str]:
        try:
            return [key for key in self.backend.keys() if key.startswith(self.key_prefix)]
        except Exception as e:
            logger.error(f"Cache key enumeration error: {e}")
            return []

    def _delete(self, key: str) -> bool:
        try:
            self.backend.delete(key)
            return True
        except Exception as e:
            logger.error(f"Cache delete error for {key}: {e}")
            return False
