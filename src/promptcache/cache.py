#!/usr/bin/env python3
"""
Prompt Cache
Read / compute / write coordination over PromptStorage.

Implements:
- fetch_or_compute(prompt, producer) → response   (producer called only on a miss)
- afetch_or_compute(prompt, producer) → response  (async; producer may be a coroutine)
- cache_response / get_cached_response / is_cached
- remove_cached_response / clear_cache / cache_count
- get_stats() → {hits, misses, writes, failures, hit_rate_percent, cache_entries}

Locking: store reads take the shared side of one ReadWriteLock, store writes
the exclusive side. The producer always runs outside the lock, so two
concurrent misses for the same new prompt may both call it; the last write
wins. A producer exception is re-raised and nothing is stored.
"""

import asyncio
import inspect
import logging
import sqlite3
import threading
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from .config import CacheConfig, load_config
from .hasher import short_hash
from .rwlock import ReadWriteLock
from .storage import (
    KeyValueStore, PromptStorage, SQLiteKeyValueStore, UnavailableKeyValueStore,
)

logger = logging.getLogger(__name__)

Producer = Callable[[str], str]
AsyncProducer = Callable[[str], Union[str, Awaitable[str]]]


class PromptCache:
    """
    Deduplicates expensive prompt → response calls by prompt fingerprint.

    Design principles:
    - A hit never calls the producer
    - A failed producer call is never cached
    - Storage faults degrade to misses, never to exceptions
    - Lock hold time is bounded by store I/O, not by the producer
    """

    def __init__(self, storage: PromptStorage):
        self.storage = storage
        self._lock = ReadWriteLock()
        self._stats_lock = threading.Lock()
        self.stats = {
            "hits": 0,
            "misses": 0,
            "writes": 0,
            "failures": 0,
            "start_time": time.time(),
        }

    # ── store access under the lock ──

    def _read(self, prompt_hash: str) -> Optional[str]:
        with self._lock.read_locked():
            return self.storage.retrieve(prompt_hash)

    def _write(self, prompt_hash: str, response: str, prompt: str) -> None:
        with self._lock.write_locked():
            self.storage.store(prompt_hash, response, prompt)

    def _bump(self, name: str) -> None:
        with self._stats_lock:
            self.stats[name] += 1

    # ── fetch ──

    def fetch_or_compute(self, prompt: str, producer: Producer) -> str:
        """
        Return the cached response for ``prompt``, calling ``producer`` on a miss.

        Args:
            prompt: Input to fingerprint and, on a miss, pass to the producer
            producer: Callable computing the response; its exceptions propagate

        Returns:
            The cached or freshly produced response
        """
        prompt_hash = short_hash(prompt)

        cached = self._read(prompt_hash)
        if cached is not None:
            self._bump("hits")
            logger.debug(f"Cache hit for prompt hash {prompt_hash}")
            return cached

        self._bump("misses")
        logger.debug(f"Cache miss for prompt hash {prompt_hash}")
        try:
            response = producer(prompt)
        except Exception as e:
            self._bump("failures")
            logger.warning(f"Producer failed for prompt hash {prompt_hash}, not cached: {e}")
            raise

        self._write(prompt_hash, response, prompt)
        self._bump("writes")
        logger.debug(f"Cached response for prompt hash {prompt_hash}")
        return response

    async def afetch_or_compute(self, prompt: str, producer: AsyncProducer) -> str:
        """
        Awaitable form of :meth:`fetch_or_compute`.

        ``producer`` may return the response or an awaitable of it. Store
        access runs in a worker thread so the event loop never waits on the
        lock. Cancelling the caller while the producer is pending writes nothing.
        """
        prompt_hash = short_hash(prompt)

        cached = await asyncio.to_thread(self._read, prompt_hash)
        if cached is not None:
            self._bump("hits")
            logger.debug(f"Cache hit for prompt hash {prompt_hash}")
            return cached

        self._bump("misses")
        logger.debug(f"Cache miss for prompt hash {prompt_hash}")
        try:
            response = producer(prompt)
            if inspect.isawaitable(response):
                response = await response
        except Exception as e:
            self._bump("failures")
            logger.warning(f"Producer failed for prompt hash {prompt_hash}, not cached: {e}")
            raise

        await asyncio.to_thread(self._write, prompt_hash, response, prompt)
        self._bump("writes")
        logger.debug(f"Cached response for prompt hash {prompt_hash}")
        return response

    # ── manual management ──

    def cache_response(self, prompt: str, response: str) -> None:
        """Store ``response`` for ``prompt`` without calling any producer."""
        prompt_hash = short_hash(prompt)
        self._write(prompt_hash, response, prompt)
        logger.info(f"Manually cached response for prompt hash {prompt_hash}")

    def is_cached(self, prompt: str) -> bool:
        prompt_hash = short_hash(prompt)
        with self._lock.read_locked():
            return self.storage.exists(prompt_hash)

    def get_cached_response(self, prompt: str) -> Optional[str]:
        return self._read(short_hash(prompt))

    def remove_cached_response(self, prompt: str) -> None:
        prompt_hash = short_hash(prompt)
        with self._lock.write_locked():
            self.storage.remove(prompt_hash)
        logger.info(f"Removed cached response for prompt hash {prompt_hash}")

    def clear_cache(self) -> None:
        with self._lock.write_locked():
            self.storage.clear_all()
        logger.info("Cleared all cached responses")

    def cache_count(self) -> int:
        with self._lock.read_locked():
            return self.storage.count()

    # ── reporting ──

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._stats_lock:
            stats = dict(self.stats)

        total_requests = stats["hits"] + stats["misses"]
        hit_rate = (stats["hits"] / total_requests * 100) if total_requests > 0 else 0

        return {
            "hits": stats["hits"],
            "misses": stats["misses"],
            "hit_rate_percent": round(hit_rate, 1),
            "total_requests": total_requests,
            "writes": stats["writes"],
            "failures": stats["failures"],
            "cache_entries": self.cache_count(),
            "uptime_seconds": int(time.time() - stats["start_time"]),
        }

    def print_report(self):
        """Print cache statistics report."""
        stats = self.get_stats()

        print("\n" + "=" * 60)
        print("PROMPT CACHE REPORT")
        print("=" * 60)
        print(f"Hit Rate: {stats['hit_rate_percent']}% ({stats['hits']}/{stats['total_requests']})")
        print(f"Cache Size: {stats['cache_entries']} entries")
        print(f"Writes: {stats['writes']} | Producer failures: {stats['failures']}")
        print(f"Uptime: {stats['uptime_seconds']}s")
        print("=" * 60 + "\n")

    def close(self):
        self.storage.backend.close()


def create_cache(config: CacheConfig = None, store: KeyValueStore = None) -> PromptCache:
    """
    Build an independent PromptCache.

    Uses ``store`` when given, otherwise a SQLite store at ``config.db_path``.
    If that store cannot be opened the cache still works, but never hits.
    """
    if config is None:
        config = CacheConfig()
    if store is None:
        try:
            store = SQLiteKeyValueStore(config.db_path)
        except (OSError, sqlite3.Error) as e:
            logger.error(f"Cache store unavailable at {config.db_path}, caching disabled: {e}")
            store = UnavailableKeyValueStore(str(e))
    return PromptCache(PromptStorage(store, key_prefix=config.key_prefix))


_default_cache: Optional[PromptCache] = None
_default_cache_lock = threading.Lock()


def get_cache() -> PromptCache:
    """Process-wide default cache, created from load_config() on first use."""
    global _default_cache
    if _default_cache is None:
        with _default_cache_lock:
            if _default_cache is None:
                _default_cache = create_cache(load_config())
    return _default_cache


def reset_default_cache() -> None:
    """Close and forget the default cache; the next get_cache() rebuilds it."""
    global _default_cache
    with _default_cache_lock:
        if _default_cache is not None:
            _default_cache.close()
            _default_cache = None


if __name__ == "__main__":
    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    calls = 0

    async def fake_service(prompt: str) -> str:
        global calls
        calls += 1
        print(f"API call #{calls}: {prompt!r}")
        await asyncio.sleep(0.5)
        if "hello" in prompt.lower():
            return "Hello! How can I assist you today?"
        return f"Here's a helpful response about {prompt!r}."

    async def demo():
        cache = get_cache()
        cache.clear_cache()

        prompts = [
            "Hello, how are you?",
            "Give me 3 business ideas for mobile apps",
            "What's the weather like today?",
            "Hello, how are you?",  # repeat → hit
        ]
        for prompt in prompts:
            start = time.perf_counter()
            response = await cache.afetch_or_compute(prompt, fake_service)
            print(f"  → {response} ({time.perf_counter() - start:.3f}s, {cache.cache_count()} cached)")

        cache.cache_response("What is Python?", "A general-purpose programming language.")
        print(f"Manual lookup: {cache.get_cached_response('What is Python?')!r}")
        cache.remove_cached_response("What is Python?")

        cache.print_report()

    asyncio.run(demo())
    reset_default_cache()
