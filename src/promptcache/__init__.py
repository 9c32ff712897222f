"""
Prompt Cache
Local, persistent deduplication of expensive prompt → response calls.

Usage:
    from promptcache import get_cache

    response = get_cache().fetch_or_compute(prompt, call_model)
"""

from .cache import PromptCache, create_cache, get_cache, reset_default_cache
from .config import CacheConfig, load_config
from .hasher import PromptHasher, hash_prompt, short_hash
from .rwlock import ReadWriteLock
from .storage import (
    CachedResponse, KeyValueStore, MemoryKeyValueStore,
    PromptStorage, SQLiteKeyValueStore, UnavailableKeyValueStore,
)

__version__ = "1.0.0"

__all__ = [
    'PromptCache', 'create_cache', 'get_cache', 'reset_default_cache',
    'CacheConfig', 'load_config',
    'PromptHasher', 'hash_prompt', 'short_hash',
    'ReadWriteLock',
    'CachedResponse', 'KeyValueStore', 'MemoryKeyValueStore',
    'PromptStorage', 'SQLiteKeyValueStore', 'UnavailableKeyValueStore',
]
