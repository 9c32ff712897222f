"""
Prompt fingerprinting.

A prompt is identified by the SHA-256 of its UTF-8 bytes. The full digest is
64 lowercase hex chars; cache keys use the first 16.
"""

import hashlib

SHORT_HASH_LENGTH = 16


def hash_prompt(prompt: str) -> str:
    """Return the SHA-256 hex digest of ``prompt``."""
    # surrogatepass: every str hashes, even one holding lone surrogates
    return hashlib.sha256(prompt.encode("utf-8", "surrogatepass")).hexdigest()


def short_hash(prompt: str) -> str:
    """Compact cache key: the first 16 chars of :func:`hash_prompt`."""
    return hash_prompt(prompt)[:SHORT_HASH_LENGTH]


class PromptHasher:
    """Namespaced access to the hash functions."""

    hash = staticmethod(hash_prompt)
    short_hash = staticmethod(short_hash)


if __name__ == "__main__":
    full = hash_prompt("Hello, how are you?")
    print(f"full:  {full} ({len(full)} chars)")
    print(f"short: {short_hash('Hello, how are you?')}")
