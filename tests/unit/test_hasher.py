#!/usr/bin/env python3
"""
Unit tests for prompt fingerprinting
"""

import hashlib
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from promptcache.hasher import PromptHasher, hash_prompt, short_hash


class TestPromptHasher:

    def test_consistent_hash(self):
        prompt = "What is the capital of France?"
        assert hash_prompt(prompt) == hash_prompt(prompt)
        assert len(hash_prompt(prompt)) == 64

    def test_known_digest(self):
        assert hash_prompt("") == hashlib.sha256(b"").hexdigest()
        assert hash_prompt("abc") == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )

    def test_lowercase_hex(self):
        digest = hash_prompt("Hello")
        assert digest == digest.lower()
        int(digest, 16)

    def test_different_prompts_different_hashes(self):
        assert hash_prompt("Test prompt 1") != hash_prompt("Test prompt 2")

    def test_utf8_bytes_are_hashed(self):
        prompt = "naïve café 日本語 🚀"
        assert hash_prompt(prompt) == hashlib.sha256(prompt.encode("utf-8")).hexdigest()

    def test_short_hash_is_truncation(self):
        prompt = "Give me 3 business ideas for mobile apps"
        assert len(short_hash(prompt)) == 16
        assert short_hash(prompt) == hash_prompt(prompt)[:16]

    def test_lone_surrogate_still_hashes(self):
        assert len(hash_prompt("broken \ud800 text")) == 64

    def test_class_aliases(self):
        assert PromptHasher.hash("x") == hash_prompt("x")
        assert PromptHasher.short_hash("x") == short_hash("x")
