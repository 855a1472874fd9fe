"""Tests for content hashing used as memory identity."""

import hashlib

from semantic_memory.utils.hashing import RESERVED_METADATA_KEYS, filter_metadata, generate_content_hash


class TestGenerateContentHash:
    def test_is_64_char_lowercase_hex(self):
        h = generate_content_hash("hello")
        assert len(h) == 64
        assert h == h.lower()
        int(h, 16)

    def test_matches_sha256_of_normalized_content_and_empty_object(self):
        expected = hashlib.sha256(b"hello world{}").hexdigest()
        assert generate_content_hash("  Hello World \n") == expected

    def test_case_and_surrounding_whitespace_ignored(self):
        assert generate_content_hash("The sky is blue") == generate_content_hash("  the SKY is blue  ")

    def test_inner_whitespace_is_significant(self):
        assert generate_content_hash("the sky") != generate_content_hash("the  sky")

    def test_metadata_changes_hash(self):
        base = generate_content_hash("note")
        assert generate_content_hash("note", {"source": "chat"}) != base
        assert generate_content_hash("note", {"source": "chat"}) != generate_content_hash("note", {"source": "mail"})

    def test_metadata_key_order_irrelevant(self):
        a = generate_content_hash("note", {"a": "1", "b": "2", "c": "3"})
        b = generate_content_hash("note", {"c": "3", "a": "1", "b": "2"})
        assert a == b

    def test_reserved_keys_ignored(self):
        plain = generate_content_hash("note", {"source": "chat"})
        noisy = generate_content_hash(
            "note",
            {"source": "chat", "timestamp": "2024-01-01", "content_hash": "abc", "embedding": "[0.1]"},
        )
        assert plain == noisy

    def test_empty_and_missing_metadata_equal(self):
        assert generate_content_hash("note", {}) == generate_content_hash("note", None)

    def test_canonical_json_is_compact(self):
        expected = hashlib.sha256('note{"a":"1","b":"2"}'.encode()).hexdigest()
        assert generate_content_hash("Note", {"b": "2", "a": "1"}) == expected

    def test_non_ascii_metadata_not_escaped(self):
        expected = hashlib.sha256('café{"city":"zürich"}'.encode()).hexdigest()
        assert generate_content_hash("Café", {"city": "zürich"}) == expected


class TestFilterMetadata:
    def test_removes_only_reserved_keys(self):
        metadata = {key: "x" for key in RESERVED_METADATA_KEYS} | {"keep": "y"}
        assert filter_metadata(metadata) == {"keep": "y"}

    def test_returns_copy(self):
        metadata = {"keep": "y"}
        filtered = filter_metadata(metadata)
        filtered["other"] = "z"
        assert metadata == {"keep": "y"}

    def test_none_gives_empty_dict(self):
        assert filter_metadata(None) == {}
