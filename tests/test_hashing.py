"""Tests for canonical serialization and document digests."""

from __future__ import annotations

import hashlib

from hypothesis import given

from dandiset_assistant.document.hashing import canonical_json, compute_hash

from tests.strategies import json_values


class TestCanonicalJson:
    def test_keys_sorted_at_every_level(self):
        data = {"b": {"y": 1, "x": 2}, "a": [{"d": 1, "c": 2}]}
        assert canonical_json(data) == b'{"a":[{"c":2,"d":1}],"b":{"x":2,"y":1}}'

    def test_unicode_is_kept_verbatim(self):
        assert canonical_json({"name": "Müller"}) == '{"name":"Müller"}'.encode("utf-8")


class TestComputeHash:
    def test_is_sha256_of_canonical_form(self, metadata):
        expected = hashlib.sha256(canonical_json(metadata)).hexdigest()
        assert compute_hash(metadata) == expected
        assert len(compute_hash(metadata)) == 64

    def test_key_order_does_not_matter(self):
        assert compute_hash({"a": 1, "b": 2}) == compute_hash({"b": 2, "a": 1})

    def test_value_change_changes_hash(self, metadata):
        changed = dict(metadata, name="Another title")
        assert compute_hash(changed) != compute_hash(metadata)

    @given(json_values)
    def test_hash_is_deterministic(self, value):
        assert compute_hash(value) == compute_hash(value)
