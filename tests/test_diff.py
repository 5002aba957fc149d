"""Tests for delta computation, application, reversal and change listing."""

from __future__ import annotations

import copy

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from dandiset_assistant.document.diff import (
    DiffPatcher,
    MetadataChange,
    apply_delta,
    change_to_description,
    compute_delta,
    default_object_hash,
    delta_to_changes,
    format_value,
    has_differences,
    json_equal,
    reverse_delta,
)
from dandiset_assistant.exceptions import DeltaApplyError

from tests.strategies import json_values, metadata_documents


# ---------------------------------------------------------------------------
# Wire format
# ---------------------------------------------------------------------------

class TestComputeDelta:
    def test_equal_documents_have_no_delta(self, metadata):
        assert compute_delta(metadata, copy.deepcopy(metadata)) is None
        assert not has_differences(metadata, copy.deepcopy(metadata))

    def test_added_modified_deleted(self):
        delta = compute_delta({"a": 1, "b": 2}, {"a": 5, "c": 3})
        assert delta == {"a": [1, 5], "b": [2, 0, 0], "c": [3]}

    def test_nested_object(self):
        delta = compute_delta({"x": {"y": 1, "z": 2}}, {"x": {"y": 1, "z": 3}})
        assert delta == {"x": {"z": [2, 3]}}

    def test_array_append(self):
        delta = compute_delta({"k": ["a"]}, {"k": ["a", "b"]})
        assert delta == {"k": {"_t": "a", "1": ["b"]}}

    def test_array_removal(self):
        delta = compute_delta({"k": ["a", "b", "c"]}, {"k": ["a", "c"]})
        assert delta == {"k": {"_t": "a", "_1": ["b", 0, 0]}}

    def test_array_move(self):
        delta = compute_delta(["a", "b"], ["b", "a"])
        assert delta == {"_t": "a", "_0": ["", 1, 3]}

    def test_identified_element_edit_is_modification(self):
        left = [{"identifier": "orcid:1", "name": "Doe"}, {"identifier": "orcid:2", "name": "Roe"}]
        right = [{"identifier": "orcid:1", "name": "Doe, J."}, left[1]]

        delta = compute_delta(left, right)

        assert delta == {"_t": "a", "0": {"name": ["Doe", "Doe, J."]}}

    def test_bool_is_not_int(self):
        assert compute_delta({"a": True}, {"a": 1}) == {"a": [True, 1]}
        assert compute_delta({"a": 1}, {"a": 1.0}) is None

    def test_type_change(self):
        assert compute_delta({"a": {"b": 1}}, {"a": [1]}) == {"a": [{"b": 1}, [1]]}


class TestObjectHash:
    def test_identity_key_precedence(self):
        item = {"@id": "x", "id": "y", "identifier": "z"}
        assert default_object_hash(item) == default_object_hash({"@id": "x"})

    def test_falls_back_to_canonical_json(self):
        assert default_object_hash({"b": 1, "a": 2}) == '{"a":2,"b":1}'
        assert default_object_hash("text") == '"text"'

    def test_json_equal(self):
        assert json_equal({"a": [1, 2.0]}, {"a": [1.0, 2]})
        assert not json_equal(True, 1)
        assert not json_equal([1], [1, 2])
        assert not json_equal("1", 1)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

class TestApplyDelta:
    def test_apply_does_not_mutate_input(self, metadata):
        modified = copy.deepcopy(metadata)
        modified["keywords"].append("CA1")
        modified["contributor"][0]["name"] = "Doe, J."
        before = copy.deepcopy(metadata)

        result = apply_delta(metadata, compute_delta(metadata, modified))

        assert result == modified
        assert metadata == before

    def test_conflicting_old_value_raises(self):
        delta = compute_delta({"a": 1}, {"a": 2})
        with pytest.raises(DeltaApplyError, match=r"\(at a\)"):
            apply_delta({"a": 7}, delta)

    def test_removing_changed_value_raises(self):
        delta = compute_delta({"a": 1}, {})
        with pytest.raises(DeltaApplyError):
            apply_delta({"a": 2}, delta)

    def test_adding_existing_property_raises(self):
        delta = compute_delta({}, {"a": 1})
        with pytest.raises(DeltaApplyError):
            apply_delta({"a": 1}, delta)

    def test_array_delta_on_object_raises(self):
        delta = compute_delta({"k": ["a"]}, {"k": ["a", "b"]})
        with pytest.raises(DeltaApplyError, match="Expected an array"):
            apply_delta({"k": {"0": "a"}}, delta)

    def test_array_removal_out_of_bounds_raises(self):
        delta = compute_delta({"k": ["a", "b"]}, {"k": ["a"]})
        with pytest.raises(DeltaApplyError, match="out of bounds"):
            apply_delta({"k": ["a"]}, delta)

    def test_malformed_node_raises(self):
        with pytest.raises(DeltaApplyError, match="Malformed"):
            apply_delta({"a": 1}, {"a": "not-a-delta"})

    def test_reorder_with_edit(self):
        left = [
            {"identifier": "orcid:1", "name": "A"},
            {"identifier": "orcid:2", "name": "B"},
            {"identifier": "orcid:3", "name": "C"},
        ]
        right = [
            {"identifier": "orcid:3", "name": "C"},
            {"identifier": "orcid:1", "name": "A2"},
            {"identifier": "orcid:2", "name": "B"},
        ]
        assert apply_delta(left, compute_delta(left, right)) == right


class TestReverseDelta:
    def test_reverse_value_nodes(self):
        delta = {"a": [1, 5], "b": [2, 0, 0], "c": [3]}
        assert reverse_delta(delta) == {"a": [5, 1], "b": [2], "c": [3, 0, 0]}

    def test_reverse_restores_original(self, metadata):
        modified = copy.deepcopy(metadata)
        modified["keywords"] = ["place cells", "CA1", "hippocampus"]
        del modified["about"]
        modified["contributor"][1]["name"] = "Example University"

        delta = compute_delta(metadata, modified)

        assert apply_delta(modified, reverse_delta(delta)) == metadata


class TestPropertyFilter:
    def test_filtered_keys_are_ignored(self):
        patcher = DiffPatcher(property_filter=lambda key: not key.startswith("$"))
        assert patcher.diff({"$tmp": 1, "a": 1}, {"$tmp": 2, "a": 1}) is None

    def test_move_detection_can_be_disabled(self):
        patcher = DiffPatcher(detect_move=False)
        delta = patcher.diff(["a", "b"], ["b", "a"])

        assert delta == {"_t": "a", "_0": ["a", 0, 0], "1": ["a"]}
        assert patcher.patch(["a", "b"], delta) == ["b", "a"]


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

@settings(max_examples=200, deadline=None)
@given(left=json_values, right=json_values)
def test_patch_of_diff_yields_right(left, right):
    delta = compute_delta(left, right)
    if delta is None:
        assert json_equal(left, right)
    else:
        assert json_equal(apply_delta(left, delta), right)


@settings(max_examples=200, deadline=None)
@given(left=metadata_documents, right=metadata_documents)
def test_reverse_of_diff_restores_left(left, right):
    delta = compute_delta(left, right)
    if delta is None:
        return
    assert json_equal(apply_delta(left, delta), right)
    assert json_equal(apply_delta(right, reverse_delta(delta)), left)


@given(doc=json_values)
def test_diff_with_self_is_empty(doc):
    assert compute_delta(doc, copy.deepcopy(doc)) is None


# ---------------------------------------------------------------------------
# Change listing
# ---------------------------------------------------------------------------

class TestChanges:
    def test_changes_use_bracket_indices(self, metadata):
        modified = copy.deepcopy(metadata)
        modified["contributor"][0]["name"] = "Doe, J."
        modified["keywords"].append("CA1")
        modified["license"] = ["spdx:CC0-1.0"]

        changes = delta_to_changes(compute_delta(metadata, modified))

        assert MetadataChange("contributor[0].name", "modified", "Doe, Jane", "Doe, J.") in changes
        assert MetadataChange("keywords[2]", "added", new_value="CA1") in changes
        assert MetadataChange("license[0]", "removed", old_value="spdx:CC-BY-4.0") in changes
        assert MetadataChange("license[0]", "added", new_value="spdx:CC0-1.0") in changes

    def test_moves_are_not_listed(self):
        assert delta_to_changes(compute_delta(["a", "b"], ["b", "a"])) == []

    def test_empty(self):
        assert delta_to_changes(None) == []

    def test_descriptions(self):
        assert change_to_description(MetadataChange("a", "added", new_value=1)) == "Added a: 1"
        assert change_to_description(MetadataChange("a", "removed", old_value=1)) == "Removed a"
        assert (
            change_to_description(MetadataChange("a", "modified", "x", "y"))
            == 'Changed a: "x" -> "y"'
        )


class TestFormatValue:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, "null"),
            (True, "true"),
            (3, "3"),
            ("hi", '"hi"'),
            ([], "[]"),
            ({}, "{}"),
            ([1, 2], "[1, 2]"),
            ({"a": 1}, '{"a": 1}'),
        ],
    )
    def test_short_values(self, value, expected):
        assert format_value(value) == expected

    def test_long_values_are_abbreviated(self):
        assert format_value("x" * 60) == '"' + "x" * 50 + '..."'
        assert format_value(list(range(40))) == "[40 items]"
        assert format_value({str(i): i for i in range(20)}) == "{20 fields}"

    @given(st.text(min_size=51, max_size=80))
    def test_truncation_bound(self, text):
        assert len(format_value(text)) == 50 + 5
