from __future__ import annotations

import copy

from wikiserver.settings.store import NodeKind, deep_merge, node_kind


def test_node_kind_classifies_values() -> None:
    assert node_kind({"a": 1}) is NodeKind.MAPPING
    assert node_kind([1, 2]) is NodeKind.SEQUENCE
    assert node_kind(("a",)) is NodeKind.SEQUENCE
    assert node_kind("view") is NodeKind.SCALAR
    assert node_kind(None) is NodeKind.SCALAR
    assert node_kind(3) is NodeKind.SCALAR


def test_deep_merge_unions_nested_keys_and_patch_wins() -> None:
    base = {"wikis": {"a": {"public": False, "owner": "alice"}}, "port": 8080}
    patch = {"wikis": {"a": {"public": True}, "b": {"owner": "bob"}}}

    out = deep_merge(base, patch)

    assert out is base
    assert out == {
        "wikis": {"a": {"public": True, "owner": "alice"}, "b": {"owner": "bob"}},
        "port": 8080,
    }


def test_deep_merge_sequences_replace_never_combine() -> None:
    base = {"x": [9], "wikis": {"a": {"access": {"Guest": ["view", "upload"]}}}}
    patch = {"x": [1, 2, 3], "wikis": {"a": {"access": {"Guest": ["view"]}}}}

    deep_merge(base, patch)

    assert base["x"] == [1, 2, 3]
    assert base["wikis"]["a"]["access"]["Guest"] == ["view"]


def test_deep_merge_mapping_replaces_scalar_and_sequence() -> None:
    base = {"a": "scalar", "b": [1, 2]}
    deep_merge(base, {"a": {"nested": 1}, "b": {"nested": 2}})
    assert base == {"a": {"nested": 1}, "b": {"nested": 2}}


def test_deep_merge_scalar_replaces_mapping() -> None:
    base = {"wikis": {"a": {"public": True}}}
    deep_merge(base, {"wikis": "off"})
    assert base == {"wikis": "off"}


def test_deep_merge_is_idempotent() -> None:
    base = {"wikis": {"a": {"public": False}}, "list": [0]}
    patch = {"wikis": {"a": {"public": True, "access": {"Editor": ["view", "upload"]}}}, "list": [1, 2]}

    once = deep_merge(copy.deepcopy(base), patch)
    twice = deep_merge(deep_merge(copy.deepcopy(base), patch), patch)

    assert once == twice


def test_deep_merge_disjoint_patches_commute() -> None:
    base = {"wikis": {"a": {"public": False}}}
    p1 = {"wikis": {"b": {"owner": "bob"}}, "rootWikiName": "Index"}
    p2 = {"wikis": {"c": {"owner": "carol"}}, "mimeMap": {".txt": "text/plain"}}

    left = deep_merge(deep_merge(copy.deepcopy(base), p1), p2)
    right = deep_merge(deep_merge(copy.deepcopy(base), p2), p1)

    assert left == right


def test_deep_merge_does_not_alias_patch_sequences() -> None:
    patch = {"access": {"Guest": ["view"]}}
    base: dict = {}
    deep_merge(base, patch)

    base["access"]["Guest"].append("upload")

    assert patch["access"]["Guest"] == ["view"]


def test_deep_merge_absent_keys_leave_base_untouched() -> None:
    base = {"a": 1, "b": {"c": 2}}
    deep_merge(base, {})
    assert base == {"a": 1, "b": {"c": 2}}
