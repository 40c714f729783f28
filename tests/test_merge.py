from __future__ import annotations

import copy
import logging

import pytest

from reclass_resolver.params.merge import MergeOptions, fold_layers, merge, merge_parameters
from reclass_resolver.params.values import MergeLayers, ParamMapping, normalize, to_plain
from reclass_resolver.utils.errors import MergeConflictError


def test_mappings_merge_recursively() -> None:
    result = merge({"a": {"b": 1, "c": {"d": 1}}}, {"a": {"c": {"e": 2}, "f": 3}})

    assert result == {"a": {"b": 1, "c": {"d": 1, "e": 2}, "f": 3}}


def test_sequences_concatenate_in_order() -> None:
    assert merge({"l": [1, 2]}, {"l": [3]}) == {"l": [1, 2, 3]}


def test_scalars_and_type_changes_replace() -> None:
    assert merge({"a": 1, "b": {"x": 1}}, {"a": "two", "b": [1]}) == {"a": "two", "b": [1]}


def test_override_marker_replaces_instead_of_merging() -> None:
    result = merge({"a": {"b": 1}, "l": [1]}, {"~a": {"c": 2}, "~l": [2]})

    assert result == {"a": {"c": 2}, "l": [2]}


def test_nested_override_marker() -> None:
    result = merge({"a": {"b": {"x": 1}, "c": 1}}, {"a": {"~b": {"y": 2}}})

    assert result == {"a": {"b": {"y": 2}, "c": 1}}


def test_constant_key_cannot_be_overwritten() -> None:
    with pytest.raises(
        MergeConflictError, match="Can't overwrite constant key 'c' at parameter 'a:c'"
    ):
        merge({"a": {"=c": 1}}, {"a": {"c": 2}})


def test_constant_key_keeps_value_against_none(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="reclass_resolver.params")

    result = merge({"=a": 1, "b": 1}, {"a": None, "b": 2})

    assert result == {"a": 1, "b": 2}
    assert any("keeping constant parameter a over null" in r.message for r in caplog.records)


def test_none_does_not_overwrite_by_default() -> None:
    assert merge({"a": 1, "b": {"c": 1}}, {"a": None, "b": None}) == {"a": 1, "b": {"c": 1}}


def test_none_overwrites_when_allowed() -> None:
    assert merge({"a": 1}, {"a": None}, allow_none_override=True) == {"a": None}


def test_none_target_is_always_replaced() -> None:
    assert merge({"a": None}, {"a": {"b": 1}}) == {"a": {"b": 1}}


def test_strict_merge_rejects_kind_change() -> None:
    with pytest.raises(
        MergeConflictError, match="Can't merge sequence over mapping at parameter 'a:b'"
    ):
        merge({"a": {"b": {"c": 1}}}, {"a": {"b": [1]}}, strict=True)


def test_strict_merge_allows_scalar_replacement() -> None:
    assert merge({"a": 1}, {"a": "x"}, strict=True) == {"a": "x"}


def test_merge_does_not_modify_inputs() -> None:
    target = {"a": {"l": [1]}, "=c": 1}
    source = {"a": {"l": [2]}, "~b": 2}
    target_before = copy.deepcopy(target)
    source_before = copy.deepcopy(source)

    merge(target, source)

    assert target == target_before
    assert source == source_before


def test_normalize_records_and_strips_markers() -> None:
    tree = normalize({"~a": 1, "=b": 2, "c": {"~d": 3}, "~": 4})

    assert isinstance(tree, ParamMapping)
    assert tree == {"a": 1, "b": 2, "c": {"d": 3}, "~": 4}
    assert tree.overrides == {"a"}
    assert tree.constants == {"b"}
    assert tree["c"].overrides == {"d"}


def test_colliding_reference_defers_merge() -> None:
    target = normalize({"a": "${x}", "b": {"c": 1}})

    merge_parameters(target, normalize({"a": "y", "b": "${z}"}), MergeOptions())
    merge_parameters(target, normalize({"a": {"k": 1}}), MergeOptions())

    assert target["a"] == MergeLayers(["${x}", "y", {"k": 1}])
    assert target["b"] == MergeLayers([{"c": 1}, "${z}"])


def test_reference_without_collision_is_stored_as_is() -> None:
    target = normalize({"a": 1})

    merge_parameters(target, normalize({"b": "${a}"}), MergeOptions())

    assert target == {"a": 1, "b": "${a}"}


def test_none_does_not_add_merge_layer() -> None:
    target = normalize({"a": "${x}"})

    merge_parameters(target, normalize({"a": None}), MergeOptions())

    assert target["a"] == "${x}"


def test_fold_layers_uses_merge_rules() -> None:
    assert fold_layers([{"a": 1}, {"b": 2}, {"a": 3}]) == {"a": 3, "b": 2}
    assert fold_layers([{"l": [1]}, {"~l": [2]}]) == {"l": [2]}
    assert fold_layers([[1], [2]]) == [1, 2]
    assert fold_layers(["x", None]) == "x"


def test_to_plain_rejects_unresolved_layers() -> None:
    with pytest.raises(TypeError, match="unresolved merge layers"):
        to_plain({"a": MergeLayers(["${x}", 1])})
