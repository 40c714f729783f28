"""Deep merge of parameter trees.

Rules:
- mapping x mapping merges key by key.
- sequence x sequence concatenates target then source.
- everything else is replaced by the source value.
- `~key` replaces `key` outright, `=key` makes overwriting `key` later an error.
- `None` only overwrites a value when `allow_none_override` is set.
- a collision involving an unresolved reference is kept as MergeLayers and
  folded after interpolation.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from reclass_resolver.params.values import (
    MergeLayers,
    ParamMapping,
    is_reference,
    normalize,
    to_plain,
)
from reclass_resolver.utils.errors import MergeConflictError

logger = logging.getLogger("reclass_resolver.params")


@dataclass(frozen=True)
class MergeOptions:
    """Switches for the merge algebra."""

    allow_none_override: bool = False
    strict: bool = False
    defer_references: bool = True


def merge_parameters(
    target: ParamMapping,
    source: Mapping[Any, Any],
    options: MergeOptions = MergeOptions(),
    path: tuple[Any, ...] = (),
) -> ParamMapping:
    """Fold `source` into `target` in place and return `target`."""

    if not isinstance(source, ParamMapping):
        source = normalize(source)
    overrides = source.overrides
    constants = source.constants
    target_constants = getattr(target, "constants", set())

    for key, value in source.items():
        if key in target_constants and key in target:
            where = _format_path((*path, key))
            if value is None and not options.allow_none_override:
                logger.debug("keeping constant parameter %s over null", where)
                continue
            raise MergeConflictError(f"Can't overwrite constant key '{key}' at parameter '{where}'")
        if key not in target or key in overrides:
            target[key] = normalize(value)
        else:
            target[key] = merge_values(target[key], value, options, (*path, key))
        if key in constants:
            target_constants.add(key)
    return target


def merge_values(
    target: Any,
    source: Any,
    options: MergeOptions = MergeOptions(),
    path: tuple[Any, ...] = (),
) -> Any:
    """Merge `source` over `target` and return the result.

    Mapping and sequence targets are updated in place.
    """

    keep_target = source is None and not options.allow_none_override

    if options.defer_references:
        if isinstance(target, MergeLayers):
            if not keep_target:
                target.layers.append(normalize(source))
            return target
        if is_reference(target) or is_reference(source):
            if keep_target:
                return target
            if target is None:
                return normalize(source)
            return MergeLayers([target, normalize(source)])

    if source is None:
        return target if keep_target else None
    if target is None:
        return normalize(source)

    if isinstance(target, Mapping) and isinstance(source, Mapping):
        if not isinstance(target, ParamMapping):
            target = normalize(target)
        return merge_parameters(target, source, options, path)
    if isinstance(target, list) and isinstance(source, list):
        target.extend(normalize(item) for item in source)
        return target

    if options.strict and _kind(target) != _kind(source):
        raise MergeConflictError(
            f"Can't merge {_kind(source)} over {_kind(target)} "
            f"at parameter '{_format_path(path)}'"
        )
    return normalize(source)


def fold_layers(layers: Sequence[Any], options: MergeOptions = MergeOptions()) -> Any:
    """Merge already resolved layers in order into a single plain value."""

    fold_options = replace(options, defer_references=False)
    result: Any = None
    for index, layer in enumerate(layers):
        if index == 0:
            result = normalize(layer)
            continue
        result = merge_values(result, layer, fold_options)
    return to_plain(result)


def _kind(value: Any) -> str:
    if isinstance(value, Mapping):
        return "mapping"
    if isinstance(value, list):
        return "sequence"
    return "scalar"


def _format_path(path: tuple[Any, ...]) -> str:
    return ":".join(str(segment) for segment in path)


def merge(
    target: Mapping[Any, Any],
    source: Mapping[Any, Any],
    *,
    allow_none_override: bool = False,
    strict: bool = False,
) -> dict[Any, Any]:
    """Merge two raw parameter trees and return the merged plain tree.

    Neither input is modified. References are not interpolated, colliding
    values that contain references resolve last-writer-wins.
    """

    options = MergeOptions(
        allow_none_override=allow_none_override,
        strict=strict,
        defer_references=False,
    )
    merged = merge_parameters(normalize(target), normalize(source), options)
    return to_plain(merged)
