"""Runtime value types used while parameter trees are merged."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

OVERRIDE_PREFIX = "~"
CONSTANT_PREFIX = "="
REFERENCE_OPEN = "${"


class ParamMapping(dict):
    """Mapping node of a parameter tree which remembers key markers.

    `overrides` holds keys that were written as `~key` and replace instead of
    merge. `constants` holds keys that were written as `=key` and can't be
    changed by later merges.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.overrides: set[Any] = set()
        self.constants: set[Any] = set()


class MergeLayers:
    """Values stacked at one position because at least one contains a reference.

    Layers are folded in order with the regular merge rules once references
    have been resolved.
    """

    __slots__ = ("layers",)

    def __init__(self, layers: list[Any]) -> None:
        self.layers = layers

    def __repr__(self) -> str:
        return f"MergeLayers({self.layers!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, MergeLayers) and self.layers == other.layers


def is_reference(value: Any) -> bool:
    """Return True for strings that may contain an unresolved reference."""

    return isinstance(value, str) and REFERENCE_OPEN in value


def needs_resolution(value: Any) -> bool:
    return isinstance(value, MergeLayers) or is_reference(value)


def split_key_prefix(key: Any) -> tuple[Any, str | None]:
    """Strip a `~` or `=` marker from a mapping key."""

    if isinstance(key, str) and len(key) > 1 and key[0] in (OVERRIDE_PREFIX, CONSTANT_PREFIX):
        return key[1:], key[0]
    return key, None


def normalize(value: Any) -> Any:
    """Copy a raw document tree into merge form.

    Mappings become ParamMapping instances with their key markers recorded and
    stripped; sequences and scalars are copied as-is.
    """

    if isinstance(value, Mapping):
        result = ParamMapping()
        for raw_key, item in value.items():
            key, prefix = split_key_prefix(raw_key)
            result[key] = normalize(item)
            if prefix == OVERRIDE_PREFIX:
                result.overrides.add(key)
            elif prefix == CONSTANT_PREFIX:
                result.constants.add(key)
        if isinstance(value, ParamMapping):
            result.overrides |= value.overrides
            result.constants |= value.constants
        return result
    if isinstance(value, list):
        return [normalize(item) for item in value]
    if isinstance(value, MergeLayers):
        return MergeLayers([normalize(layer) for layer in value.layers])
    return value


def to_plain(value: Any) -> Any:
    """Convert a merge-form tree without pending layers into plain dicts and lists."""

    if isinstance(value, dict):
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [to_plain(item) for item in value]
    if isinstance(value, MergeLayers):
        raise TypeError("Can't convert unresolved merge layers to a plain value")
    return value
