"""Lazy, memoized interpolation of references in a merged parameter tree."""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Mapping
from typing import Any

import yaml  # type: ignore[import-untyped]

from reclass_resolver.params.merge import MergeOptions, fold_layers
from reclass_resolver.params.values import MergeLayers, ParamMapping, needs_resolution
from reclass_resolver.refs.parser import Literal, Ref, Token, needs_parsing, parse_reference
from reclass_resolver.utils.errors import (
    ReferenceCycleError,
    ReferenceDepthError,
    ReferenceNotFoundError,
    ReferenceSyntaxError,
)

logger = logging.getLogger("reclass_resolver.refs")

RECLASS_KEY = "_reclass_"
PATH_SEPARATOR = ":"
ALT_PATH_SEPARATOR = "."
DEFAULT_SEPARATOR = "::"
MAX_REFERENCE_DEPTH = 64

Position = tuple[Any, ...]


class _Missing(Exception):
    """Lookup path doesn't exist in the parameter tree."""


class Interpolator:
    """Resolve every reference in `parameters` on demand.

    Each position of the tree is resolved at most once. A position which is
    reached again while it is still being resolved is a reference cycle.
    """

    def __init__(
        self,
        parameters: Mapping[Any, Any],
        *,
        node: str | None = None,
        options: MergeOptions = MergeOptions(),
    ) -> None:
        self._root = parameters
        self._node = node
        self._options = options
        self._memo: dict[Position, Any] = {}
        self._stack: list[Position] = []
        self._in_progress: set[Position] = set()
        self._depth = 0

    def render(self) -> dict[Any, Any]:
        """Return a plain copy of the parameter tree with all references resolved."""

        return self._resolve_position((), self._root)

    def resolve_string(self, text: str) -> Any:
        """Resolve the references in a standalone string against the tree."""

        if not needs_parsing(text):
            return text
        return self._resolve_token(self._parse(text, ()), ())

    def _resolve_position(self, pos: Position, raw: Any) -> Any:
        if pos in self._memo:
            return self._memo[pos]
        if pos in self._in_progress:
            chain = " -> ".join(_format_path(p) for p in (*self._stack, pos) if p)
            raise ReferenceCycleError(
                f"Reference cycle detected: {chain}", node=self._node
            )

        self._in_progress.add(pos)
        self._stack.append(pos)
        try:
            value = self._resolve_value(pos, raw)
        finally:
            self._stack.pop()
            self._in_progress.discard(pos)
        self._memo[pos] = value
        return value

    def _resolve_value(self, pos: Position, raw: Any) -> Any:
        if pos and pos[0] == RECLASS_KEY:
            return _plain_copy(raw)
        if isinstance(raw, Mapping):
            return {key: self._resolve_position((*pos, key), item) for key, item in raw.items()}
        if isinstance(raw, list):
            return [self._resolve_position((*pos, index), item) for index, item in enumerate(raw)]
        if isinstance(raw, MergeLayers):
            layers = [self._resolve_detached(pos, layer) for layer in raw.layers]
            return fold_layers(layers, self._options)
        if isinstance(raw, str) and needs_parsing(raw):
            return self._resolve_token(self._parse(raw, pos), pos)
        return raw

    def _resolve_detached(self, pos: Position, raw: Any) -> Any:
        """Resolve one merge layer without memoizing its contents.

        Mapping layers keep their override and constant markers for the fold.
        """

        if isinstance(raw, Mapping):
            result = ParamMapping(
                (key, self._resolve_detached((*pos, key), item)) for key, item in raw.items()
            )
            if isinstance(raw, ParamMapping):
                result.overrides |= raw.overrides
                result.constants |= raw.constants
            return result
        if isinstance(raw, list):
            return [self._resolve_detached((*pos, index), item) for index, item in enumerate(raw)]
        if isinstance(raw, MergeLayers):
            layers = [self._resolve_detached(pos, layer) for layer in raw.layers]
            return fold_layers(layers, self._options)
        if isinstance(raw, str) and needs_parsing(raw):
            return self._resolve_token(self._parse(raw, pos), pos)
        return raw

    def _parse(self, text: str, pos: Position) -> Token:
        try:
            return parse_reference(text)
        except ReferenceSyntaxError as exc:
            where = f" in parameter '{_format_path(pos)}'" if pos else ""
            raise ReferenceSyntaxError(f"{exc.message}{where}", node=self._node) from exc

    def _resolve_token(self, token: Token, pos: Position) -> Any:
        if isinstance(token, Literal):
            return token.text
        if isinstance(token, Ref):
            return self._resolve_ref(token, pos)
        return "".join(self._render(item, pos) for item in token.tokens)

    def _render(self, token: Token, pos: Position) -> str:
        return _stringify(self._resolve_token(token, pos))

    def _resolve_ref(self, ref: Ref, pos: Position) -> Any:
        if self._depth >= MAX_REFERENCE_DEPTH:
            raise ReferenceDepthError(
                f"Token resolution exceeded recursion depth of {MAX_REFERENCE_DEPTH} "
                f"while resolving '{ref}' in parameter '{_format_path(pos)}'",
                node=self._node,
            )
        self._depth += 1
        try:
            return self._lookup_ref(ref, pos)
        finally:
            self._depth -= 1

    def _lookup_ref(self, ref: Ref, pos: Position) -> Any:
        path_tokens, default_tokens = _split_default(ref.tokens)
        path = "".join(self._render(token, pos) for token in path_tokens)

        try:
            value = self._lookup(path)
        except _Missing:
            if default_tokens is None:
                raise ReferenceNotFoundError(
                    f"Reference '${{{path}}}' in parameter '{_format_path(pos)}' not found",
                    node=self._node,
                ) from None
            logger.debug("using default for missing reference ${%s}", path)
            return self._resolve_default(default_tokens, pos)

        # Results are shared between positions, so hand out copies.
        return copy.deepcopy(value)

    def _resolve_default(self, tokens: list[Token], pos: Position) -> Any:
        if len(tokens) == 1 and isinstance(tokens[0], Ref):
            return self._resolve_ref(tokens[0], pos)
        text = "".join(self._render(token, pos) for token in tokens)
        if not text:
            return ""
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError:
            return text

    def _lookup(self, path: str) -> Any:
        if PATH_SEPARATOR in path:
            return self._walk(path.split(PATH_SEPARATOR))
        try:
            return self._walk([path])
        except _Missing:
            if ALT_PATH_SEPARATOR not in path:
                raise
        return self._walk(path.split(ALT_PATH_SEPARATOR))

    def _walk(self, segments: list[str]) -> Any:
        pos: Position = ()
        current: Any = self._root
        resolved = False

        for segment in segments:
            if not resolved and needs_resolution(current):
                current = self._resolve_position(pos, current)
                resolved = True
            key = _child_key(current, segment)
            current = current[key]
            pos = (*pos, key)

        if not resolved:
            current = self._resolve_position(pos, current)
        return current


def interpolate(
    parameters: Mapping[Any, Any],
    *,
    node: str | None = None,
    options: MergeOptions = MergeOptions(),
) -> dict[Any, Any]:
    """Resolve all references in a merged parameter tree."""

    return Interpolator(parameters, node=node, options=options).render()


def _split_default(tokens: tuple[Token, ...]) -> tuple[list[Token], list[Token] | None]:
    """Split reference content at the first `::` found in a literal part."""

    for index, token in enumerate(tokens):
        if isinstance(token, Literal) and DEFAULT_SEPARATOR in token.text:
            head, tail = token.text.split(DEFAULT_SEPARATOR, 1)
            path = [*tokens[:index], Literal(head)] if head else list(tokens[:index])
            default = [Literal(tail)] if tail else []
            default.extend(tokens[index + 1 :])
            return path, default
    return list(tokens), None


def _child_key(container: Any, segment: str) -> Any:
    if isinstance(container, Mapping):
        if segment in container:
            return segment
        if _is_index(segment) and int(segment) in container:
            return int(segment)
        raise _Missing(segment)
    if isinstance(container, list):
        if _is_index(segment) and int(segment) < len(container):
            return int(segment)
        raise _Missing(segment)
    raise _Missing(segment)


def _is_index(segment: str) -> bool:
    return segment.isdigit()


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), default=str)


def _plain_copy(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _plain_copy(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_plain_copy(item) for item in value]
    return value


def _format_path(pos: Position) -> str:
    return PATH_SEPARATOR.join(str(segment) for segment in pos)
