"""Class hierarchy resolution and parameter merging for a single node."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from reclass_resolver.config.class_mappings import mapped_classes
from reclass_resolver.config.models import Config
from reclass_resolver.hierarchy.lists import RemovableList, UniqueList
from reclass_resolver.names.composer import NodeName
from reclass_resolver.params.merge import MergeOptions, merge_parameters
from reclass_resolver.params.values import REFERENCE_OPEN, ParamMapping, normalize
from reclass_resolver.refs.interpolate import RECLASS_KEY, Interpolator
from reclass_resolver.storage.models import EntityPayload, RawDocument
from reclass_resolver.utils.errors import (
    ClassNotFoundError,
    HierarchyCycleError,
    ReferenceCycleError,
    ReferenceNotFoundError,
)

logger = logging.getLogger("reclass_resolver.hierarchy")

RELATIVE_PREFIX = "."


@dataclass
class Entity:
    """A node, a class, or the synthetic entity holding class-mapping results."""

    name: str
    payload: EntityPayload
    # Directory of the entity relative to the classes root, used for `.relative` includes.
    directory: tuple[str, ...] = ()
    uri: str | None = None


@dataclass
class MergeContext:
    """Accumulated state while walking the class hierarchy of one node."""

    parameters: ParamMapping = field(default_factory=ParamMapping)
    classes: UniqueList = field(default_factory=UniqueList)
    applications: RemovableList = field(default_factory=RemovableList)
    merged: set[str] = field(default_factory=set)
    stack: list[str] = field(default_factory=list)
    on_stack: set[str] = field(default_factory=set)

    def push(self, cls: str) -> None:
        self.stack.append(cls)
        self.on_stack.add(cls)

    def pop(self) -> None:
        self.on_stack.discard(self.stack.pop())


@dataclass
class HierarchyResult:
    classes: list[str]
    applications: list[str]
    parameters: ParamMapping
    environment: str


def reclass_meta(name: NodeName, environment: str) -> dict[str, Any]:
    """Build the automatic `_reclass_` parameter branch for a node."""

    return {"environment": environment, "name": name.as_reclass()}


def absolute_class_name(cls: str, directory: tuple[str, ...]) -> str:
    """Resolve a `.relative` class name against the declaring class's directory.

    One dot refers to the declaring directory, each additional dot moves one
    directory up, stopping at the classes root.
    """

    if not cls.startswith(RELATIVE_PREFIX):
        return cls
    stripped = cls.lstrip(RELATIVE_PREFIX)
    ups = len(cls) - len(stripped) - 1
    parent = list(directory)
    if ups:
        del parent[max(len(parent) - ups, 0) :]
    return ".".join([*parent, stripped])


class HierarchyResolver:
    """Walk the class hierarchy of one node and merge everything it includes."""

    def __init__(self, config: Config, classes: Mapping[str, RawDocument]) -> None:
        self._config = config
        self._classes = classes
        self._options = MergeOptions(
            allow_none_override=config.allow_none_override,
            strict=config.strict_merge,
        )

    @property
    def merge_options(self) -> MergeOptions:
        return self._options

    def resolve(
        self, name: NodeName, node: EntityPayload, uri: str | None = None
    ) -> HierarchyResult:
        environment = node.environment or self._config.default_environment
        ctx = MergeContext()
        ctx.parameters[RECLASS_KEY] = normalize(reclass_meta(name, environment))

        mapped = self._mapped_classes(name)
        if mapped:
            logger.debug("class mappings for %s: %s", name.full, mapped)
            base = Entity(name=name.full, payload=EntityPayload(classes=mapped), uri=uri)
            self._process(base, ctx, node=name.full)

        self._process(Entity(name=name.full, payload=node, uri=uri), ctx, node=name.full)

        return HierarchyResult(
            classes=ctx.classes.items(),
            applications=ctx.applications.items(),
            parameters=ctx.parameters,
            environment=environment,
        )

    def _mapped_classes(self, name: NodeName) -> list[str]:
        rules = self._config.class_mapping_rules
        if not rules:
            return []
        match_name = name.relative_path if self._config.class_mappings_match_path else name.short
        return mapped_classes(rules, match_name)

    def _process(self, entity: Entity, ctx: MergeContext, *, node: str) -> None:
        declared: list[str] = []
        for raw in entity.payload.classes:
            absolute = absolute_class_name(raw, entity.directory)
            declared.append(absolute)
            cls = self._resolve_class_name(absolute, ctx, node=node)

            if cls in ctx.merged:
                continue
            if cls in ctx.on_stack:
                chain = " -> ".join([*ctx.stack, cls])
                raise HierarchyCycleError(
                    f"Class hierarchy cycle: {chain}", node=node, cls=cls, source=entity.uri
                )

            document = self._classes.get(cls)
            if document is None:
                if self._config.is_class_ignored(cls):
                    logger.debug("ignoring missing class %s included by %s", cls, entity.name)
                    continue
                raise ClassNotFoundError(
                    f"Class {cls} not found", node=node, cls=entity.name, source=entity.uri
                )

            included = Entity(
                name=cls,
                payload=EntityPayload.from_document(document),
                directory=document.directory,
                uri=document.uri,
            )
            ctx.push(cls)
            try:
                self._process(included, ctx, node=node)
            finally:
                ctx.pop()
            ctx.merged.add(cls)

        ctx.classes.merge(declared)
        ctx.applications.merge(RemovableList(entity.payload.applications))
        merge_parameters(ctx.parameters, normalize(entity.payload.parameters), self._options)

    def _resolve_class_name(self, cls: str, ctx: MergeContext, *, node: str) -> str:
        if REFERENCE_OPEN not in cls:
            return cls
        interpolator = Interpolator(ctx.parameters, node=node, options=self._options)
        try:
            resolved = interpolator.resolve_string(cls)
        except (ReferenceNotFoundError, ReferenceCycleError) as exc:
            logger.debug("can't resolve class name %s yet: %s", cls, exc.message)
            return cls
        return resolved if isinstance(resolved, str) else str(resolved)
