"""Resolved configuration options for one inventory."""

from __future__ import annotations

import os
import re
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator, model_validator

from reclass_resolver.config.class_mappings import ClassMapping, parse_class_mapping


class CompatFlag(str, Enum):
    """Opt-in switches which reproduce legacy Python reclass behavior."""

    # Split composed node names on every literal dot when rendering `parts`,
    # `path` and `short`, like Python reclass does.
    COMPOSE_NODE_NAME_LITERAL_DOTS = "compose-node-name-literal-dots"

    @classmethod
    def parse(cls, value: str | CompatFlag) -> CompatFlag:
        if isinstance(value, CompatFlag):
            return value
        normalized = value.strip()
        aliases = {
            "compose-node-name-literal-dots": cls.COMPOSE_NODE_NAME_LITERAL_DOTS,
            "compose_node_name_literal_dots": cls.COMPOSE_NODE_NAME_LITERAL_DOTS,
            "ComposeNodeNameLiteralDots": cls.COMPOSE_NODE_NAME_LITERAL_DOTS,
        }
        try:
            return aliases[normalized]
        except KeyError as exc:
            raise ValueError(f"Unknown compatibility flag '{value}'") from exc


class Config(BaseModel):
    """Configuration consumed read-only by a resolution run.

    Rules:
    - nodes_path and classes_path must not overlap.
    - Instances are immutable; use `model_copy(update=...)` to derive a changed config.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    inventory_path: str = "."
    nodes_path: str = "./nodes"
    classes_path: str = "./classes"
    ignore_class_notfound: bool = False
    ignore_class_notfound_regexp: list[str] = Field(default_factory=lambda: [".*"])
    compose_node_name: bool = False
    allow_none_override: bool = False
    class_mappings: list[str] = Field(default_factory=list)
    class_mappings_match_path: bool = False
    compatflags: frozenset[CompatFlag] = frozenset()
    default_environment: str = "base"
    strict_merge: bool = False

    _ignore_patterns: list[re.Pattern[str]] = PrivateAttr(default_factory=list)
    _class_mapping_rules: list[ClassMapping] = PrivateAttr(default_factory=list)

    @field_validator("compatflags", mode="before")
    @classmethod
    def _parse_compatflags(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        if isinstance(value, (str, CompatFlag)):
            value = [value]
        return frozenset(CompatFlag.parse(flag) for flag in value)

    @field_validator("ignore_class_notfound_regexp")
    @classmethod
    def _check_ignore_patterns(cls, value: list[str]) -> list[str]:
        for pattern in value:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(
                    f"while compiling ignore_class_notfound regex pattern '{pattern}': {exc}"
                ) from exc
        return value

    @field_validator("class_mappings")
    @classmethod
    def _check_class_mappings(cls, value: list[str]) -> list[str]:
        for text in value:
            parse_class_mapping(text)
        return value

    @model_validator(mode="after")
    def _check_paths(self) -> Config:
        nodes = Path(os.path.normpath(self.nodes_path))
        classes = Path(os.path.normpath(self.classes_path))
        if nodes == classes or nodes in classes.parents or classes in nodes.parents:
            raise ValueError("Nodes and classes path must be non-overlapping.")
        return self

    def model_post_init(self, __context: Any) -> None:
        self._ignore_patterns = [re.compile(p) for p in self.ignore_class_notfound_regexp]
        self._class_mapping_rules = [parse_class_mapping(s) for s in self.class_mappings]

    @property
    def class_mapping_rules(self) -> list[ClassMapping]:
        return self._class_mapping_rules

    def is_class_ignored(self, cls: str) -> bool:
        """Return True if a missing class `cls` should be skipped silently."""

        if not self.ignore_class_notfound:
            return False
        return any(pattern.search(cls) for pattern in self._ignore_patterns)

    def has_compat_flag(self, flag: CompatFlag) -> bool:
        return flag in self.compatflags

    def with_compat_flag(self, flag: CompatFlag | str, enabled: bool = True) -> Config:
        """Return a copy with `flag` set or unset."""

        parsed = CompatFlag.parse(flag)
        flags = set(self.compatflags)
        if enabled:
            flags.add(parsed)
        else:
            flags.discard(parsed)
        return self.model_copy(update={"compatflags": frozenset(flags)})

    def with_ignore_class_notfound_regexp(self, patterns: list[str]) -> Config:
        """Return a validated copy using `patterns` for ignored missing classes."""

        data = self.model_dump()
        data["ignore_class_notfound_regexp"] = list(patterns)
        return Config.model_validate(data)
