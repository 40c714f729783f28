"""Class mapping rules which include classes based on node names or paths."""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass, field

_BACKREF_RE = re.compile(r"\\{1,2}(\d+)")


@dataclass(frozen=True)
class ClassMapping:
    """One `<pattern> <class>...` rule from the `class_mappings` option."""

    pattern: str
    classes: tuple[str, ...]
    regex: re.Pattern[str] | None = field(default=None, compare=False)

    def matching_classes(self, name: str) -> list[str]:
        """Return the classes this rule maps to `name`, empty if it doesn't match."""

        if self.regex is None:
            if fnmatch.fnmatchcase(name, self.pattern):
                return list(self.classes)
            return []

        match = self.regex.search(name)
        if match is None:
            return []
        return [_expand_backrefs(cls, match) for cls in self.classes]

    def __str__(self) -> str:
        return f"{self.pattern} {' '.join(self.classes)}"


def parse_class_mapping(text: str) -> ClassMapping:
    """Parse and compile a class mapping rule.

    Rules:
    - The rule is split on whitespace, the first item is the pattern.
    - A leading `\\*` is unescaped to `*` (YAML needs it for unquoted globs).
    - Patterns enclosed in `/` are regular expressions, everything else is a glob.
    """

    items = text.split()
    if not items:
        raise ValueError("Expected '<Pattern> <classes>'")
    pattern, classes = items[0], tuple(items[1:])
    if pattern.startswith("\\*"):
        pattern = pattern[1:]
    if not classes:
        raise ValueError(f"No classes mapped for {pattern}")

    if not pattern.startswith("/"):
        return ClassMapping(pattern=pattern, classes=classes)

    if len(pattern) < 2 or not pattern.endswith("/"):
        raise ValueError("Expected regex pattern to be enclosed in `/`")
    body = pattern[1:-1]
    if not body:
        raise ValueError("empty regex patterns are not supported")
    try:
        regex = re.compile(body)
    except re.error as exc:
        raise ValueError(f"While compiling regex pattern {pattern}: {exc}") from exc
    return ClassMapping(pattern=pattern, classes=classes, regex=regex)


def mapped_classes(rules: list[ClassMapping], name: str) -> list[str]:
    """Collect mapped classes for `name` in rule order, each class at most once."""

    result: list[str] = []
    for rule in rules:
        for cls in rule.matching_classes(name):
            if cls not in result:
                result.append(cls)
    return result


def _expand_backrefs(template: str, match: re.Match[str]) -> str:
    def _group(ref: re.Match[str]) -> str:
        index = int(ref.group(1))
        if index > (match.re.groups or 0):
            return ""
        return match.group(index) or ""

    return _BACKREF_RE.sub(_group, template)
