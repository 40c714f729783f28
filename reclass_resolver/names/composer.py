"""Node name composition from document locations."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from reclass_resolver.config.models import CompatFlag, Config


@dataclass(frozen=True)
class NodeName:
    """Canonical identity of a node and its projections."""

    full: str
    parts: tuple[str, ...]
    path: str
    short: str
    # Location of the node document relative to the nodes directory, without extension.
    relpath: tuple[str, ...] = field(default=(), compare=False)

    def as_reclass(self) -> dict[str, object]:
        return {
            "full": self.full,
            "parts": list(self.parts),
            "path": self.path,
            "short": self.short,
        }

    @property
    def relative_path(self) -> str:
        return "/".join(self.relpath) if self.relpath else self.path


def compose_node_name(segments: Sequence[str], config: Config) -> NodeName:
    """Compose the NodeName for a node document stored at `segments`.

    Rules:
    - Without `compose_node_name`, only the last segment names the node.
    - With it, all segments are joined by `.`, except when the first directory
      starts with `_`, which hides the directories from the name.
    - Literal dots in file names stay part of a single segment unless the
      `compose-node-name-literal-dots` compatibility flag is set.
    """

    if not segments:
        raise ValueError("Can't compose a node name from an empty path")
    relpath = tuple(segments)
    last = relpath[-1]

    if not config.compose_node_name or relpath[0].startswith("_"):
        parts: tuple[str, ...] = (last,)
    else:
        parts = relpath
    full = ".".join(parts)

    if config.compose_node_name and config.has_compat_flag(
        CompatFlag.COMPOSE_NODE_NAME_LITERAL_DOTS
    ):
        parts = tuple(full.split("."))

    return NodeName(
        full=full,
        parts=parts,
        path="/".join(parts),
        short=parts[-1],
        relpath=relpath,
    )
