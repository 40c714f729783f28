"""Resolved node and inventory models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from reclass_resolver.names.composer import NodeName


@dataclass
class NodeInfo:
    """Fully resolved view of one node."""

    name: NodeName
    uri: str
    environment: str
    timestamp: str
    classes: list[str] = field(default_factory=list)
    applications: list[str] = field(default_factory=list)
    parameters: dict[str, Any] = field(default_factory=dict)
    exports: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        """Render the reclass compatible nodeinfo mapping."""

        return {
            "__reclass__": {
                "node": self.name.full,
                "name": self.name.full,
                "uri": self.uri,
                "environment": self.environment,
                "timestamp": self.timestamp,
            },
            "applications": list(self.applications),
            "classes": list(self.classes),
            "environment": self.environment,
            "exports": dict(self.exports),
            "parameters": self.parameters,
        }


@dataclass
class Inventory:
    """All resolved nodes plus reverse indexes by class and application.

    Index keys and the node lists in them are sorted.
    """

    nodes: dict[str, NodeInfo] = field(default_factory=dict)
    classes: dict[str, list[str]] = field(default_factory=dict)
    applications: dict[str, list[str]] = field(default_factory=dict)
    timestamp: str = ""

    def as_flat_map(self) -> dict[str, Any]:
        return {
            "__reclass__": {"timestamp": self.timestamp},
            "nodes": {name: info.as_dict() for name, info in self.nodes.items()},
            "classes": {cls: list(nodes) for cls, nodes in self.classes.items()},
            "applications": {app: list(nodes) for app, nodes in self.applications.items()},
        }

    def as_dict(self) -> dict[str, Any]:
        return self.as_flat_map()
