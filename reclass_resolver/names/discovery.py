"""Discovery of canonical node and class names from raw documents."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from reclass_resolver.config.models import Config
from reclass_resolver.names.composer import NodeName, compose_node_name
from reclass_resolver.storage.models import RawDocument
from reclass_resolver.utils.errors import DiscoveryError


@dataclass(frozen=True)
class DiscoveredNode:
    """A node document together with its composed name."""

    name: NodeName
    document: RawDocument


def discover_nodes(
    documents: Iterable[RawDocument], config: Config
) -> dict[str, DiscoveredNode]:
    """Index node documents by their full name, rejecting duplicate identities."""

    nodes: dict[str, DiscoveredNode] = {}
    for document in documents:
        name = compose_node_name(document.relpath, config)
        previous = nodes.get(name.full)
        if previous is not None:
            first, second = sorted((previous.document.uri, document.uri))
            raise DiscoveryError(
                f"Definition of node '{name.full}' in '{first}' collides with definition in "
                f"'{second}'. Nodes can only be defined once per inventory.",
                node=name.full,
                source=document.uri,
            )
        nodes[name.full] = DiscoveredNode(name=name, document=document)
    return nodes


def discover_classes(documents: Iterable[RawDocument]) -> dict[str, RawDocument]:
    """Index class documents by their dotted class name.

    Classes `foo.bar.yml` and `foo/bar.yml` both define class `foo.bar` and are
    rejected as a collision.
    """

    classes: dict[str, RawDocument] = {}
    for document in documents:
        cls = document.class_name
        previous = classes.get(cls)
        if previous is not None:
            first, second = sorted((previous.uri, document.uri))
            raise DiscoveryError(
                f"Definition of class '{cls}' in '{first}' collides with definition in "
                f"'{second}'. Classes can only be defined once per inventory.",
                cls=cls,
                source=document.uri,
            )
        classes[cls] = document
    return classes
