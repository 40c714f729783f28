"""Per-node pipeline: hierarchy -> merge -> interpolate -> NodeInfo."""

from __future__ import annotations

from collections.abc import Mapping

from reclass_resolver.config.models import Config
from reclass_resolver.hierarchy.resolver import HierarchyResolver, reclass_meta
from reclass_resolver.inventory.models import NodeInfo
from reclass_resolver.names.discovery import DiscoveredNode
from reclass_resolver.params.values import normalize
from reclass_resolver.refs.interpolate import RECLASS_KEY, interpolate
from reclass_resolver.storage.models import EntityPayload, RawDocument
from reclass_resolver.utils.errors import ReclassError


def render_node(
    node: DiscoveredNode,
    classes: Mapping[str, RawDocument],
    config: Config,
    timestamp: str,
) -> NodeInfo:
    """Resolve one node.

    Errors raised on the way keep their type and are re-raised attributed to
    the node: "Error while rendering <node>: <cause>".
    """

    name = node.name
    try:
        payload = EntityPayload.from_document(node.document)
        resolver = HierarchyResolver(config, classes)
        result = resolver.resolve(name, payload, uri=node.document.uri)

        parameters = result.parameters
        parameters[RECLASS_KEY] = normalize(reclass_meta(name, result.environment))
        rendered = interpolate(parameters, node=name.full, options=resolver.merge_options)
    except ReclassError as exc:
        raise exc.for_node(name.full) from exc

    return NodeInfo(
        name=name,
        uri=node.document.uri,
        environment=result.environment,
        timestamp=timestamp,
        classes=result.classes,
        applications=result.applications,
        parameters=rendered,
    )
