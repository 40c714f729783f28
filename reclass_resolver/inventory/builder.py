"""Reclass facade: discovery, single node resolution and full inventory builds."""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from reclass_resolver.config.loader import DEFAULT_CONFIG_FILE, config_from_dict, load_config
from reclass_resolver.config.models import CompatFlag, Config
from reclass_resolver.inventory.models import Inventory, NodeInfo
from reclass_resolver.names.discovery import DiscoveredNode, discover_classes, discover_nodes
from reclass_resolver.orchestrator.pipeline import render_node
from reclass_resolver.storage.models import DocumentSource, RawDocument
from reclass_resolver.storage.yaml_fs import YamlFsStorage
from reclass_resolver.utils.errors import DiscoveryError

logger = logging.getLogger("reclass_resolver.inventory")

TIMESTAMP_FORMAT = "%c"


@dataclass(frozen=True)
class _Discovery:
    """Config together with the node and class indexes discovered for it."""

    config: Config
    nodes: Mapping[str, DiscoveredNode]
    classes: Mapping[str, RawDocument]


class Reclass:
    """Entry point for resolving nodes of one inventory.

    The config and everything discovered with it are replaced together on
    every config change, so concurrent readers always see a consistent pair.
    """

    def __init__(self, config: Config, documents: DocumentSource | None = None) -> None:
        self._documents = documents
        self._lock = threading.Lock()
        self._state = self._discover(config)

    @classmethod
    def from_config_file(
        cls, inventory_path: str | Path, config_file: str = DEFAULT_CONFIG_FILE
    ) -> Reclass:
        return cls(load_config(inventory_path, config_file))

    @classmethod
    def from_dict(cls, inventory_path: str | Path, options: Mapping[str, Any]) -> Reclass:
        return cls(config_from_dict(inventory_path, options))

    @property
    def config(self) -> Config:
        return self._state.config

    @property
    def nodes(self) -> list[str]:
        """Sorted full names of all discovered nodes."""

        return sorted(self._state.nodes)

    def set_compat_flag(self, flag: CompatFlag | str) -> None:
        self._update_config(self.config.with_compat_flag(flag))

    def unset_compat_flag(self, flag: CompatFlag | str) -> None:
        self._update_config(self.config.with_compat_flag(flag, enabled=False))

    def set_ignore_class_notfound_regexp(self, patterns: list[str]) -> None:
        self._update_config(self.config.with_ignore_class_notfound_regexp(patterns))

    def resolve_node(self, name: str) -> NodeInfo:
        """Resolve a single node by its full name."""

        state = self._state
        node = state.nodes.get(name)
        if node is None:
            raise DiscoveryError(f"Unknown node {name}", node=name)
        timestamp = datetime.now().strftime(TIMESTAMP_FORMAT)
        return render_node(node, state.classes, state.config, timestamp)

    def nodeinfo(self, name: str) -> NodeInfo:
        return self.resolve_node(name)

    def build_inventory(self, max_workers: int | None = None) -> Inventory:
        """Resolve every node and build the class and application indexes.

        The first failing node in sorted name order aborts the build.
        """

        state = self._state
        started = time.perf_counter()
        timestamp = datetime.now().strftime(TIMESTAMP_FORMAT)
        names = sorted(state.nodes)
        _log_event(logging.INFO, "inventory_start", nodes=len(names), workers=max_workers or 1)

        if max_workers is not None and max_workers > 1:
            infos = self._render_parallel(state, names, timestamp, max_workers)
        else:
            infos = [
                render_node(state.nodes[name], state.classes, state.config, timestamp)
                for name in names
            ]

        inventory = _reduce(infos, timestamp)
        _log_event(
            logging.INFO,
            "inventory_done",
            nodes=len(inventory.nodes),
            classes=len(inventory.classes),
            applications=len(inventory.applications),
            elapsed_ms=int((time.perf_counter() - started) * 1000),
        )
        return inventory

    def inventory(self, max_workers: int | None = None) -> Inventory:
        return self.build_inventory(max_workers=max_workers)

    def _render_parallel(
        self, state: _Discovery, names: list[str], timestamp: str, max_workers: int
    ) -> list[NodeInfo]:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures: list[Future[NodeInfo]] = [
                pool.submit(render_node, state.nodes[name], state.classes, state.config, timestamp)
                for name in names
            ]
            try:
                return [future.result() for future in futures]
            except Exception:
                for future in futures:
                    future.cancel()
                raise

    def _update_config(self, config: Config) -> None:
        with self._lock:
            self._state = self._discover(config)

    def _discover(self, config: Config) -> _Discovery:
        documents = self._documents
        if documents is None:
            documents = YamlFsStorage.from_config(config)
        nodes = discover_nodes(documents.node_documents(), config)
        classes = discover_classes(documents.class_documents())
        logger.debug("discovered %d nodes and %d classes", len(nodes), len(classes))
        return _Discovery(config=config, nodes=nodes, classes=classes)


def _reduce(infos: list[NodeInfo], timestamp: str) -> Inventory:
    classes: dict[str, set[str]] = {}
    applications: dict[str, set[str]] = {}
    for info in infos:
        for cls in info.classes:
            classes.setdefault(cls, set()).add(info.name.full)
        for app in info.applications:
            applications.setdefault(app, set()).add(info.name.full)

    return Inventory(
        nodes={info.name.full: info for info in sorted(infos, key=lambda i: i.name.full)},
        classes={cls: sorted(nodes) for cls, nodes in sorted(classes.items())},
        applications={app: sorted(nodes) for app, nodes in sorted(applications.items())},
        timestamp=timestamp,
    )


def _log_event(level: int, event: str, **fields: Any) -> None:
    payload = {"event": event, **fields}
    logger.log(level, _dump_json(payload))


def _dump_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
