"""YAML filesystem storage backend for node and class documents."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from reclass_resolver.config.models import Config
from reclass_resolver.storage.models import RawDocument
from reclass_resolver.utils.errors import DiscoveryError

logger = logging.getLogger("reclass_resolver.storage")

SUPPORTED_YAML_EXTS = (".yml", ".yaml")


class YamlFsStorage:
    """Enumerate `.yml`/`.yaml` documents below the nodes and classes directories."""

    def __init__(self, nodes_path: Path | str, classes_path: Path | str) -> None:
        self._nodes_path = Path(nodes_path)
        self._classes_path = Path(classes_path)

    @classmethod
    def from_config(cls, config: Config) -> YamlFsStorage:
        return cls(config.nodes_path, config.classes_path)

    def node_documents(self) -> list[RawDocument]:
        return list(self._walk(self._nodes_path, "nodes"))

    def class_documents(self) -> list[RawDocument]:
        return list(self._walk(self._classes_path, "classes"))

    def _walk(self, root: Path, kind: str) -> Iterator[RawDocument]:
        if not root.is_dir():
            raise DiscoveryError(f"Inventory {kind} path {root} is not a directory")

        # sorted walk keeps discovery and collision messages deterministic
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            for filename in sorted(filenames):
                stem, ext = os.path.splitext(filename)
                if ext not in SUPPORTED_YAML_EXTS:
                    continue
                path = Path(dirpath) / filename
                relative = path.relative_to(root)
                relpath = (*relative.parent.parts, stem)
                yield RawDocument(
                    uri=f"yaml_fs://{os.path.abspath(path)}",
                    relpath=relpath,
                    loader=_make_loader(path),
                )


def _make_loader(path: Path):
    def _load() -> Any:
        logger.debug("loading %s", path)
        try:
            return yaml.safe_load(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise DiscoveryError(f"Unable to read {path}: {exc}", source=str(path)) from exc
        except yaml.YAMLError as exc:
            raise DiscoveryError(f"Invalid YAML in {path}: {exc}", source=str(path)) from exc

    return _load
