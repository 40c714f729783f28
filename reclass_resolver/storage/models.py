"""Raw document models shared between storage backends and the resolver."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from reclass_resolver.utils.errors import DiscoveryError


@dataclass(frozen=True)
class RawDocument:
    """One node or class document as produced by a storage backend.

    The payload is loaded on first access so single-node queries only parse the
    documents they actually reach.
    """

    uri: str
    relpath: tuple[str, ...]
    loader: Callable[[], Any] = field(repr=False, compare=False)

    @cached_property
    def payload(self) -> Any:
        return self.loader()

    @property
    def class_name(self) -> str:
        return ".".join(self.relpath)

    @property
    def directory(self) -> tuple[str, ...]:
        return self.relpath[:-1]


class DocumentSource(Protocol):
    """Protocol implemented by storage backends."""

    def node_documents(self) -> Iterable[RawDocument]:
        """Enumerate node documents."""

    def class_documents(self) -> Iterable[RawDocument]:
        """Enumerate class documents."""


class EntityPayload(BaseModel):
    """Validated content of a node or class document."""

    model_config = ConfigDict(extra="ignore")

    classes: list[str] = Field(default_factory=list)
    applications: list[str] = Field(default_factory=list)
    parameters: dict[Any, Any] = Field(default_factory=dict)
    environment: str | None = None

    @field_validator("classes", "applications", "parameters", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return {} if info.field_name == "parameters" else []
        return value

    @classmethod
    def from_document(cls, document: RawDocument) -> EntityPayload:
        raw = document.payload
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise DiscoveryError(
                f"Expected document {document.uri} to contain a mapping",
                source=document.uri,
            )
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            raise DiscoveryError(
                f"Invalid document structure in {document.uri}: {exc}",
                source=document.uri,
            ) from exc


@dataclass
class DocumentSet:
    """In-memory document source, mostly used by tests and embedding callers."""

    nodes: list[RawDocument] = field(default_factory=list)
    classes: list[RawDocument] = field(default_factory=list)

    @classmethod
    def from_payloads(
        cls,
        nodes: Mapping[str, Any],
        classes: Mapping[str, Any] | None = None,
    ) -> DocumentSet:
        """Build a set from `{"relative/path": payload}` mappings (no extensions)."""

        return cls(
            nodes=[_memory_document("nodes", path, payload) for path, payload in nodes.items()],
            classes=[
                _memory_document("classes", path, payload)
                for path, payload in (classes or {}).items()
            ],
        )

    def node_documents(self) -> list[RawDocument]:
        return list(self.nodes)

    def class_documents(self) -> list[RawDocument]:
        return list(self.classes)


def _memory_document(kind: str, path: str, payload: Any) -> RawDocument:
    relpath = tuple(segment for segment in path.split("/") if segment)
    return RawDocument(
        uri=f"memory://{kind}/{path}",
        relpath=relpath,
        loader=lambda: payload,
    )
