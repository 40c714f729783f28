"""Custom exceptions for inventory resolution."""

from __future__ import annotations


class ReclassError(Exception):
    """Base class for all errors raised while loading or resolving an inventory."""

    def __init__(
        self,
        message: str,
        *,
        node: str | None = None,
        cls: str | None = None,
        source: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.node = node
        self.cls = cls
        self.source = source

    def for_node(self, node: str, prefix: str = "Error while rendering") -> ReclassError:
        """Return a copy of this error attributed to `node`, keeping the error type."""

        error = type(self).__new__(type(self))
        ReclassError.__init__(
            error,
            f"{prefix} {node}: {self.message}",
            node=node,
            cls=self.cls,
            source=self.source,
        )
        return error


class ConfigError(ReclassError):
    """Raised when configuration options are missing or invalid."""


class DiscoveryError(ReclassError):
    """Raised when documents can't be read or node/class identities collide."""


class ClassNotFoundError(ReclassError):
    """Raised when an included class doesn't exist and isn't ignored."""


class HierarchyCycleError(ReclassError):
    """Raised when class includes or references form a cycle."""


class ReferenceCycleError(HierarchyCycleError):
    """Raised when a chain of references revisits a parameter being resolved."""


class ReferenceNotFoundError(ReclassError):
    """Raised when a reference points to a missing parameter and has no default."""


class ReferenceSyntaxError(ReclassError):
    """Raised when a string contains a malformed reference."""


class MergeConflictError(ReclassError):
    """Raised when a constant key is overwritten or strict merging changes a type."""


class ReferenceDepthError(ReclassError):
    """Raised when resolving a reference needs too many nested resolutions."""
