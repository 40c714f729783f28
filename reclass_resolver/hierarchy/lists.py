"""Ordered string lists used for resolved classes and applications."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

NEGATION_PREFIX = "~"


class UniqueList:
    """Insertion ordered list which ignores repeated items."""

    def __init__(self, items: Iterable[str] = ()) -> None:
        self._items: list[str] = []
        for item in items:
            self.append_if_new(item)

    def append_if_new(self, item: str) -> None:
        if item not in self._items:
            self._items.append(item)

    def merge(self, other: Iterable[str]) -> None:
        for item in other:
            self.append_if_new(item)

    def items(self) -> list[str]:
        return list(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __repr__(self) -> str:
        return f"UniqueList({self._items!r})"


class RemovableList(UniqueList):
    """UniqueList where `~item` removes `item`.

    A negation for an item that isn't present yet is remembered and cancels the
    next append of that item instead.
    """

    def __init__(self, items: Iterable[str] = ()) -> None:
        self._negations: list[str] = []
        super().__init__(items)

    @property
    def negations(self) -> list[str]:
        return list(self._negations)

    def append_if_new(self, item: str) -> None:
        if item.startswith(NEGATION_PREFIX):
            self._negate(item[len(NEGATION_PREFIX) :])
        elif item in self._negations:
            self._negations.remove(item)
        elif item not in self._items:
            self._items.append(item)

    def merge(self, other: Iterable[str]) -> None:
        """Merge another list: its negations apply first, then its items are appended."""

        if isinstance(other, RemovableList):
            for negation in other._negations:
                self._negate(negation)
            for item in other._items:
                self.append_if_new(item)
            return
        super().merge(other)

    def _negate(self, item: str) -> None:
        if item in self._items:
            self._items.remove(item)
        elif item not in self._negations:
            self._negations.append(item)

    def __repr__(self) -> str:
        return f"RemovableList({self._items!r}, negations={self._negations!r})"
