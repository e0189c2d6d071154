"""Unordered collection of unique values."""

from __future__ import annotations

# template type Set(A)
A = int


class Set:
    """Set of values backed by a dict."""

    def __init__(self) -> None:
        self._items: dict[A, None] = {}

    def add(self, item: A) -> None:
        self._items[item] = None

    def contains(self, item: A) -> bool:
        return item in self._items

    def union(self, other: "Set") -> "Set":
        result = newSet()
        for item in (*self._items, *other._items):
            result.add(item)
        return result

    def __len__(self) -> int:
        return len(self._items)


def newSet(*items: A) -> Set:
    result = Set()
    for item in items:
        result.add(item)
    return result


__all__ = ["Set", "newSet"]
