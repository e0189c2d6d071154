"""Box holding one coerced value."""

from collections.abc import Callable

# template type Box(V)
V = int


class Box:
    def __init__(self, value: V) -> None:
        self.value = value


# template format
toV: Callable[[object], V] = ...


# template format
def parseV(raw: object) -> V:
    raise NotImplementedError


def newBox(raw: object) -> Box:
    return Box(toV(raw))
