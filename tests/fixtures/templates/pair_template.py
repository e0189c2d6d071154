"""Pair of keys and values with a shared counter."""

# template type Pair(K, V)
K, V = str, int

created = 0


class Pair:
    def __init__(self, key: K, value: V) -> None:
        global created
        created += 1
        self.key = key
        self.value = value

    def swapped(self) -> tuple[V, K]:
        return self.value, self.key


def makePair(key: K, value: V) -> Pair:
    return Pair(key, value)
