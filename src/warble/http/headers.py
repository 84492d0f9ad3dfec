"""Case-insensitive HTTP header containers.

``Headers`` is the immutable view handed to handlers on the request.
``MutableHeaders`` is the ordered, editable list a response accumulates
until it is finalized.
"""

from collections.abc import Iterable, Iterator, Mapping


def _decode_pairs(raw: Iterable[tuple[bytes | str, bytes | str]]) -> tuple[tuple[str, str], ...]:
    pairs: list[tuple[str, str]] = []
    for name, value in raw:
        if isinstance(name, bytes):
            name = name.decode("latin-1")
        if isinstance(value, bytes):
            value = value.decode("latin-1")
        pairs.append((name.lower(), value))
    return tuple(pairs)


class Headers(Mapping[str, str]):
    """Immutable, case-insensitive request headers.

    ``__getitem__`` returns the first matching value.
    ``get_list`` returns all values for a header.
    """

    __slots__ = ("_pairs",)

    def __init__(self, raw: Iterable[tuple[bytes | str, bytes | str]] = ()) -> None:
        self._pairs = _decode_pairs(raw)

    def __getitem__(self, key: str) -> str:
        wanted = key.lower()
        for name, value in self._pairs:
            if name == wanted:
                return value
        raise KeyError(key)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        wanted = key.lower()
        return any(name == wanted for name, _ in self._pairs)

    def __iter__(self) -> Iterator[str]:
        return iter(dict.fromkeys(name for name, _ in self._pairs))

    def __len__(self) -> int:
        return len(dict.fromkeys(name for name, _ in self._pairs))

    def __repr__(self) -> str:
        return f"Headers({dict(self)!r})"

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key*."""
        wanted = key.lower()
        return [value for name, value in self._pairs if name == wanted]


class MutableHeaders:
    """Ordered response headers with case-insensitive replace semantics.

    ``set`` replaces every existing value of a header; ``append`` adds
    another line (used for ``Set-Cookie`` and ``Vary``).
    """

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[tuple[str, str]] = []

    def set(self, name: str, value: str) -> None:
        self.remove(name)
        self._items.append((name, value))

    def append(self, name: str, value: str) -> None:
        self._items.append((name, value))

    def remove(self, name: str) -> None:
        wanted = name.lower()
        self._items = [(n, v) for n, v in self._items if n.lower() != wanted]

    def get(self, name: str, default: str | None = None) -> str | None:
        wanted = name.lower()
        for n, v in self._items:
            if n.lower() == wanted:
                return v
        return default

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"MutableHeaders({self._items!r})"

    def update(self, headers: Mapping[str, str]) -> None:
        for name, value in headers.items():
            self.set(name, value)
