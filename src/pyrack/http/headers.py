"""
=============================================================================
HEADER MAPPINGS
=============================================================================

HTTP header names are case-insensitive (RFC 7230): "Content-Type",
"content-type" and "CONTENT-TYPE" name the same field.

Two mappings live here:

    Headers         read-only, used by RequestContext. Once the adapter
                    builds a context its headers can no longer change.

    MutableHeaders  used by Response. Middleware adds and replaces
                    headers on the way back out.

Both index entries by the lowercased name but remember the casing the
name was first set with, so the serializer writes "Content-Type" rather
than "content-type".

    headers = MutableHeaders({"Content-Type": "text/plain"})
    headers["content-type"]          # "text/plain"
    list(headers)                    # ["Content-Type"]
    headers == {"CONTENT-TYPE": "text/plain"}   # True

=============================================================================
"""

from collections.abc import Mapping, MutableMapping
from typing import Dict, Iterable, Iterator, Optional, Tuple, Union


HeaderSource = Optional[Union[Mapping, Iterable[Tuple[str, str]]]]


class Headers(Mapping):
    """Read-only, case-insensitive header mapping."""

    __slots__ = ("_store",)

    def __init__(self, source: HeaderSource = None):
        # lowercased name → (original name, value)
        self._store: Dict[str, Tuple[str, str]] = {}
        if source is None:
            return
        items = source.items() if isinstance(source, Mapping) else source
        for name, value in items:
            self._store[self._key(name)] = (name, str(value))

    @staticmethod
    def _key(name: str) -> str:
        if not isinstance(name, str):
            raise TypeError(f"Header names must be strings, got {type(name).__name__}")
        return name.lower()

    def __getitem__(self, name: str) -> str:
        return self._store[self._key(name)][1]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._store

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        theirs = {str(name).lower(): value for name, value in other.items()}
        return theirs == {key: value for key, (_, value) in self._store.items()}

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({dict(self.items())!r})"

    def lower_items(self) -> Iterator[Tuple[str, str]]:
        """Iterate (lowercased name, value) pairs."""
        return ((key, value) for key, (_, value) in self._store.items())

    def mutable_copy(self) -> "MutableHeaders":
        """Return a MutableHeaders with the same entries."""
        return MutableHeaders(self.items())


class MutableHeaders(Headers, MutableMapping):
    """Case-insensitive header mapping that middleware may modify."""

    __slots__ = ()

    def __setitem__(self, name: str, value: str) -> None:
        key = self._key(name)
        # Keep the casing the header was first set with
        original = self._store[key][0] if key in self._store else name
        self._store[key] = (original, str(value))

    def __delitem__(self, name: str) -> None:
        del self._store[self._key(name)]

    def add(self, name: str, value: str) -> None:
        """
        Add a value, combining with any existing one.

        Per RFC 7230 repeated fields are equivalent to one field with
        comma-separated values: "Vary: Cookie" + "Vary: Accept-Encoding"
        becomes "Vary: Cookie, Accept-Encoding".
        """
        if name in self:
            self[name] = f"{self[name]}, {value}"
        else:
            self[name] = value
