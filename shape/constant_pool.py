"""Interning table for literal field elements.

Constants are keyed by their canonical 32-byte little-endian representation.
Indices are handed out in first-seen order, so running the same traversal
over the same circuit always yields the same pool.
"""

from __future__ import annotations

from primitives.field import FF, from_repr, to_repr
from shape.errors import SchemaInconsistency


class ConstantPool:
    """Insertion-ordered, de-duplicated table of field constants."""

    def __init__(self) -> None:
        self._entries: list[bytes] = []
        self._index: dict[bytes, int] = {}
        self._frozen = False

    def intern(self, value) -> int:
        """Return the pool index of value, appending it on first sight.

        Raises:
            SchemaInconsistency: If the pool is frozen and value is new
        """
        key = to_repr(value)
        index = self._index.get(key)
        if index is not None:
            return index
        if self._frozen:
            raise SchemaInconsistency(f"Constant 0x{key[::-1].hex()} missing from frozen pool")
        index = len(self._entries)
        self._entries.append(key)
        self._index[key] = index
        return index

    def index_of(self, value) -> int:
        """Pool index of an already-interned value.

        Raises:
            SchemaInconsistency: If value was never interned
        """
        key = to_repr(value)
        index = self._index.get(key)
        if index is None:
            raise SchemaInconsistency(f"Constant 0x{key[::-1].hex()} not in pool")
        return index

    def freeze(self) -> None:
        """Reject new entries from now on."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def entries(self) -> tuple[bytes, ...]:
        """Canonical byte representations in index order."""
        return tuple(self._entries)

    def values(self) -> list[FF]:
        return [from_repr(e) for e in self._entries]

    def __getitem__(self, index: int) -> bytes:
        return self._entries[index]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, value) -> bool:
        return to_repr(value) in self._index
