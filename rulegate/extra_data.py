"""
Opaque key -> value metadata attached to primitives and their entities.

Keys are 32-byte identifiers, usually derived from a readable name with
extra_data_key(). Values are arbitrary bytes and are never inspected.
"""

from __future__ import annotations

import hashlib
import logging

from rulegate.state import StateContainer

logger = logging.getLogger(__name__)

KEY_SIZE = 32


def extra_data_key(name: str) -> bytes:
    """
    Derive a fixed-size extra data key from a name.

    Example:
        >>> len(extra_data_key("app.avatar"))
        32
    """
    return hashlib.sha3_256(name.encode("utf-8")).digest()


class ExtraDataStore:
    """
    Generic opaque metadata with add / update / remove semantics.

    Example:
        >>> store = ExtraDataStore(StateContainer(), "feed:1")
        >>> key = extra_data_key("pinned")
        >>> store.set(key, b"post:3")
        False
        >>> store.set(key, b"post:4")
        True
        >>> store.get(key)
        b'post:4'
    """

    def __init__(self, state: StateContainer, name: str) -> None:
        self.name = name
        self._entries = state.namespace(f"extra_data.{name}")

    def set(self, key: bytes, value: bytes) -> bool:
        """
        Store a value.

        Returns:
            True if a value was already stored under the key (Updated),
            False if the key is new (Added).
        """
        key = _check_key(key)
        existed = key in self._entries
        self._entries[key] = bytes(value)
        return existed

    def get(self, key: bytes) -> bytes | None:
        """Return the value under a key, or None when absent."""
        return self._entries.get(_check_key(key))

    def remove(self, key: bytes) -> bool:
        """
        Delete a key.

        Returns:
            True if the key was present.
        """
        return self._entries.pop(_check_key(key), None) is not None

    def keys(self) -> tuple[bytes, ...]:
        return tuple(self._entries)

    def __contains__(self, key: bytes) -> bool:
        return bytes(key) in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def _check_key(key: bytes) -> bytes:
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
        raise ValueError(f"extra data keys must be {KEY_SIZE} bytes, got {key!r}")
    return bytes(key)
