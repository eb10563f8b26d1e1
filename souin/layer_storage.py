"""Tracks requests that must not be coalesced with concurrent ones."""

from __future__ import annotations

import threading


class CoalescingLayerStorage:
    """Set of request keys marked as uncoalesceable."""

    def __init__(self) -> None:
        self._keys: set[str] = set()
        self._lock = threading.Lock()
        self._closed = False

    def exists(self, key: str) -> bool:
        """Return True when the request for ``key`` may be coalesced (the key is not stored)."""
        with self._lock:
            return key not in self._keys

    def set(self, key: str) -> None:
        """Mark ``key`` as uncoalesceable."""
        with self._lock:
            if self._closed:
                raise RuntimeError("Impossible to set value into the coalescing layer storage")
            self._keys.add(key)

    def delete(self, key: str) -> None:
        """Forget ``key`` if it was stored."""
        with self._lock:
            self._keys.discard(key)

    def close(self) -> None:
        """Drop every stored key; further writes are refused."""
        with self._lock:
            self._keys.clear()
            self._closed = True

    def __enter__(self) -> "CoalescingLayerStorage":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()