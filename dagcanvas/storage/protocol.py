"""
KeyValueStore Protocol Definition.

This module defines the interface the canvas persists its document through.
Both FileStore (local files) and MemoryStore (in-process) conform to it.
"""

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """
    Synchronous, string-valued key-value store scoped to one client.

    Implementations may raise on I/O failure; callers that treat persistence
    as best-effort are expected to catch.
    """

    @property
    def backend_type(self) -> str:
        """Return the backend type identifier ('file' or 'memory')."""
        ...

    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under key.

        Returns:
            The stored string, or None if nothing is stored
        """
        ...

    def set(self, key: str, value: str) -> None:
        """
        Store value under key, replacing any previous value.
        """
        ...

    def delete(self, key: str) -> bool:
        """
        Remove key from the store.

        Returns:
            True if something was removed, False otherwise
        """
        ...
