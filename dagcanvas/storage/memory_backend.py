"""
In-memory Storage Backend for the DAG canvas.

Nothing survives the process. Used for tests and for sessions where the
configured data directory is unusable.
"""

from typing import Dict, Optional


class MemoryStore:
    """Dict-backed key-value store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    @property
    def backend_type(self) -> str:
        return "memory"

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None
