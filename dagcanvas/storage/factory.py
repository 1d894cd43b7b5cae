"""
Backend Factory for the DAG canvas.

Creates the appropriate key-value store based on configuration
(the 'storage_backend' key of config.json).
"""

import logging
from pathlib import Path
from typing import Optional, Union

from dagcanvas.paths import get_db_dir
from dagcanvas.storage.file_backend import FileStore
from dagcanvas.storage.memory_backend import MemoryStore
from dagcanvas.storage.protocol import KeyValueStore

logger = logging.getLogger(__name__)

# Default backend type
DEFAULT_BACKEND = "file"


def get_backend_type(config: Optional[dict] = None) -> str:
    """
    Get the configured storage backend type.

    Returns:
        'file' or 'memory'
    """
    return (config or {}).get("storage_backend", DEFAULT_BACKEND)


def create_store(
    config: Optional[dict] = None,
    data_dir: Optional[Union[str, Path]] = None,
    force_backend: Optional[str] = None,
) -> KeyValueStore:
    """
    Create a key-value store instance.

    Args:
        config: Loaded config.json contents
        data_dir: Directory for the file backend (defaults to db/)
        force_backend: Override the configured backend type

    Returns:
        KeyValueStore instance (FileStore or MemoryStore)
    """
    backend_type = force_backend or get_backend_type(config)

    if backend_type == "memory":
        return MemoryStore()

    if backend_type != "file":
        logger.warning(f"Unknown storage backend '{backend_type}', using file storage")

    target = Path(data_dir) if data_dir else get_db_dir()
    try:
        return FileStore(target)
    except OSError as e:
        logger.warning(f"Cannot use data directory {target}: {e}. Falling back to memory storage")
        return MemoryStore()
