"""
Storage layer for the DAG canvas.

Supports multiple key-value backends:
- FileStore: Local file storage (default)
- MemoryStore: In-process storage for tests and fallback

The canvas document itself is (de)serialized by storage.document.
"""

from dagcanvas.storage.protocol import KeyValueStore
from dagcanvas.storage.file_backend import FileStore
from dagcanvas.storage.memory_backend import MemoryStore
from dagcanvas.storage.factory import create_store, get_backend_type
from dagcanvas.storage.document import (
    DOCUMENT_VERSION,
    STORAGE_KEY,
    Document,
    ImportValidationError,
    export_document,
    import_document,
    load_document,
    parse_document,
    save_document,
    seed_document,
)

__all__ = [
    'KeyValueStore',
    'FileStore',
    'MemoryStore',
    'create_store',
    'get_backend_type',
    'DOCUMENT_VERSION',
    'STORAGE_KEY',
    'Document',
    'ImportValidationError',
    'export_document',
    'import_document',
    'load_document',
    'parse_document',
    'save_document',
    'seed_document',
]
