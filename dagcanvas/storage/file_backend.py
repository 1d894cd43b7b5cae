"""
File-based Storage Backend for the DAG canvas.

Implements the KeyValueStore protocol with one file per key inside a data
directory. This is the default storage mechanism.
"""

import logging
import re
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class FileStore:
    """
    Local file-based key-value store.

    Structure:
    - {base_dir}/{key}.json: raw value for each key
    """

    def __init__(self, base_dir: Union[str, Path]):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def backend_type(self) -> str:
        return "file"

    def _path_for(self, key: str) -> Path:
        safe_key = _UNSAFE_CHARS.sub("_", key)
        return self.base_dir / f"{safe_key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read()

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        # Replace atomically via a temp file
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(value)
        tmp_path.replace(path)

    def delete(self, key: str) -> bool:
        path = self._path_for(key)
        if path.exists():
            path.unlink()
            return True
        return False
