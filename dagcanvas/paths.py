"""
Path utilities for the DAG canvas.

Handles path resolution for both development mode and frozen (PyInstaller) executables.
- In development: paths are relative to the project root
- When frozen: paths are relative to the executable location
- DAGCANVAS_HOME overrides both (useful for tests and portable installs)

External data (db/, config.json) lives NEXT TO the executable, not bundled inside.
"""

import os
import sys
from pathlib import Path


def get_app_dir() -> Path:
    """
    Get the application directory.

    This is where the canvas document store (db/) and config.json are located.
    """
    override = os.environ.get("DAGCANVAS_HOME")
    if override:
        return Path(override)
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    # Development mode - use the project root (parent of dagcanvas/)
    return Path(__file__).parent.parent


def get_db_dir() -> Path:
    """Get the directory holding the persisted canvas document."""
    return get_app_dir() / "db"


def get_config_path() -> Path:
    """Get the path to the config file (stores API key, agent settings, etc.)."""
    return get_app_dir() / "config.json"


def ensure_db_dir() -> Path:
    """
    Ensure the db directory exists, creating it if necessary.
    Returns the path to the db directory.
    """
    db_dir = get_db_dir()
    db_dir.mkdir(parents=True, exist_ok=True)
    return db_dir
