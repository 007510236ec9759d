"""File path resolution using platformdirs.

The data directory holds the durable conversation database when no
explicit database URL is configured:
  macOS: ~/Library/Application Support/text2sql/
  Linux: ~/.local/share/text2sql/
  Windows: %LOCALAPPDATA%/text2sql/

TEXT2SQL_DATA_DIR overrides the platform location.
"""

import os
from pathlib import Path

import platformdirs

APP_NAME = "text2sql"


def get_data_dir() -> Path:
    """Return the directory for persistent data (conversation DB)."""
    override = os.environ.get("TEXT2SQL_DATA_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False))


def get_default_db_path() -> Path:
    """Return the default SQLite database file path."""
    return get_data_dir() / "conversations.db"
