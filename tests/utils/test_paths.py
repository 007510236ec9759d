"""Tests for data file path resolution."""

from pathlib import Path
from unittest.mock import patch

from src.utils.paths import APP_NAME, get_data_dir, get_default_db_path


def test_env_var_overrides_data_dir(tmp_path):
    """TEXT2SQL_DATA_DIR is set by the autouse isolation fixture."""
    assert get_data_dir() == tmp_path / "data"


def test_platform_dir_used_without_override(monkeypatch):
    monkeypatch.delenv("TEXT2SQL_DATA_DIR")

    with patch("src.utils.paths.platformdirs.user_data_dir", return_value="/opt/data") as mock:
        result = get_data_dir()

    assert result == Path("/opt/data")
    mock.assert_called_once_with(APP_NAME, appauthor=False)


def test_blank_override_ignored(monkeypatch):
    monkeypatch.setenv("TEXT2SQL_DATA_DIR", "   ")

    with patch("src.utils.paths.platformdirs.user_data_dir", return_value="/opt/data"):
        assert get_data_dir() == Path("/opt/data")


def test_get_default_db_path(tmp_path):
    """Default DB path combines data dir + conversations.db."""
    assert get_default_db_path() == tmp_path / "data" / "conversations.db"
