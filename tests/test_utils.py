"""Tests for utility helpers and the exception hierarchy."""
import pytest

from notevault.exceptions import (
    ConstraintViolationError,
    ErrorCode,
    FileAccessError,
    MissingRowError,
    NoteVaultError,
    StorageError,
)
from notevault.utils import SQLITE_HEADER, get_file_extension, is_sqlite_file, nocase_key


class TestUtils:
    """Path and file helpers."""

    @pytest.mark.parametrize(
        "path,expected",
        [("notes/file.txt", "txt"), ("archive.tar.gz", "gz"), ("Makefile", ""), ("a.PDF", "PDF")],
    )
    def test_get_file_extension(self, path, expected):
        assert get_file_extension(path) == expected

    def test_is_sqlite_file(self, tmp_path):
        good = tmp_path / "good.db"
        good.write_bytes(SQLITE_HEADER + b"\x00" * 84)
        bad = tmp_path / "bad.db"
        bad.write_bytes(b"PK\x03\x04 zip archive")
        empty = tmp_path / "empty.db"
        empty.touch()

        assert is_sqlite_file(good)
        assert not is_sqlite_file(bad)
        assert is_sqlite_file(empty)

    def test_is_sqlite_file_missing(self, tmp_path):
        with pytest.raises(OSError):
            is_sqlite_file(tmp_path / "missing.db")

    def test_nocase_key_folds_ascii_only(self):
        assert nocase_key("PyThOn") == "python"
        assert nocase_key("ÉCOLE") == "École"


class TestExceptions:
    """Error codes and serialization."""

    def test_to_dict(self):
        error = StorageError(
            "insert resource failed", operation="insert resource",
            code=ErrorCode.INSERT_FAILED, original_error=ValueError("UNIQUE constraint failed"),
        )
        data = error.to_dict()
        assert data["error"] == "StorageError"
        assert data["code"] == ErrorCode.INSERT_FAILED.value
        assert data["code_name"] == "INSERT_FAILED"
        assert data["details"]["operation"] == "insert resource"
        assert "UNIQUE" in data["details"]["original_error"]

    def test_str_includes_code_and_details(self):
        error = FileAccessError("Cannot read", path="/tmp/x.pdf", operation="hash")
        assert str(error) == "[FILE_OPEN_FAILED] Cannot read (path=/tmp/x.pdf, operation=hash)"

    def test_hierarchy(self):
        assert issubclass(ConstraintViolationError, StorageError)
        assert issubclass(MissingRowError, StorageError)
        assert issubclass(FileAccessError, NoteVaultError)
        missing = MissingRowError("gone", resource_id=4, operation="update text")
        assert missing.code == ErrorCode.ROW_NOT_FOUND
        assert missing.details["resource_id"] == 4
