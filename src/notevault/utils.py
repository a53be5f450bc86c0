"""Utility functions for NoteVault."""
from pathlib import Path
from typing import Union

SQLITE_HEADER = b"SQLite format 3\x00"


def get_file_extension(path: Union[str, Path]) -> str:
    """Return a path's extension without the leading dot.

    Examples:
        "notes/file.txt" -> "txt"
        "archive.tar.gz" -> "gz"
        "Makefile" -> ""
    """
    return Path(path).suffix.lstrip(".")


def is_sqlite_file(path: Union[str, Path]) -> bool:
    """Check whether a file starts with the SQLite 3 header.

    Empty files count as valid: SQLite initializes them on first write.

    Raises:
        OSError: If the file cannot be opened or read.
    """
    with open(path, "rb") as f:
        header = f.read(len(SQLITE_HEADER))
    return not header or header == SQLITE_HEADER


def nocase_key(name: str) -> str:
    """Fold a string the way SQLite's NOCASE collation does (ASCII only)."""
    return "".join(chr(ord(c) + 32) if "A" <= c <= "Z" else c for c in name)
