"""
NoteVault - a personal note and reference-file manager.

Stores plain-text notes and references to files (PDF, EPUB, C++ source) in a
SQLite database, with content-addressed file ingestion, tagging and full-text
search over titles and note bodies.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("notevault")
except PackageNotFoundError:
    __version__ = "0.3.0"
