"""Storage layer for NoteVault."""

from notevault.storage.database import Database
from notevault.storage.file_repository import FileRepository
from notevault.storage.resource_repository import ResourceRepository
from notevault.storage.tag_repository import TagRepository
from notevault.storage.text_content_repository import TextContentRepository

__all__ = [
    "Database",
    "ResourceRepository",
    "TextContentRepository",
    "FileRepository",
    "TagRepository",
]
