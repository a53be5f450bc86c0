"""Data models for NoteVault.

These are the plain value types that cross the facade boundary. No SQLAlchemy
type ever leaves the storage layer.
"""

import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from notevault.exceptions import ErrorCode, ValidationError
from notevault.utils import get_file_extension


class ResourceType(str, Enum):
    """Kinds of resources a vault can hold."""

    TEXT = "text"  # Plain-text note stored in the database
    CPP = "cpp"  # C++ source or header file
    PDF = "pdf"
    EPUB = "epub"

    @classmethod
    def from_string(cls, value: str) -> "ResourceType":
        """Parse a persisted type string.

        Raises:
            ValidationError: If the string names no known type.
        """
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(
                f"Unknown resource type: {value}",
                field="type",
                value=value,
                code=ErrorCode.INVALID_RESOURCE_TYPE,
            ) from None

    @classmethod
    def from_extension(cls, extension: str) -> Optional["ResourceType"]:
        """Map a file extension (with or without the dot) to a type."""
        return _EXTENSION_TYPES.get(extension.lstrip(".").lower())

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> Optional["ResourceType"]:
        """Infer a type from a file's extension."""
        return cls.from_extension(get_file_extension(path))

    @property
    def is_file_backed(self) -> bool:
        """Whether resources of this type live in a file rather than the database."""
        return self is not ResourceType.TEXT


_EXTENSION_TYPES: Dict[str, ResourceType] = {
    "txt": ResourceType.TEXT,
    "cpp": ResourceType.CPP,
    "h": ResourceType.CPP,
    "pdf": ResourceType.PDF,
    "epub": ResourceType.EPUB,
}


class Resource(BaseModel):
    """A titled, typed note or file reference."""

    id: Optional[int] = Field(default=None, description="Engine-assigned row id")
    title: str = Field(..., description="Title, unique within its type")
    type: ResourceType = Field(..., description="Kind of resource")
    file_hash: Optional[str] = Field(
        default=None, description="Content digest, only for file-backed resources"
    )
    created_at: Optional[datetime.datetime] = Field(
        default=None, description="Set by the engine on insert"
    )
    updated_at: Optional[datetime.datetime] = Field(
        default=None, description="Refreshed by the engine on title/type update"
    )

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate that the title is not empty."""
        if not v.strip():
            raise ValueError("Title cannot be empty")
        return v


class FileEntry(BaseModel):
    """Location metadata for a file-backed resource."""

    resource_id: int
    stored_path: Optional[str] = Field(
        default=None, description="Path of the managed copy, or the linked path"
    )
    original_path: str = Field(..., description="Path as given by the user")
    is_managed: bool = False

    model_config = {"frozen": True}

    @property
    def resolved_path(self) -> str:
        """The path to use when opening the file: stored path first."""
        return self.stored_path if self.stored_path else self.original_path


class Tag(BaseModel):
    """A tag for categorizing resources."""

    id: Optional[int] = None
    name: str = Field(..., description="Tag name (case-insensitive unique)")

    model_config = {"frozen": True}

    def __str__(self) -> str:
        """Return string representation of tag."""
        return self.name


class ContentMatch(BaseModel):
    """A text-search hit on a note body."""

    resource_id: int
    content: str = Field(..., description="Excerpt produced by the search engine")

    model_config = {"frozen": True}


class FullResource(BaseModel):
    """Read-time aggregation of a resource with its body, file and tags."""

    resource: Resource
    content: Optional[str] = None
    filepath: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @property
    def id(self) -> Optional[int]:
        return self.resource.id

    @property
    def title(self) -> str:
        return self.resource.title

    @property
    def type(self) -> ResourceType:
        return self.resource.type
