"""Configuration module for NoteVault."""

import hashlib
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config, shared by every checkout
_USER_ENV = Path.home() / ".notevault" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in _TRUE_VALUES


class NoteVaultConfig(BaseModel):
    """Configuration for the NoteVault core."""

    # Base directory that relative paths are resolved against
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTEVAULT_BASE_DIR", "."))
    )
    # Database configuration
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("NOTEVAULT_DATABASE_PATH", "data/notevault.db")
        )
    )
    # Managed file storage: copies are named <hash><extension>
    storage_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("NOTEVAULT_STORAGE_DIR", "resources"))
    )
    # Default for new file resources: copy into storage_dir (True) or link in place
    manage_files: bool = Field(
        default_factory=lambda: _env_flag("NOTEVAULT_MANAGE_FILES", "true")
    )
    # Content addressing
    hash_algorithm: str = Field(
        default_factory=lambda: os.getenv("NOTEVAULT_HASH_ALGORITHM", "sha256")
    )
    hash_chunk_size: int = Field(
        default_factory=lambda: int(os.getenv("NOTEVAULT_HASH_CHUNK_SIZE", "8192"))
    )
    # Logging
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("NOTEVAULT_LOG_DIR"))
            if os.getenv("NOTEVAULT_LOG_DIR")
            else None
        )
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("NOTEVAULT_LOG_LEVEL", "INFO").upper()
    )

    @model_validator(mode="after")
    def _validate_hashing(self) -> "NoteVaultConfig":
        """Reject digests hashlib cannot build and non-positive chunk sizes."""
        if self.hash_algorithm.lower() not in hashlib.algorithms_available:
            raise ValueError(
                f"hash_algorithm '{self.hash_algorithm}' is not supported by hashlib"
            )
        if self.hash_chunk_size < 1:
            raise ValueError("hash_chunk_size must be >= 1")
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        path = Path(path)
        if path.is_absolute():
            return path
        return (self.base_dir / path).resolve()

    def get_database_path(self) -> Path:
        """Get the absolute database path, creating its parent directory."""
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return db_path

    def get_storage_dir(self) -> Path:
        """Get the absolute managed storage directory, creating it if needed."""
        storage_dir = self.get_absolute_path(self.storage_dir)
        storage_dir.mkdir(parents=True, exist_ok=True)
        return storage_dir


# Create a global config instance
config = NoteVaultConfig()
