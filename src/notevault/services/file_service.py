"""Content hashing and content-addressed file ingestion."""

import hashlib
import logging
import os
import shutil
from pathlib import Path
from typing import Optional, Union

from notevault.config import config
from notevault.exceptions import (
    ConfigurationError,
    ErrorCode,
    FileAccessError,
    MissingRowError,
    ValidationError,
)
from notevault.models.schema import Resource, ResourceType
from notevault.storage.file_repository import FileRepository
from notevault.storage.resource_repository import ResourceRepository

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class FileService:
    """Ingests files, using the content digest as their identity.

    Re-adding bytes that are already known returns the existing resource
    id. Managed files are copied into ``storage_dir`` under
    ``<digest><original suffix>``; linked files stay where they are.

    Changing ``hash_algorithm`` invalidates stored digests until
    ``refresh_all_hashes`` has been run.
    """

    def __init__(
        self,
        resource_repository: ResourceRepository,
        file_repository: FileRepository,
        storage_dir: Optional[PathLike] = None,
        hash_algorithm: Optional[str] = None,
        chunk_size: Optional[int] = None,
    ):
        self.resource_repository = resource_repository
        self.file_repository = file_repository
        self.storage_dir = Path(
            storage_dir if storage_dir is not None
            else config.get_absolute_path(config.storage_dir)
        )
        self.hash_algorithm = (hash_algorithm or config.hash_algorithm).lower()
        self.chunk_size = chunk_size or config.hash_chunk_size

        if self.hash_algorithm not in hashlib.algorithms_available:
            raise ConfigurationError(
                f"Unsupported hash algorithm: {self.hash_algorithm}",
                config_key="hash_algorithm",
                value=self.hash_algorithm,
            )

    def compute_file_hash(self, path: PathLike) -> str:
        """Stream a file through the digest and return lowercase hex.

        Raises:
            FileAccessError: If the file cannot be opened or read.
        """
        digest = hashlib.new(self.hash_algorithm)
        try:
            with open(path, "rb") as f:
                for chunk in iter(lambda: f.read(self.chunk_size), b""):
                    digest.update(chunk)
        except OSError as e:
            raise FileAccessError(
                f"Cannot read file for hashing: {e.strerror or e}",
                path=str(path),
                operation="hash",
                code=ErrorCode.FILE_OPEN_FAILED,
                original_error=e,
            ) from e
        return digest.hexdigest()

    def managed_path_for(self, file_hash: str, source: PathLike) -> Path:
        """Where the managed copy of a file with this digest lives."""
        return self.storage_dir / f"{file_hash}{Path(source).suffix}"

    def add_file_resource(
        self,
        filepath: PathLike,
        title: str,
        resource_type: ResourceType,
        is_managed: bool,
    ) -> int:
        """Add a file-backed resource, or return the one holding the same bytes.

        On a digest match nothing is inserted or copied, whatever the title.
        Otherwise the Resource row goes in first, then its file entry. If
        either insert fails, a managed copy made by this call and a Resource
        row inserted by this call are removed before the error propagates.

        Returns:
            The new or existing resource id.

        Raises:
            ValidationError: For the ``text`` type.
            FileAccessError: If the file cannot be hashed or copied.
            StorageError: If a row cannot be inserted.
        """
        resource_type = ResourceType.from_string(resource_type)
        if not resource_type.is_file_backed:
            raise ValidationError(
                "File resources need a file-backed type",
                field="type",
                value=resource_type.value,
                code=ErrorCode.INVALID_RESOURCE_TYPE,
            )

        original_path = os.path.abspath(os.fspath(filepath))
        file_hash = self.compute_file_hash(original_path)

        existing = self.resource_repository.get_by_file_hash(file_hash)
        if existing is not None:
            logger.info(
                f"File {original_path} matches resource {existing.id} by content, "
                f"not adding it again"
            )
            return existing.id

        copied: Optional[Path] = None
        if is_managed:
            stored_path, created = self._copy_into_storage(original_path, file_hash)
            copied = stored_path if created else None
            stored = str(stored_path)
        else:
            stored = original_path

        try:
            resource_id = self.resource_repository.insert(
                Resource(title=title, type=resource_type, file_hash=file_hash)
            )
        except Exception:
            self._discard_copy(copied)
            raise

        try:
            self.file_repository.insert_file(resource_id, stored, original_path, is_managed)
        except Exception:
            self.resource_repository.remove(resource_id)
            self._discard_copy(copied)
            raise

        logger.info(
            f"Added {resource_type.value} resource {resource_id} from {original_path} "
            f"({'managed' if is_managed else 'linked'})"
        )
        return resource_id

    def find_resource_by_file(self, filepath: PathLike) -> Optional[int]:
        """Find a resource for a file: by original path first, then by content.

        Raises:
            FileAccessError: If the path is unknown and the file cannot be hashed.
        """
        original_path = os.path.abspath(os.fspath(filepath))
        resource_id = self.file_repository.get_resource_id_by_original_path(original_path)
        if resource_id is not None:
            return resource_id

        resource = self.resource_repository.get_by_file_hash(
            self.compute_file_hash(original_path)
        )
        return resource.id if resource else None

    def refresh_file_hash(self, resource_id: int) -> str:
        """Re-hash the file at its stored path and record the digest.

        Raises:
            MissingRowError: ``FILE_ENTRY_MISSING`` if there is no file entry
                or it has no stored path.
            FileAccessError: If the stored file cannot be read.
        """
        entry = self.file_repository.get_file_by_id(resource_id)
        if entry is None:
            raise MissingRowError(
                f"No file entry for resource {resource_id}",
                resource_id=resource_id,
                operation="refresh hash",
                code=ErrorCode.FILE_ENTRY_MISSING,
            )
        if not entry.stored_path:
            raise MissingRowError(
                f"No stored path recorded for resource {resource_id}",
                resource_id=resource_id,
                operation="refresh hash",
                code=ErrorCode.FILE_ENTRY_MISSING,
            )

        file_hash = self.compute_file_hash(entry.stored_path)
        self.resource_repository.update_file_hash(resource_id, file_hash)
        return file_hash

    def refresh_all_hashes(self) -> int:
        """Re-hash every file entry; returns how many digests changed.

        Files that cannot be read are logged and skipped.
        """
        updated = 0
        for entry in self.file_repository.get_all_files():
            try:
                file_hash = self.compute_file_hash(entry.resolved_path)
            except FileAccessError as e:
                logger.warning(f"Skipping resource {entry.resource_id}: {e}")
                continue

            resource = self.resource_repository.get_by_id(entry.resource_id)
            if resource is not None and resource.file_hash != file_hash:
                self.resource_repository.update_file_hash(entry.resource_id, file_hash)
                updated += 1

        logger.info(f"Refreshed file hashes: {updated} updated")
        return updated

    def _copy_into_storage(self, source: str, file_hash: str):
        """Copy a file into managed storage unless the target already exists.

        Returns:
            ``(path, created)`` where ``created`` is False when the copy was
            already present.
        """
        target = self.managed_path_for(file_hash, source)
        if target.exists():
            logger.debug(f"Managed copy already present: {target}")
            return target, False

        try:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
        except OSError as e:
            raise FileAccessError(
                f"Cannot copy file into storage: {e.strerror or e}",
                path=source,
                operation="copy",
                code=ErrorCode.FILE_COPY_FAILED,
                original_error=e,
                details={"target": str(target)},
            ) from e
        return target, True

    def _discard_copy(self, copied: Optional[Path]) -> None:
        if copied is None:
            return
        try:
            copied.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to remove managed copy {copied} after error: {e}")
