"""Service layer for resource-level use cases."""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Union

from notevault.exceptions import ErrorCode, FileAccessError, ValidationError
from notevault.models.schema import FullResource, Resource, ResourceType, Tag
from notevault.services.file_service import FileService
from notevault.storage.file_repository import FileRepository
from notevault.storage.resource_repository import ResourceRepository
from notevault.storage.tag_repository import TagRepository
from notevault.storage.text_content_repository import TextContentRepository

logger = logging.getLogger(__name__)


class ResourceService:
    """Orchestrates the repositories and the file service.

    Every collaborator is injected; the same repository instances may be
    shared with other services.
    """

    def __init__(
        self,
        resource_repository: ResourceRepository,
        text_repository: TextContentRepository,
        file_repository: FileRepository,
        tag_repository: TagRepository,
        file_service: FileService,
    ):
        self.resource_repository = resource_repository
        self.text_repository = text_repository
        self.file_repository = file_repository
        self.tag_repository = tag_repository
        self.file_service = file_service

    # ------------------------------------------------------------------
    # Adding
    # ------------------------------------------------------------------

    def add_text_resource(
        self,
        title: str,
        content: str,
        resource_type: Union[ResourceType, str] = ResourceType.TEXT,
    ) -> int:
        """Add a text note: the Resource row first, then its body.

        If the body cannot be stored the Resource row is removed again.

        Raises:
            ValidationError: If the type is not ``text`` or the title is blank.
            ConstraintViolationError: If the title is already used by a text note.
        """
        resource_type = ResourceType.from_string(resource_type)
        if resource_type is not ResourceType.TEXT:
            raise ValidationError(
                "Text resources must have type 'text'",
                field="type",
                value=resource_type.value,
                code=ErrorCode.INVALID_RESOURCE_TYPE,
            )
        if not title or not title.strip():
            raise ValidationError("Title cannot be empty", field="title", value=title)

        resource_id = self.resource_repository.insert(
            Resource(title=title, type=resource_type)
        )
        try:
            self.text_repository.insert_text(resource_id, content)
        except Exception:
            self.resource_repository.remove(resource_id)
            raise

        logger.info(f"Added text resource {resource_id}: {title}")
        return resource_id

    def add_file_resource(
        self,
        filepath: Union[str, Path],
        title: str,
        resource_type: Union[ResourceType, str],
        is_managed: bool,
    ) -> int:
        """Add a file-backed resource; see ``FileService.add_file_resource``."""
        if not title or not title.strip():
            raise ValidationError("Title cannot be empty", field="title", value=title)
        return self.file_service.add_file_resource(
            filepath, title, ResourceType.from_string(resource_type), is_managed
        )

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def get_full_resource(self, resource_id: int) -> Optional[FullResource]:
        """Resolve a resource with its body or file path and its tags.

        Returns None when the resource is unknown, or when a file-backed
        resource has no file entry.
        """
        resource = self.resource_repository.get_by_id(resource_id)
        if resource is None:
            return None
        return self._resolve(resource)

    def _resolve(self, resource: Resource) -> Optional[FullResource]:
        tags = [tag.name for tag in self.tag_repository.get_tags_by_resource_id(resource.id)]

        if not resource.type.is_file_backed:
            content = self.text_repository.get_text_by_id(resource.id)
            return FullResource(resource=resource, content=content, tags=tags)

        entry = self.file_repository.get_file_by_id(resource.id)
        if entry is None:
            logger.warning(f"Resource {resource.id} has no file entry")
            return None
        return FullResource(resource=resource, filepath=entry.resolved_path, tags=tags)

    def _resolve_all(self, resources: Iterable[Resource]) -> List[FullResource]:
        resolved = (self._resolve(resource) for resource in resources)
        return [full for full in resolved if full is not None]

    # ------------------------------------------------------------------
    # Deleting
    # ------------------------------------------------------------------

    def delete_resource(self, resource_id: int) -> bool:
        """Delete a resource, its managed copy and every dependent row.

        A managed copy that is already gone is logged and ignored. Any other
        failure to remove it raises and leaves the Resource row in place.

        Returns:
            True if a Resource row was removed.

        Raises:
            FileAccessError: If the managed copy exists but cannot be removed.
        """
        entry = self.file_repository.get_file_by_id(resource_id)
        if entry is not None and entry.is_managed and entry.stored_path:
            try:
                os.remove(entry.stored_path)
                logger.debug(f"Removed managed copy {entry.stored_path}")
            except FileNotFoundError:
                logger.warning(
                    f"Managed copy {entry.stored_path} of resource {resource_id} "
                    f"was already missing"
                )
            except OSError as e:
                raise FileAccessError(
                    f"Cannot remove managed copy: {e.strerror or e}",
                    path=entry.stored_path,
                    operation="delete",
                    code=ErrorCode.FILE_DELETE_FAILED,
                    original_error=e,
                    details={"resource_id": resource_id},
                ) from e

        removed = self.resource_repository.remove(resource_id)
        if removed:
            logger.info(f"Deleted resource {resource_id}")
        return removed

    # ------------------------------------------------------------------
    # Searching
    # ------------------------------------------------------------------

    def search_by_title(self, keyword: Optional[str]) -> List[Resource]:
        return self.resource_repository.search_by_title(keyword)

    def search_by_title_full(self, keyword: Optional[str]) -> List[FullResource]:
        """Title search with each hit resolved; unresolvable hits are dropped."""
        return self._resolve_all(self.resource_repository.search_by_title(keyword))

    def search_by_content(self, keyword: Optional[str]) -> List[Resource]:
        resources = []
        for match in self.text_repository.search_by_content_fts(keyword):
            resource = self.resource_repository.get_by_id(match.resource_id)
            if resource is not None:
                resources.append(resource)
        return resources

    def search_by_content_full(self, keyword: Optional[str]) -> List[FullResource]:
        """Body search; each result's ``content`` is the matched excerpt."""
        results = []
        for match in self.text_repository.search_by_content_fts(keyword):
            full = self.get_full_resource(match.resource_id)
            if full is None:
                continue
            results.append(full.model_copy(update={"content": match.content}))
        return results

    def get_resources_by_tag(self, name: str) -> List[Resource]:
        return self.tag_repository.get_resources_via_one_tag(name)

    def get_resources_by_tags(self, names: Iterable[str]) -> List[Resource]:
        """Resources carrying all of the given tags."""
        return self.tag_repository.get_resources_via_tags(names)

    def get_full_resources_by_tag(self, name: str) -> List[FullResource]:
        return self._resolve_all(self.tag_repository.get_resources_via_one_tag(name))

    def get_full_resources_by_tags_all(self, names: Iterable[str]) -> List[FullResource]:
        return self._resolve_all(self.tag_repository.get_resources_via_tags(names))

    # ------------------------------------------------------------------
    # Tagging
    # ------------------------------------------------------------------

    def add_tag_to_resource(self, resource_id: int, name: str) -> int:
        """Resolve or create a tag and link it.

        Raises:
            ConstraintViolationError: If the resource already has the tag or
                does not exist.
        """
        tag_id = self.tag_repository.add_tag(name)
        self.tag_repository.link_resource_id_with_tag(resource_id, tag_id)
        return tag_id

    def add_tags_to_resource(self, resource_id: int, names: Iterable[str]) -> List[int]:
        return self.tag_repository.link_resource_with_tags(resource_id, names)

    def remove_tag_from_resource(self, resource_id: int, name: str) -> bool:
        """Unlink a tag by name. Unknown tags are ignored."""
        tag_id = self.tag_repository.get_tag_id_by_name(name)
        if tag_id is None:
            return False
        return self.tag_repository.delete_tag_from_resource(resource_id, tag_id)

    def get_all_tags(self) -> List[Tag]:
        return self.tag_repository.get_all_tags()

    def is_exist_title(self, title: str, resource_type: Union[ResourceType, str]) -> bool:
        return self.resource_repository.exists_title(title, resource_type)

    def is_file_indexed(self, filepath: Union[str, Path]) -> bool:
        return self.file_service.find_resource_by_file(filepath) is not None
