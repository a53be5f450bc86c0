"""The NoteVault facade: the single entry point for front ends.

Only plain values cross this boundary: ids, strings, enums and the
pydantic value types from ``notevault.models.schema``.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from notevault.config import NoteVaultConfig, config as default_config
from notevault.exceptions import ErrorCode, ValidationError
from notevault.models.schema import FullResource, Resource, ResourceType
from notevault.observability import traced
from notevault.services.file_service import FileService
from notevault.services.resource_service import ResourceService
from notevault.storage import (
    Database,
    FileRepository,
    ResourceRepository,
    TagRepository,
    TextContentRepository,
)

logger = logging.getLogger(__name__)


class NoteVault:
    """Facade over the resource and file services.

    Construct it with already wired services, or use ``NoteVault.open`` to
    build everything from a configuration.
    """

    def __init__(
        self,
        resource_service: ResourceService,
        file_service: FileService,
        db: Optional[Database] = None,
        manage_files: bool = True,
    ):
        self.resource_service = resource_service
        self.file_service = file_service
        self.db = db
        self.manage_files = manage_files

    @classmethod
    def open(
        cls,
        cfg: Optional[NoteVaultConfig] = None,
        create: bool = True,
        db: Optional[Database] = None,
    ) -> "NoteVault":
        """Open the store named by ``cfg`` and wire every component.

        Args:
            cfg: Configuration; the module-level config when omitted.
            create: Create the database file if missing.
            db: Use this handle instead of opening ``cfg.database_path``.
        """
        cfg = cfg or default_config
        if db is None:
            db_path = cfg.get_database_path()
            db = Database.create(db_path) if create else Database.open(db_path)

        resources = ResourceRepository(db)
        texts = TextContentRepository(db)
        files = FileRepository(db)
        tags = TagRepository(db)

        file_service = FileService(
            resources,
            files,
            storage_dir=cfg.get_absolute_path(cfg.storage_dir),
            hash_algorithm=cfg.hash_algorithm,
            chunk_size=cfg.hash_chunk_size,
        )
        resource_service = ResourceService(resources, texts, files, tags, file_service)
        logger.info(f"NoteVault ready on {db.path}")
        return cls(resource_service, file_service, db=db, manage_files=cfg.manage_files)

    def close(self) -> None:
        if self.db is not None:
            self.db.close()

    def __enter__(self) -> "NoteVault":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Adding and removing
    # ------------------------------------------------------------------

    @traced("add_text_note")
    def add_text_note(self, title: str, content: str) -> int:
        return self.resource_service.add_text_resource(title, content, ResourceType.TEXT)

    @traced("add_file_note")
    def add_file_note(
        self,
        filepath: Union[str, Path],
        title: str,
        resource_type: Optional[Union[ResourceType, str]] = None,
        is_managed: Optional[bool] = None,
    ) -> int:
        """Add a file, inferring its type from the extension when not given.

        ``is_managed`` defaults to the configured ``manage_files``.
        """
        if resource_type is None:
            resource_type = ResourceType.from_file(filepath)
            if resource_type is None or not resource_type.is_file_backed:
                raise ValidationError(
                    f"Cannot infer a file resource type for {filepath}",
                    field="type",
                    value=str(filepath),
                    code=ErrorCode.INVALID_RESOURCE_TYPE,
                )
        if is_managed is None:
            is_managed = self.manage_files
        return self.resource_service.add_file_resource(
            filepath, title, resource_type, is_managed
        )

    @traced("get_full_resource")
    def get_full_resource(self, resource_id: int) -> Optional[FullResource]:
        return self.resource_service.get_full_resource(resource_id)

    @traced("delete_resource")
    def delete_resource(self, resource_id: int) -> bool:
        return self.resource_service.delete_resource(resource_id)

    # ------------------------------------------------------------------
    # Searching
    # ------------------------------------------------------------------

    @traced("search_by_title")
    def search_by_title(self, keyword: str) -> List[Resource]:
        return self.resource_service.search_by_title(keyword)

    @traced("search_by_title_full")
    def search_by_title_full(self, keyword: str) -> List[FullResource]:
        return self.resource_service.search_by_title_full(keyword)

    @traced("search_by_content")
    def search_by_content(self, keyword: str) -> List[Resource]:
        return self.resource_service.search_by_content(keyword)

    @traced("search_by_content_full")
    def search_by_content_full(self, keyword: str) -> List[FullResource]:
        return self.resource_service.search_by_content_full(keyword)

    @traced("get_full_resources_by_tag")
    def get_full_resources_by_tag(self, name: str) -> List[FullResource]:
        return self.resource_service.get_full_resources_by_tag(name)

    @traced("get_resources_by_tags")
    def get_resources_by_tags(self, names: Iterable[str]) -> List[Resource]:
        return self.resource_service.get_resources_by_tags(names)

    @traced("get_full_resources_by_tags")
    def get_full_resources_by_tags(self, names: Iterable[str]) -> List[FullResource]:
        return self.resource_service.get_full_resources_by_tags_all(names)

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    @traced("add_tag")
    def add_tag(self, resource_id: int, name: str) -> int:
        return self.resource_service.add_tag_to_resource(resource_id, name)

    @traced("add_tags")
    def add_tags(self, resource_id: int, names: Iterable[str]) -> List[int]:
        return self.resource_service.add_tags_to_resource(resource_id, names)

    @traced("remove_tag")
    def remove_tag(self, resource_id: int, name: str) -> bool:
        return self.resource_service.remove_tag_from_resource(resource_id, name)

    @traced("get_all_tags")
    def get_all_tags(self) -> List[str]:
        return [tag.name for tag in self.resource_service.get_all_tags()]

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    @traced("is_exist_title")
    def is_exist_title(
        self, title: str, resource_type: Union[ResourceType, str] = ResourceType.TEXT
    ) -> bool:
        return self.resource_service.is_exist_title(title, resource_type)

    @traced("is_file_indexed")
    def is_file_indexed(self, filepath: Union[str, Path]) -> bool:
        return self.resource_service.is_file_indexed(filepath)

    @traced("check_health")
    def check_health(self) -> Dict[str, Any]:
        if self.db is None:
            return {"healthy": False, "issues": ["No database handle"]}
        return self.db.check_health()
