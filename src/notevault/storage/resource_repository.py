"""Repository for resource rows and title search."""
import datetime
import logging
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select, text, update

from notevault.exceptions import ErrorCode
from notevault.models.db_models import DBResource
from notevault.models.schema import Resource, ResourceType
from notevault.storage.database import Database
from notevault.storage.fts_query import search_with_fallback

logger = logging.getLogger(__name__)


class ResourceRepository:
    """CRUD over the ``resources`` table plus FTS5 title search.

    Deleting a row cascades to its body, file entry and tag links through
    the store's foreign keys.
    """

    def __init__(self, db: Database):
        """Initialize the resource repository.

        Args:
            db: Open storage handle.
        """
        self.db = db

    def insert(self, resource: Resource) -> int:
        """Insert a resource and return its new id.

        Raises:
            ConstraintViolationError: If the (title, type) pair already exists.
        """
        with self.db.transaction("insert resource", code=ErrorCode.INSERT_FAILED) as session:
            db_resource = DBResource(
                title=resource.title,
                type=resource.type.value,
                file_hash=resource.file_hash or None,
            )
            session.add(db_resource)
            session.flush()
            resource_id = db_resource.id

        logger.debug(f"Inserted resource {resource_id} ({resource.type.value}: {resource.title})")
        return resource_id

    def get_by_id(self, resource_id: int) -> Optional[Resource]:
        with self.db.session("get resource") as session:
            db_resource = session.get(DBResource, resource_id)
            return db_resource.to_model() if db_resource else None

    def update(self, resource: Resource) -> bool:
        """Update title and type, refreshing ``updated_at``.

        An unknown id changes nothing and returns False; deciding whether
        that matters is left to the caller.
        """
        if resource.id is None:
            return False

        with self.db.transaction("update resource", code=ErrorCode.UPDATE_FAILED) as session:
            result = session.execute(
                update(DBResource)
                .where(DBResource.id == resource.id)
                .values(
                    title=resource.title,
                    type=resource.type.value,
                    updated_at=func.current_timestamp(),
                )
            )
            return result.rowcount > 0

    def remove(self, resource_id: int) -> bool:
        """Delete a resource; dependent rows go with it."""
        with self.db.transaction("remove resource", code=ErrorCode.DELETE_FAILED) as session:
            result = session.execute(
                delete(DBResource).where(DBResource.id == resource_id)
            )
            removed = result.rowcount > 0

        if removed:
            logger.debug(f"Removed resource {resource_id}")
        return removed

    def get_all(self) -> List[Resource]:
        with self.db.session("list resources") as session:
            rows = session.scalars(select(DBResource).order_by(DBResource.id)).all()
            return [row.to_model() for row in rows]

    def search_by_title(self, keyword: Optional[str]) -> List[Resource]:
        """Full-text search over titles, best matches first.

        Blank keywords return an empty list without touching the index.
        """
        stmt = text("""
            SELECT resources.*
            FROM resources_fts
            JOIN resources ON resources.id = resources_fts.rowid
            WHERE resources_fts MATCH :query
            ORDER BY bm25(resources_fts), resources.id
        """)

        def run(query: str) -> List[Resource]:
            with self.db.session("search titles") as session:
                rows = session.scalars(
                    select(DBResource).from_statement(stmt.bindparams(query=query))
                ).all()
                return [row.to_model() for row in rows]

        return search_with_fallback(keyword, run)

    def get_by_file_hash(self, file_hash: Optional[str]) -> Optional[Resource]:
        """Find the resource holding this content digest.

        Null or empty digests never match, even against rows without one.
        """
        if not file_hash:
            return None

        with self.db.session("get resource by hash") as session:
            db_resource = session.scalar(
                select(DBResource)
                .where(DBResource.file_hash == file_hash)
                .order_by(DBResource.id)
                .limit(1)
            )
            return db_resource.to_model() if db_resource else None

    def update_file_hash(self, resource_id: int, file_hash: Optional[str]) -> bool:
        with self.db.transaction("update file hash", code=ErrorCode.UPDATE_FAILED) as session:
            result = session.execute(
                update(DBResource)
                .where(DBResource.id == resource_id)
                .values(file_hash=file_hash or None)
            )
            return result.rowcount > 0

    def exists_title(self, title: str, resource_type: ResourceType) -> bool:
        """Check whether a (title, type) pair is already taken."""
        with self.db.session("check title") as session:
            found = session.scalar(
                select(DBResource.id)
                .where(DBResource.title == title)
                .where(DBResource.type == ResourceType.from_string(resource_type).value)
                .limit(1)
            )
            return found is not None

    def get_timestamps(
        self, resource_id: int
    ) -> Optional[Tuple[datetime.datetime, datetime.datetime]]:
        """Return ``(created_at, updated_at)`` or None for an unknown id."""
        with self.db.session("get timestamps") as session:
            row = session.execute(
                select(DBResource.created_at, DBResource.updated_at)
                .where(DBResource.id == resource_id)
            ).first()
            return (row[0], row[1]) if row else None
