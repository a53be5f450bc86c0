"""Repository for tag storage and resource-tag links."""
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, distinct, func, insert, select, text

from notevault.exceptions import ErrorCode, ValidationError
from notevault.models.db_models import DBResource, DBTag, resource_tags
from notevault.models.schema import Resource, Tag
from notevault.storage.database import Database
from notevault.utils import nocase_key

logger = logging.getLogger(__name__)

_INSERT_TAG = text("INSERT OR IGNORE INTO tags (name) VALUES (:name)")


def normalize_tag_name(name: str) -> str:
    """Strip a tag name, rejecting blank ones."""
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Tag name cannot be empty", field="tag", value=name)
    return cleaned


def _unique_names(names: Iterable[str]) -> List[str]:
    """Normalize names, dropping case-insensitive duplicates (first wins)."""
    seen: Dict[str, str] = {}
    for name in names:
        cleaned = normalize_tag_name(name)
        seen.setdefault(nocase_key(cleaned), cleaned)
    return list(seen.values())


class TagRepository:
    """Tag vocabulary and many-to-many links to resources.

    Tag names are unique case-insensitively. Tags are never deleted when
    their last link goes away.
    """

    def __init__(self, db: Database):
        """Initialize the tag repository.

        Args:
            db: Open storage handle.
        """
        self.db = db

    def add_tag(self, name: str) -> int:
        """Create a tag if needed and return its id.

        Adding an existing name (in any letter case) returns the existing id.
        """
        name = normalize_tag_name(name)
        with self.db.transaction("add tag", code=ErrorCode.INSERT_FAILED) as session:
            session.execute(_INSERT_TAG, {"name": name})
            return session.scalar(select(DBTag.id).where(DBTag.name == name))

    def add_tags(self, names: Iterable[str]) -> List[int]:
        """Create several tags atomically.

        Returns:
            One id per input name, in input order. On any failure nothing
            is committed.
        """
        cleaned = [normalize_tag_name(name) for name in names]
        if not cleaned:
            return []

        ids: List[int] = []
        with self.db.transaction("add tags", code=ErrorCode.INSERT_FAILED) as session:
            for name in cleaned:
                session.execute(_INSERT_TAG, {"name": name})
                ids.append(session.scalar(select(DBTag.id).where(DBTag.name == name)))
        return ids

    def get_tag_id_by_name(self, name: str) -> Optional[int]:
        cleaned = (name or "").strip()
        if not cleaned:
            return None
        with self.db.session("get tag") as session:
            return session.scalar(select(DBTag.id).where(DBTag.name == cleaned))

    def link_resource_id_with_tag(self, resource_id: int, tag_id: int) -> None:
        """Link one tag to a resource.

        Raises:
            ConstraintViolationError: If the link already exists or either
                side is unknown.
        """
        with self.db.transaction("link tag", code=ErrorCode.INSERT_FAILED) as session:
            session.execute(
                insert(resource_tags).values(resource_id=resource_id, tag_id=tag_id)
            )

    def link_resource_with_tags(self, resource_id: int, names: Iterable[str]) -> List[int]:
        """Resolve or create every tag, then link them all in one unit.

        Existing links are left alone. Returns the linked tag ids.
        """
        tag_ids = self.add_tags(_unique_names(names))
        if not tag_ids:
            return []

        with self.db.transaction("link tags", code=ErrorCode.INSERT_FAILED) as session:
            for tag_id in tag_ids:
                session.execute(
                    insert(resource_tags)
                    .prefix_with("OR IGNORE")
                    .values(resource_id=resource_id, tag_id=tag_id)
                )

        logger.debug(f"Linked {len(tag_ids)} tags to resource {resource_id}")
        return tag_ids

    def get_tags_by_resource_id(self, resource_id: int) -> List[Tag]:
        """Tags of one resource, ordered by name."""
        with self.db.session("get resource tags") as session:
            rows = session.execute(
                select(DBTag.id, DBTag.name)
                .join(resource_tags, DBTag.id == resource_tags.c.tag_id)
                .where(resource_tags.c.resource_id == resource_id)
                .order_by(DBTag.name)
            ).all()
            return [Tag(id=row[0], name=row[1]) for row in rows]

    def get_all_tags(self) -> List[Tag]:
        with self.db.session("list tags") as session:
            rows = session.execute(select(DBTag.id, DBTag.name).order_by(DBTag.name)).all()
            return [Tag(id=row[0], name=row[1]) for row in rows]

    def get_resources_via_tags(self, names: Iterable[str]) -> List[Resource]:
        """Resources carrying every one of the given tags.

        A resource qualifies only when the number of distinct requested tags
        it is linked to equals the number requested.
        """
        wanted = _unique_names(names)
        if not wanted:
            return []

        stmt = (
            select(DBResource)
            .join(resource_tags, DBResource.id == resource_tags.c.resource_id)
            .join(DBTag, DBTag.id == resource_tags.c.tag_id)
            .where(DBTag.name.in_(wanted))
            .group_by(DBResource.id)
            .having(func.count(distinct(DBTag.id)) == len(wanted))
            .order_by(DBResource.id)
        )
        with self.db.session("get resources via tags") as session:
            return [row.to_model() for row in session.scalars(stmt).all()]

    def get_resources_via_one_tag(self, name: str) -> List[Resource]:
        cleaned = (name or "").strip()
        if not cleaned:
            return []

        stmt = (
            select(DBResource)
            .join(resource_tags, DBResource.id == resource_tags.c.resource_id)
            .join(DBTag, DBTag.id == resource_tags.c.tag_id)
            .where(DBTag.name == cleaned)
            .order_by(DBResource.id)
        )
        with self.db.session("get resources via tag") as session:
            return [row.to_model() for row in session.scalars(stmt).all()]

    def delete_tag_from_resource(self, resource_id: int, tag_id: int) -> bool:
        with self.db.transaction("unlink tag", code=ErrorCode.DELETE_FAILED) as session:
            result = session.execute(
                delete(resource_tags)
                .where(resource_tags.c.resource_id == resource_id)
                .where(resource_tags.c.tag_id == tag_id)
            )
            return result.rowcount > 0

    def delete_all_tags_from_resource(self, resource_id: int) -> int:
        """Remove every link of a resource; returns how many were removed."""
        with self.db.transaction("unlink all tags", code=ErrorCode.DELETE_FAILED) as session:
            result = session.execute(
                delete(resource_tags).where(resource_tags.c.resource_id == resource_id)
            )
            return result.rowcount
