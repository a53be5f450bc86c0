"""Repository for note bodies."""
import logging
from typing import List, Optional, Tuple

from sqlalchemy import select, text, update

from notevault.exceptions import ErrorCode, MissingRowError
from notevault.models.db_models import DBTextContent
from notevault.models.schema import ContentMatch
from notevault.storage.database import Database
from notevault.storage.fts_query import (
    SNIPPET_CLOSE,
    SNIPPET_ELLIPSIS,
    SNIPPET_OPEN,
    SNIPPET_TOKENS,
    search_with_fallback,
)

logger = logging.getLogger(__name__)


class TextContentRepository:
    """Stores text bodies apart from resource metadata.

    Only bodies are indexed here; titles have their own index in the
    resource repository.
    """

    def __init__(self, db: Database):
        self.db = db

    def insert_text(self, resource_id: int, content: str) -> None:
        """Store the body of a text resource.

        Raises:
            ConstraintViolationError: If the resource does not exist or
                already has a body.
        """
        with self.db.transaction("insert text", code=ErrorCode.INSERT_FAILED) as session:
            session.add(DBTextContent(resource_id=resource_id, content=content))

    def get_text_by_id(self, resource_id: int) -> Optional[str]:
        with self.db.session("get text") as session:
            return session.scalar(
                select(DBTextContent.content).where(
                    DBTextContent.resource_id == resource_id
                )
            )

    def update_text(self, resource_id: int, content: str) -> None:
        """Replace a body.

        Raises:
            MissingRowError: If no body exists for the id.
        """
        with self.db.transaction("update text", code=ErrorCode.UPDATE_FAILED) as session:
            result = session.execute(
                update(DBTextContent)
                .where(DBTextContent.resource_id == resource_id)
                .values(content=content)
            )
            if result.rowcount == 0:
                raise MissingRowError(
                    f"No text content for resource {resource_id}",
                    resource_id=resource_id,
                    operation="update text",
                )

    def exists(self, resource_id: int) -> bool:
        with self.db.session("check text") as session:
            found = session.scalar(
                select(DBTextContent.resource_id).where(
                    DBTextContent.resource_id == resource_id
                )
            )
            return found is not None

    def get_all_texts(self) -> List[Tuple[int, str]]:
        """Return every ``(resource_id, content)`` pair ordered by id."""
        with self.db.session("list texts") as session:
            rows = session.execute(
                select(DBTextContent.resource_id, DBTextContent.content).order_by(
                    DBTextContent.resource_id
                )
            ).all()
            return [(row[0], row[1]) for row in rows]

    def search_by_content_fts(self, keyword: Optional[str]) -> List[ContentMatch]:
        """Full-text search over bodies.

        Each match carries an excerpt around the hit rather than the whole
        body. Blank keywords return an empty list.
        """
        sql = text("""
            SELECT
                rowid,
                snippet(text_content_fts, 0, :open, :close, :ellipsis, :tokens)
            FROM text_content_fts
            WHERE text_content_fts MATCH :query
            ORDER BY bm25(text_content_fts), rowid
        """)
        params = {
            "open": SNIPPET_OPEN,
            "close": SNIPPET_CLOSE,
            "ellipsis": SNIPPET_ELLIPSIS,
            "tokens": SNIPPET_TOKENS,
        }

        def run(query: str) -> List[ContentMatch]:
            with self.db.session("search content") as session:
                rows = session.execute(sql, {**params, "query": query}).fetchall()
                return [ContentMatch(resource_id=row[0], content=row[1]) for row in rows]

        return search_with_fallback(keyword, run)
