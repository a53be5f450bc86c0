"""SQLAlchemy database models for NoteVault.

Five tables plus two FTS5 indexes:

- ``resources``: one row per note or file reference
- ``text_content``: note bodies, one-to-one with text resources
- ``files``: file locations, one-to-one with file-backed resources
- ``tags`` / ``resource_tags``: many-to-many tag vocabulary
- ``resources_fts`` / ``text_content_fts``: external-content FTS5 tables
  mirroring ``resources.title`` and ``text_content.content``

Every dependent row references ``resources.id`` with ON DELETE CASCADE, so
deleting a resource removes its body, file entry and tag links in one
statement. This only holds while ``PRAGMA foreign_keys`` is on, which the
storage handle guarantees.
"""
from sqlalchemy import (Boolean, Column, DateTime, ForeignKey, Integer, String,
                        Table, Text, UniqueConstraint, func, text)
from sqlalchemy.orm import declarative_base

from notevault.models.schema import Resource, ResourceType

# Create base class for SQLAlchemy models
Base = declarative_base()

# Association table for tags and resources
resource_tags = Table(
    "resource_tags",
    Base.metadata,
    Column(
        "resource_id",
        Integer,
        ForeignKey("resources.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "tag_id",
        Integer,
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    ),
)


class DBResource(Base):
    """Database model for a resource."""
    __tablename__ = "resources"
    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    type = Column(String(16), nullable=False, index=True)
    file_hash = Column(String(128), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.current_timestamp(), nullable=False)
    updated_at = Column(DateTime, server_default=func.current_timestamp(), nullable=False)

    __table_args__ = (
        UniqueConstraint("title", "type", name="uq_resources_title_type"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        """Return string representation of resource."""
        return f"<Resource(id={self.id}, title='{self.title}', type='{self.type}')>"

    def to_model(self) -> Resource:
        """Convert to the value type used outside the storage layer."""
        return Resource(
            id=self.id,
            title=self.title,
            type=ResourceType.from_string(self.type),
            file_hash=self.file_hash or None,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class DBTextContent(Base):
    """Database model for a note body."""
    __tablename__ = "text_content"
    resource_id = Column(
        Integer, ForeignKey("resources.id", ondelete="CASCADE"), primary_key=True
    )
    content = Column(Text, nullable=False)

    def __repr__(self) -> str:
        """Return string representation of text content."""
        return f"<TextContent(resource_id={self.resource_id}, length={len(self.content or '')})>"


class DBFile(Base):
    """Database model for a file-backed resource's location."""
    __tablename__ = "files"
    resource_id = Column(
        Integer, ForeignKey("resources.id", ondelete="CASCADE"), primary_key=True
    )
    stored_path = Column(Text, nullable=True, unique=True)
    original_path = Column(Text, nullable=False, index=True)
    is_managed = Column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        """Return string representation of file entry."""
        return (
            f"<File(resource_id={self.resource_id}, "
            f"stored_path='{self.stored_path}', managed={self.is_managed})>"
        )


class DBTag(Base):
    """Database model for a tag."""
    __tablename__ = "tags"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255, collation="NOCASE"), unique=True, nullable=False)

    __table_args__ = ({"sqlite_autoincrement": True},)

    def __repr__(self) -> str:
        """Return string representation of tag."""
        return f"<Tag(id={self.id}, name='{self.name}')>"


_FTS_STATEMENTS = (
    # Title index over resources
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS resources_fts USING fts5(
        title,
        content='resources',
        content_rowid='id',
        tokenize='unicode61 remove_diacritics 1'
    )
    """,
    """
    CREATE TRIGGER IF NOT EXISTS resources_ai AFTER INSERT ON resources BEGIN
        INSERT INTO resources_fts(rowid, title) VALUES (NEW.id, NEW.title);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS resources_ad AFTER DELETE ON resources BEGIN
        INSERT INTO resources_fts(resources_fts, rowid, title)
        VALUES ('delete', OLD.id, OLD.title);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS resources_au AFTER UPDATE OF title ON resources BEGIN
        INSERT INTO resources_fts(resources_fts, rowid, title)
        VALUES ('delete', OLD.id, OLD.title);
        INSERT INTO resources_fts(rowid, title) VALUES (NEW.id, NEW.title);
    END
    """,
    # Body index over text_content
    """
    CREATE VIRTUAL TABLE IF NOT EXISTS text_content_fts USING fts5(
        content,
        content='text_content',
        content_rowid='resource_id',
        tokenize='unicode61 remove_diacritics 1'
    )
    """,
    """
    CREATE TRIGGER IF NOT EXISTS text_content_ai AFTER INSERT ON text_content BEGIN
        INSERT INTO text_content_fts(rowid, content)
        VALUES (NEW.resource_id, NEW.content);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS text_content_ad AFTER DELETE ON text_content BEGIN
        INSERT INTO text_content_fts(text_content_fts, rowid, content)
        VALUES ('delete', OLD.resource_id, OLD.content);
    END
    """,
    """
    CREATE TRIGGER IF NOT EXISTS text_content_au AFTER UPDATE OF content ON text_content BEGIN
        INSERT INTO text_content_fts(text_content_fts, rowid, content)
        VALUES ('delete', OLD.resource_id, OLD.content);
        INSERT INTO text_content_fts(rowid, content)
        VALUES (NEW.resource_id, NEW.content);
    END
    """,
)

FTS_TABLES = ("resources_fts", "text_content_fts")


def create_schema(engine) -> None:
    """Create all tables, indexes and FTS5 triggers. Idempotent."""
    Base.metadata.create_all(engine)
    init_fts5(engine)


def init_fts5(engine) -> None:
    """Initialize the FTS5 virtual tables and their sync triggers."""
    with engine.connect() as conn:
        for statement in _FTS_STATEMENTS:
            conn.execute(text(statement))
        conn.commit()


def rebuild_fts_index(engine) -> int:
    """Rebuild both FTS5 indexes from their content tables.

    Returns:
        Number of rows indexed (titles plus note bodies).
    """
    with engine.connect() as conn:
        for table in FTS_TABLES:
            conn.execute(text(f"INSERT INTO {table}({table}) VALUES('rebuild')"))
        conn.commit()

        titles = conn.execute(text("SELECT COUNT(*) FROM resources")).scalar()
        bodies = conn.execute(text("SELECT COUNT(*) FROM text_content")).scalar()

    return (titles or 0) + (bodies or 0)
