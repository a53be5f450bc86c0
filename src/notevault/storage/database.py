"""Storage handle: the single SQLite connection shared by every repository."""
import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Union
from urllib.parse import quote

from sqlalchemy import create_engine, event, func, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from notevault.exceptions import (
    ConstraintViolationError,
    DatabaseOpenError,
    ErrorCode,
    StorageError,
)
from notevault.models.db_models import (
    FTS_TABLES,
    DBResource,
    create_schema,
    rebuild_fts_index,
)
from notevault.utils import is_sqlite_file

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    """Turn on referential integrity for every new DBAPI connection."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the one connection to the relational store.

    A ``StaticPool`` engine keeps exactly one DBAPI connection for the life of
    the handle. Foreign-key enforcement is switched on when that connection
    is made and verified before the handle is usable; a handle that cannot
    enforce cascades is never returned.

    Args:
        path: Database file path, or ``":memory:"``.
        create: Create the file if it does not exist. When False, a missing
            or unreadable file is an open failure.
    """

    def __init__(self, path: Union[str, Path] = MEMORY, create: bool = False):
        self.path = str(path)
        self.in_memory = self.path == MEMORY

        if not self.in_memory:
            self._check_target(Path(self.path), create)

        engine = create_engine(
            "sqlite://",
            creator=self._connection_creator(create),
            poolclass=StaticPool,
        )
        event.listen(engine, "connect", _enable_foreign_keys)

        try:
            with engine.connect() as conn:
                foreign_keys = conn.execute(text("PRAGMA foreign_keys")).scalar()
        except SQLAlchemyError as e:
            engine.dispose()
            raise DatabaseOpenError(
                f"Cannot open database: {getattr(e, 'orig', e)}",
                path=self.path,
                original_error=e,
            ) from e

        if foreign_keys != 1:
            engine.dispose()
            raise DatabaseOpenError(
                "Failed to enable PRAGMA foreign_keys",
                path=self.path,
                code=ErrorCode.FOREIGN_KEYS_UNAVAILABLE,
            )

        try:
            create_schema(engine)
        except SQLAlchemyError as e:
            engine.dispose()
            raise DatabaseOpenError(
                f"Cannot initialize schema: {getattr(e, 'orig', e)}",
                path=self.path,
                original_error=e,
            ) from e

        self.engine = engine
        self.session_factory = sessionmaker(bind=engine)
        logger.info(f"Database opened: {self.path}")

    @classmethod
    def open(cls, path: Union[str, Path]) -> "Database":
        """Open an existing database file."""
        return cls(path, create=False)

    @classmethod
    def create(cls, path: Union[str, Path]) -> "Database":
        """Create (or open) a database file and its schema."""
        if str(path) != MEMORY:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        return cls(path, create=True)

    def _check_target(self, path: Path, create: bool) -> None:
        """Fail before any statement if the file is missing or not SQLite."""
        if not path.exists():
            if create:
                return
            raise DatabaseOpenError("Database file not found", path=str(path))

        try:
            valid = is_sqlite_file(path)
        except OSError as e:
            raise DatabaseOpenError(
                f"Cannot read database file: {e}", path=str(path), original_error=e
            ) from e

        if not valid:
            raise DatabaseOpenError(
                "Not a SQLite database file",
                path=str(path),
                code=ErrorCode.DATABASE_CORRUPTED,
            )

        if not os.access(path, os.W_OK):
            raise DatabaseOpenError("Database file is not writable", path=str(path))

    def _connection_creator(self, create: bool):
        """Build the DBAPI connect callable for this handle."""
        if self.in_memory:
            return lambda: sqlite3.connect(MEMORY, check_same_thread=False)

        mode = "rwc" if create else "rw"
        uri = f"file:{quote(str(Path(self.path).resolve()))}?mode={mode}"
        return lambda: sqlite3.connect(uri, uri=True, check_same_thread=False)

    # ------------------------------------------------------------------
    # Scoped execution
    # ------------------------------------------------------------------

    @contextmanager
    def session(
        self, operation: str, code: ErrorCode = ErrorCode.QUERY_FAILED
    ) -> Iterator[Session]:
        """Yield a session that is always closed, translating engine errors.

        Uncommitted work is rolled back on every failure path.

        Args:
            operation: Short description used in error messages.
            code: Error code for non-constraint engine failures.

        Raises:
            ConstraintViolationError: On UNIQUE / FOREIGN KEY / NOT NULL violations.
            StorageError: On any other engine failure.
        """
        session = self.session_factory()
        try:
            yield session
        except IntegrityError as e:
            session.rollback()
            raise ConstraintViolationError(
                f"{operation} failed: {e.orig}",
                operation=operation,
                code=ErrorCode.CONSTRAINT_VIOLATION,
                original_error=e.orig,
            ) from e
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(
                f"{operation} failed: {getattr(e, 'orig', None) or e}",
                operation=operation,
                code=code,
                original_error=getattr(e, "orig", None) or e,
            ) from e
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def transaction(
        self, operation: str, code: ErrorCode = ErrorCode.TRANSACTION_FAILED
    ) -> Iterator[Session]:
        """Run a unit of work atomically: commit on success, rollback then re-raise."""
        with self.session(operation, code=code) as session:
            try:
                yield session
                session.commit()
            except BaseException:
                session.rollback()
                logger.warning(f"Transaction rolled back: {operation}")
                raise

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def check_integrity(self) -> List[str]:
        """Run SQLite's integrity and foreign-key checks.

        Returns:
            Problem descriptions; an empty list means the store is consistent.
        """
        messages: List[str] = []
        with self.session("integrity check") as session:
            for row in session.execute(text("PRAGMA integrity_check")).fetchall():
                if row[0] != "ok":
                    messages.append(f"integrity_check: {row[0]}")

            for row in session.execute(text("PRAGMA foreign_key_check")).fetchall():
                table, rowid, parent = row[0], row[1], row[2]
                messages.append(
                    f"foreign_key_check: {table} row {rowid} references missing {parent}"
                )
        return messages

    def check_health(self) -> Dict[str, Any]:
        """Perform a database health check.

        Returns:
            Dict with keys:
                - healthy: bool, no integrity, foreign-key or FTS index problems
                - sqlite_ok: bool for PRAGMA integrity_check
                - foreign_keys_ok: bool for PRAGMA foreign_key_check
                - fts_ok: bool for both FTS5 integrity checks
                - resource_count: int of resources stored
                - issues: list of issue descriptions
        """
        issues = self.check_integrity()
        sqlite_ok = not any(i.startswith("integrity_check") for i in issues)
        foreign_keys_ok = not any(i.startswith("foreign_key_check") for i in issues)

        fts_ok = True
        for table in FTS_TABLES:
            try:
                with self.session("fts integrity check") as session:
                    session.execute(
                        text(f"INSERT INTO {table}({table}) VALUES('integrity-check')")
                    )
            except StorageError as e:
                fts_ok = False
                issues.append(f"{table} integrity check failed: {e.original_error}")

        with self.session("count resources") as session:
            resource_count = session.scalar(select(func.count(DBResource.id))) or 0

        return {
            "healthy": sqlite_ok and foreign_keys_ok and fts_ok,
            "sqlite_ok": sqlite_ok,
            "foreign_keys_ok": foreign_keys_ok,
            "fts_ok": fts_ok,
            "resource_count": resource_count,
            "issues": issues,
        }

    def rebuild_fts(self) -> int:
        """Repopulate both FTS5 indexes from their source tables."""
        try:
            count = rebuild_fts_index(self.engine)
        except SQLAlchemyError as e:
            raise StorageError(
                f"FTS rebuild failed: {getattr(e, 'orig', e)}",
                operation="rebuild_fts",
                original_error=e,
            ) from e
        logger.info(f"FTS5 indexes rebuilt with {count} rows")
        return count

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Dispose of the engine and its connection."""
        self.engine.dispose()
        logger.debug(f"Database closed: {self.path}")

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
