"""Repository for file-backed resource locations."""
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy import select, update

from notevault.exceptions import (
    ConstraintViolationError,
    ErrorCode,
    MissingRowError,
)
from notevault.models.db_models import DBFile
from notevault.models.schema import FileEntry
from notevault.storage.database import Database

logger = logging.getLogger(__name__)


def _to_entry(db_file: DBFile) -> FileEntry:
    return FileEntry(
        resource_id=db_file.resource_id,
        stored_path=db_file.stored_path,
        original_path=db_file.original_path,
        is_managed=bool(db_file.is_managed),
    )


@contextmanager
def _stored_path_conflicts(stored_path: Optional[str]) -> Iterator[None]:
    """Re-label a ``files.stored_path`` uniqueness failure."""
    try:
        yield
    except ConstraintViolationError as e:
        if "files.stored_path" not in str(e.original_error):
            raise
        raise ConstraintViolationError(
            f"Stored path already recorded: {stored_path}",
            operation=e.operation,
            code=ErrorCode.DUPLICATE_STORED_PATH,
            original_error=e.original_error,
            details={"stored_path": stored_path},
        ) from e


class FileRepository:
    """CRUD over the ``files`` table.

    Readers should open ``FileEntry.resolved_path``: the stored path when
    one is recorded, the original path otherwise.
    """

    def __init__(self, db: Database):
        self.db = db

    def insert_file(
        self,
        resource_id: int,
        stored_path: Optional[str],
        original_path: str,
        is_managed: bool,
    ) -> None:
        """Record where a file-backed resource lives.

        Raises:
            ConstraintViolationError: If the resource is unknown, already has a
                file entry, or the stored path is taken (``DUPLICATE_STORED_PATH``).
        """
        with _stored_path_conflicts(stored_path):
            with self.db.transaction("insert file", code=ErrorCode.INSERT_FAILED) as session:
                session.add(
                    DBFile(
                        resource_id=resource_id,
                        stored_path=stored_path,
                        original_path=original_path,
                        is_managed=is_managed,
                    )
                )

    def update_file(
        self,
        resource_id: int,
        stored_path: Optional[str],
        original_path: str,
        is_managed: bool,
    ) -> None:
        """Replace a file entry's location.

        Raises:
            MissingRowError: If no file entry exists for the id.
            ConstraintViolationError: ``DUPLICATE_STORED_PATH`` if another
                entry already uses the stored path.
        """
        with _stored_path_conflicts(stored_path):
            with self.db.transaction("update file", code=ErrorCode.UPDATE_FAILED) as session:
                result = session.execute(
                    update(DBFile)
                    .where(DBFile.resource_id == resource_id)
                    .values(
                        stored_path=stored_path,
                        original_path=original_path,
                        is_managed=is_managed,
                    )
                )
                if result.rowcount == 0:
                    raise MissingRowError(
                        f"No file entry for resource {resource_id}",
                        resource_id=resource_id,
                        operation="update file",
                    )

    def get_file_by_id(self, resource_id: int) -> Optional[FileEntry]:
        with self.db.session("get file") as session:
            db_file = session.get(DBFile, resource_id)
            return _to_entry(db_file) if db_file else None

    def get_all_files(self) -> List[FileEntry]:
        with self.db.session("list files") as session:
            rows = session.scalars(select(DBFile).order_by(DBFile.resource_id)).all()
            return [_to_entry(row) for row in rows]

    def get_resource_id_by_stored_path(self, stored_path: str) -> Optional[int]:
        with self.db.session("get file by stored path") as session:
            return session.scalar(
                select(DBFile.resource_id).where(DBFile.stored_path == stored_path)
            )

    def get_resource_id_by_original_path(self, original_path: str) -> Optional[int]:
        """Return the first resource recorded with this original path."""
        with self.db.session("get file by original path") as session:
            return session.scalar(
                select(DBFile.resource_id)
                .where(DBFile.original_path == original_path)
                .order_by(DBFile.resource_id)
                .limit(1)
            )

    def exists(self, resource_id: int) -> bool:
        with self.db.session("check file") as session:
            found = session.scalar(
                select(DBFile.resource_id).where(DBFile.resource_id == resource_id)
            )
            return found is not None
