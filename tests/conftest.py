"""Common test fixtures for NoteVault."""

from pathlib import Path
from typing import Optional

import pytest
from sqlalchemy import text

from notevault.config import config
from notevault.core import NoteVault
from notevault.services.file_service import FileService
from notevault.services.resource_service import ResourceService
from notevault.storage import (
    Database,
    FileRepository,
    ResourceRepository,
    TagRepository,
    TextContentRepository,
)


@pytest.fixture
def test_config(tmp_path, monkeypatch):
    """Point the global config at a temporary directory (auto-restored)."""
    monkeypatch.setattr(config, "base_dir", tmp_path)
    monkeypatch.setattr(config, "database_path", tmp_path / "db" / "test_notevault.db")
    monkeypatch.setattr(config, "storage_dir", tmp_path / "resources")
    monkeypatch.setattr(config, "log_dir", tmp_path / "logs")
    monkeypatch.setattr(config, "manage_files", True)
    monkeypatch.setattr(config, "hash_algorithm", "sha256")
    monkeypatch.setattr(config, "hash_chunk_size", 8192)
    yield config


@pytest.fixture
def db(tmp_path):
    """A freshly created on-disk database."""
    database = Database.create(tmp_path / "test.db")
    yield database
    database.close()


@pytest.fixture
def resource_repository(db):
    return ResourceRepository(db)


@pytest.fixture
def text_repository(db):
    return TextContentRepository(db)


@pytest.fixture
def file_repository(db):
    return FileRepository(db)


@pytest.fixture
def tag_repository(db):
    return TagRepository(db)


@pytest.fixture
def storage_dir(tmp_path):
    """Managed storage directory (not created up front)."""
    return tmp_path / "storage"


@pytest.fixture
def file_service(resource_repository, file_repository, storage_dir):
    return FileService(
        resource_repository,
        file_repository,
        storage_dir=storage_dir,
        hash_algorithm="sha256",
        chunk_size=8192,
    )


@pytest.fixture
def resource_service(
    resource_repository, text_repository, file_repository, tag_repository, file_service
):
    return ResourceService(
        resource_repository, text_repository, file_repository, tag_repository, file_service
    )


@pytest.fixture
def vault(test_config):
    """A facade wired from the temporary config."""
    with NoteVault.open(test_config) as v:
        yield v


@pytest.fixture
def make_file(tmp_path):
    """Factory writing bytes to ``<tmp>/files/<name>`` and returning the path."""
    files_dir = tmp_path / "files"

    def _make(name: str, data: bytes = b"file content") -> Path:
        path = files_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    return _make


@pytest.fixture
def count_rows(db):
    """Count rows of a table, optionally only those of one resource."""

    def _count(table: str, resource_id: Optional[int] = None) -> int:
        sql = f"SELECT COUNT(*) FROM {table}"
        params = {}
        if resource_id is not None:
            sql += " WHERE resource_id = :rid"
            params["rid"] = resource_id
        with db.session("count rows") as session:
            return session.scalar(text(sql), params)

    return _count
