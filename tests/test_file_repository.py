"""Tests for the file repository."""
import pytest

from notevault.exceptions import ConstraintViolationError, ErrorCode, MissingRowError
from notevault.models.schema import Resource, ResourceType


@pytest.fixture
def pdf_id(resource_repository):
    return resource_repository.insert(Resource(title="Paper", type=ResourceType.PDF))


class TestFileCrud:
    """File entries keyed by resource id."""

    def test_insert_managed_and_get(self, file_repository, pdf_id):
        file_repository.insert_file(pdf_id, "/vault/abc.pdf", "/tmp/a.pdf", True)
        entry = file_repository.get_file_by_id(pdf_id)
        assert entry.stored_path == "/vault/abc.pdf"
        assert entry.original_path == "/tmp/a.pdf"
        assert entry.is_managed is True
        assert entry.resolved_path == "/vault/abc.pdf"

    def test_insert_linked(self, file_repository, pdf_id):
        file_repository.insert_file(pdf_id, "/tmp/a.pdf", "/tmp/a.pdf", False)
        entry = file_repository.get_file_by_id(pdf_id)
        assert entry.is_managed is False
        assert entry.stored_path == entry.original_path

    def test_missing_entry(self, file_repository):
        assert file_repository.get_file_by_id(5) is None
        assert not file_repository.exists(5)

    def test_insert_for_unknown_resource_fails(self, file_repository):
        with pytest.raises(ConstraintViolationError) as exc_info:
            file_repository.insert_file(77, None, "/tmp/x.pdf", False)
        assert exc_info.value.code == ErrorCode.CONSTRAINT_VIOLATION

    def test_lookup_by_paths(self, file_repository, pdf_id):
        file_repository.insert_file(pdf_id, "/vault/abc.pdf", "/tmp/a.pdf", True)
        assert file_repository.get_resource_id_by_stored_path("/vault/abc.pdf") == pdf_id
        assert file_repository.get_resource_id_by_original_path("/tmp/a.pdf") == pdf_id
        assert file_repository.get_resource_id_by_stored_path("/tmp/a.pdf") is None
        assert file_repository.get_resource_id_by_original_path("/nope") is None

    def test_get_all_files(self, file_repository, resource_repository, pdf_id):
        book = resource_repository.insert(Resource(title="Book", type=ResourceType.EPUB))
        file_repository.insert_file(book, "/vault/b.epub", "/tmp/b.epub", True)
        file_repository.insert_file(pdf_id, "/vault/a.pdf", "/tmp/a.pdf", True)
        assert [e.resource_id for e in file_repository.get_all_files()] == [pdf_id, book]


class TestFileUpdate:
    """Updates fail loudly on missing rows and path conflicts."""

    def test_update_file(self, file_repository, pdf_id):
        file_repository.insert_file(pdf_id, "/tmp/a.pdf", "/tmp/a.pdf", False)
        file_repository.update_file(pdf_id, "/vault/abc.pdf", "/tmp/a.pdf", True)
        entry = file_repository.get_file_by_id(pdf_id)
        assert entry.stored_path == "/vault/abc.pdf"
        assert entry.is_managed is True

    def test_update_missing_row(self, file_repository):
        with pytest.raises(MissingRowError) as exc_info:
            file_repository.update_file(404, "/a", "/a", False)
        assert exc_info.value.code == ErrorCode.ROW_NOT_FOUND

    def test_update_stored_path_conflict(self, file_repository, resource_repository, pdf_id):
        other = resource_repository.insert(Resource(title="Other", type=ResourceType.PDF))
        file_repository.insert_file(pdf_id, "/vault/one.pdf", "/tmp/one.pdf", True)
        file_repository.insert_file(other, "/vault/two.pdf", "/tmp/two.pdf", True)

        with pytest.raises(ConstraintViolationError) as exc_info:
            file_repository.update_file(other, "/vault/one.pdf", "/tmp/two.pdf", True)
        assert exc_info.value.code == ErrorCode.DUPLICATE_STORED_PATH
        assert file_repository.get_file_by_id(other).stored_path == "/vault/two.pdf"

    def test_insert_stored_path_conflict(self, file_repository, resource_repository, pdf_id):
        other = resource_repository.insert(Resource(title="Other", type=ResourceType.PDF))
        file_repository.insert_file(pdf_id, "/vault/one.pdf", "/tmp/one.pdf", True)
        with pytest.raises(ConstraintViolationError) as exc_info:
            file_repository.insert_file(other, "/vault/one.pdf", "/tmp/x.pdf", True)
        assert exc_info.value.code == ErrorCode.DUPLICATE_STORED_PATH
