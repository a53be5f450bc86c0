"""Tests for the resource repository."""
import pytest

from notevault.exceptions import ConstraintViolationError
from notevault.models.schema import Resource, ResourceType


def _text(title: str) -> Resource:
    return Resource(title=title, type=ResourceType.TEXT)


class TestResourceCrud:
    """Insert, read, update and remove."""

    @pytest.mark.parametrize("resource_type", list(ResourceType))
    def test_insert_then_get(self, resource_repository, resource_type):
        rid = resource_repository.insert(Resource(title="Round trip", type=resource_type))
        fetched = resource_repository.get_by_id(rid)
        assert fetched.id == rid
        assert fetched.title == "Round trip"
        assert fetched.type is resource_type
        assert fetched.created_at is not None
        assert fetched.updated_at is not None

    def test_remove_then_get(self, resource_repository):
        rid = resource_repository.insert(_text("Short lived"))
        assert resource_repository.remove(rid) is True
        assert resource_repository.get_by_id(rid) is None
        assert resource_repository.remove(rid) is False

    def test_get_unknown_id(self, resource_repository):
        assert resource_repository.get_by_id(12345) is None

    def test_ids_are_monotonic(self, resource_repository):
        first = resource_repository.insert(_text("One"))
        resource_repository.remove(first)
        second = resource_repository.insert(_text("Two"))
        assert second > first

    def test_duplicate_title_and_type_rejected(self, resource_repository):
        resource_repository.insert(_text("Same"))
        with pytest.raises(ConstraintViolationError) as exc_info:
            resource_repository.insert(_text("Same"))
        assert "UNIQUE" in exc_info.value.details["original_error"]

    def test_same_title_different_type_allowed(self, resource_repository):
        a = resource_repository.insert(_text("Shared"))
        b = resource_repository.insert(Resource(title="Shared", type=ResourceType.PDF))
        assert a != b

    def test_update_title_and_type(self, resource_repository):
        rid = resource_repository.insert(_text("Before"))
        resource = resource_repository.get_by_id(rid)
        resource.title = "After"
        resource.type = ResourceType.CPP
        assert resource_repository.update(resource) is True

        fetched = resource_repository.get_by_id(rid)
        assert fetched.title == "After"
        assert fetched.type is ResourceType.CPP

    def test_update_unknown_id_is_tolerated(self, resource_repository):
        ghost = Resource(id=999, title="Ghost", type=ResourceType.TEXT)
        assert resource_repository.update(ghost) is False

    def test_update_into_existing_pair_fails(self, resource_repository):
        resource_repository.insert(_text("Taken"))
        rid = resource_repository.insert(_text("Free"))
        resource = resource_repository.get_by_id(rid)
        resource.title = "Taken"
        with pytest.raises(ConstraintViolationError):
            resource_repository.update(resource)

    def test_get_all_ordered_by_id(self, resource_repository):
        ids = [resource_repository.insert(_text(f"Note {i}")) for i in range(3)]
        assert [r.id for r in resource_repository.get_all()] == ids

    def test_exists_title(self, resource_repository):
        resource_repository.insert(_text("Present"))
        assert resource_repository.exists_title("Present", ResourceType.TEXT)
        assert resource_repository.exists_title("Present", "text")
        assert not resource_repository.exists_title("Present", ResourceType.PDF)
        assert not resource_repository.exists_title("Absent", ResourceType.TEXT)

    def test_get_timestamps(self, resource_repository):
        rid = resource_repository.insert(_text("Stamped"))
        created, updated = resource_repository.get_timestamps(rid)
        assert created <= updated
        assert resource_repository.get_timestamps(rid + 100) is None


class TestFileHash:
    """Content digest lookups."""

    def test_get_by_file_hash(self, resource_repository):
        rid = resource_repository.insert(
            Resource(title="Paper", type=ResourceType.PDF, file_hash="ab" * 32)
        )
        assert resource_repository.get_by_file_hash("ab" * 32).id == rid
        assert resource_repository.get_by_file_hash("cd" * 32) is None

    def test_empty_hash_never_matches(self, resource_repository):
        resource_repository.insert(_text("No hash"))
        assert resource_repository.get_by_file_hash("") is None
        assert resource_repository.get_by_file_hash(None) is None

    def test_update_file_hash(self, resource_repository):
        rid = resource_repository.insert(Resource(title="Book", type=ResourceType.EPUB))
        assert resource_repository.update_file_hash(rid, "ff" * 32) is True
        assert resource_repository.get_by_id(rid).file_hash == "ff" * 32


class TestTitleSearch:
    """FTS5 title search."""

    def test_search_matches_words(self, resource_repository):
        plan = resource_repository.insert(_text("Project plan"))
        resource_repository.insert(_text("Shopping list"))
        results = resource_repository.search_by_title("plan")
        assert [r.id for r in results] == [plan]

    def test_search_is_case_and_accent_insensitive(self, resource_repository):
        rid = resource_repository.insert(_text("Café Notes"))
        assert [r.id for r in resource_repository.search_by_title("cafe")] == [rid]
        assert [r.id for r in resource_repository.search_by_title("NOTES")] == [rid]

    @pytest.mark.parametrize("keyword", ["", "   ", None])
    def test_blank_keyword_returns_nothing(self, resource_repository, keyword):
        resource_repository.insert(_text("Anything"))
        assert resource_repository.search_by_title(keyword) == []

    def test_prefix_query(self, resource_repository):
        rid = resource_repository.insert(_text("Algorithms handbook"))
        assert [r.id for r in resource_repository.search_by_title("algo*")] == [rid]

    def test_punctuation_does_not_break_search(self, resource_repository):
        rid = resource_repository.insert(_text("C++ tricks"))
        assert [r.id for r in resource_repository.search_by_title('tricks"')] == [rid]

    def test_index_follows_title_update_and_delete(self, resource_repository):
        rid = resource_repository.insert(_text("Old name"))
        resource = resource_repository.get_by_id(rid)
        resource.title = "New name"
        resource_repository.update(resource)
        assert resource_repository.search_by_title("old") == []
        assert [r.id for r in resource_repository.search_by_title("new")] == [rid]

        resource_repository.remove(rid)
        assert resource_repository.search_by_title("new") == []

    def test_title_with_colon_is_searched_as_text(self, resource_repository):
        rid = resource_repository.insert(_text("Meeting: agenda"))
        resource_repository.insert(_text("Agenda for lunch"))
        assert [r.id for r in resource_repository.search_by_title("Meeting: agenda")] == [rid]
        assert resource_repository.search_by_title("nosuchcolumn: value") == []

    def test_valid_fts_syntax_still_applies(self, resource_repository):
        rid = resource_repository.insert(_text("Algorithms notebook"))
        recipes = resource_repository.insert(_text("Recipes"))
        assert [r.id for r in resource_repository.search_by_title("algo*")] == [rid]
        assert [r.id for r in resource_repository.search_by_title("title:recipes")] == [recipes]
