"""Tests for the NoteVault facade."""
import logging

import pytest

from notevault.core import NoteVault
from notevault.exceptions import DatabaseOpenError, ErrorCode, ValidationError
from notevault.models.schema import FullResource, ResourceType
from notevault.observability import metrics


class TestNoteVaultLifecycle:
    """Opening and closing."""

    def test_open_creates_database(self, test_config):
        with NoteVault.open(test_config) as vault:
            assert vault.check_health()["healthy"] is True
        assert test_config.get_database_path().exists()

    def test_open_existing_only(self, test_config):
        with pytest.raises(DatabaseOpenError):
            NoteVault.open(test_config, create=False)

    def test_reopen_keeps_data(self, test_config):
        with NoteVault.open(test_config) as vault:
            rid = vault.add_text_note("Persistent", "still here")
        with NoteVault.open(test_config, create=False) as vault:
            assert vault.get_full_resource(rid).content == "still here"


class TestNoteVaultOperations:
    """End-to-end use of the facade."""

    def test_text_note_flow(self, vault):
        rid = vault.add_text_note("Notes", "hello world")
        full = vault.get_full_resource(rid)
        assert isinstance(full, FullResource)
        assert (full.content, full.tags, full.filepath) == ("hello world", [], None)

        assert vault.is_exist_title("Notes")
        assert vault.add_tags(rid, ["work", "ideas"])
        assert vault.get_all_tags() == ["ideas", "work"]
        assert [r.id for r in vault.search_by_title("notes")] == [rid]
        assert [r.id for r in vault.search_by_content("hello")] == [rid]
        assert [r.id for r in vault.get_full_resources_by_tag("work")] == [rid]
        assert [r.id for r in vault.get_resources_by_tags(["work", "ideas"])] == [rid]

        assert vault.remove_tag(rid, "work") is True
        assert vault.get_full_resources_by_tags(["work", "ideas"]) == []
        assert vault.delete_resource(rid) is True
        assert vault.get_full_resource(rid) is None

    def test_add_file_infers_type_and_uses_configured_management(
        self, vault, test_config, make_file
    ):
        path = make_file("book.epub", b"epub bytes")
        rid = vault.add_file_note(path, "Book")
        full = vault.get_full_resource(rid)
        assert full.type is ResourceType.EPUB
        assert full.filepath.startswith(str(test_config.get_storage_dir()))
        assert vault.is_file_indexed(path)

    def test_add_file_linked(self, vault, make_file):
        path = make_file("main.h", b"#pragma once")
        rid = vault.add_file_note(path, "Header", is_managed=False)
        full = vault.get_full_resource(rid)
        assert full.type is ResourceType.CPP
        assert full.filepath == str(path)

    @pytest.mark.parametrize("name", ["notes.txt", "doc.docx"])
    def test_add_file_with_uninferable_type(self, vault, make_file, name):
        with pytest.raises(ValidationError) as exc_info:
            vault.add_file_note(make_file(name, b"x"), "Nope")
        assert exc_info.value.code == ErrorCode.INVALID_RESOURCE_TYPE

    def test_search_full_variants(self, vault):
        rid = vault.add_text_note("Fox facts", "the quick brown fox")
        assert [r.id for r in vault.search_by_title_full("fox")] == [rid]
        results = vault.search_by_content_full("quick")
        assert "<mark>quick</mark>" in results[0].content

    def test_calls_are_traced(self, vault):
        metrics.reset()
        vault.add_text_note("Traced", "body")
        with pytest.raises(ValidationError):
            vault.add_file_note("/nowhere/file.unknown", "Bad")

        recorded = metrics.get_metrics()
        assert recorded["add_text_note"]["success_count"] == 1
        assert recorded["add_file_note"]["error_count"] == 1

    def test_tag_calls_log_tag_names(self, vault, caplog):
        rid = vault.add_text_note("Tagged", "body")
        with caplog.at_level(logging.DEBUG, logger="notevault.observability"):
            vault.add_tag(rid, "reading")
            vault.get_full_resources_by_tags(["reading"])
        starts = [r.getMessage() for r in caplog.records if " START " in r.getMessage()]
        assert any(f"START add_tag (resource_id={rid}, name=reading)" in m for m in starts)
        assert any("names=['reading']" in m for m in starts)
