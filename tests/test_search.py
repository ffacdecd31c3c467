"""Tests for the ranked search over the search index."""
from unittest.mock import patch

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from quicknote.exceptions import DatabaseError, ErrorCode
from quicknote.models.schema import NoteInput


@pytest.fixture
def ranked_notes(write_coordinator, set_created_at):
    """Notes matching 'kiwi' in exactly one field each.

    Created content-first so that insertion order and rank order differ,
    and with the content match as the newest note.
    """
    content_id = write_coordinator.save(
        NoteInput(title="Diary", content="Ate a kiwi today", tags="daily")
    )
    tags_id = write_coordinator.save(
        NoteInput(title="Groceries", content="Buy stuff", tags="fruit,kiwi")
    )
    title_id = write_coordinator.save(
        NoteInput(title="Kiwi recipes", content="Smoothies", tags="food")
    )
    write_coordinator.save(NoteInput(title="Unrelated", content="Nothing", tags="misc"))
    set_created_at(title_id, "2024-01-01 00:00:00.000000")
    set_created_at(tags_id, "2024-01-02 00:00:00.000000")
    set_created_at(content_id, "2024-01-03 00:00:00.000000")
    return {"title": title_id, "tags": tags_id, "content": content_id}


class TestRanking:
    """Tests for result ordering."""

    def test_title_then_tags_then_content(self, fts_index, ranked_notes):
        """Title matches outrank tag matches, which outrank content matches."""
        results = fts_index.search("kiwi")
        assert [n.id for n in results] == [
            ranked_notes["title"],
            ranked_notes["tags"],
            ranked_notes["content"],
        ]

    def test_best_field_decides_priority(self, write_coordinator, fts_index, set_created_at):
        """A note matching in title and content ranks as a title match."""
        both = write_coordinator.save(
            NoteInput(title="plum", content="plum plum", tags="")
        )
        tags_only = write_coordinator.save(
            NoteInput(title="x", content="y", tags="plum")
        )
        set_created_at(both, "2020-01-01 00:00:00.000000")
        set_created_at(tags_only, "2024-01-01 00:00:00.000000")

        assert [n.id for n in fts_index.search("plum")] == [both, tags_only]

    def test_newest_first_within_priority(self, write_coordinator, fts_index, set_created_at):
        """Ties on priority are broken by created_at descending."""
        older = write_coordinator.save(NoteInput(title="pear old", content="-"))
        newer = write_coordinator.save(NoteInput(title="pear new", content="-"))
        set_created_at(older, "2023-05-01 08:00:00.000000")
        set_created_at(newer, "2023-06-01 08:00:00.000000")

        assert [n.id for n in fts_index.search("pear")] == [newer, older]

    def test_non_matching_notes_excluded(self, fts_index, ranked_notes):
        """Only notes containing the query are returned."""
        results = fts_index.search("kiwi")
        assert all(n.title != "Unrelated" for n in results)
        assert len(results) == 3


class TestMatching:
    """Tests for the substring matching rules."""

    def test_case_insensitive(self, fts_index, ranked_notes):
        """Upper-case queries match lower-case text and vice versa."""
        assert [n.id for n in fts_index.search("KIWI")] == [
            n.id for n in fts_index.search("kiwi")
        ]

    def test_substring_inside_word(self, write_coordinator, fts_index):
        """Matching is substring containment, not token matching."""
        note_id = write_coordinator.save(NoteInput(title="Notebook", content="-"))
        assert [n.id for n in fts_index.search("ebo")] == [note_id]

    def test_percent_matched_literally(self, write_coordinator, fts_index):
        """'%' in the query is not a wildcard."""
        literal = write_coordinator.save(NoteInput(title="100% done", content="-"))
        write_coordinator.save(NoteInput(title="1000 done", content="-"))
        assert [n.id for n in fts_index.search("100%")] == [literal]

    def test_underscore_matched_literally(self, write_coordinator, fts_index):
        """'_' in the query is not a single-character wildcard."""
        literal = write_coordinator.save(NoteInput(title="file_name", content="-"))
        write_coordinator.save(NoteInput(title="filename", content="-"))
        write_coordinator.save(NoteInput(title="file-name", content="-"))
        assert [n.id for n in fts_index.search("file_name")] == [literal]

    def test_null_tags_are_skipped(self, note_database, fts_index):
        """Rows with NULL tags (legacy rows) still match on title and content."""
        with note_database.transaction() as session:
            session.execute(text(
                "INSERT INTO notes (id, title, content, tags) VALUES (50, 'legacy', 'old body', NULL)"
            ))
            session.execute(text(
                "INSERT INTO notes_fts (rowid, title, content, tags) VALUES (50, 'legacy', 'old body', NULL)"
            ))

        results = fts_index.search("old")
        assert [n.id for n in results] == [50]
        assert results[0].tags is None

    def test_search_sees_updates(self, write_coordinator, fts_index):
        """After an update the old title no longer matches."""
        note_id = write_coordinator.save(NoteInput(title="apricot", content="-"))
        write_coordinator.save(NoteInput(id=note_id, title="banana", content="-"))

        assert fts_index.search("apricot") == []
        assert [n.id for n in fts_index.search("banana")] == [note_id]

    def test_search_misses_deleted_notes(self, write_coordinator, fts_index):
        """Deleted notes drop out of search results."""
        note_id = write_coordinator.save(NoteInput(title="cherry", content="-"))
        write_coordinator.delete(note_id)
        assert fts_index.search("cherry") == []


class TestEmptyQuery:
    """Tests for blank queries."""

    @pytest.mark.parametrize("query", ["", "   ", "\t\n"])
    def test_blank_query_skips_storage(self, note_database, fts_index, ranked_notes, query):
        """Blank queries return [] without opening a session."""
        with patch.object(note_database, "session") as session_mock:
            assert fts_index.search(query) == []
        session_mock.assert_not_called()

    def test_padded_query_is_not_trimmed(self, write_coordinator, fts_index):
        """Surrounding whitespace is part of the searched substring."""
        spaced = write_coordinator.save(NoteInput(title="a fig tree", content="-"))
        write_coordinator.save(NoteInput(title="figtree", content="-"))
        assert [n.id for n in fts_index.search(" fig ")] == [spaced]


class TestSearchFailures:
    """Tests for storage failures during search."""

    def test_storage_error_becomes_database_error(self, note_database, fts_index, ranked_notes):
        """Any storage failure surfaces as DatabaseError, never partial results."""
        failure = OperationalError("SELECT", {}, Exception("disk I/O error"))

        with patch.object(note_database, "session", side_effect=failure):
            with pytest.raises(DatabaseError) as exc_info:
                fts_index.search("kiwi")

        assert exc_info.value.code == ErrorCode.SEARCH_FAILED
        assert "disk I/O error" in exc_info.value.message
