"""Common test fixtures for quicknote."""

import logging

import pytest
from sqlalchemy import text

from quicknote.config import config
from quicknote.models.db_models import initialize_storage
from quicknote.observability import metrics
from quicknote.services.note_service import NoteService
from quicknote.storage.database import NoteDatabase
from quicknote.storage.fts_index import FtsIndex
from quicknote.storage.note_repository import NoteRepository
from quicknote.storage.write_coordinator import WriteCoordinator


@pytest.fixture
def test_config(tmp_path, monkeypatch):
    """Configure with test paths (auto-restored even on crash)."""
    monkeypatch.setattr(config, "data_dir", tmp_path / "data")
    monkeypatch.setattr(config, "log_dir", tmp_path / "logs")
    monkeypatch.setattr(config, "database_filename", "notes.db")
    monkeypatch.setattr(config, "default_page_size", 10)
    yield config


@pytest.fixture
def database_path(test_config):
    """Create an initialized database file and return its path."""
    return initialize_storage(test_config.data_dir)


@pytest.fixture
def note_database(database_path):
    """Storage handle for the test database."""
    database = NoteDatabase(database_path)
    yield database
    database.dispose()


@pytest.fixture
def note_repository(note_database):
    return NoteRepository(note_database)


@pytest.fixture
def fts_index(note_database):
    return FtsIndex(note_database)


@pytest.fixture
def write_coordinator(note_database, note_repository, fts_index):
    return WriteCoordinator(note_database, note_repository, fts_index)


@pytest.fixture
def note_service(test_config, note_database):
    """NoteService bound to the test database."""
    metrics.reset()
    service = NoteService(test_config, database=note_database)
    yield service


@pytest.fixture
def set_created_at(note_database):
    """Overwrite a note's created_at so ordering tests are deterministic."""

    def _set(note_id: int, timestamp: str) -> None:
        with note_database.transaction() as session:
            session.execute(
                text("UPDATE notes SET created_at = :ts WHERE id = :id"),
                {"ts": timestamp, "id": note_id},
            )

    return _set


@pytest.fixture
def quicknote_logger():
    """Remove handlers added by configure_logging after the test."""
    root_logger = logging.getLogger("quicknote")
    before = list(root_logger.handlers)
    level = root_logger.level
    yield root_logger
    for handler in list(root_logger.handlers):
        if handler not in before:
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(level)
