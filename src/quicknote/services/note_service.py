"""Service layer: the operations the front end calls."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pydantic

from quicknote.config import QuicknoteConfig
from quicknote.config import config as default_config
from quicknote.exceptions import (
    ErrorCode,
    NoteNotFoundError,
    ValidationError,
)
from quicknote.models.db_models import initialize_storage
from quicknote.models.schema import IndexHealth, Note, NoteInput, NotePage
from quicknote.observability import traced
from quicknote.storage.database import NoteDatabase
from quicknote.storage.fts_index import FtsIndex
from quicknote.storage.note_repository import NoteRepository
from quicknote.storage.write_coordinator import WriteCoordinator

logger = logging.getLogger(__name__)


class NoteService:
    """Boundary for the note store.

    Reads go straight to the repository or the search index; every
    mutation goes through the WriteCoordinator. Errors surface as
    QuicknoteError subclasses whose ``message`` is meant for the user.

    Args:
        cfg: Configuration to use. Defaults to the global config.
        database: Pre-built storage handle. When omitted, one is created
            for the configured database file on first use.
    """

    def __init__(
        self,
        cfg: Optional[QuicknoteConfig] = None,
        database: Optional[NoteDatabase] = None,
    ):
        self.config = cfg or default_config
        self._database = database
        self._repository: Optional[NoteRepository] = None
        self._index: Optional[FtsIndex] = None
        self._writer: Optional[WriteCoordinator] = None

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    @property
    def database(self) -> NoteDatabase:
        if self._database is None:
            self._database = NoteDatabase.from_config(self.config)
        return self._database

    @property
    def repository(self) -> NoteRepository:
        if self._repository is None:
            self._repository = NoteRepository(self.database)
        return self._repository

    @property
    def index(self) -> FtsIndex:
        if self._index is None:
            self._index = FtsIndex(self.database)
        return self._index

    @property
    def writer(self) -> WriteCoordinator:
        if self._writer is None:
            self._writer = WriteCoordinator(self.database, self.repository, self.index)
        return self._writer

    def close(self) -> None:
        """Release the storage handle."""
        if self._database is not None:
            self._database.dispose()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @traced("initialize_storage")
    def initialize_storage(self, storage_root: Optional[Union[str, Path]] = None) -> Path:
        """Create the database file and tables unless they already exist.

        Run once at startup, before any other operation.

        Raises:
            StorageIOError: Directory or file could not be created.
            SchemaError: Table creation failed.
        """
        root = Path(storage_root) if storage_root is not None else self.config.data_dir
        db_path = initialize_storage(
            root,
            database_filename=self.config.database_filename,
            busy_timeout_ms=self.config.busy_timeout_ms,
        )
        if self._database is not None and self._database.database_path != db_path:
            self._database.dispose()
            self._database = None
            self._repository = self._index = self._writer = None
        if self._database is None:
            self._database = NoteDatabase(db_path, busy_timeout_ms=self.config.busy_timeout_ms)
        return db_path

    @traced("list_page")
    def list_page(self, page: int = 1, page_size: Optional[int] = None) -> NotePage:
        """Get one page of notes (newest first) and the total note count."""
        if page_size is None:
            page_size = self.config.default_page_size
        if page < 1:
            raise ValidationError(
                "page must be >= 1",
                field="page",
                value=page,
                code=ErrorCode.INVALID_PAGINATION,
            )
        if page_size < 1:
            raise ValidationError(
                "page_size must be >= 1",
                field="page_size",
                value=page_size,
                code=ErrorCode.INVALID_PAGINATION,
            )
        return self.repository.list_page(page, page_size)

    @traced("get_note")
    def get_note(self, note_id: int) -> Note:
        """Get a single note.

        Raises:
            NoteNotFoundError: No note has this id.
        """
        note = self.repository.get(note_id)
        if note is None:
            raise NoteNotFoundError(note_id)
        return note

    @traced("search")
    def search(self, query: str) -> List[Note]:
        """Ranked substring search: title matches, then tags, then content."""
        return self.index.search(query)

    @traced("save")
    def save(self, note: Union[NoteInput, Dict[str, Any]]) -> int:
        """Create or update a note. Returns the note id.

        A payload without ``id`` creates a note; with ``id`` it updates
        that note's title, content and tags.
        """
        if not isinstance(note, NoteInput):
            try:
                note = NoteInput.model_validate(note)
            except pydantic.ValidationError as e:
                first = e.errors()[0]
                field = ".".join(str(part) for part in first.get("loc", ()))
                raise ValidationError(
                    f"Invalid note: {field or 'input'}: {first.get('msg', 'invalid')}",
                    field=field or None,
                    code=ErrorCode.NOTE_VALIDATION_FAILED,
                ) from e
        return self.writer.save(note)

    @traced("delete")
    def delete(self, note_id: int) -> None:
        """Delete a note. Unknown ids are ignored."""
        self.writer.delete(note_id)

    @traced("check_index")
    def check_index(self) -> IndexHealth:
        """Report differences between the notes table and the search index."""
        return self.index.check_consistency()

    @traced("rebuild_index")
    def rebuild_index(self) -> int:
        """Rebuild the search index from the notes table."""
        return self.index.rebuild()

    def count(self) -> int:
        return self.repository.count()
