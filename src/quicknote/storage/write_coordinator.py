"""Transactional write path keeping the notes table and its index in lockstep."""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quicknote.exceptions import DatabaseError, ErrorCode
from quicknote.models.schema import NoteInput
from quicknote.storage.database import NoteDatabase
from quicknote.storage.fts_index import FtsIndex
from quicknote.storage.note_repository import NoteRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InsertNote:
    title: str
    content: str
    tags: str


@dataclass(frozen=True)
class UpdateNote:
    note_id: int
    title: str
    content: str
    tags: str


@dataclass(frozen=True)
class DeleteNote:
    note_id: int


Mutation = Union[InsertNote, UpdateNote, DeleteNote]

# Per mutation: wording for error messages and the error code
_WRITE_ACTIONS = {
    InsertNote: ("create note", ErrorCode.STORAGE_WRITE_FAILED),
    UpdateNote: ("update note", ErrorCode.STORAGE_WRITE_FAILED),
    DeleteNote: ("delete note", ErrorCode.STORAGE_DELETE_FAILED),
}


class WriteCoordinator:
    """Single entry point for every mutation of the note store.

    Each logical change is expanded into its primary-table write and its
    index write, and both run in one transaction. If either half fails the
    transaction is rolled back, so the two tables never diverge. Failures
    are not retried.
    """

    def __init__(
        self,
        database: NoteDatabase,
        repository: Optional[NoteRepository] = None,
        index: Optional[FtsIndex] = None,
    ):
        self.database = database
        self.repository = repository or NoteRepository(database)
        self.index = index or FtsIndex(database)

    def save(self, note: NoteInput) -> int:
        """Create a note (no id) or update one in place (id given).

        Missing tags are stored as an empty string.

        Returns:
            The id of the note written.

        Raises:
            DatabaseError: If the transaction fails; nothing is written.
        """
        tags = note.normalized_tags()
        if note.is_update:
            return self.apply_write(
                UpdateNote(note.id, note.title, note.content, tags)
            )
        return self.apply_write(InsertNote(note.title, note.content, tags))

    def delete(self, note_id: int) -> None:
        """Delete a note. Deleting an unknown id is a no-op."""
        self.apply_write(DeleteNote(note_id))

    def apply_write(self, mutation: Mutation) -> Optional[int]:
        """Apply one mutation to the notes table and its index atomically.

        Returns:
            The affected note id for inserts and updates, None for deletes.
        """
        try:
            with self.database.transaction() as session:
                return self._apply(session, mutation)
        except SQLAlchemyError as e:
            action, code = _WRITE_ACTIONS[type(mutation)]
            logger.error(f"Write failed, rolled back ({mutation!r}): {e}")
            raise DatabaseError(
                f"Failed to {action}: {getattr(e, 'orig', None) or e}",
                operation=type(mutation).__name__,
                code=code,
                original_error=e,
            ) from e

    def _apply(self, session: Session, mutation: Mutation) -> Optional[int]:
        if isinstance(mutation, InsertNote):
            note_id = self.repository.insert_row(
                session, mutation.title, mutation.content, mutation.tags
            )
            self.index.add(
                session, note_id, mutation.title, mutation.content, mutation.tags
            )
            logger.info(f"Created note {note_id}")
            return note_id

        if isinstance(mutation, UpdateNote):
            updated = self.repository.update_row(
                session,
                mutation.note_id,
                mutation.title,
                mutation.content,
                mutation.tags,
            )
            self.index.update(
                session,
                mutation.note_id,
                mutation.title,
                mutation.content,
                mutation.tags,
            )
            if not updated:
                logger.warning(f"Update of unknown note {mutation.note_id} changed nothing")
            else:
                logger.info(f"Updated note {mutation.note_id}")
            return mutation.note_id

        if isinstance(mutation, DeleteNote):
            deleted = self.repository.delete_row(session, mutation.note_id)
            self.index.remove(session, mutation.note_id)
            logger.info(f"Deleted note {mutation.note_id} (rows={deleted})")
            return None

        raise TypeError(f"Unsupported mutation: {mutation!r}")
