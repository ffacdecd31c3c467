"""Repository for note storage and retrieval (the primary table)."""

import logging
from typing import Optional

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quicknote.exceptions import DatabaseError
from quicknote.models.db_models import DBNote
from quicknote.models.schema import Note, NotePage, ensure_timezone_aware
from quicknote.storage.database import NoteDatabase

logger = logging.getLogger(__name__)

notes_table = DBNote.__table__


class NoteRepository:
    """Note Store: CRUD and paginated listing over the ``notes`` table.

    Reads open their own session. The ``*_row`` methods are the primary-table
    halves of a write; they run inside a session owned by the
    WriteCoordinator and never commit on their own.
    """

    def __init__(self, database: NoteDatabase):
        self.database = database

    @staticmethod
    def _db_note_to_model(db_note: DBNote) -> Note:
        """Convert a database row into a Note."""
        return Note(
            id=db_note.id,
            title=db_note.title,
            content=db_note.content,
            tags=db_note.tags,
            created_at=ensure_timezone_aware(db_note.created_at),
        )

    def list_page(self, page: int, page_size: int) -> NotePage:
        """Get one page of notes, newest first, plus the total note count.

        No clamping happens here: callers validate ``page`` and
        ``page_size``. An offset past the last row yields an empty page
        that still reports the full total.
        """
        offset = (page - 1) * page_size
        try:
            with self.database.session() as session:
                total = session.scalar(select(func.count()).select_from(DBNote))
                rows = session.scalars(
                    select(DBNote)
                    .order_by(DBNote.created_at.desc())
                    .limit(page_size)
                    .offset(offset)
                ).all()
                notes = [self._db_note_to_model(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Failed to list notes (page={page}, page_size={page_size}): {e}")
            raise DatabaseError(
                f"Failed to list notes: {e}",
                operation="list_page",
                original_error=e,
            ) from e

        return NotePage(notes=notes, total=total or 0)

    def get(self, note_id: int) -> Optional[Note]:
        """Get a note by id, or None."""
        try:
            with self.database.session() as session:
                db_note = session.get(DBNote, note_id)
                return self._db_note_to_model(db_note) if db_note else None
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to load note {note_id}: {e}",
                operation="get",
                original_error=e,
            ) from e

    def count(self) -> int:
        """Count all notes."""
        try:
            with self.database.session() as session:
                return session.scalar(select(func.count()).select_from(DBNote)) or 0
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Failed to count notes: {e}",
                operation="count",
                original_error=e,
            ) from e

    # ------------------------------------------------------------------
    # Primary-table halves of a write (caller owns the transaction)
    # ------------------------------------------------------------------

    def insert_row(
        self, session: Session, title: str, content: str, tags: Optional[str]
    ) -> int:
        """Insert a note row and return the id the store assigned."""
        result = session.execute(
            insert(notes_table).values(title=title, content=content, tags=tags)
        )
        return result.inserted_primary_key[0]

    def update_row(
        self,
        session: Session,
        note_id: int,
        title: str,
        content: str,
        tags: Optional[str],
    ) -> int:
        """Update title, content and tags in place. Returns rows affected."""
        result = session.execute(
            update(notes_table)
            .where(notes_table.c.id == note_id)
            .values(title=title, content=content, tags=tags)
        )
        return result.rowcount

    def delete_row(self, session: Session, note_id: int) -> int:
        """Delete a note row. Returns rows affected (0 for an unknown id)."""
        result = session.execute(
            delete(notes_table).where(notes_table.c.id == note_id)
        )
        return result.rowcount
