"""FTS5 search index for notes.

The index is a shadow of the ``notes`` table: one row per note, ``rowid``
equal to the note id, mirroring title, content and tags. Writes to it only
happen through the WriteCoordinator, inside the same transaction as the
primary-table write.

Ranked search deliberately uses case-insensitive substring matching
(LIKE) rather than FTS5 MATCH/bm25, so a query like ``"ote"`` finds
``"Notes"``.
"""
import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import Text, and_, case, delete, func, insert, literal, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quicknote.exceptions import DatabaseError, ErrorCode
from quicknote.models.db_models import DBNote, notes_fts, rebuild_fts_index
from quicknote.models.schema import IndexHealth, Note, ensure_timezone_aware
from quicknote.storage.database import NoteDatabase
from quicknote.utils import substring_pattern

logger = logging.getLogger(__name__)

notes_table = DBNote.__table__

# Match priorities; a note is ranked by its best-matching field
TITLE_PRIORITY = 3
TAGS_PRIORITY = 2
CONTENT_PRIORITY = 1


class FtsIndex:
    """Search index over notes with ranked substring lookup.

    Args:
        database: Storage handle for the note database.
    """

    def __init__(self, database: NoteDatabase) -> None:
        self.database = database

    # ------------------------------------------------------------------
    # Public query API
    # ------------------------------------------------------------------

    def search(self, query: str) -> List[Note]:
        """Find notes containing ``query`` in title, tags or content.

        Matching is case-insensitive substring containment; LIKE wildcards
        in the query are matched literally. Results are ordered by the
        best-matching field (title, then tags, then content), newest first
        within a priority.

        Args:
            query: Text to look for. Empty or whitespace-only queries
                return no results without touching the database.

        Returns:
            Matching notes in rank order.

        Raises:
            DatabaseError: If the query fails. No partial results.
        """
        if not query or not query.strip():
            return []

        term = func.lower(literal(substring_pattern(query), type_=Text))
        title_hit = func.lower(notes_fts.c.title).like(term, escape="\\")
        tags_hit = and_(
            notes_fts.c.tags.isnot(None),
            func.lower(notes_fts.c.tags).like(term, escape="\\"),
        )
        content_hit = func.lower(notes_fts.c.content).like(term, escape="\\")

        priority = case(
            (title_hit, TITLE_PRIORITY),
            (tags_hit, TAGS_PRIORITY),
            (content_hit, CONTENT_PRIORITY),
            else_=0,
        ).label("priority")

        stmt = (
            select(DBNote, priority)
            .join(notes_fts, notes_fts.c.rowid == DBNote.id)
            .where(or_(title_hit, tags_hit, content_hit))
            .order_by(priority.desc(), DBNote.created_at.desc())
        )

        try:
            with self.database.session() as session:
                rows = session.execute(stmt).all()
                results = [
                    Note(
                        id=db_note.id,
                        title=db_note.title,
                        content=db_note.content,
                        tags=db_note.tags,
                        created_at=ensure_timezone_aware(db_note.created_at),
                    )
                    for db_note, _priority in rows
                ]
        except SQLAlchemyError as e:
            logger.error(f"Search failed for '{query}': {e}")
            raise DatabaseError(
                f"Search failed: {e}",
                operation="search",
                code=ErrorCode.SEARCH_FAILED,
                original_error=e,
            ) from e

        logger.debug(f"Search returned {len(results)} results for query '{query}'")
        return results

    # ------------------------------------------------------------------
    # Index halves of a write (caller owns the transaction)
    # ------------------------------------------------------------------

    def add(
        self,
        session: Session,
        note_id: int,
        title: str,
        content: str,
        tags: Optional[str],
    ) -> None:
        """Add the shadow row for a newly inserted note."""
        session.execute(
            insert(notes_fts).values(
                rowid=note_id, title=title, content=content, tags=tags
            )
        )

    def update(
        self,
        session: Session,
        note_id: int,
        title: str,
        content: str,
        tags: Optional[str],
    ) -> int:
        """Rewrite the shadow row of an existing note. Returns rows affected."""
        result = session.execute(
            update(notes_fts)
            .where(notes_fts.c.rowid == note_id)
            .values(title=title, content=content, tags=tags)
        )
        return result.rowcount

    def remove(self, session: Session, note_id: int) -> int:
        """Remove the shadow row of a note. Returns rows affected."""
        result = session.execute(
            delete(notes_fts).where(notes_fts.c.rowid == note_id)
        )
        return result.rowcount

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def check_consistency(self) -> IndexHealth:
        """Compare the index with the notes table row by row."""
        try:
            with self.database.session() as session:
                primary = self._fields_by_id(
                    session.execute(
                        select(
                            notes_table.c.id,
                            notes_table.c.title,
                            notes_table.c.content,
                            notes_table.c.tags,
                        )
                    ).all()
                )
                shadow = self._fields_by_id(
                    session.execute(
                        select(
                            notes_fts.c.rowid,
                            notes_fts.c.title,
                            notes_fts.c.content,
                            notes_fts.c.tags,
                        )
                    ).all()
                )
        except SQLAlchemyError as e:
            raise DatabaseError(
                f"Index consistency check failed: {e}",
                operation="check_consistency",
                original_error=e,
            ) from e

        shared = primary.keys() & shadow.keys()
        health = IndexHealth(
            note_count=len(primary),
            index_count=len(shadow),
            missing_from_index=sorted(primary.keys() - shadow.keys()),
            orphaned_in_index=sorted(shadow.keys() - primary.keys()),
            mismatched=sorted(i for i in shared if primary[i] != shadow[i]),
        )
        if not health.healthy:
            logger.warning(
                f"Search index out of sync: missing={health.missing_from_index}, "
                f"orphaned={health.orphaned_in_index}, mismatched={health.mismatched}"
            )
        return health

    def rebuild(self) -> int:
        """Rebuild the index from the notes table. Returns notes indexed."""
        try:
            count = rebuild_fts_index(self.database.engine)
        except SQLAlchemyError as e:
            logger.error(f"FTS5 rebuild failed: {e}")
            raise DatabaseError(
                f"Index rebuild failed: {e}",
                operation="rebuild",
                code=ErrorCode.INDEX_REBUILD_FAILED,
                original_error=e,
            ) from e
        logger.info(f"FTS5 index rebuilt with {count} notes")
        return count

    @staticmethod
    def _fields_by_id(rows) -> Dict[int, Tuple[str, str, Optional[str]]]:
        return {row[0]: (row[1], row[2], row[3]) for row in rows}
