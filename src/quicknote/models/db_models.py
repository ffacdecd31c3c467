"""SQLAlchemy database models and schema initialization for quicknote."""
import datetime
import logging
from pathlib import Path
from typing import Union
from urllib.parse import quote

from sqlalchemy import (Column, DateTime, Integer, MetaData, Table, Text,
                        create_engine, event, func, text)
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

from quicknote.exceptions import SchemaError, StorageIOError

logger = logging.getLogger(__name__)

# Create base class for SQLAlchemy models
Base = declarative_base()

DEFAULT_DATABASE_FILENAME = "notes.db"


def _utc_naive_now() -> datetime.datetime:
    # SQLite has no zone support; store UTC and re-attach the zone on read
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class DBNote(Base):
    """Database model for a note (the primary table)."""
    __tablename__ = "notes"
    # AUTOINCREMENT: ids of deleted notes are never handed out again
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    tags = Column(Text, nullable=True)
    created_at = Column(
        DateTime,
        default=_utc_naive_now,
        server_default=func.current_timestamp(),
        nullable=False,
    )

    def __repr__(self) -> str:
        """Return string representation of note."""
        return f"<Note(id={self.id}, title='{self.title}')>"


# The search index is an FTS5 virtual table, so it is kept out of
# Base.metadata (create_all cannot emit CREATE VIRTUAL TABLE) and only
# described here for query building. rowid is the note id.
fts_metadata = MetaData()

notes_fts = Table(
    "notes_fts",
    fts_metadata,
    Column("rowid", Integer, primary_key=True),
    Column("title", Text),
    Column("content", Text),
    Column("tags", Text),
)

FTS_TABLE_DDL = """
    CREATE VIRTUAL TABLE IF NOT EXISTS notes_fts USING fts5(
        title,
        content,
        tags
    )
"""


def _sqlite_url(db_path: Path, create: bool) -> URL:
    # URI filenames let us refuse to silently create an empty database
    # file outside of initialization (mode=rw fails if the file is missing).
    # The path is percent-encoded: SQLite reads a bare '?' or '#' in a URI
    # filename as the start of the query or fragment.
    mode = "rwc" if create else "rw"
    return URL.create(
        "sqlite",
        database=f"file:{quote(Path(db_path).as_posix())}",
        query={"mode": mode, "uri": "true"},
    )


def create_note_engine(
    db_path: Union[str, Path],
    busy_timeout_ms: int = 5000,
    create: bool = False,
) -> Engine:
    """Create an engine for the note database.

    Uses NullPool: every session opens its own SQLite connection and
    closes it when the session ends, so no connection outlives a call.
    Each connection is configured with:
    - WAL (Write-Ahead Logging) mode for atomic writes
    - NORMAL synchronous mode
    - busy_timeout so a concurrent writer is waited on instead of failing
    """
    engine = create_engine(
        _sqlite_url(Path(db_path), create),
        poolclass=NullPool,
        connect_args={"timeout": busy_timeout_ms / 1000.0},
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
        cursor.close()

    return engine


def get_session_factory(engine: Engine) -> sessionmaker:
    """Get a session factory for the database."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def create_schema(engine: Engine) -> None:
    """Create the primary table and its FTS5 search index."""
    Base.metadata.create_all(engine)
    with engine.begin() as conn:
        conn.execute(text(FTS_TABLE_DDL))


def _discard_partial_database(db_path: Path) -> None:
    """Remove a database file whose schema could not be created.

    Initialization is skipped whenever the file exists, so a half-built
    file left behind would never get its tables.
    """
    for suffix in ("", "-wal", "-shm"):
        candidate = db_path.with_name(db_path.name + suffix)
        try:
            candidate.unlink()
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning(f"Could not remove partial database file {candidate}: {e}")


def initialize_storage(
    storage_root: Union[str, Path],
    database_filename: str = DEFAULT_DATABASE_FILENAME,
    busy_timeout_ms: int = 5000,
) -> Path:
    """Ensure the database file and its tables exist.

    If the database file already exists this is a no-op: the schema is
    assumed valid and no migration is attempted. Otherwise the storage
    directory is created (with parents), then the database file, the
    ``notes`` table and the ``notes_fts`` index.

    Args:
        storage_root: Directory that holds the database file.
        database_filename: Name of the database file inside storage_root.
        busy_timeout_ms: SQLite busy timeout for the setup connection.

    Returns:
        Path to the database file.

    Raises:
        StorageIOError: If the directory or file cannot be created.
        SchemaError: If the table creation statements fail.
    """
    root = Path(storage_root).expanduser().resolve()
    db_path = root / database_filename

    if db_path.exists():
        logger.info(f"Database already exists at {db_path}")
        return db_path

    logger.info(f"Database does not exist, creating {db_path}")
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StorageIOError(
            f"Failed to create storage directory: {e}",
            path=str(root),
            original_error=e,
        ) from e

    engine = create_note_engine(db_path, busy_timeout_ms, create=True)
    try:
        try:
            # Opening the first connection creates the file
            with engine.connect():
                pass
        except OperationalError as e:
            raise StorageIOError(
                f"Failed to create database file: {e.orig or e}",
                path=str(db_path),
                original_error=e,
            ) from e

        try:
            create_schema(engine)
        except SQLAlchemyError as e:
            logger.error(f"Schema creation failed for {db_path}: {e}")
            engine.dispose()
            _discard_partial_database(db_path)
            raise SchemaError(
                f"Failed to create tables: {getattr(e, 'orig', None) or e}",
                original_error=e,
            ) from e
    finally:
        engine.dispose()

    logger.info("Tables created successfully")
    return db_path


def rebuild_fts_index(engine: Engine) -> int:
    """Rebuild the FTS5 index from existing notes.

    Clears the index and repopulates it from the notes table in one
    transaction. Useful when the index got out of sync.

    Returns:
        Number of notes indexed.
    """
    with engine.begin() as conn:
        conn.execute(text("DELETE FROM notes_fts"))
        conn.execute(text("""
            INSERT INTO notes_fts(rowid, title, content, tags)
            SELECT id, title, content, tags FROM notes
        """))
        count = conn.execute(text("SELECT COUNT(*) FROM notes_fts")).scalar()

    return count
