"""Explicit storage handle shared by the note store, index and writer."""
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union

from sqlalchemy.orm import Session

from quicknote.config import QuicknoteConfig
from quicknote.config import config as default_config
from quicknote.models.db_models import create_note_engine, get_session_factory

logger = logging.getLogger(__name__)


class NoteDatabase:
    """Handle to one note database file.

    Owns the engine and session factory. Components receive this handle
    instead of reaching for a global connection, so tests can run against
    isolated databases side by side.

    Args:
        database_path: Path to an initialized SQLite database file.
        busy_timeout_ms: How long to wait on a locked database file.
    """

    def __init__(
        self,
        database_path: Union[str, Path],
        busy_timeout_ms: int = 5000,
    ) -> None:
        self.database_path = Path(database_path)
        self.engine = create_note_engine(self.database_path, busy_timeout_ms)
        self.session_factory = get_session_factory(self.engine)
        logger.debug(f"NoteDatabase opened for {self.database_path}")

    @classmethod
    def from_config(
        cls,
        cfg: Optional[QuicknoteConfig] = None,
        data_dir: Optional[Path] = None,
    ) -> "NoteDatabase":
        """Build a handle for the database file named by the configuration."""
        cfg = cfg or default_config
        return cls(cfg.get_database_path(data_dir), busy_timeout_ms=cfg.busy_timeout_ms)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Session for reads. The connection is released on exit."""
        with self.session_factory() as session:
            yield session

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Session wrapped in one transaction.

        Commits when the block exits normally; rolls back and re-raises
        when it raises.
        """
        with self.session_factory.begin() as session:
            yield session

    def dispose(self) -> None:
        """Release engine resources."""
        self.engine.dispose()

    def __repr__(self) -> str:
        return f"<NoteDatabase(path='{self.database_path}')>"
