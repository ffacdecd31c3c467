"""Storage layer for quicknote."""

from quicknote.storage.database import NoteDatabase
from quicknote.storage.fts_index import FtsIndex
from quicknote.storage.note_repository import NoteRepository
from quicknote.storage.write_coordinator import WriteCoordinator

__all__ = [
    "NoteDatabase",
    "NoteRepository",
    "FtsIndex",
    "WriteCoordinator",
]
