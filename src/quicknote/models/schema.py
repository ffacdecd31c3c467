"""Data models for quicknote."""

import datetime
from datetime import timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: datetime.datetime) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    SQLite stores timestamps without zone info, and rows created by the
    column default (CURRENT_TIMESTAMP) are UTC as well.
    """
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


class Note(BaseModel):
    """A persisted note."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Store-assigned identifier")
    title: str
    content: str
    tags: Optional[str] = Field(
        default=None, description="Free-form tags, e.g. comma-separated"
    )
    created_at: datetime.datetime

    def to_dict(self) -> dict:
        """Serialize for the command line front end."""
        data = self.model_dump()
        data["created_at"] = ensure_timezone_aware(self.created_at).isoformat()
        return data


class NoteInput(BaseModel):
    """Payload for a save: no id creates a note, an id updates it.

    Title emptiness is deliberately not checked here; callers own that rule.
    """

    # Unknown keys such as created_at from a listed note are dropped
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    title: str
    content: str
    tags: Optional[str] = None

    @property
    def is_update(self) -> bool:
        return self.id is not None

    def normalized_tags(self) -> str:
        """Tags as written to storage: never null."""
        return self.tags if self.tags is not None else ""


class NotePage(BaseModel):
    """One page of notes plus the unfiltered total row count."""

    notes: List[Note] = Field(default_factory=list)
    total: int = 0

    def to_dict(self) -> dict:
        return {"notes": [n.to_dict() for n in self.notes], "total": self.total}


class IndexHealth(BaseModel):
    """Result of comparing the notes table with its search index."""

    note_count: int
    index_count: int
    missing_from_index: List[int] = Field(default_factory=list)
    orphaned_in_index: List[int] = Field(default_factory=list)
    mismatched: List[int] = Field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return not (self.missing_from_index or self.orphaned_in_index or self.mismatched)

    def to_dict(self) -> dict:
        data = self.model_dump()
        data["healthy"] = self.healthy
        return data
