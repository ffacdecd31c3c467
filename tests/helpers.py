"""Shared test helpers."""
from sqlalchemy import text


def table_rows(database, sql):
    """Run a raw query and return all rows as tuples."""
    with database.session() as session:
        return [tuple(row) for row in session.execute(text(sql)).all()]


def primary_and_index(database):
    """Return (notes rows, index rows) as {id: (title, content, tags)}."""
    notes = {
        r[0]: r[1:]
        for r in table_rows(database, "SELECT id, title, content, tags FROM notes")
    }
    index = {
        r[0]: r[1:]
        for r in table_rows(database, "SELECT rowid, title, content, tags FROM notes_fts")
    }
    return notes, index
