"""
quicknote - a local note-taking backend.
Notes are persisted in an embedded SQLite database with an FTS5 shadow table
that is kept in lockstep with the primary table by a transactional write path.

This version uses synchronous operations.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("quicknote")
except PackageNotFoundError:
    __version__ = "0.3.0"
