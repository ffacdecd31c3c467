"""Service layer for quicknote."""
