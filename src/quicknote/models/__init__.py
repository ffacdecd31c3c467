"""Data models for quicknote."""
