"""Tests for the exception hierarchy and its serialization."""

from quicknote.exceptions import (
    ConfigurationError,
    DatabaseError,
    ErrorCode,
    NoteNotFoundError,
    QuicknoteError,
    SchemaError,
    StorageIOError,
    ValidationError,
)


class TestExceptionHierarchy:
    """Tests for the exception class hierarchy and serialization."""

    def test_base_exception_to_dict(self):
        """Test base exception serialization."""
        exc = QuicknoteError(
            "Test error", code=ErrorCode.VALIDATION_FAILED, details={"key": "value"}
        )
        result = exc.to_dict()

        assert result["error"] == "QuicknoteError"
        assert result["code"] == ErrorCode.VALIDATION_FAILED.value
        assert result["code_name"] == "VALIDATION_FAILED"
        assert result["message"] == "Test error"
        assert result["details"] == {"key": "value"}

    def test_str_includes_code_and_details(self):
        """String form carries the code name and details."""
        exc = QuicknoteError("Boom", details={"a": 1})
        assert str(exc) == "[VALIDATION_FAILED] Boom (a=1)"
        assert str(QuicknoteError("Plain")) == "[VALIDATION_FAILED] Plain"

    def test_all_errors_share_base(self):
        """Every error can be caught as QuicknoteError."""
        for exc in (
            StorageIOError("x"),
            SchemaError("x"),
            DatabaseError("x"),
            NoteNotFoundError(1),
            ValidationError("x"),
            ConfigurationError("x"),
        ):
            assert isinstance(exc, QuicknoteError)

    def test_storage_io_error_path_sanitization(self):
        """StorageIOError only exposes the last path component."""
        exc = StorageIOError(
            "Write failed",
            path="/home/user/secret/appdata/notes.db",
        )

        assert exc.code == ErrorCode.STORAGE_IO_FAILED
        assert exc.details["path_hint"] == "notes.db"
        assert "/home/user" not in str(exc)

    def test_schema_error_keeps_original(self):
        """SchemaError records the underlying failure."""
        original = RuntimeError("no such module: fts5")
        exc = SchemaError("Failed to create tables", original_error=original)

        assert exc.code == ErrorCode.SCHEMA_CREATION_FAILED
        assert exc.original_error is original
        assert "fts5" in exc.details["original_error"]
        assert set(exc.details) == {"original_error"}

    def test_database_error_defaults(self):
        """DatabaseError defaults to a read failure and records the operation."""
        exc = DatabaseError("Search failed", operation="search")
        assert exc.code == ErrorCode.STORAGE_READ_FAILED
        assert exc.details == {"operation": "search"}

    def test_note_not_found(self):
        """NoteNotFoundError carries the id."""
        exc = NoteNotFoundError(42)
        assert exc.note_id == 42
        assert exc.code == ErrorCode.NOTE_NOT_FOUND
        assert "42" in exc.message

    def test_validation_error_truncates_value(self):
        """Long offending values are truncated in details."""
        exc = ValidationError("bad", field="title", value="x" * 500)
        assert len(exc.details["value"]) == 100
        assert exc.field == "title"
