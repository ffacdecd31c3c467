"""Configuration module for quicknote."""

import logging
import os
import sys
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from quicknote import __version__
from quicknote.exceptions import ConfigurationError

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# User-level config: survives reinstalls
_USER_ENV = Path.home() / ".quicknote" / ".env"
load_dotenv(_USER_ENV)

logger = logging.getLogger(__name__)

APP_NAME = "quicknote"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def default_data_dir() -> Path:
    """Return the per-application data directory for the current platform.

    - Windows: %APPDATA%\\quicknote
    - macOS: ~/Library/Application Support/quicknote
    - Other: $XDG_DATA_HOME/quicknote, falling back to ~/.local/share/quicknote
    """
    if sys.platform.startswith("win"):
        appdata = os.getenv("APPDATA")
        base = Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        xdg = os.getenv("XDG_DATA_HOME")
        base = Path(xdg) if xdg else Path.home() / ".local" / "share"
    return base / APP_NAME


def _env_path(name: str) -> Optional[Path]:
    value = os.getenv(name)
    return Path(value) if value else None


class QuicknoteConfig(BaseModel):
    """Configuration for the note store."""

    # Storage location: directory holding the database file
    data_dir: Path = Field(
        default_factory=lambda: _env_path("QUICKNOTE_DATA_DIR") or default_data_dir()
    )
    database_filename: str = Field(
        default_factory=lambda: os.getenv("QUICKNOTE_DATABASE_FILENAME", "notes.db")
    )
    # Logging configuration; log_dir defaults to <data_dir>/logs
    log_dir: Optional[Path] = Field(
        default_factory=lambda: _env_path("QUICKNOTE_LOG_DIR")
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("QUICKNOTE_LOG_LEVEL", "INFO").upper()
    )
    # How long SQLite waits on a locked database file before failing
    busy_timeout_ms: int = Field(
        default_factory=lambda: os.getenv("QUICKNOTE_BUSY_TIMEOUT_MS", "5000"),
        validate_default=True,
    )
    default_page_size: int = Field(
        default_factory=lambda: os.getenv("QUICKNOTE_DEFAULT_PAGE_SIZE", "10"),
        validate_default=True,
    )
    app_version: str = Field(default=__version__)

    @model_validator(mode="after")
    def _validate_limits(self) -> "QuicknoteConfig":
        """Reject settings the storage layer cannot work with."""
        if self.busy_timeout_ms < 0:
            raise ValueError("busy_timeout_ms must be >= 0")
        if self.default_page_size < 1:
            raise ValueError("default_page_size must be >= 1")
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"unknown log_level: {self.log_level}")
        return self

    def get_database_path(self, data_dir: Optional[Path] = None) -> Path:
        """Get the absolute path of the database file."""
        root = Path(data_dir) if data_dir is not None else self.data_dir
        return root.expanduser().resolve() / self.database_filename

    def get_log_dir(self) -> Path:
        """Get the directory used for rotating log files."""
        if self.log_dir is not None:
            return self.log_dir.expanduser()
        return self.data_dir.expanduser() / "logs"


def configuration_error(e: ValidationError) -> ConfigurationError:
    """Turn a pydantic validation failure into a ConfigurationError."""
    first = e.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    return ConfigurationError(
        f"Invalid configuration: {field or 'settings'}: {first.get('msg', 'invalid value')}",
        config_key=f"QUICKNOTE_{field.upper()}" if field else None,
    )


def load_config() -> QuicknoteConfig:
    """Build a config from the environment.

    Raises:
        ConfigurationError: A QUICKNOTE_* value is malformed or out of range.
    """
    try:
        return QuicknoteConfig()
    except ValidationError as e:
        raise configuration_error(e) from e


def _load_global_config() -> Tuple[QuicknoteConfig, Optional[ConfigurationError]]:
    # A bad environment must not break importing the package; the error is
    # kept and reported by the CLI before it touches storage.
    try:
        return load_config(), None
    except ConfigurationError as e:
        logger.error(f"{e.message}; falling back to built-in defaults")
        fallback = QuicknoteConfig.model_construct(
            data_dir=default_data_dir(),
            database_filename="notes.db",
            log_dir=None,
            log_level="INFO",
            busy_timeout_ms=5000,
            default_page_size=10,
            app_version=__version__,
        )
        return fallback, e


# Global config instance, plus the error that replaced it with defaults (if any)
config, config_error = _load_global_config()
