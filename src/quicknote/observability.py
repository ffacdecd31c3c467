"""Logging setup and per-operation statistics for the note service.

``configure_logging`` sends the ``quicknote`` logger hierarchy to a
rotating file. ``traced`` wraps service operations: it logs each call at
DEBUG and counts calls, failures and time spent in ``metrics``, which the
``status`` command reports.
"""
import functools
import logging
import os
import time
from collections import defaultdict
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
LOG_FILENAME = "quicknote.log"

F = TypeVar("F", bound=Callable[..., Any])


def configure_logging(
    log_dir: Union[str, Path],
    level: int = logging.INFO,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    console: bool = True,
) -> Path:
    """Log the ``quicknote`` hierarchy to ``<log_dir>/quicknote.log``.

    Calling this again for the same directory does not add a second file
    handler, so the CLI and tests can call it freely.

    Returns:
        The log directory, created if missing.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = os.path.abspath(log_path / LOG_FILENAME)

    app_logger = logging.getLogger("quicknote")
    app_logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    handlers = app_logger.handlers

    if not any(
        isinstance(h, RotatingFileHandler) and h.baseFilename == log_file
        for h in handlers
    ):
        file_handler = RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        app_logger.addHandler(file_handler)

    # Plain StreamHandler only: RotatingFileHandler is a StreamHandler subclass
    if console and not any(type(h) is logging.StreamHandler for h in handlers):
        stderr_handler = logging.StreamHandler()
        stderr_handler.setFormatter(formatter)
        app_logger.addHandler(stderr_handler)

    app_logger.debug(f"Logging to {log_file}")
    return log_path


@dataclass
class OperationStats:
    """Running totals for one service operation."""
    calls: int = 0
    errors: int = 0
    total_ms: float = 0.0
    last_error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "calls": self.calls,
            "errors": self.errors,
            "avg_ms": round(self.total_ms / self.calls, 2) if self.calls else 0.0,
            "last_error": self.last_error,
        }


class MetricsCollector:
    """In-memory call statistics, keyed by operation name."""

    def __init__(self):
        self._stats: Dict[str, OperationStats] = defaultdict(OperationStats)
        self._lock = Lock()

    def record(self, operation: str, duration_ms: float, error: Optional[str] = None) -> None:
        with self._lock:
            stats = self._stats[operation]
            stats.calls += 1
            stats.total_ms += duration_ms
            if error is not None:
                stats.errors += 1
                stats.last_error = error

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Per-operation statistics."""
        with self._lock:
            return {name: stats.as_dict() for name, stats in self._stats.items()}

    def get_summary(self) -> Dict[str, Any]:
        """Totals plus per-operation statistics, as shown by ``status``."""
        with self._lock:
            return {
                "calls": sum(s.calls for s in self._stats.values()),
                "errors": sum(s.errors for s in self._stats.values()),
                "operations": {
                    name: stats.as_dict() for name, stats in sorted(self._stats.items())
                },
            }

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()


metrics = MetricsCollector()


def _describe_call(name: str, args: tuple, kwargs: Dict[str, Any]) -> str:
    # Only ids, page numbers and queries; skips self and note payloads
    parts = [repr(a) for a in args if isinstance(a, (int, str))]
    parts += [f"{k}={v!r}" for k, v in kwargs.items() if isinstance(v, (int, str))]
    return f"{name}({', '.join(parts)[:80]})"


def _describe_result(result: Any) -> str:
    if isinstance(result, list):
        return f"{len(result)} results"
    notes = getattr(result, "notes", None)
    if isinstance(notes, list):
        return f"{len(notes)} of {result.total} notes"
    return "ok"


def traced(operation_name: Optional[str] = None) -> Callable[[F], F]:
    """Time a service operation and record it in ``metrics``.

    Failures are counted and re-raised unchanged.

    Example:
        @traced("save")
        def save(self, note): ...
    """
    def decorator(func: F) -> F:
        name = operation_name or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                elapsed = (time.perf_counter() - started) * 1000
                metrics.record(name, elapsed, error=str(e))
                logger.debug(
                    f"{_describe_call(name, args, kwargs)} failed after {elapsed:.2f}ms: {e}"
                )
                raise
            elapsed = (time.perf_counter() - started) * 1000
            metrics.record(name, elapsed)
            logger.debug(
                f"{_describe_call(name, args, kwargs)} -> {_describe_result(result)} "
                f"in {elapsed:.2f}ms"
            )
            return result

        return wrapper  # type: ignore
    return decorator
