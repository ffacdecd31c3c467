#!/usr/bin/env python
"""Command line front end for quicknote."""
import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, List, Optional

import pydantic

from quicknote import __version__
from quicknote.config import QuicknoteConfig, config, config_error, configuration_error
from quicknote.exceptions import ConfigurationError, QuicknoteError
from quicknote.models.schema import NoteInput
from quicknote.observability import configure_logging, metrics
from quicknote.services.note_service import NoteService

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(prog="quicknote", description="Local note store")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--data-dir",
        help="Directory holding the notes database",
        type=str,
        default=os.environ.get("QUICKNOTE_DATA_DIR"),
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
    )
    parser.add_argument(
        "--verbose",
        help="Also log to stderr",
        action="store_true",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create the database if it does not exist")

    list_parser = sub.add_parser("list", help="List notes, newest first")
    list_parser.add_argument("--page", type=int, default=1)
    list_parser.add_argument("--page-size", type=int, default=None)

    get_parser = sub.add_parser("get", help="Show one note")
    get_parser.add_argument("id", type=int)

    search_parser = sub.add_parser("search", help="Search titles, tags and content")
    search_parser.add_argument("query")

    save_parser = sub.add_parser("save", help="Create a note, or update one with --id")
    save_parser.add_argument("--id", type=int, default=None)
    save_parser.add_argument("--title", required=True)
    save_parser.add_argument("--content", required=True)
    save_parser.add_argument("--tags", default=None)

    delete_parser = sub.add_parser("delete", help="Delete a note")
    delete_parser.add_argument("id", type=int)

    sub.add_parser("check-index", help="Compare the search index with the notes table")
    sub.add_parser("rebuild-index", help="Rebuild the search index from the notes table")
    sub.add_parser("status", help="Show database location and note count")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> QuicknoteConfig:
    """Apply command line overrides on top of the global config."""
    if config_error is not None:
        raise config_error
    overrides = {}
    if args.data_dir:
        overrides["data_dir"] = Path(args.data_dir)
    if args.log_level:
        overrides["log_level"] = args.log_level
    if not overrides:
        return config
    try:
        return QuicknoteConfig.model_validate({**config.model_dump(), **overrides})
    except pydantic.ValidationError as e:
        raise configuration_error(e) from e


def run_command(service: NoteService, args: argparse.Namespace) -> Any:
    """Dispatch a parsed command and return a JSON-serializable result."""
    command = args.command
    if command == "init":
        return {"database": str(service.database.database_path)}
    if command == "list":
        return service.list_page(args.page, args.page_size).to_dict()
    if command == "get":
        return service.get_note(args.id).to_dict()
    if command == "search":
        return [note.to_dict() for note in service.search(args.query)]
    if command == "save":
        note_id = service.save(
            NoteInput(id=args.id, title=args.title, content=args.content, tags=args.tags)
        )
        return {"id": note_id}
    if command == "delete":
        service.delete(args.id)
        return {"deleted": args.id}
    if command == "check-index":
        return service.check_index().to_dict()
    if command == "rebuild-index":
        return {"indexed": service.rebuild_index()}
    if command == "status":
        return {
            "version": __version__,
            "database": str(service.database.database_path),
            "notes": service.count(),
            "metrics": metrics.get_summary(),
        }
    raise ValueError(f"Unknown command: {command}")


def main(argv: Optional[List[str]] = None) -> int:
    """Run one quicknote command."""
    args = parse_args(argv)

    try:
        cfg = build_config(args)
    except ConfigurationError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 1

    log_level = getattr(logging, cfg.log_level, logging.INFO)
    try:
        configure_logging(cfg.get_log_dir(), level=log_level, console=args.verbose)
    except OSError as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=log_level)
        logger.warning(f"Failed to configure file logging: {e}")

    service = NoteService(cfg)
    try:
        # Storage setup failures are fatal: every later call would fail anyway
        try:
            service.initialize_storage()
        except QuicknoteError as e:
            logger.error(f"Failed to initialize database: {e}")
            print(f"error: {e.message}", file=sys.stderr)
            return 1

        try:
            result = run_command(service, args)
        except QuicknoteError as e:
            logger.error(f"Command '{args.command}' failed: {e}")
            print(f"error: {e.message}", file=sys.stderr)
            return 1
    finally:
        service.close()

    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
