#!/usr/bin/env python
"""Command-line entry point for the note store."""
import argparse
import logging
import os
import sys
from pathlib import Path

from notekeeper import __version__
from notekeeper.config import config
from notekeeper.exceptions import NotesError
from notekeeper.models.content import Document
from notekeeper.observability import configure_logging
from notekeeper.services.note_store import NoteStore


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Notekeeper note store")
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument(
        "--data-dir",
        help="Directory holding notes, settings and backups",
        type=str,
        default=os.environ.get("NOTEKEEPER_DATA_DIR"),
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("NOTEKEEPER_LOG_LEVEL", "WARNING"),
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="List notes in display order")

    add = commands.add_parser("add", help="Create a note")
    add.add_argument("title")
    add.add_argument("--text", default="", help="Plain-text body")
    add.add_argument("--tail", action="store_true", help="Append instead of prepend")

    show = commands.add_parser("show", help="Print a note")
    show.add_argument("note_id")

    search = commands.add_parser("search", help="Search titles and bodies")
    search.add_argument("query")

    move = commands.add_parser("move", help="Move a note to a list position")
    move.add_argument("note_id")
    move.add_argument("position", type=int)

    delete = commands.add_parser("delete", help="Delete a note")
    delete.add_argument("note_id")

    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.data_dir:
        config.data_dir = Path(args.data_dir)


def run_command(store: NoteStore, args) -> None:
    """Execute one CLI command against a loaded store."""
    if args.command == "list":
        for note in store.list_notes():
            print(f"{note.id}  {note.title}")
    elif args.command == "add":
        position = len(store) if args.tail else 0
        note = store.create_note(
            title=args.title, content=Document.from_text(args.text), position=position
        )
        print(note.id)
    elif args.command == "show":
        note = store.get_note(args.note_id)
        print(f"# {note.title}")
        print(f"Updated: {note.updated_at.isoformat()}  Words: {store.word_count(note.id)}")
        print()
        print(note.text)
    elif args.command == "search":
        for note_id in store.search(args.query):
            print(f"{note_id}  {store.get_note(note_id).title}")
    elif args.command == "move":
        store.move_note(args.note_id, args.position)
    elif args.command == "delete":
        store.delete_note(args.note_id)


def main(argv=None):
    """Run one note store command."""
    args = parse_args(argv)
    update_config(args)

    # Without a writable data directory nothing can be saved
    try:
        config.ensure_data_dir()
    except NotesError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)

    log_level = getattr(logging, args.log_level.upper(), logging.WARNING)
    try:
        configure_logging(config.get_log_dir(), level=log_level, console=True)
    except OSError as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=log_level)
        logging.getLogger(__name__).warning(f"Failed to configure file logging: {e}")

    logger = logging.getLogger(__name__)

    try:
        store = NoteStore.from_config(config)
        report = store.load_on_startup()
    except NotesError as e:
        logger.error(f"Failed to open note store: {e}")
        sys.exit(1)

    if report.warning:
        print(f"Warning: {report.warning}", file=sys.stderr)

    exit_code = 0
    try:
        run_command(store, args)
    except NotesError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        exit_code = 2
    finally:
        try:
            store.close()
        except NotesError as e:
            logger.error(f"Failed to save notes: {e}")
            print(f"Error: notes were not saved ({e.message})", file=sys.stderr)
            exit_code = 1
    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
