"""CLI entrypoint for the metadata store."""

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict

from metastore.config.loader import DEFAULT_CONFIG_PATH, load_config, normalize_config
from metastore.errors import StoreError
from metastore.models import ListPage
from metastore.pagination.cursor import generate_pagination_key
from metastore.store.factory import build_store
from metastore.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def _load_cli_config(args: argparse.Namespace) -> Dict[str, Any]:
    """Load --config, falling back to defaults when the default file is absent."""
    path = Path(args.config) if args.config else None
    try:
        return load_config(path)
    except FileNotFoundError:
        if path is not None:
            raise
        logger.info(f"No {DEFAULT_CONFIG_PATH} found, using built-in defaults")
        return normalize_config({})


def _print_page(page: ListPage) -> None:
    payload = {
        "items": [item.model_dump(mode="json", exclude_none=True) for item in page.items],
        "next_page_token": page.next_page_token,
    }
    print(json.dumps(payload, indent=2, sort_keys=True))


def cmd_keygen(args: argparse.Namespace) -> None:
    """Print a fresh pagination key for pagination.key / METASTORE_PAGINATION_KEY."""
    print(generate_pagination_key())


def cmd_init_db(args: argparse.Namespace) -> None:
    """Create the projects, notes and occurrences tables."""
    config = _load_cli_config(args)
    store = build_store(config, create_tables=True)
    store.db.dispose()
    print(f"Tables ready at {config['database']['url']}")


def cmd_projects_list(args: argparse.Namespace) -> None:
    store = build_store(_load_cli_config(args))
    try:
        _print_page(store.list_projects(page_token=args.page_token, page_size=args.page_size))
    finally:
        store.db.dispose()


def cmd_notes_list(args: argparse.Namespace) -> None:
    store = build_store(_load_cli_config(args))
    try:
        _print_page(
            store.list_notes(
                args.project,
                filter_expression=args.filter,
                page_token=args.page_token,
                page_size=args.page_size,
            )
        )
    finally:
        store.db.dispose()


def cmd_occurrences_list(args: argparse.Namespace) -> None:
    store = build_store(_load_cli_config(args))
    try:
        if args.note:
            page = store.list_note_occurrences(
                args.project,
                args.note,
                filter_expression=args.filter,
                page_token=args.page_token,
                page_size=args.page_size,
            )
        else:
            page = store.list_occurrences(
                args.project,
                filter_expression=args.filter,
                page_token=args.page_token,
                page_size=args.page_size,
            )
        _print_page(page)
    finally:
        store.db.dispose()


def _add_list_arguments(parser: argparse.ArgumentParser, with_filter: bool = True) -> None:
    if with_filter:
        parser.add_argument("--filter", default="", help='Filter expression, e.g. kind = "VULNERABILITY"')
    parser.add_argument("--page-token", default="", help="Token from a previous page")
    parser.add_argument("--page-size", type=int, default=None, help="Maximum items to return")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="metastore",
        description="Project, note and occurrence metadata store",
    )
    parser.add_argument("--config", default=None, help=f"Config file (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    keygen_parser = subparsers.add_parser("keygen", help="Generate a pagination key")
    keygen_parser.set_defaults(func=cmd_keygen)

    init_parser = subparsers.add_parser("init-db", help="Create database tables")
    init_parser.set_defaults(func=cmd_init_db)

    projects_parser = subparsers.add_parser("projects", help="Project commands")
    projects_subparsers = projects_parser.add_subparsers(dest="projects_command")
    projects_list_parser = projects_subparsers.add_parser("list", help="List projects")
    _add_list_arguments(projects_list_parser, with_filter=False)
    projects_list_parser.set_defaults(func=cmd_projects_list)

    notes_parser = subparsers.add_parser("notes", help="Note commands")
    notes_subparsers = notes_parser.add_subparsers(dest="notes_command")
    notes_list_parser = notes_subparsers.add_parser("list", help="List notes in a project")
    notes_list_parser.add_argument("--project", required=True, help="Project id")
    _add_list_arguments(notes_list_parser)
    notes_list_parser.set_defaults(func=cmd_notes_list)

    occurrences_parser = subparsers.add_parser("occurrences", help="Occurrence commands")
    occurrences_subparsers = occurrences_parser.add_subparsers(dest="occurrences_command")
    occurrences_list_parser = occurrences_subparsers.add_parser("list", help="List occurrences")
    occurrences_list_parser.add_argument("--project", required=True, help="Project id (note project with --note)")
    occurrences_list_parser.add_argument("--note", default=None, help="Only occurrences of this note id")
    _add_list_arguments(occurrences_list_parser)
    occurrences_list_parser.set_defaults(func=cmd_occurrences_list)

    return parser


def main(argv=None) -> int:
    """Main CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(getattr(logging, str(args.log_level).upper(), logging.INFO))

    if not getattr(args, "func", None):
        parser.print_help()
        return 0

    try:
        args.func(args)
    except StoreError as e:
        logger.error(f"Command '{args.command}' failed: {e}")
        print(f"Error: {e}")
        return 1
    except Exception as e:
        logger.error(f"Error running command '{args.command}': {e}", exc_info=True)
        raise
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
