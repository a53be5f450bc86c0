#!/usr/bin/env python
"""Command-line front end for NoteVault."""
import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, List, Optional

from notevault import __version__
from notevault.config import NoteVaultConfig, config
from notevault.core import NoteVault
from notevault.exceptions import FileAccessError, NoteVaultError
from notevault.models.schema import ResourceType
from notevault.observability import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="notevault", description="Personal note and resource manager"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--database-path",
        help="SQLite database file path",
        type=str,
        default=os.environ.get("NOTEVAULT_DATABASE_PATH"),
    )
    parser.add_argument(
        "--storage-dir",
        help="Directory for managed file copies",
        type=str,
        default=os.environ.get("NOTEVAULT_STORAGE_DIR"),
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init", help="Create the database and storage directory")

    add_text = commands.add_parser("add-text", help="Add a text note")
    add_text.add_argument("title")
    body = add_text.add_mutually_exclusive_group(required=True)
    body.add_argument("--content", help="Note body")
    body.add_argument("--from-file", help="Read the note body from a file")
    add_text.add_argument("--tag", action="append", default=[], dest="tags")

    add_file = commands.add_parser("add-file", help="Add a file resource")
    add_file.add_argument("path")
    add_file.add_argument("--title", help="Defaults to the file name")
    add_file.add_argument(
        "--type",
        choices=[t.value for t in ResourceType if t.is_file_backed],
        help="Defaults to the type implied by the extension",
    )
    managed = add_file.add_mutually_exclusive_group()
    managed.add_argument("--managed", dest="managed", action="store_true", default=None)
    managed.add_argument("--linked", dest="managed", action="store_false")
    add_file.add_argument("--tag", action="append", default=[], dest="tags")

    show = commands.add_parser("show", help="Show a resource")
    show.add_argument("id", type=int)

    delete = commands.add_parser("delete", help="Delete a resource")
    delete.add_argument("id", type=int)

    search = commands.add_parser("search", help="Search titles (or note bodies)")
    search.add_argument("keyword")
    search.add_argument("--content", action="store_true", help="Search note bodies")

    commands.add_parser("tags", help="List all tags")

    tag = commands.add_parser("tag", help="Add tags to a resource")
    tag.add_argument("id", type=int)
    tag.add_argument("names", nargs="+")

    untag = commands.add_parser("untag", help="Remove a tag from a resource")
    untag.add_argument("id", type=int)
    untag.add_argument("name")

    find = commands.add_parser("find", help="Resources carrying all given tags")
    find.add_argument("names", nargs="+")

    check = commands.add_parser("check", help="Check database health")
    check.add_argument(
        "--rebuild-fts", action="store_true", help="Rebuild the text-search indexes first"
    )

    return parser


def make_config(args: argparse.Namespace) -> NoteVaultConfig:
    """Apply command-line overrides to the global config."""
    updates = {}
    if args.database_path:
        updates["database_path"] = Path(args.database_path)
    if args.storage_dir:
        updates["storage_dir"] = Path(args.storage_dir)
    return config.model_copy(update=updates)


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _dump(items: List[Any]) -> List[Any]:
    return [item.model_dump(mode="json") for item in items]


def run(vault: NoteVault, args: argparse.Namespace, cfg: NoteVaultConfig) -> int:
    """Execute one command against an open vault."""
    command = args.command

    if command == "init":
        _emit({
            "database": str(cfg.get_database_path()),
            "storage_dir": str(cfg.get_storage_dir()),
        })
    elif command == "add-text":
        content = args.content
        if args.from_file:
            try:
                content = Path(args.from_file).read_text(encoding="utf-8")
            except OSError as e:
                raise FileAccessError(
                    f"Cannot read note body: {e.strerror or e}",
                    path=args.from_file,
                    operation="read",
                    original_error=e,
                ) from e
        resource_id = vault.add_text_note(args.title, content)
        if args.tags:
            vault.add_tags(resource_id, args.tags)
        _emit({"id": resource_id})
    elif command == "add-file":
        title = args.title or Path(args.path).name
        resource_id = vault.add_file_note(
            args.path, title, resource_type=args.type, is_managed=args.managed
        )
        if args.tags:
            vault.add_tags(resource_id, args.tags)
        _emit({"id": resource_id})
    elif command == "show":
        full = vault.get_full_resource(args.id)
        if full is None:
            _emit(None)
            return 1
        _emit(full.model_dump(mode="json"))
    elif command == "delete":
        _emit({"deleted": vault.delete_resource(args.id)})
    elif command == "search":
        if args.content:
            _emit(_dump(vault.search_by_content_full(args.keyword)))
        else:
            _emit(_dump(vault.search_by_title_full(args.keyword)))
    elif command == "tags":
        _emit(vault.get_all_tags())
    elif command == "tag":
        _emit({"tag_ids": vault.add_tags(args.id, args.names)})
    elif command == "untag":
        _emit({"removed": vault.remove_tag(args.id, args.name)})
    elif command == "find":
        _emit(_dump(vault.get_full_resources_by_tags(args.names)))
    elif command == "check":
        if args.rebuild_fts:
            vault.db.rebuild_fts()
        health = vault.check_health()
        _emit(health)
        return 0 if health["healthy"] else 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Run the NoteVault command line."""
    args = build_parser().parse_args(argv)

    log_level = getattr(logging, (args.log_level or config.log_level).upper(), logging.INFO)
    try:
        configure_logging(log_dir=config.log_dir, level=log_level, console=False)
    except OSError as e:
        logging.basicConfig(level=log_level)
        logger.warning(f"Failed to configure file logging: {e}")

    try:
        cfg = make_config(args)
        with NoteVault.open(cfg, create=args.command == "init") as vault:
            return run(vault, args, cfg)
    except NoteVaultError as e:
        logger.error(f"{args.command} failed: {e}")
        print(json.dumps(e.to_dict(), default=str), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
