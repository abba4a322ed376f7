#!/usr/bin/env python3
"""Catalog CLI for maintenance operations."""

import argparse
import json
from pathlib import Path

import questionary
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from catalog.blob import BlobStore
from catalog.config import config
from catalog.db import Database
from catalog.errors import CatalogError, ValidationError
from catalog.instrument import InstrumentRepository
from catalog.log import configure_logging
from catalog.services import MaintenanceService

console = Console()


def build_database() -> Database:
    return Database(config.database_url, config.db_connect_timeout)


def init_db(database: Database) -> None:
    """Create the tables if they do not exist yet."""
    database.apply_schema()
    console.print("[green]Schema applied.[/]")


def list_instruments(database: Database) -> None:
    """Print every stored instrument."""
    instruments = InstrumentRepository(database).list_all()
    if not instruments:
        console.print("[red]No instruments found.[/]")
        return

    table = Table(title="Instruments")
    for column in ("id", "name", "type", "status"):
        table.add_column(column)
    for r in instruments:
        table.add_row(
            str(r["id"]),
            str(r.get("name") or ""),
            str(r.get("type") or ""),
            str(r.get("status") or ""),
        )
    console.print(table)


def seed(database: Database, path: Path) -> None:
    """Load instruments from a JSON file into an empty catalog."""
    try:
        records = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationError(f"Cannot read {path}: {e}") from e
    result = InstrumentRepository(database).seed_if_empty(records)
    if result.inserted:
        console.print(f"[green]Seeded {result.inserted} instruments.[/]")
    else:
        console.print(f"[yellow]Catalog already holds {result.count} instruments, nothing seeded.[/]")


def purge(database: Database, assume_yes: bool = False) -> None:
    """Delete every instrument and every stored file."""
    repo = InstrumentRepository(database)
    blobs = BlobStore(database, chunk_size=config.chunk_size)

    summary = (
        f"Will delete [bold]{repo.count()}[/] instruments and "
        f"[bold]{len(blobs.list_all())}[/] stored files."
    )
    console.print(f"[yellow]{summary}[/]")

    if not assume_yes and not questionary.confirm("Proceed with these changes?").ask():
        console.print("[dim]Cancelled.[/]")
        return

    result = MaintenanceService(database, repo, blobs).purge()
    console.print(
        f"[green]Deleted {result['records_deleted']} instruments "
        f"and {result['files_deleted']} files.[/]"
    )


def serve(port: int) -> None:
    from catalog.app import create_app

    create_app().run(host="0.0.0.0", port=port, threaded=True)


def main(argv: list[str] = None) -> int:
    parser = argparse.ArgumentParser(description="Catalog CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create database tables")
    subparsers.add_parser("list", help="List stored instruments")
    seed_parser = subparsers.add_parser("seed", help="Seed instruments from a JSON file")
    seed_parser.add_argument("path", type=Path)
    purge_parser = subparsers.add_parser("purge", help="Delete all instruments and files")
    purge_parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--port", type=int, default=config.port)

    args = parser.parse_args(argv)
    configure_logging(config.log_level)

    if args.command == "serve":
        serve(args.port)
        return 0

    database = build_database()
    try:
        if args.command == "init-db":
            init_db(database)
        elif args.command == "list":
            list_instruments(database)
        elif args.command == "seed":
            seed(database, args.path)
        elif args.command == "purge":
            purge(database, assume_yes=args.yes)
    except CatalogError as e:
        console.print(f"[red]{escape(e.message)}[/]")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
