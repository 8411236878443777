"""Command-line interface for dynschema."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Callable

import psycopg2

from dynschema.config import Config
from dynschema.engine import SchemaEngine
from dynschema.exceptions import ConfigError, DynSchemaError
from dynschema.schema.codegen import StatementPlan
from dynschema.schema.exporter import export_document_yaml, export_table_yaml
from dynschema.schema.loader import (
    load_request_file,
    parse_alter_table,
    parse_create_table,
)
from dynschema.schema.requests import DropTable


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    parser = argparse.ArgumentParser(
        prog="dynschema",
        description="Dynamic schema management for PostgreSQL",
    )
    parser.add_argument("--host", help="Database host (default: DYNSCHEMA_HOST or PGHOST)")
    parser.add_argument("--port", type=int, help="Database port")
    parser.add_argument("--dbname", help="Database name")
    parser.add_argument("--user", help="Database user")
    parser.add_argument("--service", help="Service name in ~/.pg_service.conf")
    parser.add_argument("--schema", help="Database schema (default: public)")
    parser.add_argument(
        "--backend",
        choices=["postgres", "verify"],
        help="'verify' runs every change and then rolls it back",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log statements")
    subparsers = parser.add_subparsers(dest="command", required=True)

    create_parser = subparsers.add_parser("create", help="Create a table")
    create_parser.add_argument("file", type=Path, help="YAML/JSON create request")
    create_parser.add_argument(
        "--plan", action="store_true", help="Print the DDL without executing it"
    )

    alter_parser = subparsers.add_parser("alter", help="Alter a table")
    alter_parser.add_argument("table", help="Table to alter")
    alter_parser.add_argument("file", type=Path, help="YAML/JSON alter request")
    alter_parser.add_argument(
        "--plan", action="store_true", help="Print the DDL without executing it"
    )

    drop_parser = subparsers.add_parser("drop", help="Drop a table")
    drop_parser.add_argument("table", help="Table to drop")
    drop_parser.add_argument(
        "--plan", action="store_true", help="Print the DDL without executing it"
    )

    schema_parser = subparsers.add_parser("schema", help="Show table metadata")
    schema_parser.add_argument("table", nargs="?", help="Table (default: all tables)")

    refresh_parser = subparsers.add_parser("refresh", help="Re-read the catalogs")
    refresh_parser.add_argument("table", nargs="?", help="Table (default: all tables)")

    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger("dynschema").setLevel(logging.DEBUG)

    commands: dict[str, Callable[[SchemaEngine, argparse.Namespace], int]] = {
        "create": cmd_create,
        "alter": cmd_alter,
        "drop": cmd_drop,
        "schema": cmd_schema,
        "refresh": cmd_refresh,
    }
    return run_command(commands[args.command], args)


def build_engine(args: argparse.Namespace) -> SchemaEngine:
    config = Config.from_env(
        host=args.host,
        port=args.port,
        dbname=args.dbname,
        user=args.user,
        schema=args.schema,
        backend=args.backend,
        service=args.service,
    )
    return SchemaEngine.from_config(config)


def run_command(
    command: Callable[[SchemaEngine, argparse.Namespace], int],
    args: argparse.Namespace,
) -> int:
    """Run a command against a connected engine and map errors to exit codes."""
    try:
        with build_engine(args) as engine:
            return command(engine, args)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except DynSchemaError as e:
        print(f"{type(e).__name__}: {e}", file=sys.stderr)
        if e.hint:
            print(f"Hint: {e.hint}", file=sys.stderr)
        return 1
    except psycopg2.Error as e:
        print(f"Database error: {e}", file=sys.stderr)
        return 1


def print_plan(plan: StatementPlan) -> None:
    print(f"-- {len(plan.statements)} statement(s) for table '{plan.table_name}'")
    print(plan.sql())


def cmd_create(engine: SchemaEngine, args: argparse.Namespace) -> int:
    """Create a table from a request file."""
    request = parse_create_table(load_request_file(args.file))
    if args.plan:
        print_plan(engine.plan(request))
        return 0

    result = engine.create_table(request)
    print(f"Created table '{result.table_name}':")
    for col in result.columns:
        flags = "" if col.nullable else " NOT NULL"
        if col.is_unique:
            flags += " UNIQUE"
        print(f"  - {col.name}: {col.type.value} ({col.storage_type}{flags})")
    print(f"Auto-managed fields: {', '.join(result.auto_fields)}")
    print(result.next_action)
    return 0


def cmd_alter(engine: SchemaEngine, args: argparse.Namespace) -> int:
    """Apply a composite alter request to a table."""
    request = parse_alter_table(args.table, load_request_file(args.file))
    if args.plan:
        print_plan(engine.plan(request))
        return 0

    result = engine.alter_table(request)
    print(f"Altered table '{result.table_name}':")
    for operation in result.operations:
        print(f"  - {operation}")
    return 0


def cmd_drop(engine: SchemaEngine, args: argparse.Namespace) -> int:
    """Drop a table."""
    if args.plan:
        print_plan(engine.plan(DropTable(args.table)))
        return 0

    result = engine.drop_table(args.table)
    print(f"Dropped table '{result.table_name}'")
    print(result.next_action)
    return 0


def cmd_schema(engine: SchemaEngine, args: argparse.Namespace) -> int:
    """Print cached metadata as YAML."""
    if args.table:
        print(export_table_yaml(engine.get_table_schema(args.table)), end="")
    else:
        print(export_document_yaml(engine.get_metadata()), end="")
    return 0


def cmd_refresh(engine: SchemaEngine, args: argparse.Namespace) -> int:
    """Rebuild cached metadata from the catalogs."""
    document = engine.refresh_metadata(args.table)
    if args.table and document.get_table(args.table) is None:
        print(f"Table '{args.table}' no longer exists")
    else:
        print(f"Metadata version {document.version}: {len(document.tables)} table(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
