"""
Jimjam CLI.

Commands:
    info       Inspect collections, field types, indexes and counts
    find       Query a collection and print matching documents
    count      Count documents matching a query

Examples:
    jimjam info shop.db
    jimjam find shop.db products '{"price": {"_lt": 50}}' --order-by "price DESC"
    jimjam count shop.db products '{"category": "books"}'
"""

from __future__ import annotations

import argparse
import json
import logging
import sys


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _open_existing(path: str):
    """Open an existing database file read-only."""
    import sqlite3
    from dataclasses import replace
    from pathlib import Path

    from jimjam import Database
    from jimjam.config import get_global_config

    db_path = Path(path)
    if not db_path.exists():
        print(f"Error: File not found: {db_path}", file=sys.stderr)
        return None
    try:
        return Database(db_path, replace(get_global_config(), read_only=True))
    except sqlite3.Error as e:
        print(f"Error: {e}", file=sys.stderr)
        return None


def _known_collection(db, name: str) -> bool:
    if name in db.list_collections():
        return True
    print(f"Error: No such collection: {name}", file=sys.stderr)
    return False


def _parse_query(text: str | None) -> dict | None:
    if text is None:
        return None
    query = json.loads(text)
    if not isinstance(query, dict):
        raise ValueError("Query must be a JSON object")
    return query


def cmd_info(args: argparse.Namespace) -> int:
    """Handle info command."""
    db = _open_existing(args.database)
    if db is None:
        return 1

    try:
        names = db.list_collections()

        # Header
        print(f"Database: {db.path}")
        print(f"Collections: {len(names)}")

        for name in names:
            collection = db.collection(name)
            print()
            print(f"{name} ({collection.count():,} documents)")

            print("  Fields:")
            for field, field_type in collection.field_types().items():
                print(f"    {field}: {field_type.value}")

            indexes = collection.list_indexes()
            if indexes:
                print("  Indexes:")
                for index in indexes:
                    unique = " unique" if index.unique else ""
                    print(f"    {index.name}: ({', '.join(index.fields)}){unique}")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


def cmd_find(args: argparse.Namespace) -> int:
    """Handle find command."""
    try:
        query = _parse_query(args.query)
    except ValueError as e:
        print(f"Error: Invalid query: {e}", file=sys.stderr)
        return 1

    db = _open_existing(args.database)
    if db is None:
        return 1

    try:
        if not _known_collection(db, args.collection):
            return 1
        documents = db.collection(args.collection).find(
            query,
            {"limit": args.limit, "offset": args.offset, "order_by": args.order_by},
        )
        for document in documents:
            print(json.dumps(document, default=str, ensure_ascii=False))
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


def cmd_count(args: argparse.Namespace) -> int:
    """Handle count command."""
    try:
        query = _parse_query(args.query)
    except ValueError as e:
        print(f"Error: Invalid query: {e}", file=sys.stderr)
        return 1

    db = _open_existing(args.database)
    if db is None:
        return 1

    try:
        if not _known_collection(db, args.collection):
            return 1
        print(db.collection(args.collection).count(query))
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="jimjam",
        description="Inspect and query jimjam document databases",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # info
    info_parser = subparsers.add_parser(
        "info",
        help="Inspect collections, field types, indexes and counts",
    )
    info_parser.add_argument(
        "database",
        help="Path to the database file",
    )
    info_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug information",
    )

    # find
    find_parser = subparsers.add_parser(
        "find",
        help="Print documents matching a query as JSON lines",
    )
    find_parser.add_argument(
        "database",
        help="Path to the database file",
    )
    find_parser.add_argument(
        "collection",
        help="Collection name",
    )
    find_parser.add_argument(
        "query",
        nargs="?",
        default=None,
        help="Query document as JSON (default: match everything)",
    )
    find_parser.add_argument(
        "-n",
        "--limit",
        type=int,
        default=None,
        help="Maximum documents to print",
    )
    find_parser.add_argument(
        "--offset",
        type=int,
        default=None,
        help="Documents to skip",
    )
    find_parser.add_argument(
        "--order-by",
        default=None,
        help="SQL ORDER BY expression, e.g. '\"price\" DESC'",
    )
    find_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug information",
    )

    # count
    count_parser = subparsers.add_parser(
        "count",
        help="Count documents matching a query",
    )
    count_parser.add_argument(
        "database",
        help="Path to the database file",
    )
    count_parser.add_argument(
        "collection",
        help="Collection name",
    )
    count_parser.add_argument(
        "query",
        nargs="?",
        default=None,
        help="Query document as JSON (default: match everything)",
    )
    count_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug information",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    _configure_logging(args.verbose)

    from jimjam.config import get_database_config, set_global_config

    set_global_config(get_database_config(verbose=args.verbose))

    if args.command == "info":
        return cmd_info(args)
    elif args.command == "find":
        return cmd_find(args)
    elif args.command == "count":
        return cmd_count(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
