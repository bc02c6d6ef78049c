"""
CLI main entry point.
"""

import argparse
import json
import logging
import mimetypes
import sys
from pathlib import Path
from typing import Any

from ..config import Config, load_config
from ..errors import IntakeError, RecordValidationError
from ..ingestion import BulkImportService, build_service
from ..records import RecordStore
from ..schemas import UploadedFile

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="ledger-intake",
        description="Bulk-import receipts, invoices and expense exports with staged review",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # ingest command
    ingest_parser = subparsers.add_parser("ingest", help="Extract files into a review session")
    ingest_parser.add_argument("files", nargs="+", type=Path, help="Files to import")
    ingest_parser.add_argument("--user", required=True, help="Owner user id")
    ingest_parser.add_argument(
        "--options",
        type=str,
        default=None,
        help='JSON options, e.g. \'{"default_category_id": "..."}\'',
    )

    # show command
    show_parser = subparsers.add_parser("show", help="Show a staged session for review")
    show_parser.add_argument("session_id", help="Session id returned by ingest")
    show_parser.add_argument("--user", required=True, help="Owner user id")

    # confirm command
    confirm_parser = subparsers.add_parser("confirm", help="Create expenses from a session")
    confirm_parser.add_argument("session_id", help="Session id returned by ingest")
    confirm_parser.add_argument("--user", required=True, help="Owner user id")
    selection = confirm_parser.add_mutually_exclusive_group(required=True)
    selection.add_argument(
        "--all",
        action="store_true",
        help="Confirm every usable extracted record as-is",
    )
    selection.add_argument(
        "--expenses",
        type=Path,
        help="JSON file with the reviewed expense list (each item needs temp_id)",
    )

    # import command
    import_parser = subparsers.add_parser(
        "import", help="Ingest and confirm every usable record in one step"
    )
    import_parser.add_argument("files", nargs="+", type=Path, help="Files to import")
    import_parser.add_argument("--user", required=True, help="Owner user id")
    import_parser.add_argument("--options", type=str, default=None, help="JSON options")

    # categories command
    subparsers.add_parser("categories", help="List active expense categories")

    # add-category command
    add_category_parser = subparsers.add_parser("add-category", help="Add a category")
    add_category_parser.add_argument("name", help="Category display name")
    add_category_parser.add_argument(
        "--type",
        choices=["expense", "revenue"],
        default="expense",
        help="Category type (default: expense)",
    )

    return parser


def guess_mime_type(path: Path) -> str:
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type or "application/octet-stream"


def load_uploads(paths: list[Path]) -> list[UploadedFile]:
    """Read files from disk as an upload batch."""
    return [
        UploadedFile(original_name=path.name, mime_type=guess_mime_type(path), data=path.read_bytes())
        for path in paths
    ]


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def usable_items(extracted_expenses: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Approve every extracted record that can be created unchanged."""
    return [
        {"temp_id": record["temp_id"]}
        for record in extracted_expenses
        if not record.get("error")
        and record.get("vendor_name")
        and record.get("amount")
        and record.get("transaction_date")
    ]


def print_confirmation(result: dict[str, Any]) -> None:
    print(f"\n✅ Created {result['created']} expenses, {result['failed']} failed")
    for expense in result["expenses"]:
        print(
            f"  + {expense['transaction_date']}  {expense['amount']:>12} {expense['currency']}"
            f"  {expense['vendor_name'] or ''}"
        )
    for error in result["errors"]:
        print(f"  ✗ {error['temp_id']} ({error['vendor_name'] or 'unknown'}): {error['error']}")


def cmd_ingest(service: BulkImportService, paths: list[Path], user: str, options: str | None) -> int:
    """Extract files into a staged session."""
    result = service.upload_and_extract(load_uploads(paths), user, options)
    print_json(result.to_dict())
    return 0


def cmd_show(service: BulkImportService, session_id: str, user: str) -> int:
    """Print the staged session."""
    print_json(service.get_session(session_id, user))
    return 0


def cmd_confirm(
    service: BulkImportService,
    session_id: str,
    user: str,
    confirm_all: bool,
    expenses_path: Path | None,
) -> int:
    """Confirm a staged session."""
    if confirm_all:
        view = service.get_session(session_id, user)
        expenses = usable_items(view["extracted_expenses"])
        if not expenses:
            print("⚠️  No usable records in session")
            return 1
    else:
        with open(expenses_path) as f:
            expenses = json.load(f)

    result = service.confirm_import(session_id, user, expenses).to_dict()
    print_confirmation(result)
    return 0 if result["failed"] == 0 else 2


def cmd_import(service: BulkImportService, paths: list[Path], user: str, options: str | None) -> int:
    """Ingest then confirm every usable record."""
    ingested = service.upload_and_extract(load_uploads(paths), user, options)
    expenses = usable_items(ingested.extracted_expenses)

    skipped = len(ingested.extracted_expenses) - len(expenses)
    if skipped:
        print(f"⚠️  {skipped} records need review and were not imported")
    if not expenses:
        print("⚠️  No usable records found")
        return 1

    result = service.confirm_import(ingested.session_id, user, expenses).to_dict()
    print_confirmation(result)
    return 0 if result["failed"] == 0 else 2


def cmd_categories(config: Config) -> int:
    """List active expense categories."""
    store = RecordStore(config.records_db_path)
    categories = store.list_categories(type="expense", active=True)

    print("\n📂 Expense categories")
    print("=" * 40)
    for category in categories:
        print(f"  {category.id}  {category.name}")
    if not categories:
        print("  (none)")
    print()
    return 0


def cmd_add_category(config: Config, name: str, category_type: str) -> int:
    """Add a category."""
    store = RecordStore(config.records_db_path)
    try:
        category = store.add_category(name, type=category_type)
    except RecordValidationError as e:
        print(f"❌ {e}")
        return 1
    print(f"✅ Added {category.type} category {category.name} ({category.id})")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    # Load config
    try:
        config = load_config(parsed.config)
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    problems = config.validate()
    if problems:
        for problem in problems:
            print(f"❌ Config: {problem}")
        return 1

    if parsed.command == "categories":
        return cmd_categories(config)
    if parsed.command == "add-category":
        return cmd_add_category(config, parsed.name, parsed.type)

    service = build_service(config)
    try:
        # Route to command
        if parsed.command == "ingest":
            return cmd_ingest(service, parsed.files, parsed.user, parsed.options)
        elif parsed.command == "show":
            return cmd_show(service, parsed.session_id, parsed.user)
        elif parsed.command == "confirm":
            return cmd_confirm(
                service, parsed.session_id, parsed.user, parsed.all, parsed.expenses
            )
        elif parsed.command == "import":
            return cmd_import(service, parsed.files, parsed.user, parsed.options)
        else:
            parser.print_help()
            return 1
    except IntakeError as e:
        print(f"❌ {e}")
        return 1
    except OSError as e:
        print(f"❌ {e}")
        return 1
    finally:
        service.close()


if __name__ == "__main__":
    sys.exit(main())
