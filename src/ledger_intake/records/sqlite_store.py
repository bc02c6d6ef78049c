"""
SQLite-based permanent record store.

Tables:
- categories: Reference data used by the classifier (read-only to intake)
- payment_methods: Owner-scoped payment methods
- expenses: Confirmed expense rows
- attachments: Files linked to any entity (entity_type + entity_id)

Confirmation writes many expenses in one transaction; each expense runs in
its own SAVEPOINT so one invalid record does not undo its siblings.
"""

import json
import logging
import re
import sqlite3
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from ..errors import RecordValidationError
from ..schemas import Category

logger = logging.getLogger(__name__)

EXPENSE_STATUSES = ("pending", "approved", "rejected", "paid")
CATEGORY_TYPES = ("expense", "revenue")

MAX_DESCRIPTION_LENGTH = 1000
MAX_VENDOR_LENGTH = 200
MAX_NOTES_LENGTH = 2000

SAVEPOINT_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

TRUE_VALUES = ("true", "1", "yes", "on")
FALSE_VALUES = ("false", "0", "no", "off")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _optional_text(value: Any) -> str | None:
    if _blank(value):
        return None
    return str(value).strip()


def parse_flag(value: Any, name: str, default: bool) -> bool:
    """Read a boolean field that may arrive as form or JSON text ("false", "0")."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_VALUES:
            return True
        if lowered in FALSE_VALUES:
            return False
    raise RecordValidationError(f"{name} must be a boolean")


def normalize_tags(tags: Any) -> list[str]:
    """Trim, lower-case and de-duplicate tags, keeping first-seen order."""
    if tags is None:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")
    if not isinstance(tags, (list, tuple)):
        raise RecordValidationError("Tags must be a list of strings")

    seen: list[str] = []
    for tag in tags:
        cleaned = str(tag).strip().lower()
        if cleaned and cleaned not in seen:
            seen.append(cleaned)
    return seen


@contextmanager
def savepoint(conn: sqlite3.Connection, name: str) -> Iterator[sqlite3.Connection]:
    """
    Run a block inside a SAVEPOINT of an open transaction.

    On error the block's writes are rolled back to the savepoint and the
    exception propagates; the enclosing transaction stays usable.
    """
    if not SAVEPOINT_NAME_RE.match(name):
        raise ValueError(f"Invalid savepoint name: {name!r}")

    conn.execute(f"SAVEPOINT {name}")
    try:
        yield conn
    except Exception:
        conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
        conn.execute(f"RELEASE SAVEPOINT {name}")
        raise
    conn.execute(f"RELEASE SAVEPOINT {name}")


class RecordStore:
    """
    SQLite store for confirmed expenses and their attachments.

    Connections are opened per operation; callers that need several writes
    to commit together use transaction() and pass the connection along.
    """

    def __init__(self, db_path: Path | str, today: Callable[[], date] = date.today):
        """
        Initialize record store.

        Args:
            db_path: Path to SQLite database file
            today: Clock for the "not in the future" date check
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._today = today
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for single-statement style transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Explicit transaction for multi-record writes.

        The connection runs in autocommit mode with an explicit BEGIN so
        that nested SAVEPOINTs never act as the outermost transaction.
        """
        conn = self._get_connection()
        conn.isolation_level = None
        try:
            conn.execute("BEGIN")
            yield conn
            conn.execute("COMMIT")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS categories (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL DEFAULT 'expense',
                    is_active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS payment_methods (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL DEFAULT 'other',
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS expenses (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    category_id TEXT REFERENCES categories(id),
                    payment_method_id TEXT REFERENCES payment_methods(id),
                    amount TEXT NOT NULL,
                    currency TEXT NOT NULL DEFAULT 'USD',
                    transaction_date TEXT NOT NULL,
                    description TEXT,
                    vendor_name TEXT,
                    notes TEXT,
                    tags TEXT NOT NULL DEFAULT '[]',
                    status TEXT NOT NULL DEFAULT 'pending',
                    is_reimbursable INTEGER NOT NULL DEFAULT 0,
                    is_billable INTEGER NOT NULL DEFAULT 0,
                    is_tax_deductible INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS attachments (
                    id TEXT PRIMARY KEY,
                    entity_type TEXT NOT NULL,
                    entity_id TEXT NOT NULL,
                    file_name TEXT NOT NULL,
                    file_path TEXT NOT NULL,
                    file_size INTEGER NOT NULL,
                    mime_type TEXT,
                    storage_provider TEXT NOT NULL DEFAULT 's3',
                    uploaded_by TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """
            )

            conn.execute("CREATE INDEX IF NOT EXISTS idx_expenses_user ON expenses(user_id)")
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_attachments_entity "
                "ON attachments(entity_type, entity_id)"
            )

    # Categories

    def add_category(
        self,
        name: str,
        type: str = "expense",
        is_active: bool = True,
        category_id: str | None = None,
    ) -> Category:
        """Insert a category (seed/admin helper)."""
        if _blank(name):
            raise RecordValidationError("Category name is required")
        if type not in CATEGORY_TYPES:
            raise RecordValidationError(f"Category type must be one of {', '.join(CATEGORY_TYPES)}")

        category = Category(
            id=category_id or str(uuid.uuid4()),
            name=name.strip(),
            type=type,
            is_active=is_active,
        )
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO categories (id, name, type, is_active, created_at)
                VALUES (?, ?, ?, ?, ?)
            """,
                (category.id, category.name, category.type, int(category.is_active), _now()),
            )
        return category

    def list_categories(self, type: str | None = None, active: bool | None = True) -> list[Category]:
        """List categories, optionally filtered by type and active flag."""
        query = "SELECT * FROM categories WHERE 1 = 1"
        params: list[Any] = []
        if type is not None:
            query += " AND type = ?"
            params.append(type)
        if active is not None:
            query += " AND is_active = ?"
            params.append(int(active))
        query += " ORDER BY created_at, rowid"

        with self._transaction() as conn:
            rows = conn.execute(query, params).fetchall()
        return [
            Category(
                id=row["id"],
                name=row["name"],
                type=row["type"],
                is_active=bool(row["is_active"]),
            )
            for row in rows
        ]

    # Payment methods

    def add_payment_method(self, owner_id: str, name: str, type: str = "other") -> dict[str, Any]:
        """Insert an owner-scoped payment method (seed/admin helper)."""
        if _blank(name):
            raise RecordValidationError("Payment method name is required")
        payment_method_id = str(uuid.uuid4())
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO payment_methods (id, user_id, name, type, created_at)
                VALUES (?, ?, ?, ?, ?)
            """,
                (payment_method_id, owner_id, name.strip(), type, _now()),
            )
        return {"id": payment_method_id, "user_id": owner_id, "name": name.strip(), "type": type}

    # Expenses

    def _validate_expense(
        self, conn: sqlite3.Connection, owner_id: str, fields: dict[str, Any]
    ) -> dict[str, Any]:
        """Validate and normalize expense fields. Raises RecordValidationError."""
        raw_amount = fields.get("amount")
        if _blank(raw_amount):
            raise RecordValidationError("Amount is required")
        try:
            amount = Decimal(str(raw_amount).strip())
        except InvalidOperation as e:
            raise RecordValidationError(f"Invalid amount: {raw_amount!r}") from e
        if not amount.is_finite() or amount <= 0:
            raise RecordValidationError("Amount must be positive")

        raw_date = fields.get("transaction_date")
        if _blank(raw_date):
            raise RecordValidationError("Transaction date is required")
        try:
            transaction_date = date.fromisoformat(str(raw_date).strip()[:10])
        except ValueError as e:
            raise RecordValidationError(f"Invalid transaction date: {raw_date!r}") from e
        if transaction_date > self._today():
            raise RecordValidationError("Transaction date cannot be in the future")

        currency = str(fields.get("currency") or "USD").strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            raise RecordValidationError(f"Currency must be a 3-letter code: {currency!r}")

        description = _optional_text(fields.get("description"))
        vendor_name = _optional_text(fields.get("vendor_name"))
        notes = _optional_text(fields.get("notes"))
        if description and len(description) > MAX_DESCRIPTION_LENGTH:
            raise RecordValidationError(
                f"Description must not exceed {MAX_DESCRIPTION_LENGTH} characters"
            )
        if vendor_name and len(vendor_name) > MAX_VENDOR_LENGTH:
            raise RecordValidationError(f"Vendor name must not exceed {MAX_VENDOR_LENGTH} characters")
        if notes and len(notes) > MAX_NOTES_LENGTH:
            raise RecordValidationError(f"Notes must not exceed {MAX_NOTES_LENGTH} characters")

        status = fields.get("status") or "pending"
        if status not in EXPENSE_STATUSES:
            raise RecordValidationError(f"Status must be one of {', '.join(EXPENSE_STATUSES)}")

        category_id = fields.get("category_id") or None
        if category_id is not None:
            row = conn.execute("SELECT 1 FROM categories WHERE id = ?", (category_id,)).fetchone()
            if row is None:
                raise RecordValidationError("Invalid category ID")

        payment_method_id = fields.get("payment_method_id") or None
        if payment_method_id is not None:
            row = conn.execute(
                "SELECT 1 FROM payment_methods WHERE id = ? AND user_id = ?",
                (payment_method_id, owner_id),
            ).fetchone()
            if row is None:
                raise RecordValidationError("Invalid payment method ID or unauthorized access")

        return {
            "category_id": category_id,
            "payment_method_id": payment_method_id,
            "amount": amount,
            "currency": currency,
            "transaction_date": transaction_date.isoformat(),
            "description": description,
            "vendor_name": vendor_name,
            "notes": notes,
            "tags": normalize_tags(fields.get("tags")),
            "status": status,
            "is_reimbursable": parse_flag(
                fields.get("is_reimbursable"), "is_reimbursable", False
            ),
            "is_billable": parse_flag(fields.get("is_billable"), "is_billable", False),
            "is_tax_deductible": parse_flag(
                fields.get("is_tax_deductible"), "is_tax_deductible", True
            ),
        }

    def _insert_expense(
        self, conn: sqlite3.Connection, owner_id: str, fields: dict[str, Any]
    ) -> dict[str, Any]:
        values = self._validate_expense(conn, owner_id, fields)
        expense_id = str(uuid.uuid4())
        conn.execute(
            """
            INSERT INTO expenses (
                id, user_id, category_id, payment_method_id, amount, currency,
                transaction_date, description, vendor_name, notes, tags, status,
                is_reimbursable, is_billable, is_tax_deductible, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
            (
                expense_id,
                owner_id,
                values["category_id"],
                values["payment_method_id"],
                str(values["amount"]),
                values["currency"],
                values["transaction_date"],
                values["description"],
                values["vendor_name"],
                values["notes"],
                json.dumps(values["tags"]),
                values["status"],
                int(values["is_reimbursable"]),
                int(values["is_billable"]),
                int(values["is_tax_deductible"]),
                _now(),
            ),
        )
        row = conn.execute("SELECT * FROM expenses WHERE id = ?", (expense_id,)).fetchone()
        return self._expense_from_row(row)

    def create_expense(
        self,
        owner_id: str,
        fields: dict[str, Any],
        conn: sqlite3.Connection | None = None,
    ) -> dict[str, Any]:
        """
        Validate and insert one expense.

        Args:
            owner_id: Owning user
            fields: Expense fields (snake_case keys)
            conn: Open transaction to write in; a private one is used if None

        Returns:
            The created expense as a dict

        Raises:
            RecordValidationError: A field failed validation
        """
        if conn is not None:
            expense = self._insert_expense(conn, owner_id, fields)
        else:
            with self._transaction() as own_conn:
                expense = self._insert_expense(own_conn, owner_id, fields)

        logger.info(
            "Expense created: user=%s id=%s amount=%s", owner_id, expense["id"], expense["amount"]
        )
        return expense

    def get_expense(self, expense_id: str, owner_id: str) -> dict[str, Any] | None:
        """Get an expense by id, scoped to its owner."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM expenses WHERE id = ? AND user_id = ?", (expense_id, owner_id)
            ).fetchone()
        return self._expense_from_row(row) if row else None

    def list_expenses(self, owner_id: str) -> list[dict[str, Any]]:
        """All expenses of an owner, oldest first."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM expenses WHERE user_id = ? ORDER BY created_at, rowid", (owner_id,)
            ).fetchall()
        return [self._expense_from_row(row) for row in rows]

    @staticmethod
    def _expense_from_row(row: sqlite3.Row) -> dict[str, Any]:
        return {
            "id": row["id"],
            "user_id": row["user_id"],
            "category_id": row["category_id"],
            "payment_method_id": row["payment_method_id"],
            "amount": row["amount"],
            "currency": row["currency"],
            "transaction_date": row["transaction_date"],
            "description": row["description"],
            "vendor_name": row["vendor_name"],
            "notes": row["notes"],
            "tags": json.loads(row["tags"]) if row["tags"] else [],
            "status": row["status"],
            "is_reimbursable": bool(row["is_reimbursable"]),
            "is_billable": bool(row["is_billable"]),
            "is_tax_deductible": bool(row["is_tax_deductible"]),
            "created_at": row["created_at"],
        }

    # Attachments

    def create_attachment(
        self,
        entity_type: str,
        entity_id: str,
        file_name: str,
        file_path: str,
        file_size: int,
        mime_type: str | None,
        uploaded_by: str,
        storage_provider: str = "s3",
    ) -> dict[str, Any]:
        """Insert an attachment row linking a stored file to an entity."""
        attachment_id = str(uuid.uuid4())
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO attachments (
                    id, entity_type, entity_id, file_name, file_path, file_size,
                    mime_type, storage_provider, uploaded_by, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    attachment_id,
                    entity_type,
                    entity_id,
                    file_name,
                    file_path,
                    file_size,
                    mime_type,
                    storage_provider,
                    uploaded_by,
                    _now(),
                ),
            )
            row = conn.execute("SELECT * FROM attachments WHERE id = ?", (attachment_id,)).fetchone()
        return dict(row)

    def list_attachments(self, entity_type: str, entity_id: str) -> list[dict[str, Any]]:
        """Attachments of one entity, newest first."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT * FROM attachments
                WHERE entity_type = ? AND entity_id = ?
                ORDER BY created_at DESC, rowid DESC
            """,
                (entity_type, entity_id),
            ).fetchall()
        return [dict(row) for row in rows]
