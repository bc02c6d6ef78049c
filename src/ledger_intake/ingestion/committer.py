"""
Confirmation committer: staged session + approved items -> permanent rows.

All approved items are written in one transaction, each inside its own
savepoint, so a failing item is reported without undoing its siblings.
Attachments are stored after the commit; the session is deleted last.
"""

import logging
import sqlite3
from typing import Any, Optional

from ..errors import AttachmentError, RecordValidationError, SessionNotFoundError
from ..records import RecordStore, savepoint
from ..schemas import (
    DEFAULT_CURRENCY,
    ConfirmationResult,
    ExtractedRecord,
    FailedRecord,
    IngestionSession,
    StagedFile,
)
from ..storage import AttachmentService
from .orchestrator import IngestionOrchestrator

logger = logging.getLogger(__name__)

# Review clients may send camelCase keys
CLIENT_KEY_ALIASES = {
    "tempId": "temp_id",
    "vendorName": "vendor_name",
    "transactionDate": "transaction_date",
    "invoiceNumber": "invoice_number",
    "lineItems": "line_items",
    "categoryId": "category_id",
    "paymentMethodId": "payment_method_id",
    "isReimbursable": "is_reimbursable",
    "isBillable": "is_billable",
    "isTaxDeductible": "is_tax_deductible",
}

EDITABLE_FIELDS = (
    "amount",
    "transaction_date",
    "vendor_name",
    "description",
    "category_id",
    "payment_method_id",
    "currency",
    "notes",
)


def normalize_item_keys(item: dict[str, Any]) -> dict[str, Any]:
    """Map camelCase client keys onto snake_case field names."""
    return {CLIENT_KEY_ALIASES.get(key, key): value for key, value in item.items()}


def _flag(item: dict[str, Any], name: str, default: bool) -> Any:
    value = item.get(name)
    return default if value is None else value


def expense_fields(item: dict[str, Any], original: Optional[ExtractedRecord]) -> dict[str, Any]:
    """
    Build permanent expense fields for one approved item.

    Client values win; the extracted record fills whatever the client left
    out. Notes fall back to the extracted line items.
    """
    base: dict[str, Any] = {}
    if original is not None:
        extracted = original.to_dict()
        base = {name: extracted.get(name) for name in EDITABLE_FIELDS}

    fields = {**base, **{k: v for k, v in item.items() if k in EDITABLE_FIELDS}}

    return {
        "amount": fields.get("amount"),
        "transaction_date": fields.get("transaction_date"),
        "vendor_name": fields.get("vendor_name"),
        "description": fields.get("description"),
        "category_id": fields.get("category_id") or None,
        "payment_method_id": fields.get("payment_method_id") or None,
        "currency": fields.get("currency") or DEFAULT_CURRENCY,
        "notes": fields.get("notes") or (original.line_items if original else None) or None,
        "tags": item.get("tags") or [],
        "status": item.get("status") or "pending",
        # Raw values: the record store reads "false"/"0" text per item
        "is_reimbursable": _flag(item, "is_reimbursable", False),
        "is_billable": _flag(item, "is_billable", False),
        "is_tax_deductible": _flag(item, "is_tax_deductible", True),
    }


class ConfirmationCommitter:
    """Materializes approved records of a staged session."""

    def __init__(
        self,
        orchestrator: IngestionOrchestrator,
        records: RecordStore,
        attachments: AttachmentService,
    ):
        self.orchestrator = orchestrator
        self.records = records
        self.attachments = attachments

    def confirm(
        self,
        session_id: str,
        owner_id: str,
        approved: list[dict[str, Any]],
    ) -> ConfirmationResult:
        """
        Create permanent expenses for the approved items.

        Raises:
            SessionNotFoundError: Session missing, expired or not owned by owner_id
        """
        session = self.orchestrator.get_session_data(session_id, owner_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        logger.info(
            "Confirming bulk import: %d expenses for user %s (session %s)",
            len(approved),
            owner_id,
            session_id,
        )

        result = ConfirmationResult()
        to_attach: list[tuple[dict[str, Any], StagedFile]] = []

        with self.records.transaction() as conn:
            for index, raw_item in enumerate(approved):
                item = normalize_item_keys(raw_item)
                created = self._create_one(conn, index, owner_id, item, session, result)
                if created is not None:
                    expense, staged = created
                    result.created.append(expense)
                    if staged is not None:
                        to_attach.append((expense, staged))

        for expense, staged in to_attach:
            self._attach(owner_id, expense, staged)

        if not self.orchestrator.delete_session_data(session_id):
            logger.warning("Session %s left to expire after confirmation", session_id)

        logger.info(
            "Bulk import completed: user=%s session=%s created=%d failed=%d",
            owner_id,
            session_id,
            len(result.created),
            len(result.failed),
        )
        return result

    def _create_one(
        self,
        conn: sqlite3.Connection,
        index: int,
        owner_id: str,
        item: dict[str, Any],
        session: IngestionSession,
        result: ConfirmationResult,
    ) -> Optional[tuple[dict[str, Any], Optional[StagedFile]]]:
        temp_id = item.get("temp_id")
        original = session.find_record(temp_id) if temp_id else None
        staged = session.find_file(original.file_name) if original else None
        if staged is not None and staged.original_name in session.duplicate_file_names():
            logger.warning(
                "Expense temp_id=%s matches several files named %s; attaching the first",
                temp_id,
                staged.original_name,
            )
        fields = expense_fields(item, original)

        try:
            with savepoint(conn, f"bulk_item_{index}"):
                expense = self.records.create_expense(owner_id, fields, conn=conn)
        except (RecordValidationError, sqlite3.Error) as e:
            logger.error("Error creating expense from bulk import (temp_id=%s): %s", temp_id, e)
            result.failed.append(
                FailedRecord(temp_id=temp_id, vendor_name=fields.get("vendor_name"), error=str(e))
            )
            return None

        return expense, staged

    def _attach(self, owner_id: str, expense: dict[str, Any], staged: StagedFile) -> None:
        try:
            attachment = self.attachments.attach_file(
                owner_id=owner_id,
                entity_type="expense",
                entity_id=expense["id"],
                file_name=staged.original_name,
                data=staged.decode(),
                mime_type=staged.mime_type,
            )
        except (AttachmentError, ValueError) as e:
            # ValueError: corrupt base64 in the staged file
            logger.error("Error attaching file to expense %s: %s", expense["id"], e)
            return

        logger.info(
            "Attached file to expense %s: attachment=%s file=%s",
            expense["id"],
            attachment["id"],
            staged.original_name,
        )
