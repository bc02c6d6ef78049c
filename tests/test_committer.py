"""Tests for confirmation of staged sessions."""

import logging
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from ledger_intake.errors import AttachmentError, SessionNotFoundError
from ledger_intake.ingestion import expense_fields
from ledger_intake.schemas import ExtractedRecord, UploadedFile


def _temp_ids(result) -> list[str]:
    return [r["temp_id"] for r in result.extracted_expenses]


class TestExpenseFields:
    """Tests for building permanent fields from an approved item."""

    def test_client_values_win(self) -> None:
        original = ExtractedRecord(
            temp_id="t1",
            vendor_name="Ofice Depot",
            amount=Decimal("45.20"),
            transaction_date="2024-02-14",
            line_items="Toner ($40.00)",
        )

        fields = expense_fields({"temp_id": "t1", "vendor_name": "Office Depot"}, original)

        assert fields["vendor_name"] == "Office Depot"
        assert fields["amount"] == "45.20"
        assert fields["transaction_date"] == "2024-02-14"
        assert fields["notes"] == "Toner ($40.00)"

    def test_defaults(self) -> None:
        fields = expense_fields({"temp_id": "t1", "amount": "5"}, None)

        assert fields["currency"] == "USD"
        assert fields["status"] == "pending"
        assert fields["tags"] == []
        assert fields["is_reimbursable"] is False
        assert fields["is_billable"] is False
        assert fields["is_tax_deductible"] is True

    def test_explicit_notes_and_flags(self) -> None:
        original = ExtractedRecord(temp_id="t1", line_items="ignored")
        fields = expense_fields(
            {"temp_id": "t1", "notes": "Client dinner", "is_tax_deductible": False, "is_billable": True},
            original,
        )

        assert fields["notes"] == "Client dinner"
        assert fields["is_tax_deductible"] is False
        assert fields["is_billable"] is True

    def test_flag_text_reaches_store_unchanged(self) -> None:
        fields = expense_fields({"temp_id": "t1", "is_reimbursable": "false"}, None)

        assert fields["is_reimbursable"] == "false"


class TestConfirm:
    """Tests for ConfirmationCommitter.confirm."""

    def test_confirm_with_attachment_and_session_deletion(
        self, orchestrator, committer, record_store, image_upload, upload_dir
    ) -> None:
        staged = orchestrator.ingest([image_upload], "user-1")
        (temp_id,) = _temp_ids(staged)

        result = committer.confirm(staged.session_id, "user-1", [{"temp_id": temp_id}])

        assert len(result.created) == 1
        assert result.failed == []
        expense = result.created[0]
        assert expense["vendor_name"] == "Office Depot"
        assert expense["notes"] == "Toner ($40.00), Paper ($5.20)"

        (attachment,) = record_store.list_attachments("expense", expense["id"])
        assert attachment["file_name"] == "receipt.jpg"
        assert attachment["storage_provider"] == "local"
        stored = list(upload_dir.rglob("*receipt.jpg"))
        assert [p.read_bytes() for p in stored] == [image_upload.data]

        assert orchestrator.get_session_data(staged.session_id, "user-1") is None

    def test_partial_failure(self, orchestrator, committer, record_store, csv_upload) -> None:
        staged = orchestrator.ingest([csv_upload], "user-1")
        adobe_id, uber_id = _temp_ids(staged)

        result = committer.confirm(
            staged.session_id,
            "user-1",
            [
                {"temp_id": adobe_id},
                {"temp_id": uber_id, "vendor_name": "Uber", "amount": "-3"},
            ],
        )

        assert [e["vendor_name"] for e in result.created] == ["Adobe"]
        assert len(result.failed) == 1
        assert result.failed[0].temp_id == uber_id
        assert result.failed[0].vendor_name == "Uber"
        assert "positive" in result.failed[0].error
        assert [e["vendor_name"] for e in record_store.list_expenses("user-1")] == ["Adobe"]

        summary = result.to_dict()
        assert summary["created"] == 1
        assert summary["failed"] == 1
        assert summary["errors"][0]["temp_id"] == uber_id

    def test_second_confirm_fails(self, orchestrator, committer, csv_upload) -> None:
        staged = orchestrator.ingest([csv_upload], "user-1")
        items = [{"temp_id": t} for t in _temp_ids(staged)]

        committer.confirm(staged.session_id, "user-1", items)

        with pytest.raises(SessionNotFoundError, match="Session not found or expired"):
            committer.confirm(staged.session_id, "user-1", items)

    def test_wrong_owner(self, orchestrator, committer, record_store, csv_upload) -> None:
        staged = orchestrator.ingest([csv_upload], "user-1")

        with pytest.raises(SessionNotFoundError):
            committer.confirm(staged.session_id, "user-2", [{"temp_id": "x"}])

        assert record_store.list_expenses("user-2") == []
        assert orchestrator.get_session_data(staged.session_id, "user-1") is not None

    def test_attachment_failure_does_not_affect_created(
        self, orchestrator, committer, record_store, image_upload
    ) -> None:
        committer.attachments = MagicMock()
        committer.attachments.attach_file.side_effect = AttachmentError("disk full")
        staged = orchestrator.ingest([image_upload], "user-1")

        result = committer.confirm(staged.session_id, "user-1", [{"temp_id": _temp_ids(staged)[0]}])

        assert len(result.created) == 1
        assert len(record_store.list_expenses("user-1")) == 1
        assert orchestrator.get_session_data(staged.session_id, "user-1") is None

    def test_attachments_written_after_commit(
        self, orchestrator, committer, record_store, image_upload
    ) -> None:
        seen_expenses = []

        def _attach(**kwargs):
            seen_expenses.append(record_store.get_expense(kwargs["entity_id"], "user-1"))
            return {"id": "att-1"}

        committer.attachments = MagicMock()
        committer.attachments.attach_file.side_effect = _attach
        staged = orchestrator.ingest([image_upload], "user-1")

        committer.confirm(staged.session_id, "user-1", [{"temp_id": _temp_ids(staged)[0]}])

        # The expense is already visible to a separate connection
        assert seen_expenses[0] is not None

    def test_unknown_temp_id_uses_client_fields_without_attachment(
        self, orchestrator, committer, csv_upload
    ) -> None:
        committer.attachments = MagicMock()
        staged = orchestrator.ingest([csv_upload], "user-1")

        result = committer.confirm(
            staged.session_id,
            "user-1",
            [
                {
                    "tempId": "manual",
                    "vendorName": "Corner Shop",
                    "amount": "4.50",
                    "transactionDate": "2024-05-01",
                }
            ],
        )

        assert result.created[0]["vendor_name"] == "Corner Shop"
        committer.attachments.attach_file.assert_not_called()

    def test_session_delete_failure_is_logged(
        self, orchestrator, committer, csv_upload, caplog
    ) -> None:
        staged = orchestrator.ingest([csv_upload], "user-1")
        orchestrator.store.delete = MagicMock(return_value=False)

        result = committer.confirm(staged.session_id, "user-1", [{"temp_id": _temp_ids(staged)[0]}])

        assert len(result.created) == 1
        assert "left to expire" in caplog.text

    def test_multi_file_attachments_follow_records(
        self, orchestrator, committer, record_store, csv_upload, image_upload
    ) -> None:
        scan = UploadedFile("scan.png", "image/png", b"png")
        staged = orchestrator.ingest([csv_upload, scan], "user-1")
        items = [{"temp_id": t} for t in _temp_ids(staged)]

        result = committer.confirm(staged.session_id, "user-1", items)

        names = [
            record_store.list_attachments("expense", e["id"])[0]["file_name"] for e in result.created
        ]
        assert names == ["expenses.csv", "expenses.csv", "scan.png"]

    def test_flag_text_from_client(self, orchestrator, committer, csv_upload) -> None:
        staged = orchestrator.ingest([csv_upload], "user-1")
        items = [
            {"tempId": staged.extracted_expenses[0]["temp_id"], "isReimbursable": "false"},
            {"temp_id": staged.extracted_expenses[1]["temp_id"], "is_billable": "maybe"},
        ]

        result = committer.confirm(staged.session_id, "user-1", items)

        assert result.created[0]["is_reimbursable"] is False
        assert [f.temp_id for f in result.failed] == [items[1]["temp_id"]]

    def test_duplicate_file_names_are_reported(
        self, orchestrator, committer, record_store, caplog
    ) -> None:
        first = UploadedFile("image.jpg", "image/jpeg", b"\xff\xd8first")
        second = UploadedFile("image.jpg", "image/jpeg", b"\xff\xd8second")

        with caplog.at_level(logging.WARNING):
            staged = orchestrator.ingest([first, second], "user-1")
            result = committer.confirm(
                staged.session_id, "user-1", [{"temp_id": t} for t in _temp_ids(staged)]
            )

        assert "several files named image.jpg" in caplog.text
        assert caplog.text.count("matches several files named image.jpg") == 2
        sizes = [
            record_store.list_attachments("expense", e["id"])[0]["file_size"] for e in result.created
        ]
        assert sizes == [len(first.data), len(first.data)]
