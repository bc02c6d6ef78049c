"""Tests for the bulk import service facade."""

import pytest

from ledger_intake.errors import (
    InvalidRequestError,
    NoFilesError,
    SessionNotFoundError,
    TooManyFilesError,
)
from ledger_intake.ingestion import parse_options
from ledger_intake.schemas import IngestionOptions, UploadedFile


class TestParseOptions:
    """Tests for parse_options."""

    def test_json_text(self) -> None:
        options = parse_options('{"defaultCategoryId": "c1", "default_payment_method_id": "p1"}')

        assert options == IngestionOptions(default_category_id="c1", default_payment_method_id="p1")

    def test_bad_json_is_ignored(self, caplog) -> None:
        assert parse_options("{not json") == IngestionOptions()
        assert "Error parsing options" in caplog.text

    @pytest.mark.parametrize("value", [None, "", "[1, 2]", 42])
    def test_empty_or_odd_values(self, value) -> None:
        assert parse_options(value) == IngestionOptions()


class TestUploadAndExtract:
    """Tests for BulkImportService.upload_and_extract."""

    def test_no_files(self, service) -> None:
        with pytest.raises(NoFilesError, match="No files uploaded"):
            service.upload_and_extract([], "user-1")

    def test_too_many_files(self, service, memory_store) -> None:
        files = [UploadedFile(f"f{i}.csv", "text/csv", b"Vendor\n") for i in range(11)]

        with pytest.raises(TooManyFilesError):
            service.upload_and_extract(files, "user-1")
        assert len(memory_store) == 0

    def test_ten_files_allowed(self, service) -> None:
        files = [UploadedFile(f"f{i}.csv", "text/csv", b"Vendor,Amount,Date\nA,1,2024-01-01\n") for i in range(10)]

        result = service.upload_and_extract(files, "user-1")

        assert len(result.extracted_expenses) == 10

    def test_options_json_applied(self, service, csv_upload) -> None:
        result = service.upload_and_extract(
            [csv_upload], "user-1", '{"defaultPaymentMethodId": "pm-7"}'
        )

        assert {r["payment_method_id"] for r in result.extracted_expenses} == {"pm-7"}


class TestGetSession:
    """Tests for BulkImportService.get_session."""

    def test_review_view(self, service, csv_upload) -> None:
        staged = service.upload_and_extract([csv_upload], "user-1")

        view = service.get_session(staged.session_id, "user-1")

        assert view["session_id"] == staged.session_id
        assert view["extracted_expenses"] == staged.extracted_expenses
        assert view["created_at"]
        assert "files" not in view

    def test_missing_session_id(self, service) -> None:
        with pytest.raises(InvalidRequestError):
            service.get_session("", "user-1")

    def test_not_found_for_other_user(self, service, csv_upload) -> None:
        staged = service.upload_and_extract([csv_upload], "user-1")

        with pytest.raises(SessionNotFoundError):
            service.get_session(staged.session_id, "user-2")


class TestConfirmImport:
    """Tests for BulkImportService.confirm_import."""

    @pytest.mark.parametrize(
        "expenses",
        [None, [], "not a list", [{"vendor_name": "no temp id"}], ["nope"]],
    )
    def test_invalid_requests(self, service, csv_upload, record_store, expenses) -> None:
        staged = service.upload_and_extract([csv_upload], "user-1")

        with pytest.raises(InvalidRequestError):
            service.confirm_import(staged.session_id, "user-1", expenses)

        assert record_store.list_expenses("user-1") == []
        assert service.get_session(staged.session_id, "user-1")

    def test_missing_session_id(self, service) -> None:
        with pytest.raises(InvalidRequestError, match="Session ID is required"):
            service.confirm_import("", "user-1", [{"temp_id": "t"}])

    def test_end_to_end(self, service, csv_upload, record_store) -> None:
        staged = service.upload_and_extract([csv_upload], "user-1")
        items = [{"temp_id": r["temp_id"]} for r in staged.extracted_expenses]

        summary = service.confirm_import(staged.session_id, "user-1", items).to_dict()

        assert summary["created"] == 2
        assert summary["failed"] == 0
        assert len(record_store.list_expenses("user-1")) == 2
        with pytest.raises(SessionNotFoundError):
            service.get_session(staged.session_id, "user-1")
