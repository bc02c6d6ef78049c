"""Tests for the SQLite record store."""

from decimal import Decimal

import pytest

from ledger_intake.errors import RecordValidationError
from ledger_intake.records import RecordStore, normalize_tags, savepoint


def _expense(**overrides) -> dict:
    fields = {
        "amount": "52.99",
        "transaction_date": "2024-03-01",
        "vendor_name": "Adobe",
        "description": "Creative Cloud",
    }
    fields.update(overrides)
    return fields


class TestCategories:
    """Tests for category reference data."""

    def test_list_filters_type_and_active(self, record_store) -> None:
        software = record_store.add_category("Software")
        record_store.add_category("Consulting income", type="revenue")
        record_store.add_category("Old", is_active=False)

        listed = record_store.list_categories(type="expense", active=True)

        assert [c.id for c in listed] == [software.id]
        assert len(record_store.list_categories(active=None)) == 3

    def test_invalid_category_type(self, record_store) -> None:
        with pytest.raises(RecordValidationError):
            record_store.add_category("X", type="asset")


class TestCreateExpense:
    """Tests for create_expense validation and defaults."""

    def test_defaults(self, record_store) -> None:
        expense = record_store.create_expense("user-1", _expense())

        assert expense["user_id"] == "user-1"
        assert Decimal(expense["amount"]) == Decimal("52.99")
        assert expense["currency"] == "USD"
        assert expense["status"] == "pending"
        assert expense["is_reimbursable"] is False
        assert expense["is_billable"] is False
        assert expense["is_tax_deductible"] is True
        assert expense["tags"] == []
        assert record_store.get_expense(expense["id"], "user-1") == expense

    def test_owner_scoped_lookup(self, record_store) -> None:
        expense = record_store.create_expense("user-1", _expense())

        assert record_store.get_expense(expense["id"], "user-2") is None

    @pytest.mark.parametrize(
        "value,expected",
        [("false", False), ("0", False), ("no", False), ("True", True), ("1", True), (1, True), ("", False)],
    )
    def test_flags_from_text(self, record_store, value, expected) -> None:
        expense = record_store.create_expense("user-1", _expense(is_reimbursable=value))

        assert expense["is_reimbursable"] is expected

    def test_unreadable_flag_rejected(self, record_store) -> None:
        with pytest.raises(RecordValidationError, match="is_billable must be a boolean"):
            record_store.create_expense("user-1", _expense(is_billable="maybe"))

    def test_tax_deductible_defaults_true(self, record_store) -> None:
        expense = record_store.create_expense("user-1", _expense(is_tax_deductible=None))

        assert expense["is_tax_deductible"] is True

    def test_tags_normalized(self, record_store) -> None:
        expense = record_store.create_expense(
            "user-1", _expense(tags=[" Travel", "travel", "", "Q1 "])
        )

        assert expense["tags"] == ["travel", "q1"]

    def test_currency_upper_cased(self, record_store) -> None:
        assert record_store.create_expense("user-1", _expense(currency="eur"))["currency"] == "EUR"

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"amount": None}, "Amount is required"),
            ({"amount": "0"}, "positive"),
            ({"amount": "-1"}, "positive"),
            ({"amount": "abc"}, "Invalid amount"),
            ({"transaction_date": None}, "date is required"),
            ({"transaction_date": "yesterday"}, "Invalid transaction date"),
            ({"transaction_date": "2024-07-01"}, "future"),
            ({"currency": "EURO"}, "3-letter"),
            ({"description": "x" * 1001}, "Description"),
            ({"vendor_name": "x" * 201}, "Vendor"),
            ({"notes": "x" * 2001}, "Notes"),
            ({"status": "archived"}, "Status"),
            ({"category_id": "missing"}, "Invalid category ID"),
            ({"payment_method_id": "missing"}, "Invalid payment method"),
        ],
    )
    def test_validation(self, record_store, overrides, message) -> None:
        with pytest.raises(RecordValidationError, match=message):
            record_store.create_expense("user-1", _expense(**overrides))

    def test_payment_method_must_belong_to_owner(self, record_store) -> None:
        card = record_store.add_payment_method("user-2", "Corporate card", type="credit_card")

        with pytest.raises(RecordValidationError, match="unauthorized"):
            record_store.create_expense("user-1", _expense(payment_method_id=card["id"]))

        own_card = record_store.add_payment_method("user-1", "My card")
        expense = record_store.create_expense("user-1", _expense(payment_method_id=own_card["id"]))
        assert expense["payment_method_id"] == own_card["id"]

    def test_known_category_accepted(self, record_store, categories) -> None:
        expense = record_store.create_expense("user-1", _expense(category_id=categories[0].id))

        assert expense["category_id"] == categories[0].id


class TestTransactions:
    """Tests for transaction() and savepoint()."""

    def test_savepoint_isolates_failures(self, record_store) -> None:
        with record_store.transaction() as conn:
            with savepoint(conn, "first"):
                record_store.create_expense("user-1", _expense(vendor_name="Kept"), conn=conn)

            with pytest.raises(RecordValidationError):
                with savepoint(conn, "second"):
                    record_store.create_expense("user-1", _expense(vendor_name="Half"), conn=conn)
                    record_store.create_expense("user-1", _expense(amount="-1"), conn=conn)

            with savepoint(conn, "third"):
                record_store.create_expense("user-1", _expense(vendor_name="Also kept"), conn=conn)

        vendors = [e["vendor_name"] for e in record_store.list_expenses("user-1")]
        assert vendors == ["Kept", "Also kept"]

    def test_transaction_rolls_back_on_error(self, record_store) -> None:
        with pytest.raises(RuntimeError):
            with record_store.transaction() as conn:
                record_store.create_expense("user-1", _expense(), conn=conn)
                raise RuntimeError("boom")

        assert record_store.list_expenses("user-1") == []

    def test_invalid_savepoint_name(self, record_store) -> None:
        with record_store.transaction() as conn:
            with pytest.raises(ValueError):
                with savepoint(conn, "x; DROP TABLE expenses"):
                    pass


class TestAttachmentsTable:
    """Tests for attachment rows."""

    def test_create_and_list(self, record_store) -> None:
        attachment = record_store.create_attachment(
            entity_type="expense",
            entity_id="e1",
            file_name="receipt.pdf",
            file_path="uploads/expense/e1/1-receipt.pdf",
            file_size=42,
            mime_type="application/pdf",
            uploaded_by="user-1",
            storage_provider="local",
        )

        listed = record_store.list_attachments("expense", "e1")
        assert listed == [attachment]
        assert attachment["storage_provider"] == "local"
        assert record_store.list_attachments("expense", "other") == []


def test_normalize_tags_accepts_comma_text() -> None:
    assert normalize_tags("a, B ,a") == ["a", "b"]
    assert normalize_tags(None) == []


def test_store_creates_parent_directory(tmp_path) -> None:
    store = RecordStore(tmp_path / "nested" / "dir" / "records.db")

    assert store.db_path.exists()
