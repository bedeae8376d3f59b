"""
Tests for the expense storage service.

The async service functions are driven with asyncio.run against the
in-memory collection from conftest.
"""

import asyncio
from datetime import date, datetime

import pytest
from bson import ObjectId

from models.errors import ValidationError
from services import expenses_service
from conftest import BrokenCollection, InMemoryCollection

VALID_PAYLOAD = {
    "amount": 120.5,
    "category": "Food",
    "description": "Dinner",
    "date": "2024-01-05",
}


def run(coro):
    return asyncio.run(coro)


class TestParseExpenseFields:
    """Boundary validation of create/replace payloads."""

    def test_valid_payload(self):
        fields = expenses_service.parse_expense_fields(VALID_PAYLOAD)
        assert fields.amount == 120.5
        assert fields.date == date(2024, 1, 5)

    def test_description_is_optional(self):
        payload = {k: v for k, v in VALID_PAYLOAD.items() if k != "description"}
        assert expenses_service.parse_expense_fields(payload).description == ""

    def test_missing_fields_are_all_reported(self):
        with pytest.raises(ValidationError) as exc_info:
            expenses_service.parse_expense_fields({"description": "nothing else"})
        assert exc_info.value.messages == [
            "Amount is required",
            "Category is required",
            "Date is required",
        ]

    def test_blank_strings_count_as_missing(self):
        payload = dict(VALID_PAYLOAD, category="  ", date="")
        with pytest.raises(ValidationError, match="Category is required; Date is required"):
            expenses_service.parse_expense_fields(payload)

    def test_zero_amount_is_allowed(self):
        assert expenses_service.parse_expense_fields(dict(VALID_PAYLOAD, amount=0)).amount == 0

    def test_malformed_amount(self):
        with pytest.raises(ValidationError, match="amount"):
            expenses_service.parse_expense_fields(dict(VALID_PAYLOAD, amount="lots"))

    def test_negative_amount(self):
        with pytest.raises(ValidationError, match="amount"):
            expenses_service.parse_expense_fields(dict(VALID_PAYLOAD, amount=-3))

    def test_malformed_date(self):
        with pytest.raises(ValidationError, match="date"):
            expenses_service.parse_expense_fields(dict(VALID_PAYLOAD, date="05/01/2024"))

    def test_non_object_payload(self):
        with pytest.raises(ValidationError):
            expenses_service.parse_expense_fields(["not", "a", "dict"])


class TestExpenseStorage:
    """Create, list, replace and delete against the collection."""

    def test_add_assigns_id_and_stores_datetime(self):
        collection = InMemoryCollection()
        expense = run(expenses_service.add_expense_to_db(collection, VALID_PAYLOAD))
        assert ObjectId.is_valid(expense.id)
        stored = collection.documents[0]
        assert str(stored["_id"]) == expense.id
        assert stored["date"] == datetime(2024, 1, 5)

    def test_add_rejects_invalid_payload_without_writing(self):
        collection = InMemoryCollection()
        with pytest.raises(ValidationError):
            run(expenses_service.add_expense_to_db(collection, {"amount": 5}))
        assert collection.documents == []

    def test_list_converts_documents(self):
        oid = ObjectId()
        collection = InMemoryCollection([
            {"_id": oid, "amount": 10, "category": "Food", "description": "", "date": datetime(2024, 2, 1)},
        ])
        expenses = run(expenses_service.get_all_expenses_from_db(collection))
        assert len(expenses) == 1
        assert expenses[0].id == str(oid)
        assert expenses[0].date == date(2024, 2, 1)

    def test_list_skips_invalid_documents(self):
        collection = InMemoryCollection([
            {"_id": ObjectId(), "amount": 10, "category": "Food", "date": datetime(2024, 2, 1)},
            {"_id": ObjectId(), "category": "Broken"},
        ])
        expenses = run(expenses_service.get_all_expenses_from_db(collection))
        assert [e.category for e in expenses] == ["Food"]

    def test_list_ignores_extra_document_fields(self):
        collection = InMemoryCollection([
            {"_id": ObjectId(), "amount": 10, "category": "Food", "date": datetime(2024, 2, 1), "__v": 0},
        ])
        assert len(run(expenses_service.get_all_expenses_from_db(collection))) == 1

    def test_replace_overwrites_every_field(self):
        collection = InMemoryCollection()
        created = run(expenses_service.add_expense_to_db(collection, VALID_PAYLOAD))
        replacement = {"amount": 75, "category": "Travel", "date": "2024-03-01"}
        updated = run(expenses_service.replace_expense_in_db(collection, created.id, replacement))
        assert updated.id == created.id
        assert updated.amount == 75
        assert updated.category == "Travel"
        assert updated.description == ""
        assert updated.date == date(2024, 3, 1)

    def test_replace_unknown_id(self):
        collection = InMemoryCollection()
        result = run(expenses_service.replace_expense_in_db(collection, str(ObjectId()), VALID_PAYLOAD))
        assert result is None

    def test_replace_malformed_id(self):
        collection = InMemoryCollection()
        assert run(expenses_service.replace_expense_in_db(collection, "not-an-id", VALID_PAYLOAD)) is None

    def test_replace_validates_before_lookup(self):
        collection = InMemoryCollection()
        with pytest.raises(ValidationError):
            run(expenses_service.replace_expense_in_db(collection, "not-an-id", {}))

    def test_delete(self):
        collection = InMemoryCollection()
        created = run(expenses_service.add_expense_to_db(collection, VALID_PAYLOAD))
        assert run(expenses_service.delete_expense_from_db(collection, created.id)) is True
        assert collection.documents == []
        assert run(expenses_service.delete_expense_from_db(collection, created.id)) is False

    def test_delete_malformed_id(self):
        assert run(expenses_service.delete_expense_from_db(InMemoryCollection(), "nope")) is False


class TestDatabaseFailures:
    """Storage errors surface as ConnectionError."""

    def test_list(self):
        with pytest.raises(ConnectionError):
            run(expenses_service.get_all_expenses_from_db(BrokenCollection()))

    def test_add(self):
        with pytest.raises(ConnectionError):
            run(expenses_service.add_expense_to_db(BrokenCollection(), VALID_PAYLOAD))

    def test_replace(self):
        with pytest.raises(ConnectionError):
            run(expenses_service.replace_expense_in_db(BrokenCollection(), str(ObjectId()), VALID_PAYLOAD))

    def test_delete(self):
        with pytest.raises(ConnectionError):
            run(expenses_service.delete_expense_from_db(BrokenCollection(), str(ObjectId())))
