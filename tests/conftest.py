"""
Shared fixtures.

The database is replaced by an in-memory collection exposing the handful of
async motor methods the service layer calls. No test talks to MongoDB.
"""

import os

# Must be set before main is imported so the limiter is built disabled
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from copy import deepcopy
from datetime import date
from types import SimpleNamespace

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from models.expense import Expense


class InMemoryCollection:
    """Stand-in for an AsyncIOMotorCollection holding documents in a list."""

    name = "expenses"

    def __init__(self, documents=None):
        self.documents = [deepcopy(doc) for doc in documents or []]

    async def _iterate(self):
        for doc in list(self.documents):
            yield deepcopy(doc)

    def find(self, filter=None):
        return self._iterate()

    async def insert_one(self, document):
        stored = deepcopy(document)
        stored["_id"] = ObjectId()
        self.documents.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    async def find_one_and_replace(self, filter, replacement, return_document=None):
        for index, doc in enumerate(self.documents):
            if doc["_id"] == filter["_id"]:
                stored = deepcopy(replacement)
                stored["_id"] = doc["_id"]
                self.documents[index] = stored
                return deepcopy(stored)
        return None

    async def delete_one(self, filter):
        for index, doc in enumerate(self.documents):
            if doc["_id"] == filter["_id"]:
                del self.documents[index]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


class BrokenCollection:
    """A collection whose every call fails like a lost database connection."""

    name = "expenses"

    def find(self, filter=None):
        raise RuntimeError("connection refused")

    async def insert_one(self, document):
        raise RuntimeError("connection refused")

    async def find_one_and_replace(self, filter, replacement, return_document=None):
        raise RuntimeError("connection refused")

    async def delete_one(self, filter):
        raise RuntimeError("connection refused")


def make_expense(amount, category, day, description="", expense_id=None):
    return Expense(
        id=expense_id,
        amount=amount,
        category=category,
        description=description,
        date=day,
    )


@pytest.fixture
def sample_expenses():
    """The three-record scenario used throughout the aggregation tests."""
    return [
        make_expense(100, "Food", date(2024, 1, 5), "Groceries", "a1"),
        make_expense(50, "Food", date(2024, 1, 10), "Lunch", "a2"),
        make_expense(200, "Travel", date(2024, 6, 1), "Train tickets", "a3"),
    ]


@pytest.fixture
def collection():
    return InMemoryCollection()


@pytest.fixture
def client(collection):
    import main
    from routes import get_expenses_collection

    main.app.dependency_overrides[get_expenses_collection] = lambda: collection
    try:
        yield TestClient(main.app)
    finally:
        main.app.dependency_overrides.clear()
