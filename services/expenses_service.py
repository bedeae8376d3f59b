"""Service layer for handling expense-related logic."""
import logging
import json # Import json for pretty printing
from typing import List, Dict, Any, Optional
from models.expense import Expense, ExpenseFields
from models.errors import ValidationError
from motor.motor_asyncio import AsyncIOMotorCollection # Type hint for collection
from pydantic import ValidationError as PydanticValidationError
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from datetime import datetime

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {
    "amount": "Amount is required",
    "category": "Category is required",
    "date": "Date is required",
}

# --- Conversion Helpers ---

def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())

def parse_expense_fields(payload: Dict[str, Any]) -> ExpenseFields:
    """
    Validates a create/replace payload at the API boundary.
    Raises ValidationError naming every missing required field, or the first malformed one.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Expense payload must be a JSON object.")

    missing = [message for field, message in REQUIRED_FIELDS.items() if _is_missing(payload.get(field))]
    if missing:
        raise ValidationError(missing)

    fields = {key: payload.get(key) for key in ("amount", "category", "description", "date")}
    try:
        return ExpenseFields(**fields)
    except PydanticValidationError as e:
        messages = []
        for error in e.errors():
            location = ".".join(str(part) for part in error.get("loc", ())) or "payload"
            messages.append(f"{location}: {error.get('msg')}")
        raise ValidationError(messages)

def _object_id(expense_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(expense_id)
    except (InvalidId, TypeError):
        logger.warning(f"'{expense_id}' is not a valid expense id.")
        return None

def _document_from_fields(fields: ExpenseFields) -> Dict[str, Any]:
    document = fields.model_dump()
    # MongoDB has no date type, store midnight of that day
    document["date"] = datetime.combine(fields.date, datetime.min.time())
    return document

def _expense_from_document(doc: Dict[str, Any]) -> Expense:
    doc = dict(doc)
    if "_id" in doc: doc["id"] = str(doc.pop("_id"))
    if "date" in doc and isinstance(doc["date"], datetime):
        doc["date"] = doc["date"].date()
    return Expense(**doc)

# --- Database Interaction Functions (Depend on collection passed from route) ---

async def get_all_expenses_from_db(collection: AsyncIOMotorCollection) -> List[Expense]:
    """Fetches every expense from the provided MongoDB collection, in store order."""
    logger.info(f"Fetching all expenses from collection '{collection.name}'...")
    expenses = []
    try:
        cursor = collection.find()
        async for doc in cursor:
            try:
                expenses.append(_expense_from_document(doc))
            except PydanticValidationError as e:
                logger.error(f"Data validation error for document ID {doc.get('_id', 'N/A')}: {e}")
                # Skip invalid documents
                continue
        logger.info(f"Fetched {len(expenses)} expenses successfully.")
    except Exception as e:
        logger.error(f"Database error fetching expenses: {e}")
        raise ConnectionError(f"Database error fetching expenses: {e}")
    return expenses

async def add_expense_to_db(collection: AsyncIOMotorCollection, payload: Dict[str, Any]) -> Expense:
    """Validates the payload, inserts it and returns the stored expense with its new id."""
    logger.debug(f"Creating expense from payload:\n{json.dumps(payload, indent=2, default=str)}")
    fields = parse_expense_fields(payload)
    document = _document_from_fields(fields)
    try:
        result = await collection.insert_one(document)
    except Exception as e:
        logger.error(f"Database error inserting expense: {e}")
        raise ConnectionError(f"Database error creating expense: {e}")

    expense = Expense(id=str(result.inserted_id), **fields.model_dump())
    logger.info(f"Created expense {expense.id} ({expense.category}, {expense.amount}).")
    return expense

async def replace_expense_in_db(
    collection: AsyncIOMotorCollection,
    expense_id: str,
    payload: Dict[str, Any]
) -> Optional[Expense]:
    """
    Replaces every field of an existing expense.
    Returns None if no expense has that id.
    """
    fields = parse_expense_fields(payload)
    object_id = _object_id(expense_id)
    if object_id is None:
        return None

    try:
        doc = await collection.find_one_and_replace(
            {"_id": object_id},
            _document_from_fields(fields),
            return_document=ReturnDocument.AFTER,
        )
    except Exception as e:
        logger.error(f"Database error replacing expense {expense_id}: {e}")
        raise ConnectionError(f"Database error updating expense: {e}")

    if doc is None:
        logger.warning(f"Expense {expense_id} not found for update.")
        return None
    logger.info(f"Replaced expense {expense_id}.")
    return _expense_from_document(doc)

async def delete_expense_from_db(collection: AsyncIOMotorCollection, expense_id: str) -> bool:
    """Deletes one expense. Returns False if no expense has that id."""
    logger.warning(f"Deleting expense {expense_id} from collection '{collection.name}'.")
    object_id = _object_id(expense_id)
    if object_id is None:
        return False

    try:
        result = await collection.delete_one({"_id": object_id})
    except Exception as e:
        logger.error(f"Database error deleting expense {expense_id}: {e}")
        raise ConnectionError(f"Database error deleting expense: {e}")

    if result.deleted_count == 0:
        logger.warning(f"Expense {expense_id} not found for deletion.")
        return False
    logger.info(f"Deleted expense {expense_id}.")
    return True
