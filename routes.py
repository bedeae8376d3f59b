"""API Routes for expenses"""
from fastapi import APIRouter, HTTPException, Body, Depends, Request, Query, status
from typing import List, Annotated, Dict, Any
from services import expenses_service, dashboard_service
from services.dashboard_service import DashboardView, ExpenseTable
from models.expense import Expense, SortDirection, SortKey, Timeframe, ViewPreferences
from motor.motor_asyncio import AsyncIOMotorCollection
import logging

router = APIRouter()
logger = logging.getLogger(__name__)

# --- Dependency Function ---
def get_expenses_collection(request: Request) -> AsyncIOMotorCollection:
    """Dependency to get the MongoDB expenses collection from the request state."""
    collection = getattr(request.state, "expenses_collection", None)
    if collection is None:
        logger.error("Expenses collection not found in application state. Check MongoDB connection.")
        raise HTTPException(status_code=503, detail="Database service not available.")
    return collection

# Type hint for the dependency
ExpensesCollectionDep = Annotated[AsyncIOMotorCollection, Depends(get_expenses_collection)]
ExpensePayload = Annotated[Dict[str, Any], Body(...)]

EXPENSE_NOT_FOUND = "Expense not found"

# --- Expense CRUD ---

@router.get("/expenses", response_model=List[Expense], summary="Get All Expenses", description="Retrieves all expense records from the database.")
async def get_expenses(collection: ExpensesCollectionDep) -> List[Expense]:
    """Fetches all expenses. Ordering, searching and grouping are views built from this list."""
    logger.info("GET /expenses endpoint called.")
    try:
        return await expenses_service.get_all_expenses_from_db(collection)
    except ConnectionError as ce:
        logger.error(f"Connection error fetching expenses: {ce}")
        raise HTTPException(status_code=503, detail=f"Database connection error: {ce}")
    except Exception as e:
        logger.exception(f"Unexpected error fetching expenses: {e}")
        raise HTTPException(status_code=500, detail="An unexpected server error occurred while fetching expenses.")

@router.post("/expenses", response_model=Expense, status_code=status.HTTP_201_CREATED, summary="Add Expense", description="Creates a new expense record. Amount, category and date are required.")
async def add_expense(collection: ExpensesCollectionDep, payload: ExpensePayload) -> Expense:
    """Creates an expense and returns it with the id assigned by the database."""
    logger.info(f"POST /expenses endpoint called for category '{payload.get('category')}'.")
    try:
        return await expenses_service.add_expense_to_db(collection, payload)
    except ValueError as ve:
        logger.warning(f"Rejected expense payload: {ve}")
        raise HTTPException(status_code=400, detail=str(ve))
    except ConnectionError as ce:
        logger.error(f"ConnectionError creating expense: {ce}")
        raise HTTPException(status_code=503, detail=str(ce))
    except Exception as e:
        logger.exception(f"Unexpected error creating expense: {e}")
        raise HTTPException(status_code=500, detail="An unexpected server error occurred while creating the expense.")

@router.put("/expenses/{expense_id}", response_model=Expense, summary="Replace Expense", description="Replaces every field of an existing expense record.")
async def update_expense(expense_id: str, collection: ExpensesCollectionDep, payload: ExpensePayload) -> Expense:
    """Full-record replacement keyed by id. Callers must resend all fields."""
    logger.info(f"PUT /expenses/{expense_id} endpoint called.")
    try:
        expense = await expenses_service.replace_expense_in_db(collection, expense_id, payload)
    except ValueError as ve:
        logger.warning(f"Rejected expense payload for {expense_id}: {ve}")
        raise HTTPException(status_code=400, detail=str(ve))
    except ConnectionError as ce:
        logger.error(f"ConnectionError updating expense {expense_id}: {ce}")
        raise HTTPException(status_code=503, detail=str(ce))
    except Exception as e:
        logger.exception(f"Unexpected error updating expense {expense_id}: {e}")
        raise HTTPException(status_code=500, detail="An unexpected server error occurred while updating the expense.")

    if expense is None:
        raise HTTPException(status_code=404, detail=EXPENSE_NOT_FOUND)
    return expense

@router.delete("/expenses/{expense_id}", summary="Delete Expense", description="Deletes a single expense record.")
async def delete_expense(expense_id: str, collection: ExpensesCollectionDep) -> Dict[str, str]:
    """API endpoint to delete one expense."""
    logger.warning(f"DELETE /expenses/{expense_id} endpoint called.")
    try:
        deleted = await expenses_service.delete_expense_from_db(collection, expense_id)
    except ConnectionError as ce:
        logger.error(f"ConnectionError deleting expense {expense_id}: {ce}")
        raise HTTPException(status_code=503, detail=str(ce))
    except Exception as e:
        logger.exception(f"Unexpected error deleting expense {expense_id}: {e}")
        raise HTTPException(status_code=500, detail="An unexpected server error occurred while deleting the expense.")

    if not deleted:
        raise HTTPException(status_code=404, detail=EXPENSE_NOT_FOUND)
    return {"message": "Expense deleted"}

# --- Views ---

@router.get("/expenses/table", response_model=ExpenseTable, summary="Expense Table", description="All expenses matching the search text, sorted on one column.")
async def get_expense_table(
    collection: ExpensesCollectionDep,
    q: str = Query("", description="Case-insensitive text matched against category, description, amount and date."),
    sort_key: SortKey = Query('date', description="Column to sort by."),
    direction: SortDirection = Query('descending', description="'ascending' or 'descending'."),
) -> ExpenseTable:
    logger.info(f"GET /expenses/table endpoint called. Query '{q}', sorting by '{sort_key}' {direction}.")
    prefs = ViewPreferences(query=q, sort_key=sort_key, direction=direction)
    try:
        expenses = await expenses_service.get_all_expenses_from_db(collection)
        return dashboard_service.build_expense_table(expenses, prefs)
    except ConnectionError as ce:
        logger.error(f"Connection error building expense table: {ce}")
        raise HTTPException(status_code=503, detail=f"Database connection error: {ce}")
    except Exception as e:
        logger.exception(f"Unexpected error building expense table: {e}")
        raise HTTPException(status_code=500, detail="An unexpected server error occurred while building the expense table.")

@router.get("/dashboard", response_model=DashboardView, summary="Dashboard", description="Totals, charts and largest expenses for a rolling week, month or year.")
async def get_dashboard(
    collection: ExpensesCollectionDep,
    timeframe: Timeframe = Query('month', description="Rolling window ending today: 'week', 'month' or 'year'."),
) -> DashboardView:
    logger.info(f"GET /dashboard endpoint called for timeframe '{timeframe}'.")
    prefs = ViewPreferences(timeframe=timeframe)
    try:
        expenses = await expenses_service.get_all_expenses_from_db(collection)
        return dashboard_service.build_dashboard(expenses, prefs)
    except ConnectionError as ce:
        logger.error(f"Connection error building dashboard: {ce}")
        raise HTTPException(status_code=503, detail=f"Database connection error: {ce}")
    except Exception as e:
        logger.exception(f"Unexpected error building dashboard: {e}")
        raise HTTPException(status_code=500, detail="An unexpected server error occurred while building the dashboard.")
