"""Service layer that turns expense records into the dashboard and table views."""
import logging
from datetime import date
from itertools import cycle, islice
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel

from models.expense import Expense, SortDirection, SortKey, Timeframe, ViewPreferences
from services import aggregation
from utils.formatting import (
    category_icon,
    format_currency,
    format_display_date,
    format_inr,
    format_short_date,
)

logger = logging.getLogger(__name__)

CHART_COLORS = [
    '#4F46E5', '#7C3AED', '#EC4899', '#F97316', '#10B981',
    '#06B6D4', '#8B5CF6', '#3B82F6', '#EF4444', '#F59E0B',
]
TOP_EXPENSES_LIMIT = 5

NO_MATCHES_MESSAGE = "No expenses match your search."
NO_EXPENSES_MESSAGE = "No expenses found. Add some expenses to see them here."


# --- View Models ---

class CategoryChart(BaseModel):
    title: str = "Expenses by Category"
    labels: List[str]
    data: List[float]
    colors: List[str]


class PeriodChart(BaseModel):
    title: str
    labels: List[str]
    data: List[float]


class TopExpense(BaseModel):
    id: Optional[str] = None
    category: str
    icon: str
    description: str
    amount: float
    formatted_amount: str
    formatted_date: str


class DashboardView(BaseModel):
    timeframe: Timeframe
    expense_count: int
    total_amount: float
    average_per_day: float
    formatted_total: str
    formatted_average: str
    category_totals: Dict[str, float]
    category_chart: CategoryChart
    period_chart: PeriodChart
    top_expenses: List[TopExpense]


class ExpenseRow(BaseModel):
    id: Optional[str] = None
    date: date
    category: str
    icon: str
    description: str
    amount: float
    formatted_date: str
    formatted_amount: str


class ExpenseTable(BaseModel):
    query: str
    sort_key: SortKey
    direction: SortDirection
    rows: List[ExpenseRow]
    empty_message: Optional[str] = None


# --- Builders ---

def period_chart_title(timeframe: Timeframe) -> str:
    return f"{timeframe.capitalize()}ly Expenses"


def build_dashboard(records: Sequence[Expense], prefs: ViewPreferences, now: Optional[date] = None) -> DashboardView:
    """
    Builds every dashboard panel for the selected timeframe: the summary cards,
    the category doughnut, the per-period bar chart and the largest expenses.
    """
    timeframe = prefs.timeframe
    in_window = aggregation.filter_by_timeframe(records, timeframe, now)
    logger.debug(f"Dashboard for timeframe '{timeframe}': {len(in_window)} of {len(records)} expenses in window.")

    category_totals = aggregation.sum_by_category(in_window)
    buckets = aggregation.bucket_by_period(in_window, timeframe)
    total = aggregation.total_amount(in_window)
    average = aggregation.average_per_day(total, buckets)

    labels = aggregation.order_period_keys(timeframe, buckets.keys())
    period_chart = PeriodChart(
        title=period_chart_title(timeframe),
        labels=labels,
        data=[buckets[label].total for label in labels],
    )
    category_chart = CategoryChart(
        labels=list(category_totals.keys()),
        data=list(category_totals.values()),
        colors=list(islice(cycle(CHART_COLORS), len(category_totals))),
    )
    top = [
        TopExpense(
            id=record.id,
            category=record.category,
            icon=category_icon(record.category),
            description=record.description,
            amount=record.amount,
            formatted_amount=format_inr(record.amount),
            formatted_date=format_short_date(record.date),
        )
        for record in aggregation.top_expenses(in_window, TOP_EXPENSES_LIMIT)
    ]

    return DashboardView(
        timeframe=timeframe,
        expense_count=len(in_window),
        total_amount=total,
        average_per_day=average,
        formatted_total=format_inr(total),
        formatted_average=format_inr(average),
        category_totals=category_totals,
        category_chart=category_chart,
        period_chart=period_chart,
        top_expenses=top,
    )


def build_expense_table(records: Sequence[Expense], prefs: ViewPreferences) -> ExpenseTable:
    """Searched and sorted table rows, with the empty-state message when nothing is left."""
    visible = aggregation.search_and_sort(records, prefs.query, prefs.sort_key, prefs.direction)
    rows = [
        ExpenseRow(
            id=record.id,
            date=record.date,
            category=record.category,
            icon=category_icon(record.category),
            description=record.description,
            amount=record.amount,
            formatted_date=format_display_date(record.date),
            formatted_amount=format_currency(record.amount),
        )
        for record in visible
    ]
    empty_message = None
    if not rows:
        empty_message = NO_MATCHES_MESSAGE if prefs.query else NO_EXPENSES_MESSAGE
    return ExpenseTable(
        query=prefs.query,
        sort_key=prefs.sort_key,
        direction=prefs.direction,
        rows=rows,
        empty_message=empty_message,
    )
