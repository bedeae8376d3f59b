"""Pydantic models for Expense data"""
from pydantic import BaseModel, Field, field_validator
from datetime import date
from typing import Literal, Optional

Timeframe = Literal['week', 'month', 'year']
SortKey = Literal['date', 'category', 'amount', 'description']
SortDirection = Literal['ascending', 'descending']


class ExpenseFields(BaseModel):
    """
    The client-supplied fields of an expense. Used for both creation and full replacement,
    so every field has to be resent on update.
    """
    amount: float = Field(..., ge=0, allow_inf_nan=False)
    category: str
    description: str = ""
    date: date

    @field_validator('category')
    @classmethod
    def category_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Category is required")
        return value

    @field_validator('description', mode='before')
    @classmethod
    def description_default(cls, value):
        return "" if value is None else value


class Expense(ExpenseFields):
    """
    Represents a single stored expense. The identifier is assigned by the database
    and travels on the wire as `_id`.
    """
    id: Optional[str] = Field(default=None, alias='_id')

    class Config:
        populate_by_name = True
        from_attributes = True


class PeriodBucket(BaseModel):
    """Running total and record count for one sub-period (weekday, day of month or month)."""
    total: float = 0.0
    count: int = 0


class ViewPreferences(BaseModel):
    """What the user currently looks at: dashboard timeframe, table sort and search text."""
    timeframe: Timeframe = 'month'
    sort_key: SortKey = 'date'
    direction: SortDirection = 'descending'
    query: str = ""

    class Config:
        frozen = True

    def toggle_sort(self, key: SortKey) -> "ViewPreferences":
        # Same column while ascending flips to descending, everything else starts ascending
        direction: SortDirection = 'ascending'
        if self.sort_key == key and self.direction == 'ascending':
            direction = 'descending'
        return self.model_copy(update={'sort_key': key, 'direction': direction})
