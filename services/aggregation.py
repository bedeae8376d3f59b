"""Aggregation of expense records into the derived views shown by the dashboard and table.

Every function here is pure: it takes a sequence of `Expense` records (already loaded
from the database) and returns a freshly built list or mapping. Nothing is mutated,
nothing is cached, and empty input always yields an empty or zero result.

Calendar arithmetic goes through `dateutil.relativedelta`, which clamps to the last
valid day of the target month: 2024-03-31 minus one month is 2024-02-29, and
2024-02-29 minus one year is 2023-02-28.
"""
import math
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence

from dateutil.relativedelta import relativedelta

from models.expense import Expense, PeriodBucket, SortDirection, SortKey, Timeframe
from utils.formatting import MONTH_NAMES, format_currency, format_display_date

WEEKDAY_NAMES = ['Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat']

TIMEFRAME_WINDOWS = {
    'week': relativedelta(days=7),
    'month': relativedelta(months=1),
    'year': relativedelta(years=1),
}


def _as_date(now: Optional[date]) -> date:
    if now is None:
        return date.today()
    if isinstance(now, datetime):
        return now.date()
    return now


def timeframe_cutoff(timeframe: Timeframe, now: Optional[date] = None) -> date:
    """First calendar day included in the rolling window that ends at `now`."""
    if timeframe not in TIMEFRAME_WINDOWS:
        raise ValueError(f"Unknown timeframe '{timeframe}'. Use one of: {', '.join(TIMEFRAME_WINDOWS)}")
    return _as_date(now) - TIMEFRAME_WINDOWS[timeframe]


def filter_by_timeframe(records: Sequence[Expense], timeframe: Timeframe, now: Optional[date] = None) -> List[Expense]:
    """
    Keeps the records dated on or after the timeframe cutoff.
    There is no upper bound, so future-dated records are always kept.
    """
    cutoff = timeframe_cutoff(timeframe, now)
    return [record for record in records if record.date >= cutoff]


def sum_by_category(records: Iterable[Expense]) -> Dict[str, float]:
    """Maps each category present in `records` to the sum of its amounts."""
    amounts = defaultdict(list)
    for record in records:
        amounts[record.category].append(record.amount)
    return {category: math.fsum(values) for category, values in amounts.items()}


def period_key(day: date, timeframe: Timeframe) -> str:
    if timeframe == 'week':
        # date.weekday() counts from Monday, the chart axis starts on Sunday
        return WEEKDAY_NAMES[(day.weekday() + 1) % 7]
    if timeframe == 'month':
        return str(day.day)
    if timeframe == 'year':
        return MONTH_NAMES[day.month - 1]
    raise ValueError(f"Unknown timeframe '{timeframe}'. Use one of: {', '.join(TIMEFRAME_WINDOWS)}")


def bucket_by_period(records: Iterable[Expense], timeframe: Timeframe) -> Dict[str, PeriodBucket]:
    """
    Groups records into sub-period buckets: weekday names for `week`, day of month
    for `month` and month names for `year`. Periods without records are not created.
    """
    amounts = defaultdict(list)
    for record in records:
        amounts[period_key(record.date, timeframe)].append(record.amount)
    return {
        key: PeriodBucket(total=math.fsum(values), count=len(values))
        for key, values in amounts.items()
    }


def order_period_keys(timeframe: Timeframe, keys: Iterable[str]) -> List[str]:
    """Chart axis order for the bucket keys that are present."""
    present = set(keys)
    if timeframe == 'week':
        return [name for name in WEEKDAY_NAMES if name in present]
    if timeframe == 'month':
        return sorted(present, key=int)
    if timeframe == 'year':
        return [name for name in MONTH_NAMES if name in present]
    raise ValueError(f"Unknown timeframe '{timeframe}'. Use one of: {', '.join(TIMEFRAME_WINDOWS)}")


def top_expenses(records: Sequence[Expense], n: int = 5) -> List[Expense]:
    """The `n` largest expenses, largest first. Equal amounts keep their input order."""
    if n <= 0:
        return []
    return sorted(records, key=lambda record: record.amount, reverse=True)[:n]


def matches_query(record: Expense, query: str) -> bool:
    """True when the query appears in the category, description, dollar amount or display date."""
    needle = query.casefold()
    if not needle:
        return True
    haystacks = (
        record.category,
        record.description,
        format_currency(record.amount),
        format_display_date(record.date),
    )
    return any(needle in text.casefold() for text in haystacks)


def _sort_value(record: Expense, sort_key: SortKey):
    if sort_key == 'amount':
        return record.amount
    if sort_key == 'date':
        return record.date
    if sort_key in ('category', 'description'):
        return getattr(record, sort_key).casefold()
    raise ValueError(f"Invalid sort key '{sort_key}'. Allowed keys: date, category, amount, description")


def search_and_sort(
    records: Sequence[Expense],
    query: str = "",
    sort_key: SortKey = 'date',
    direction: SortDirection = 'descending',
) -> List[Expense]:
    """
    Filters records by `query` (see `matches_query`) and sorts them on `sort_key`.
    The sort is stable in both directions.
    """
    if direction not in ('ascending', 'descending'):
        raise ValueError(f"Invalid sort direction '{direction}'. Use 'ascending' or 'descending'.")
    matching = [record for record in records if matches_query(record, query)]
    return sorted(
        matching,
        key=lambda record: _sort_value(record, sort_key),
        reverse=direction == 'descending',
    )


def total_amount(records: Iterable[Expense]) -> float:
    return math.fsum(record.amount for record in records)


def average_per_day(total: float, buckets: Dict[str, PeriodBucket]) -> float:
    """Total divided by the number of records across all buckets, 0 when there are none."""
    count = sum(bucket.count for bucket in buckets.values())
    if not buckets or count == 0:
        return 0.0
    return total / count
