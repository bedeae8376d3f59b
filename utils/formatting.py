"""Display formatting for amounts, dates and categories.

Matches what the browser client renders: dollar amounts in the expense table,
rupee amounts on the dashboard, and `Jan 5, 2024` style dates.
"""
from datetime import date
from decimal import Decimal, ROUND_HALF_UP, localcontext

MONTH_NAMES = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']

CATEGORY_ICONS = {
    'Food': '🍔',
    'Transportation': '🚗',
    'Housing': '🏠',
    'Entertainment': '🎬',
    'Utilities': '💡',
    'Healthcare': '🏥',
    'Shopping': '🛍️',
    'Travel': '✈️',
    'Education': '📚',
    'Other': '📦',
}
DEFAULT_CATEGORY_ICON = '📦'


def _rounded(amount: float, decimals: int) -> Decimal:
    # str() first so 2.675 rounds like the printed value, not its binary approximation
    value = Decimal(str(amount))
    exponent = Decimal(1).scaleb(-decimals)
    with localcontext() as context:
        # quantize needs every integer digit plus the decimals inside the precision
        context.prec = max(context.prec, value.adjusted() + decimals + 2)
        return value.quantize(exponent, rounding=ROUND_HALF_UP)


def _split(value: Decimal, decimals: int):
    text = f"{value.copy_abs():.{decimals}f}"
    whole, _, fraction = text.partition('.')
    return whole, fraction


def format_currency(amount: float) -> str:
    """US dollars with thousands separators and cents, e.g. `$1,234.50`."""
    value = _rounded(amount, 2)
    whole, fraction = _split(value, 2)
    sign = '-' if value < 0 else ''
    return f"{sign}${int(whole):,}.{fraction}"


def _indian_grouping(whole: str) -> str:
    # Last three digits form one group, the rest are grouped in pairs: 12,34,567
    if len(whole) <= 3:
        return whole
    head, tail = whole[:-3], whole[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ','.join(pairs + [tail])


def format_inr(amount: float, decimals: int = 0) -> str:
    """Indian rupees with lakh/crore grouping, e.g. `₹1,23,457` or `₹100.00`."""
    value = _rounded(amount, decimals)
    whole, fraction = _split(value, decimals)
    sign = '-' if value < 0 else ''
    grouped = _indian_grouping(whole)
    if decimals:
        return f"{sign}₹{grouped}.{fraction}"
    return f"{sign}₹{grouped}"


def format_display_date(day: date) -> str:
    """`Jan 5, 2024`"""
    return f"{MONTH_NAMES[day.month - 1]} {day.day}, {day.year}"


def format_short_date(day: date) -> str:
    """`Jan 5`"""
    return f"{MONTH_NAMES[day.month - 1]} {day.day}"


def category_icon(category: str) -> str:
    return CATEGORY_ICONS.get(category, DEFAULT_CATEGORY_ICON)
