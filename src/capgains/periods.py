"""Financial Year Periods.

The long-term exemption is consumed once per financial year. A financial
year starts on the first day of a configurable month (April by default)
and is labelled by its two calendar years, e.g. ``"2024-25"``.
"""

from datetime import date, timedelta
from typing import Callable, Iterable, TypeVar

from src.capgains.config import FINANCIAL_YEAR_START_MONTH
from src.ledger_errors.exceptions import InvalidArgument

T = TypeVar("T")


def _check_month(start_month: int) -> None:
    if not 1 <= start_month <= 12:
        raise InvalidArgument(
            f"Financial year start month must be 1-12, got {start_month}",
            field="financial_year_start_month",
        )


def financial_year_start_year(on: date, start_month: int = FINANCIAL_YEAR_START_MONTH) -> int:
    """Calendar year in which the financial year containing ``on`` begins."""
    _check_month(start_month)
    return on.year if on.month >= start_month else on.year - 1


def format_financial_year(start_year: int, start_month: int = FINANCIAL_YEAR_START_MONTH) -> str:
    """Label for the financial year beginning in ``start_year``.

    A January start means the year never spans two calendar years, so the
    label is just the year.
    """
    if start_month == 1:
        return str(start_year)
    return f"{start_year}-{(start_year + 1) % 100:02d}"


def parse_financial_year(label: str) -> int:
    """Start year of a financial year label (``"2024-25"``, ``"2024-2025"`` or ``"2024"``)."""
    text = str(label).strip()
    if text.upper().startswith("FY"):
        text = text[2:].strip()
    head = text.split("-")[0]
    try:
        return int(head)
    except ValueError:
        raise InvalidArgument(f"Invalid financial year: {label!r}", field="financial_year")


def financial_year_for(on: date, start_month: int = FINANCIAL_YEAR_START_MONTH) -> str:
    """Label of the financial year containing ``on``."""
    return format_financial_year(financial_year_start_year(on, start_month), start_month)


def financial_year_bounds(
    label: str,
    start_month: int = FINANCIAL_YEAR_START_MONTH,
) -> tuple[date, date]:
    """First and last day (inclusive) of a financial year."""
    _check_month(start_month)
    start_year = parse_financial_year(label)
    start = date(start_year, start_month, 1)
    if start_month == 1:
        next_start = date(start_year + 1, 1, 1)
    else:
        next_start = date(start_year + 1, start_month, 1)
    return start, next_start - timedelta(days=1)


def is_in_financial_year(
    on: date,
    label: str,
    start_month: int = FINANCIAL_YEAR_START_MONTH,
) -> bool:
    start, end = financial_year_bounds(label, start_month)
    return start <= on <= end


def previous_financial_year(label: str, start_month: int = FINANCIAL_YEAR_START_MONTH) -> str:
    return format_financial_year(parse_financial_year(label) - 1, start_month)


def next_financial_year(label: str, start_month: int = FINANCIAL_YEAR_START_MONTH) -> str:
    return format_financial_year(parse_financial_year(label) + 1, start_month)


def financial_years_between(
    start: date,
    end: date,
    start_month: int = FINANCIAL_YEAR_START_MONTH,
) -> list[str]:
    """Every financial year overlapping ``[start, end]``, oldest first."""
    if end < start:
        raise InvalidArgument("End date precedes start date", field="end")
    first = financial_year_start_year(start, start_month)
    last = financial_year_start_year(end, start_month)
    return [format_financial_year(y, start_month) for y in range(first, last + 1)]


def group_by_financial_year(
    items: Iterable[T],
    key: Callable[[T], date],
    start_month: int = FINANCIAL_YEAR_START_MONTH,
) -> dict[str, list[T]]:
    """Group items by the financial year of ``key(item)``, preserving order."""
    grouped: dict[str, list[T]] = {}
    for item in items:
        grouped.setdefault(financial_year_for(key(item), start_month), []).append(item)
    return grouped
