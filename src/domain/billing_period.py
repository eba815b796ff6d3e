"""Calendar helpers for invoice months"""

from datetime import date, datetime, timedelta
from typing import Optional


def month_start(day: date) -> date:
    return date(day.year, day.month, 1)


def next_month_start(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def month_end(day: date) -> date:
    """Last day of the month of day"""
    return next_month_start(day) - timedelta(days=1)


def invoice_month_for(
    now: datetime, year: Optional[int] = None, month: Optional[int] = None
) -> date:
    """
    First day of the month to invoice

    Defaults to the month before now when year/month are not given.
    """
    if year is not None and month is not None:
        return date(year, month, 1)
    first_of_current = date(now.year, now.month, 1)
    return month_start(first_of_current - timedelta(days=1))


def is_final_run(invoice_month: date, now: datetime, final_day: int) -> bool:
    """Rows become final once the month is closed for final_day days"""
    return now.date() >= next_month_start(invoice_month) + timedelta(days=final_day - 1)
