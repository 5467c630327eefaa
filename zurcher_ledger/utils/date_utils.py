"""Date manipulation utilities"""

import calendar
from datetime import date, timedelta


def last_day_of_month(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    """Move (year, month) by offset months, wrapping across years"""
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def week_start(day: date) -> date:
    """Monday of the week containing day"""
    return day - timedelta(days=day.weekday())


def quarter_index(day: date) -> int:
    """0-based quarter of the year"""
    return (day.month - 1) // 3


def half_index(day: date) -> int:
    """0 for January-June, 1 for July-December"""
    return (day.month - 1) // 6
