"""
Attendance-cycle date arithmetic.

The portal reports attendance in cycles running from the 21st of one month
to the 20th of the next; the regularize screen labels each cycle by the
last day of the month the cycle ends in.
"""
import calendar
from datetime import date
from typing import Iterable, List, Optional, Tuple

CYCLE_START_DAY = 21


def add_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    """Shift (year, month) by delta months."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def allowed_window_start(today: Optional[date] = None) -> date:
    """
    First day of the current attendance cycle.

    On or after the 21st the cycle started this month, otherwise on the 21st
    of the previous month.
    """
    today = today or date.today()
    if today.day >= CYCLE_START_DAY:
        return date(today.year, today.month, CYCLE_START_DAY)
    year, month = add_month(today.year, today.month, -1)
    return date(year, month, CYCLE_START_DAY)


def filter_allowed_dates(dates: Iterable[date], today: Optional[date] = None) -> List[date]:
    """Dates (sorted, de-duplicated) that fall inside the current cycle or later."""
    start = allowed_window_start(today)
    return sorted({d for d in dates if d >= start})


def cycle_dropdown_value(target: date) -> str:
    """
    Value of the regularize month dropdown option that contains target.

    Dates from the 21st onward belong to the cycle labelled with the next month.
    """
    year, month = target.year, target.month
    if target.day >= CYCLE_START_DAY:
        year, month = add_month(year, month, 1)
    return f"{year:04d}-{month:02d}-{last_day_of_month(year, month):02d}"


def compute_history_range(reference: Optional[date] = None) -> Tuple[date, date]:
    """
    Lookback window for history collection.

    From the 21st (or the last day, for short months) of the month before the
    reference month, through the last day of the reference month.
    """
    today = reference or date.today()
    prev_year, prev_month = add_month(today.year, today.month, -1)
    start_day = min(CYCLE_START_DAY, last_day_of_month(prev_year, prev_month))
    return (
        date(prev_year, prev_month, start_day),
        date(today.year, today.month, last_day_of_month(today.year, today.month)),
    )


def date_link_label(target: date) -> str:
    """Label the regularize grid uses for a day link, e.g. "5 Mar 2024"."""
    return f"{target.day} {target:%b %Y}"
