from datetime import date

import pytest

from cera_regularize.attendance_cycle import (
    add_month,
    allowed_window_start,
    compute_history_range,
    cycle_dropdown_value,
    date_link_label,
    filter_allowed_dates,
)


@pytest.mark.parametrize("today,expected", [
    (date(2024, 3, 20), date(2024, 2, 21)),
    (date(2024, 3, 21), date(2024, 3, 21)),
    (date(2024, 3, 31), date(2024, 3, 21)),
    (date(2024, 1, 5), date(2023, 12, 21)),
])
def test_allowed_window_start(today, expected):
    assert allowed_window_start(today) == expected


def test_filter_allowed_dates_sorts_and_drops_earlier_cycles():
    dates = [date(2024, 3, 6), date(2024, 2, 20), date(2024, 3, 5), date(2024, 2, 21), date(2024, 3, 6)]
    assert filter_allowed_dates(dates, today=date(2024, 3, 10)) == [
        date(2024, 2, 21),
        date(2024, 3, 5),
        date(2024, 3, 6),
    ]


def test_filter_allowed_dates_on_cycle_boundary():
    dates = [date(2024, 3, 15), date(2024, 3, 22)]
    assert filter_allowed_dates(dates, today=date(2024, 3, 21)) == [date(2024, 3, 22)]
    assert filter_allowed_dates(dates, today=date(2024, 3, 20)) == dates


@pytest.mark.parametrize("target,expected", [
    (date(2024, 3, 5), "2024-03-31"),
    (date(2024, 3, 20), "2024-03-31"),
    (date(2024, 3, 21), "2024-04-30"),
    (date(2024, 1, 25), "2024-02-29"),
    (date(2024, 12, 25), "2025-01-31"),
])
def test_cycle_dropdown_value(target, expected):
    assert cycle_dropdown_value(target) == expected


def test_compute_history_range():
    assert compute_history_range(date(2024, 3, 10)) == (date(2024, 2, 21), date(2024, 3, 31))
    assert compute_history_range(date(2024, 1, 15)) == (date(2023, 12, 21), date(2024, 1, 31))


def test_add_month_wraps_years():
    assert add_month(2024, 1, -1) == (2023, 12)
    assert add_month(2024, 12, 1) == (2025, 1)
    assert add_month(2024, 6, -18) == (2022, 12)


def test_date_link_label_has_no_leading_zero():
    assert date_link_label(date(2024, 3, 5)) == "5 Mar 2024"
    assert date_link_label(date(2024, 11, 15)) == "15 Nov 2024"
