from datetime import date, datetime

import pytest

from ojt_cycle.utils.converters import to_date
from ojt_cycle.utils.formatters import format_day_label, format_full_name


@pytest.mark.parametrize(
    "first, last, middle, expected",
    [
        ("Maria", "Santos", "Luna", "Maria L. Santos"),
        ("Jose", "Reyes", None, "Jose Reyes"),
        ("Ana", "Cruz", "  ", "Ana Cruz"),
        (" Ben ", " Lim ", "de la Paz", "Ben D. Lim"),
    ],
)
def test_format_full_name(first, last, middle, expected):
    assert format_full_name(first, last, middle) == expected


def test_format_day_label():
    assert format_day_label(date(2025, 2, 10)) == "Feb 10"
    assert format_day_label(date(2025, 3, 3)) == "Mar 3"
    assert format_day_label(None) == "-"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2025-02-10", date(2025, 2, 10)),
        ("2025-02-10T08:00:00", date(2025, 2, 10)),
        (datetime(2025, 2, 10, 8, 0), date(2025, 2, 10)),
        (date(2025, 2, 10), date(2025, 2, 10)),
        ("10/02/2025", None),
        ("", None),
        (None, None),
        (20250210, None),
    ],
)
def test_to_date(value, expected):
    assert to_date(value) == expected
