"""Built-in public holiday table.

Fixed holidays repeat on the same solar date every year. Lunar-calendar
holidays (Lunar New Year, Hung Kings Commemoration) are listed per year,
already converted to solar dates; years outside the table simply have none.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

# (month, day) → name
FIXED_HOLIDAYS: dict[tuple[int, int], str] = {
    (1, 1): "New Year's Day",
    (4, 30): "Reunification Day",
    (5, 1): "International Labour Day",
    (9, 2): "National Day",
    (9, 3): "National Day (second day)",
}

LUNAR_NEW_YEAR = "Lunar New Year"
HUNG_KINGS = "Hung Kings Commemoration"


def _span(year: int, month: int, first: int, last: int) -> list[date]:
    return [date(year, month, d) for d in range(first, last + 1)]


LUNAR_HOLIDAYS: dict[int, dict[date, str]] = {
    2024: {
        **{d: LUNAR_NEW_YEAR for d in _span(2024, 2, 8, 14)},
        date(2024, 4, 18): HUNG_KINGS,
    },
    2025: {
        **{d: LUNAR_NEW_YEAR for d in _span(2025, 1, 25, 31)},
        **{d: LUNAR_NEW_YEAR for d in _span(2025, 2, 1, 2)},
        date(2025, 4, 7): HUNG_KINGS,
    },
    2026: {
        **{d: LUNAR_NEW_YEAR for d in _span(2026, 2, 16, 20)},
        date(2026, 4, 26): HUNG_KINGS,
    },
    2027: {
        **{d: LUNAR_NEW_YEAR for d in _span(2027, 2, 5, 9)},
        date(2027, 4, 15): HUNG_KINGS,
    },
}


def builtin_holiday_name(day: date) -> Optional[str]:
    """Name of the built-in holiday on *day*, if any. Fixed dates win."""
    fixed = FIXED_HOLIDAYS.get((day.month, day.day))
    if fixed:
        return fixed
    return LUNAR_HOLIDAYS.get(day.year, {}).get(day)


def builtin_holidays(year: int) -> dict[date, str]:
    """All built-in holidays of *year*, keyed by date."""
    found = {
        date(year, month, day): name
        for (month, day), name in FIXED_HOLIDAYS.items()
    }
    for day, name in LUNAR_HOLIDAYS.get(year, {}).items():
        found.setdefault(day, name)
    return dict(sorted(found.items()))
