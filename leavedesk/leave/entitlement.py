"""Annual-leave entitlement — anniversary-based accrual.

Rules:
  - Leave does not carry over between calendar years.
  - Before the first work anniversary an employee accrues one day per month
    worked in the calendar year of the reference date.
  - From the anniversary on, the full annual grant applies.
  - A missing or unreadable start date gets the full grant.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional, Union

from leavedesk.common.constants import FULL_ENTITLEMENT_DAYS

logger = logging.getLogger(__name__)

StartDate = Union[date, datetime, str, None]


def parse_start_date(value: StartDate) -> Optional[date]:
    """Return *value* as a ``date``, or ``None`` when it cannot be read.

    Accepts ``date``/``datetime`` objects, ISO strings (``2025-03-01``,
    ``2025-03-01T08:00:00Z``), ``YYYY/MM/DD`` and ``DD/MM/YYYY``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    if "/" in text:
        for fmt in ("%Y/%m/%d", "%d/%m/%Y"):
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue

    logger.debug("Unreadable start date %r — assuming full entitlement", value)
    return None


def first_anniversary(start: date) -> date:
    """One year after *start*; a 29 February start rolls over to 1 March."""
    try:
        return start.replace(year=start.year + 1)
    except ValueError:
        return date(start.year + 1, 3, 1)


def calculate_entitlement(start_date: StartDate, reference_date: date) -> int:
    """Annual-leave days earned in ``reference_date``'s calendar year.

    Always in ``[0, FULL_ENTITLEMENT_DAYS]``.
    """
    if isinstance(reference_date, datetime):
        reference_date = reference_date.date()

    start = parse_start_date(start_date)
    if start is None:
        return FULL_ENTITLEMENT_DAYS

    if reference_date >= first_anniversary(start):
        return FULL_ENTITLEMENT_DAYS

    # Months are 1-based here; the arithmetic only needs differences.
    if start.year > reference_date.year:
        return 0
    if start.year == reference_date.year:
        if start.month > reference_date.month:
            return 0
        start_month = start.month
    else:
        start_month = 1

    months_worked = reference_date.month - start_month + 1
    return min(FULL_ENTITLEMENT_DAYS, max(0, months_worked))
