"""Leave request pricing — duration total and bucket partition.

A request's duration is split into three buckets:

  - ``exempt``  — days covered by a legal allowance (weddings, bereavement),
                  capped per occurrence;
  - ``annual``  — days charged to the employee's remaining annual balance;
  - ``unpaid``  — whatever neither of the above covers.

``annual + unpaid + exempt == total`` always holds. Everything here is a
pure function of its arguments.
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, computed_field

from leavedesk.common.constants import LEGAL_ALLOWANCES, LeaveCategory
from leavedesk.schedule.calendar import PlannedDay

Number = Union[int, float, Decimal]

ZERO = Decimal("0")
NO_DEDUCTION_NOTE = "no deduction"


def _to_days(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _floor_half(value: Decimal) -> Decimal:
    """Round down to the nearest half day."""
    return Decimal(math.floor(value * 2)) / 2


def _fmt(days: Decimal) -> str:
    return format(days.normalize(), "f")


class DeductionBreakdown(BaseModel):
    """How a request's duration is charged."""

    model_config = ConfigDict(frozen=True)

    total: Decimal
    annual: Decimal = ZERO
    unpaid: Decimal = ZERO
    exempt: Decimal = ZERO

    @computed_field  # type: ignore[prop-decorator]
    @property
    def note(self) -> str:
        return describe_deduction(self.annual, self.unpaid, self.exempt)


def describe_deduction(annual: Number, unpaid: Number, exempt: Number) -> str:
    """Human-readable split, e.g. ``"3 annual + 1 unpaid + 1 exempt"``."""
    parts = []
    for amount, label in ((annual, "annual"), (unpaid, "unpaid"), (exempt, "exempt")):
        amount = _to_days(amount)
        if amount > 0:
            parts.append(f"{_fmt(amount)} {label}")
    return " + ".join(parts) or NO_DEDUCTION_NOTE


def available_balance(entitlement: Number, annual_used: Number) -> Decimal:
    """Remaining annual capacity, clamped at zero and kept half-day granular."""
    remaining = _to_days(entitlement) - _to_days(annual_used)
    if remaining <= 0:
        return ZERO
    return _floor_half(remaining)


def total_duration(days: Iterable[PlannedDay]) -> Decimal:
    """Half a day per selected session on working days; holidays/weekends add 0."""
    return sum((day.duration for day in days), ZERO)


def allowance_for(
    category: LeaveCategory,
    allowances: Optional[Mapping[LeaveCategory, Number]] = None,
) -> Decimal:
    table = LEGAL_ALLOWANCES if allowances is None else allowances
    return _to_days(table.get(category, 0))


def partition_days(
    total: Number,
    category: LeaveCategory,
    available: Number,
    allowances: Optional[Mapping[LeaveCategory, Number]] = None,
) -> DeductionBreakdown:
    """Split *total* days of *category* leave given *available* annual balance."""
    total = _to_days(total)
    available = max(ZERO, _to_days(available))
    if total <= 0:
        return DeductionBreakdown(total=ZERO)

    if category == LeaveCategory.unpaid:
        return DeductionBreakdown(total=total, unpaid=total)

    allowance = allowance_for(category, allowances)
    if allowance > 0:
        exempt = min(total, allowance)
        remaining = total - exempt
        annual = min(remaining, available)
        return DeductionBreakdown(
            total=total,
            annual=annual,
            unpaid=remaining - annual,
            exempt=exempt,
        )

    # Annual, sick, personal, other: all charged to the annual balance first.
    annual = min(total, available)
    return DeductionBreakdown(total=total, annual=annual, unpaid=total - annual)


def price_request(
    days: Iterable[PlannedDay],
    category: LeaveCategory,
    entitlement: Number,
    annual_used: Number,
    allowances: Optional[Mapping[LeaveCategory, Number]] = None,
) -> DeductionBreakdown:
    """Total the selected sessions of *days* and partition them."""
    return partition_days(
        total_duration(days),
        category,
        available_balance(entitlement, annual_used),
        allowances,
    )
