"""Schedule Pydantic schemas — holidays, work schedule, legal allowances."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from leavedesk.common.constants import LeaveCategory, WorkSchedule


# ── Holidays ────────────────────────────────────────────────────────

class HolidayCreate(BaseModel):
    date: date
    name: str = Field(..., min_length=1, max_length=200)


class HolidayReplace(BaseModel):
    """Full replacement of the custom holiday list (e.g. after a spreadsheet import)."""

    holidays: list[HolidayCreate]

    @field_validator("holidays")
    @classmethod
    def unique_dates(cls, v: list[HolidayCreate]) -> list[HolidayCreate]:
        seen: set[date] = set()
        for h in v:
            if h.date in seen:
                raise ValueError(f"Duplicate holiday date {h.date.isoformat()}.")
            seen.add(h.date)
        return v


class CustomHolidayOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    date: date
    name: str


class HolidayOut(BaseModel):
    """Entry in the merged holiday calendar."""

    date: date
    name: str
    source: str = Field(..., description="custom | builtin")


# ── Work schedule ───────────────────────────────────────────────────

class WorkScheduleOut(BaseModel):
    work_schedule: WorkSchedule
    working_weekdays: list[int] = Field(
        ..., description="0=Mon … 6=Sun; Saturday listed when it is worked at all"
    )
    saturday_morning_only: bool = False


class WorkScheduleUpdate(BaseModel):
    work_schedule: WorkSchedule


# ── Legal allowances ────────────────────────────────────────────────

class LegalAllowancesOut(BaseModel):
    allowances: dict[LeaveCategory, Decimal]


class LegalAllowancesUpdate(BaseModel):
    allowances: dict[LeaveCategory, Decimal]

    @field_validator("allowances")
    @classmethod
    def validate_allowances(
        cls, v: dict[LeaveCategory, Decimal],
    ) -> dict[LeaveCategory, Decimal]:
        for category, days in v.items():
            if category == LeaveCategory.unpaid:
                raise ValueError("Unpaid leave cannot carry a legal allowance.")
            if days < 0 or days > 30:
                raise ValueError(f"Allowance for {category.value} must be between 0 and 30.")
            if (days * 2) % 1 != 0:
                raise ValueError(f"Allowance for {category.value} must be in half days.")
        return v
