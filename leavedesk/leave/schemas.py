"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out                → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from leavedesk.common.constants import (
    MAX_REQUEST_SPAN_DAYS,
    DayKind,
    DaySession,
    LeaveCategory,
    LeaveStatus,
)
from leavedesk.core_hr.schemas import EmployeeSummary
from leavedesk.leave.pricing import DeductionBreakdown
from leavedesk.schedule.calendar import PlannedDay


# ═════════════════════════════════════════════════════════════════════
# Leave Type
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeOut(BaseModel):
    """A leave type and how it is charged."""

    code: LeaveCategory
    name: str
    legal_allowance: Decimal = Decimal("0")
    always_unpaid: bool = False


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    """Annual-leave position of one employee at a date."""

    employee_id: uuid.UUID
    year: int
    as_of: date
    entitlement: int
    annual_used: Decimal
    unpaid_used: Decimal
    exempt_used: Decimal
    pending_annual: Decimal = Decimal("0")
    available: Decimal


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Create / Preview
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for submitting (or previewing) a leave request."""

    leave_type: LeaveCategory
    from_date: date = Field(..., description="Leave start date (inclusive)")
    to_date: date = Field(..., description="Leave end date (inclusive)")
    sessions: Optional[dict[date, DaySession]] = Field(
        default=None,
        description=(
            "Per-day selection: date (YYYY-MM-DD) → full | morning | afternoon | excluded. "
            "Dates not listed default to full."
        ),
    )
    reason: Optional[str] = Field(None, max_length=1000, description="Reason for leave")

    @model_validator(mode="after")
    def validate_dates(self) -> "LeaveRequestCreate":
        if self.from_date > self.to_date:
            raise ValueError("from_date must be on or before to_date.")
        if (self.to_date - self.from_date).days > MAX_REQUEST_SPAN_DAYS:
            raise ValueError(
                f"Leave request cannot span more than {MAX_REQUEST_SPAN_DAYS} days."
            )
        for day in self.sessions or {}:
            if not self.from_date <= day <= self.to_date:
                raise ValueError(
                    f"Session for {day.isoformat()} is outside {self.from_date} – {self.to_date}."
                )
        return self


class DayPlanOut(BaseModel):
    """One row of the day/session picker."""

    date: date
    kind: DayKind
    holiday_name: Optional[str] = None
    morning: bool
    afternoon: bool
    afternoon_available: bool
    session: Optional[DaySession] = None
    duration: Decimal

    @classmethod
    def from_planned(cls, day: PlannedDay) -> "DayPlanOut":
        return cls(
            date=day.date,
            kind=day.kind,
            holiday_name=day.holiday_name,
            morning=day.morning,
            afternoon=day.afternoon,
            afternoon_available=day.afternoon_available,
            session=day.session,
            duration=day.duration,
        )


class LeavePreviewOut(BaseModel):
    """Priced day plan returned before submission."""

    leave_type: LeaveCategory
    from_date: date
    to_date: date
    entitlement: int
    annual_used: Decimal
    available: Decimal
    days: list[DayPlanOut]
    breakdown: DeductionBreakdown


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Response
# ═════════════════════════════════════════════════════════════════════


class RequestDayOut(BaseModel):
    date: date
    session: DaySession


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: LeaveCategory
    from_date: date
    to_date: date
    request_details: list[RequestDayOut]
    duration: Decimal
    days_annual: Decimal
    days_unpaid: Decimal
    days_exempt: Decimal
    exemption_note: Optional[str] = None
    reason: Optional[str] = None
    status: LeaveStatus
    reviewed_by: Optional[uuid.UUID] = None
    reviewer_name: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    reviewer_remarks: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    employee: Optional[EmployeeSummary] = None


# ═════════════════════════════════════════════════════════════════════
# Leave Approve / Reject / Cancel
# ═════════════════════════════════════════════════════════════════════


class LeaveApproveRequest(BaseModel):
    """Payload for approving a leave request."""

    remarks: Optional[str] = Field(None, max_length=500)


class LeaveRejectRequest(BaseModel):
    """Payload for rejecting a leave request."""

    remarks: Optional[str] = Field(None, max_length=500)


class LeaveCancelRequest(BaseModel):
    """Payload for cancelling a leave request."""

    reason: Optional[str] = Field(None, max_length=500)
