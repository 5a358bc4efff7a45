"""Schedule router — holiday calendar, work schedule, legal allowances.

Reads are open to every signed-in employee (the request form needs them);
writes require the ``leave:configure`` permission.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import get_current_user, require_permission
from leavedesk.common.constants import WorkSchedule
from leavedesk.core_hr.models import Employee
from leavedesk.database import get_db
from leavedesk.schedule.schemas import (
    CustomHolidayOut,
    HolidayCreate,
    HolidayOut,
    HolidayReplace,
    LegalAllowancesOut,
    LegalAllowancesUpdate,
    WorkScheduleOut,
    WorkScheduleUpdate,
)
from leavedesk.schedule.service import ScheduleService

router = APIRouter(prefix="", tags=["schedule"])

_configure_dep = require_permission("leave:configure")


def _work_schedule_out(schedule: WorkSchedule) -> WorkScheduleOut:
    weekdays = [0, 1, 2, 3, 4]
    if schedule != WorkSchedule.mon_fri:
        weekdays.append(5)
    return WorkScheduleOut(
        work_schedule=schedule,
        working_weekdays=weekdays,
        saturday_morning_only=schedule == WorkSchedule.mon_sat_morning,
    )


# ═══════════════════════════════════════════════════════════════════
# HOLIDAYS
# ═══════════════════════════════════════════════════════════════════

@router.get("/holidays", response_model=list[HolidayOut])
async def list_holidays(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    _user: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Merged holiday calendar (built-in + custom) for a year."""
    return await ScheduleService.list_holidays(db, year or date.today().year)


@router.post("/holidays", response_model=CustomHolidayOut, status_code=201)
async def add_holiday(
    body: HolidayCreate,
    user: Employee = Depends(_configure_dep),
    db: AsyncSession = Depends(get_db),
):
    """Add a custom holiday."""
    return await ScheduleService.add_holiday(db, body, created_by=user.id)


@router.put("/holidays", response_model=list[CustomHolidayOut])
async def replace_holidays(
    body: HolidayReplace,
    user: Employee = Depends(_configure_dep),
    db: AsyncSession = Depends(get_db),
):
    """Replace the whole custom holiday set."""
    return await ScheduleService.replace_holidays(db, body.holidays, created_by=user.id)


@router.delete("/holidays/{holiday_date}", status_code=204)
async def remove_holiday(
    holiday_date: date,
    _user: Employee = Depends(_configure_dep),
    db: AsyncSession = Depends(get_db),
):
    """Remove the custom holiday on a date."""
    await ScheduleService.remove_holiday(db, holiday_date)


# ═══════════════════════════════════════════════════════════════════
# WORK SCHEDULE
# ═══════════════════════════════════════════════════════════════════

@router.get("/work-schedule", response_model=WorkScheduleOut)
async def get_work_schedule(
    _user: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return _work_schedule_out(await ScheduleService.get_work_schedule(db))


@router.put("/work-schedule", response_model=WorkScheduleOut)
async def set_work_schedule(
    body: WorkScheduleUpdate,
    user: Employee = Depends(_configure_dep),
    db: AsyncSession = Depends(get_db),
):
    schedule = await ScheduleService.set_work_schedule(
        db, body.work_schedule, updated_by=user.id,
    )
    return _work_schedule_out(schedule)


# ═══════════════════════════════════════════════════════════════════
# LEGAL ALLOWANCES
# ═══════════════════════════════════════════════════════════════════

@router.get("/legal-allowances", response_model=LegalAllowancesOut)
async def get_legal_allowances(
    _user: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return LegalAllowancesOut(allowances=await ScheduleService.get_legal_allowances(db))


@router.put("/legal-allowances", response_model=LegalAllowancesOut)
async def set_legal_allowances(
    body: LegalAllowancesUpdate,
    user: Employee = Depends(_configure_dep),
    db: AsyncSession = Depends(get_db),
):
    """Override per-occurrence allowances; unspecified types keep the statutory value."""
    allowances = await ScheduleService.set_legal_allowances(
        db, body.allowances, updated_by=user.id,
    )
    return LegalAllowancesOut(allowances=allowances)
