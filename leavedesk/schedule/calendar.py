"""Day classification for leave requests.

Every date of a requested span is classified once, independent of the leave
type: holiday, weekend (outside the work schedule), working day, or forced
half day (Saturday under ``mon_sat_morning``). Working days start with both
sessions selected; the requester's selections then switch sessions off.
Selections on holidays and weekends, and the afternoon of a forced half day,
have no effect.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from leavedesk.common.constants import DayKind, DaySession, WorkSchedule
from leavedesk.schedule.holidays import builtin_holiday_name

HALF_DAY = Decimal("0.5")

_SATURDAY = 5
_SUNDAY = 6


class HolidayConfig(BaseModel):
    """Organisation calendar settings passed explicitly into classification."""

    model_config = ConfigDict(frozen=True)

    work_schedule: WorkSchedule = WorkSchedule.mon_fri
    custom_holidays: dict[date, str] = Field(default_factory=dict)

    def holiday_name(self, day: date) -> Optional[str]:
        """Custom entries first, then the built-in table."""
        custom = self.custom_holidays.get(day)
        if custom:
            return custom
        return builtin_holiday_name(day)

    def is_workday(self, day: date) -> bool:
        weekday = day.weekday()
        if weekday == _SUNDAY:
            return False
        if weekday == _SATURDAY:
            return self.work_schedule != WorkSchedule.mon_fri
        return True

    def is_forced_half_day(self, day: date) -> bool:
        return (
            self.work_schedule == WorkSchedule.mon_sat_morning
            and day.weekday() == _SATURDAY
        )


class PlannedDay(BaseModel):
    """One candidate date of a request with its session selection."""

    model_config = ConfigDict(frozen=True)

    date: date
    kind: DayKind
    holiday_name: Optional[str] = None
    morning: bool = False
    afternoon: bool = False

    @property
    def is_holiday(self) -> bool:
        return self.kind == DayKind.holiday

    @property
    def is_workday(self) -> bool:
        return self.kind in (DayKind.working, DayKind.half_day)

    @property
    def afternoon_available(self) -> bool:
        return self.kind == DayKind.working

    @property
    def duration(self) -> Decimal:
        if not self.is_workday:
            return Decimal("0")
        return HALF_DAY * (int(self.morning) + int(self.afternoon))

    @property
    def session(self) -> Optional[DaySession]:
        """Stored form of the selection; ``None`` when the day counts for nothing."""
        if not self.is_workday:
            return None
        if self.morning and self.afternoon:
            return DaySession.full
        if self.morning:
            return DaySession.morning
        if self.afternoon:
            return DaySession.afternoon
        return None


def classify_day(day: date, config: HolidayConfig) -> PlannedDay:
    """Classify *day* and give it its default selection."""
    name = config.holiday_name(day)
    if name:
        return PlannedDay(date=day, kind=DayKind.holiday, holiday_name=name)
    if not config.is_workday(day):
        return PlannedDay(date=day, kind=DayKind.weekend)
    if config.is_forced_half_day(day):
        return PlannedDay(date=day, kind=DayKind.half_day, morning=True)
    return PlannedDay(date=day, kind=DayKind.working, morning=True, afternoon=True)


def apply_selection(planned: PlannedDay, selection: DaySession) -> PlannedDay:
    """Apply a requester's session choice, respecting what the day allows."""
    if not planned.is_workday:
        return planned

    morning = selection in (DaySession.full, DaySession.morning)
    afternoon = selection in (DaySession.full, DaySession.afternoon)
    if not planned.afternoon_available:
        afternoon = False
    return planned.model_copy(update={"morning": morning, "afternoon": afternoon})


def toggle_session(planned: PlannedDay, session: DaySession) -> PlannedDay:
    """Flip one half of a day, as the calendar picker does."""
    if not planned.is_workday:
        return planned
    if session == DaySession.morning:
        return planned.model_copy(update={"morning": not planned.morning})
    if session == DaySession.afternoon:
        if not planned.afternoon_available:
            return planned
        return planned.model_copy(update={"afternoon": not planned.afternoon})
    raise ValueError(f"Only morning or afternoon can be toggled, got {session!r}")


def _as_date(value: Union[date, str]) -> date:
    if isinstance(value, date):
        return value
    # Unparseable keys are caller bugs; let ValueError propagate.
    return date.fromisoformat(value)


def plan_days(
    from_date: date,
    to_date: date,
    config: HolidayConfig,
    selections: Optional[Mapping[Union[date, str], DaySession]] = None,
) -> list[PlannedDay]:
    """Classify every date in ``[from_date, to_date]`` and apply *selections*.

    Dates missing from *selections* keep their default (full working day).
    A selection for a date outside the span raises ``ValueError``.
    """
    if from_date > to_date:
        return []

    chosen: dict[date, DaySession] = {}
    for key, selection in (selections or {}).items():
        day = _as_date(key)
        if not from_date <= day <= to_date:
            raise ValueError(f"Selection for {day.isoformat()} is outside the requested span")
        chosen[day] = DaySession(selection)

    days: list[PlannedDay] = []
    current = from_date
    while current <= to_date:
        planned = classify_day(current, config)
        if current in chosen:
            planned = apply_selection(planned, chosen[current])
        days.append(planned)
        current += timedelta(days=1)
    return days
