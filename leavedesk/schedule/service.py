"""Schedule service — holiday calendar, work schedule, legal allowances."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.audit import create_audit_entry
from leavedesk.common.constants import (
    LEGAL_ALLOWANCES,
    SETTING_LEGAL_ALLOWANCES,
    SETTING_WORK_SCHEDULE,
    LeaveCategory,
    WorkSchedule,
)
from leavedesk.common.exceptions import (
    ConflictError,
    NotFoundException,
    ValidationException,
)
from leavedesk.common.models import AppSetting
from leavedesk.config import settings
from leavedesk.schedule.calendar import HolidayConfig
from leavedesk.schedule.holidays import builtin_holidays
from leavedesk.schedule.models import CustomHoliday
from leavedesk.schedule.schemas import HolidayCreate

logger = logging.getLogger(__name__)

# AuditTrail.entity_id is a UUID; organisation settings hang off a fixed one.
_SETTINGS_ENTITY_ID = uuid.UUID(int=0)


class ScheduleService:
    """Static service class for the organisation calendar."""

    # ── Settings helpers ────────────────────────────────────────────

    @staticmethod
    async def _get_setting(db: AsyncSession, key: str) -> Optional[AppSetting]:
        result = await db.execute(select(AppSetting).where(AppSetting.key == key))
        return result.scalars().first()

    @staticmethod
    async def _put_setting(
        db: AsyncSession,
        key: str,
        value: dict,
        updated_by: Optional[uuid.UUID],
        description: Optional[str] = None,
    ) -> AppSetting:
        row = await ScheduleService._get_setting(db, key)
        old_value = row.value if row else None
        if row is None:
            row = AppSetting(key=key, value=value, description=description)
            db.add(row)
        else:
            row.value = value
        row.updated_by = updated_by
        row.updated_at = datetime.now(timezone.utc)
        await db.flush()

        await create_audit_entry(
            db,
            action="update_setting",
            entity_type=f"setting:{key}",
            entity_id=_SETTINGS_ENTITY_ID,
            actor_id=updated_by,
            old_values=old_value,
            new_values=value,
        )
        return row

    # ── Work schedule ───────────────────────────────────────────────

    @staticmethod
    async def get_work_schedule(db: AsyncSession) -> WorkSchedule:
        row = await ScheduleService._get_setting(db, SETTING_WORK_SCHEDULE)
        raw = row.value.get("schedule") if row else settings.DEFAULT_WORK_SCHEDULE
        try:
            return WorkSchedule(raw)
        except ValueError:
            logger.warning("Unknown work schedule %r in settings; using mon_fri", raw)
            return WorkSchedule.mon_fri

    @staticmethod
    async def set_work_schedule(
        db: AsyncSession,
        schedule: WorkSchedule,
        updated_by: Optional[uuid.UUID] = None,
    ) -> WorkSchedule:
        await ScheduleService._put_setting(
            db,
            SETTING_WORK_SCHEDULE,
            {"schedule": schedule.value},
            updated_by,
            description="Organisation working week",
        )
        logger.info("Work schedule set to %s by %s", schedule.value, updated_by)
        return schedule

    # ── Legal allowances ────────────────────────────────────────────

    @staticmethod
    async def get_legal_allowances(db: AsyncSession) -> dict[LeaveCategory, Decimal]:
        """Built-in allowance table with any stored overrides applied on top."""
        allowances = dict(LEGAL_ALLOWANCES)
        row = await ScheduleService._get_setting(db, SETTING_LEGAL_ALLOWANCES)
        if row is None:
            return allowances
        for key, days in row.value.items():
            try:
                allowances[LeaveCategory(key)] = Decimal(str(days))
            except ValueError:
                logger.warning("Ignoring stored allowance for unknown leave type %r", key)
        return allowances

    @staticmethod
    async def set_legal_allowances(
        db: AsyncSession,
        allowances: dict,
        updated_by: Optional[uuid.UUID] = None,
    ) -> dict[LeaveCategory, Decimal]:
        errors: dict[str, list[str]] = {}
        stored: dict[str, str] = {}
        for key, days in allowances.items():
            try:
                category = LeaveCategory(key)
            except ValueError:
                errors.setdefault(str(key), []).append("Unknown leave type.")
                continue
            if category == LeaveCategory.unpaid:
                errors.setdefault(category.value, []).append(
                    "Unpaid leave cannot carry a legal allowance."
                )
                continue
            stored[category.value] = str(Decimal(str(days)))
        if errors:
            raise ValidationException(errors)

        await ScheduleService._put_setting(
            db,
            SETTING_LEGAL_ALLOWANCES,
            stored,
            updated_by,
            description="Days per occurrence exempt from annual/unpaid accounting",
        )
        logger.info("Legal allowances updated by %s: %s", updated_by, stored)
        return await ScheduleService.get_legal_allowances(db)

    # ── Holidays ────────────────────────────────────────────────────

    @staticmethod
    async def list_custom_holidays(
        db: AsyncSession, year: Optional[int] = None,
    ) -> list[CustomHoliday]:
        query = select(CustomHoliday).order_by(CustomHoliday.date)
        if year is not None:
            query = query.where(
                CustomHoliday.date >= date(year, 1, 1),
                CustomHoliday.date <= date(year, 12, 31),
            )
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def list_holidays(db: AsyncSession, year: int) -> list[dict]:
        """Merged calendar for *year*: custom entries override built-in ones."""
        merged: dict[date, dict] = {
            day: {"date": day, "name": name, "source": "builtin"}
            for day, name in builtin_holidays(year).items()
        }
        for h in await ScheduleService.list_custom_holidays(db, year):
            merged[h.date] = {"date": h.date, "name": h.name, "source": "custom"}
        return [merged[d] for d in sorted(merged)]

    @staticmethod
    async def add_holiday(
        db: AsyncSession,
        data: HolidayCreate,
        created_by: Optional[uuid.UUID] = None,
    ) -> CustomHoliday:
        existing = await db.execute(
            select(CustomHoliday).where(CustomHoliday.date == data.date)
        )
        if existing.scalars().first():
            raise ConflictError("date", data.date.isoformat())

        holiday = CustomHoliday(date=data.date, name=data.name, created_by=created_by)
        db.add(holiday)
        await db.flush()
        logger.info("Custom holiday %s (%s) added", data.date, data.name)
        return holiday

    @staticmethod
    async def remove_holiday(db: AsyncSession, day: date) -> None:
        result = await db.execute(
            select(CustomHoliday).where(CustomHoliday.date == day)
        )
        holiday = result.scalars().first()
        if not holiday:
            raise NotFoundException("CustomHoliday", day.isoformat())
        await db.delete(holiday)
        await db.flush()
        logger.info("Custom holiday %s removed", day)

    @staticmethod
    async def replace_holidays(
        db: AsyncSession,
        holidays: list[HolidayCreate],
        created_by: Optional[uuid.UUID] = None,
    ) -> list[CustomHoliday]:
        """Swap the whole custom holiday set for *holidays*."""
        await db.execute(delete(CustomHoliday))
        rows = [
            CustomHoliday(date=h.date, name=h.name, created_by=created_by)
            for h in holidays
        ]
        db.add_all(rows)
        await db.flush()
        logger.info("Custom holiday set replaced (%d entries)", len(rows))
        return sorted(rows, key=lambda h: h.date)

    # ── Classifier input ────────────────────────────────────────────

    @staticmethod
    async def load_config(
        db: AsyncSession,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> HolidayConfig:
        """Build the ``HolidayConfig`` the day classifier needs.

        When a span is given only custom holidays inside it are loaded.
        """
        query = select(CustomHoliday)
        if from_date is not None:
            query = query.where(CustomHoliday.date >= from_date)
        if to_date is not None:
            query = query.where(CustomHoliday.date <= to_date)
        result = await db.execute(query)
        custom = {h.date: h.name for h in result.scalars().all()}
        return HolidayConfig(
            work_schedule=await ScheduleService.get_work_schedule(db),
            custom_holidays=custom,
        )
