"""Leave module test suite — submission, pricing against the balance,
approval re-pricing, the status transition table, cancellation and listings.

Tests run against SQLite via the shared conftest.py fixtures.
"""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import has_permission
from leavedesk.common.constants import (
    PERMISSIONS,
    DaySession,
    LeaveCategory,
    LeaveStatus,
    UserRole,
)
from leavedesk.common.exceptions import (
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from leavedesk.common.models import AuditTrail
from leavedesk.common.pagination import PaginationParams
from leavedesk.leave.models import LeaveRequest
from leavedesk.leave.schemas import LeaveRequestCreate
from leavedesk.leave.service import (
    LeaveService,
    can_act_on,
    check_transition,
    reference_date_for,
)
from leavedesk.notifications.models import Notification
from leavedesk.schedule.schemas import HolidayCreate
from leavedesk.schedule.service import ScheduleService
from tests.conftest import _seed_employee

D = Decimal


# ═════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════


def _request(
    from_date: date,
    to_date: date,
    *,
    leave_type: LeaveCategory = LeaveCategory.annual,
    sessions: dict | None = None,
    reason: str | None = "Family trip",
) -> LeaveRequestCreate:
    return LeaveRequestCreate(
        leave_type=leave_type,
        from_date=from_date,
        to_date=to_date,
        sessions=sessions,
        reason=reason,
    )


def _pagination(page: int = 1, page_size: int = 50) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size)


# Mon 2 Mar → Fri 6 Mar 2026: five working days, no holidays.
WEEK = (date(2026, 3, 2), date(2026, 3, 6))
# Mon 2 Mar → Fri 13 Mar 2026: ten working days.
TWO_WEEKS = (date(2026, 3, 2), date(2026, 3, 13))
# Mon 6 Apr → Fri 10 Apr 2026: five working days.
APRIL_WEEK = (date(2026, 4, 6), date(2026, 4, 10))


# ═════════════════════════════════════════════════════════════════════
# 1. Pure helpers
# ═════════════════════════════════════════════════════════════════════


class TestTransitionTable:

    @pytest.mark.parametrize(
        "current, target",
        [
            (LeaveStatus.pending, LeaveStatus.approved),
            (LeaveStatus.pending, LeaveStatus.rejected),
            (LeaveStatus.pending, LeaveStatus.cancelled),
            (LeaveStatus.approved, LeaveStatus.cancelled),
        ],
    )
    def test_allowed(self, current, target):
        check_transition(current, target)

    @pytest.mark.parametrize(
        "current, target",
        [
            (LeaveStatus.approved, LeaveStatus.rejected),
            (LeaveStatus.approved, LeaveStatus.approved),
            (LeaveStatus.rejected, LeaveStatus.approved),
            (LeaveStatus.rejected, LeaveStatus.cancelled),
            (LeaveStatus.cancelled, LeaveStatus.approved),
            (LeaveStatus.cancelled, LeaveStatus.pending),
        ],
    )
    def test_rejected(self, current, target):
        with pytest.raises(InvalidTransitionException):
            check_transition(current, target)


class TestReferenceDate:

    def test_within_one_year(self):
        assert reference_date_for(date(2026, 3, 2), date(2026, 3, 6)) == date(2026, 3, 6)

    def test_span_crossing_new_year_measured_at_year_end(self):
        assert reference_date_for(date(2026, 12, 28), date(2027, 1, 5)) == date(2026, 12, 31)


class TestCanActOn:

    async def test_rules(self, db: AsyncSession, test_employee, test_manager, test_hr_admin):
        colleague = await _seed_employee(db, name="Colleague")
        director = await _seed_employee(db, name="Dana Director", role=UserRole.director)

        assert can_act_on(test_manager, test_employee)
        assert can_act_on(test_hr_admin, test_employee)
        assert can_act_on(director, test_employee)
        assert not can_act_on(colleague, test_employee)
        assert not can_act_on(test_employee, test_employee)
        assert not can_act_on(test_hr_admin, test_hr_admin)

    def test_role_permissions_cover_only_role_gated_endpoints(self):
        # Approval and cancellation rights come from can_act_on alone.
        granted = set().union(*PERMISSIONS.values())
        assert granted == {
            "profile:read_all",
            "profile:update",
            "leave:read_all",
            "leave:configure",
            "email:configure",
        }
        assert has_permission(UserRole.director, "leave:read_all")
        assert not has_permission(UserRole.manager, "leave:read_all")
        assert not has_permission(UserRole.director, "leave:configure")


# ═════════════════════════════════════════════════════════════════════
# 2. Apply leave — service layer
# ═════════════════════════════════════════════════════════════════════


class TestApplyLeave:
    """Tests for LeaveService.apply_leave()."""

    async def test_apply_leave_happy_path(self, db: AsyncSession, test_employee, test_manager):
        """Full week of annual leave → pending, fully charged to annual."""
        result = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))

        assert result.status == LeaveStatus.pending
        assert result.duration == D("5")
        assert (result.days_annual, result.days_unpaid, result.days_exempt) == (D("5"), D("0"), D("0"))
        assert result.exemption_note == "5 annual"
        assert len(result.request_details) == 5
        assert result.employee.email == test_employee.email

        notes = (
            await db.execute(
                select(Notification).where(Notification.recipient_id == test_manager.id)
            )
        ).scalars().all()
        assert len(notes) == 1
        assert notes[0].entity_id == result.id

        audit = (
            await db.execute(
                select(AuditTrail).where(AuditTrail.entity_id == result.id)
            )
        ).scalars().all()
        assert [a.action for a in audit] == ["create"]

    async def test_weekend_and_excluded_days_are_not_stored(self, db: AsyncSession, test_employee):
        """Thu → Tue with Monday excluded: Thu, Fri, Tue counted."""
        result = await LeaveService.apply_leave(
            db, test_employee.id,
            _request(
                date(2026, 3, 5), date(2026, 3, 10),
                sessions={date(2026, 3, 9): DaySession.excluded, date(2026, 3, 10): DaySession.afternoon},
            ),
        )
        assert result.duration == D("2.5")
        stored = {d.date: d.session for d in result.request_details}
        assert stored == {
            date(2026, 3, 5): DaySession.full,
            date(2026, 3, 6): DaySession.full,
            date(2026, 3, 10): DaySession.afternoon,
        }

    async def test_zero_sessions_rejected(self, db: AsyncSession, test_employee):
        """A weekend-only span has nothing to take."""
        with pytest.raises(ValidationException) as exc_info:
            await LeaveService.apply_leave(
                db, test_employee.id, _request(date(2026, 3, 7), date(2026, 3, 8)),
            )
        assert "sessions" in exc_info.value.errors

    async def test_overlapping_request_rejected(self, db: AsyncSession, test_employee):
        await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        with pytest.raises(ValidationException) as exc_info:
            await LeaveService.apply_leave(
                db, test_employee.id, _request(date(2026, 3, 6), date(2026, 3, 9)),
            )
        assert "dates" in exc_info.value.errors

    async def test_cancelled_request_does_not_block_dates(self, db: AsyncSession, test_employee):
        first = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        await LeaveService.cancel_leave(db, first.id, test_employee)
        second = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        assert second.status == LeaveStatus.pending

    async def test_new_hire_partial_entitlement(self, db: AsyncSession, test_manager):
        """Started January 2026 → 3 days by March; the rest is unpaid."""
        hire = await _seed_employee(db, start_date="10/01/2026", manager_id=test_manager.id)
        result = await LeaveService.apply_leave(db, hire.id, _request(*WEEK))
        assert (result.days_annual, result.days_unpaid) == (D("3"), D("2"))
        assert result.exemption_note == "3 annual + 2 unpaid"

    async def test_wedding_uses_allowance_first(self, db: AsyncSession, test_employee):
        result = await LeaveService.apply_leave(
            db, test_employee.id, _request(*WEEK, leave_type=LeaveCategory.wedding_self),
        )
        assert (result.days_exempt, result.days_annual, result.days_unpaid) == (D("3"), D("2"), D("0"))

    async def test_unpaid_never_touches_balance(self, db: AsyncSession, test_employee):
        result = await LeaveService.apply_leave(
            db, test_employee.id, _request(*WEEK, leave_type=LeaveCategory.unpaid),
        )
        assert (result.days_annual, result.days_unpaid) == (D("0"), D("5"))

    async def test_custom_holiday_reduces_duration(self, db: AsyncSession, test_employee):
        await ScheduleService.add_holiday(db, HolidayCreate(date=date(2026, 3, 4), name="Office move"))
        result = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        assert result.duration == D("4")

    async def test_inactive_employee_not_found(self, db: AsyncSession):
        gone = await _seed_employee(db, is_active=False)
        with pytest.raises(NotFoundException):
            await LeaveService.apply_leave(db, gone.id, _request(*WEEK))


# ═════════════════════════════════════════════════════════════════════
# 3. Approval workflow
# ═════════════════════════════════════════════════════════════════════


class TestApprovalWorkflow:

    async def test_manager_approves(self, db: AsyncSession, test_employee, test_manager):
        req = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        result = await LeaveService.approve_leave(db, req.id, test_manager, remarks="Enjoy")

        assert result.status == LeaveStatus.approved
        assert result.reviewed_by == test_manager.id
        assert result.reviewer_name == test_manager.name
        assert result.reviewer_remarks == "Enjoy"
        assert result.reviewed_at is not None

        notes = (
            await db.execute(
                select(Notification).where(Notification.recipient_id == test_employee.id)
            )
        ).scalars().all()
        assert [n.title for n in notes] == ["Leave Request Approved"]

    async def test_manager_rejects(self, db: AsyncSession, test_employee, test_manager):
        req = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        result = await LeaveService.reject_leave(db, req.id, test_manager, remarks="Release week")
        assert result.status == LeaveStatus.rejected

        balance = await LeaveService.get_balance(db, test_employee.id, date(2026, 3, 31))
        assert balance.annual_used == D("0")

    async def test_self_approval_forbidden(self, db: AsyncSession, test_hr_admin):
        req = await LeaveService.apply_leave(db, test_hr_admin.id, _request(*WEEK))
        with pytest.raises(ForbiddenException):
            await LeaveService.approve_leave(db, req.id, test_hr_admin)

    async def test_unrelated_employee_forbidden(self, db: AsyncSession, test_employee):
        colleague = await _seed_employee(db, name="Colleague")
        req = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        with pytest.raises(ForbiddenException):
            await LeaveService.approve_leave(db, req.id, colleague)
        with pytest.raises(ForbiddenException):
            await LeaveService.reject_leave(db, req.id, colleague)

    async def test_hr_admin_can_approve(self, db: AsyncSession, test_employee, test_hr_admin):
        req = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        result = await LeaveService.approve_leave(db, req.id, test_hr_admin)
        assert result.status == LeaveStatus.approved

    async def test_approve_twice_is_invalid_transition(self, db: AsyncSession, test_employee, test_manager):
        req = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        await LeaveService.approve_leave(db, req.id, test_manager)
        with pytest.raises(InvalidTransitionException):
            await LeaveService.approve_leave(db, req.id, test_manager)

    async def test_reject_approved_is_invalid_transition(self, db: AsyncSession, test_employee, test_manager):
        req = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        await LeaveService.approve_leave(db, req.id, test_manager)
        with pytest.raises(InvalidTransitionException):
            await LeaveService.reject_leave(db, req.id, test_manager)

    async def test_unknown_request(self, db: AsyncSession, test_manager):
        with pytest.raises(NotFoundException):
            await LeaveService.approve_leave(db, uuid.uuid4(), test_manager)


class TestRepricingAtApproval:

    async def test_second_request_repriced_against_approved_balance(
        self, db: AsyncSession, test_employee, test_manager,
    ):
        """Both submitted against a full balance; approving both would overdraw it."""
        first = await LeaveService.apply_leave(db, test_employee.id, _request(*TWO_WEEKS))
        second = await LeaveService.apply_leave(db, test_employee.id, _request(*APRIL_WEEK))
        assert second.days_annual == D("5")

        await LeaveService.approve_leave(db, first.id, test_manager)
        approved = await LeaveService.approve_leave(db, second.id, test_manager)

        assert approved.duration == D("5")
        assert (approved.days_annual, approved.days_unpaid) == (D("2"), D("3"))
        assert approved.exemption_note == "2 annual + 3 unpaid"

        actions = (
            await db.execute(
                select(AuditTrail.action)
                .where(AuditTrail.entity_id == second.id)
                .order_by(AuditTrail.created_at)
            )
        ).scalars().all()
        assert "reprice" in actions

    async def test_unchanged_split_is_not_audited(self, db: AsyncSession, test_employee, test_manager):
        req = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        await LeaveService.approve_leave(db, req.id, test_manager)
        actions = (
            await db.execute(select(AuditTrail.action).where(AuditTrail.entity_id == req.id))
        ).scalars().all()
        assert "reprice" not in actions

    async def test_approved_annual_never_exceeds_entitlement(
        self, db: AsyncSession, test_employee, test_manager,
    ):
        spans = [
            (date(2026, 3, 2), date(2026, 3, 6)),
            (date(2026, 3, 9), date(2026, 3, 13)),
            (date(2026, 3, 16), date(2026, 3, 20)),
        ]
        ids = [
            (await LeaveService.apply_leave(db, test_employee.id, _request(*span))).id
            for span in spans
        ]
        for request_id in ids:
            await LeaveService.approve_leave(db, request_id, test_manager)

        used = await LeaveService.get_annual_days_used(db, test_employee.id, 2026)
        assert used == D("12")

        balance = await LeaveService.get_balance(db, test_employee.id, date(2026, 12, 31))
        assert balance.available == D("0")
        assert balance.unpaid_used == D("3")


# ═════════════════════════════════════════════════════════════════════
# 4. Cancellation
# ═════════════════════════════════════════════════════════════════════


class TestCancelLeave:

    async def test_requester_withdraws_pending(self, db: AsyncSession, test_employee, test_manager):
        req = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        result = await LeaveService.cancel_leave(db, req.id, test_employee, reason="Plans changed")

        assert result.status == LeaveStatus.cancelled
        assert result.cancelled_at is not None
        assert result.reviewer_remarks == "Withdrawn by employee: Plans changed"

        titles = (
            await db.execute(
                select(Notification.title).where(Notification.recipient_id == test_manager.id)
            )
        ).scalars().all()
        assert "Leave Request Withdrawn" in titles

    async def test_manager_cannot_withdraw_pending(self, db: AsyncSession, test_employee, test_manager):
        req = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        with pytest.raises(ForbiddenException):
            await LeaveService.cancel_leave(db, req.id, test_manager)

    async def test_approver_cancels_approved_and_balance_returns(
        self, db: AsyncSession, test_employee, test_manager,
    ):
        req = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        await LeaveService.approve_leave(db, req.id, test_manager)
        assert await LeaveService.get_annual_days_used(db, test_employee.id, 2026) == D("5")

        result = await LeaveService.cancel_leave(db, req.id, test_manager, reason="Project deadline")
        assert result.status == LeaveStatus.cancelled
        assert result.reviewer_remarks == "Project deadline"
        assert await LeaveService.get_annual_days_used(db, test_employee.id, 2026) == D("0")

    async def test_requester_cannot_cancel_approved(self, db: AsyncSession, test_employee, test_manager):
        req = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        await LeaveService.approve_leave(db, req.id, test_manager)
        with pytest.raises(ForbiddenException):
            await LeaveService.cancel_leave(db, req.id, test_employee)

    async def test_cancel_rejected_is_invalid(self, db: AsyncSession, test_employee, test_manager):
        req = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        await LeaveService.reject_leave(db, req.id, test_manager)
        with pytest.raises(InvalidTransitionException):
            await LeaveService.cancel_leave(db, req.id, test_employee)

    async def test_cancel_cancelled_is_invalid(self, db: AsyncSession, test_employee):
        req = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        await LeaveService.cancel_leave(db, req.id, test_employee)
        with pytest.raises(InvalidTransitionException):
            await LeaveService.cancel_leave(db, req.id, test_employee)


# ═════════════════════════════════════════════════════════════════════
# 5. Balance, preview, types
# ═════════════════════════════════════════════════════════════════════


class TestBalanceAndPreview:

    async def test_balance_counts_pending_separately(self, db: AsyncSession, test_employee):
        await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        balance = await LeaveService.get_balance(db, test_employee.id, date(2026, 3, 1))

        assert balance.entitlement == 12
        assert balance.annual_used == D("0")
        assert balance.pending_annual == D("5")
        assert balance.available == D("12")

    async def test_balance_ignores_other_years(self, db: AsyncSession, test_employee, test_manager):
        old = await LeaveService.apply_leave(
            db, test_employee.id, _request(date(2025, 6, 2), date(2025, 6, 6)),
        )
        await LeaveService.approve_leave(db, old.id, test_manager)
        balance = await LeaveService.get_balance(db, test_employee.id, date(2026, 1, 15))
        assert balance.annual_used == D("0")

    async def test_preview_does_not_save(self, db: AsyncSession, test_employee):
        preview = await LeaveService.preview(
            db, test_employee.id,
            _request(date(2026, 3, 6), date(2026, 3, 9), sessions={date(2026, 3, 9): DaySession.morning}),
        )
        assert [d.duration for d in preview.days] == [D("1"), D("0"), D("0"), D("0.5")]
        assert preview.breakdown.total == D("1.5")
        assert preview.breakdown.note == "1.5 annual"
        assert preview.available == D("12")

        rows = (await db.execute(select(LeaveRequest))).scalars().all()
        assert rows == []

    async def test_preview_allows_zero_duration(self, db: AsyncSession, test_employee):
        preview = await LeaveService.preview(
            db, test_employee.id, _request(date(2026, 3, 7), date(2026, 3, 8)),
        )
        assert preview.breakdown.total == D("0")
        assert preview.breakdown.note == "no deduction"

    async def test_leave_types_reflect_allowance_overrides(self, db: AsyncSession):
        await ScheduleService.set_legal_allowances(db, {"wedding_child": "2"})
        types = {t.code: t for t in await LeaveService.get_leave_types(db)}

        assert len(types) == len(LeaveCategory)
        assert types[LeaveCategory.wedding_child].legal_allowance == D("2")
        assert types[LeaveCategory.wedding_self].legal_allowance == D("3")
        assert types[LeaveCategory.unpaid].always_unpaid is True


# ═════════════════════════════════════════════════════════════════════
# 6. Listings
# ═════════════════════════════════════════════════════════════════════


class TestListings:

    async def test_my_team_and_pending_scopes(
        self, db: AsyncSession, test_employee, test_manager, test_hr_admin,
    ):
        other_report = await _seed_employee(db, name="Second Report", manager_id=test_manager.id)
        outsider = await _seed_employee(db, name="Outsider")

        await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        await LeaveService.apply_leave(db, other_report.id, _request(*APRIL_WEEK))
        await LeaveService.apply_leave(db, outsider.id, _request(*WEEK))

        mine = await LeaveService.get_leave_requests(db, _pagination(), requestor=test_employee, scope="my")
        assert mine["meta"].total == 1

        team = await LeaveService.get_leave_requests(db, _pagination(), requestor=test_manager, scope="team")
        assert {r.employee_id for r in team["data"]} == {test_employee.id, other_report.id}

        pending = await LeaveService.get_leave_requests(db, _pagination(), requestor=test_manager, scope="pending")
        assert pending["meta"].total == 2

        org_pending = await LeaveService.get_leave_requests(
            db, _pagination(), requestor=test_hr_admin, scope="pending",
        )
        assert org_pending["meta"].total == 3

    async def test_filters(self, db: AsyncSession, test_employee, test_manager):
        req = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))
        await LeaveService.apply_leave(
            db, test_employee.id, _request(*APRIL_WEEK, leave_type=LeaveCategory.sick),
        )
        await LeaveService.approve_leave(db, req.id, test_manager)

        approved = await LeaveService.get_leave_requests(
            db, _pagination(), requestor=test_employee, scope="my", status=LeaveStatus.approved,
        )
        assert [r.id for r in approved["data"]] == [req.id]

        sick = await LeaveService.get_leave_requests(
            db, _pagination(), requestor=test_employee, scope="my", leave_type=LeaveCategory.sick,
        )
        assert sick["meta"].total == 1

        other_year = await LeaveService.get_leave_requests(
            db, _pagination(), requestor=test_employee, scope="my", year=2025,
        )
        assert other_year["meta"].total == 0

    async def test_unknown_scope(self, db: AsyncSession, test_employee):
        with pytest.raises(ValidationException):
            await LeaveService.get_leave_requests(db, _pagination(), requestor=test_employee, scope="all")

    async def test_view_single_request(self, db: AsyncSession, test_employee, test_manager):
        outsider = await _seed_employee(db, name="Outsider")
        req = await LeaveService.apply_leave(db, test_employee.id, _request(*WEEK))

        assert (await LeaveService.get_leave_request(db, req.id, test_employee)).id == req.id
        assert (await LeaveService.get_leave_request(db, req.id, test_manager)).id == req.id
        with pytest.raises(ForbiddenException):
            await LeaveService.get_leave_request(db, req.id, outsider)
