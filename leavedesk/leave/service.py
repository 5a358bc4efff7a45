"""Leave service layer — balance aggregation, pricing, submission, approvals.

Business logic:
  - Entitlement at a reference date and the approved annual days of that year
  - Day classification + pricing of a request (preview and submission)
  - Approval / rejection / cancellation through an explicit transition table,
    with the split re-priced at approval time
  - Own, team and pending-approval listings
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leavedesk.common.audit import create_audit_entry
from leavedesk.common.constants import (
    LEAVE_CATEGORY_LABELS,
    ORG_WIDE_APPROVER_ROLES,
    LeaveCategory,
    LeaveStatus,
)
from leavedesk.common.exceptions import (
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from leavedesk.common.pagination import PaginationParams, paginate
from leavedesk.core_hr.models import Employee
from leavedesk.core_hr.service import EmployeeService
from leavedesk.leave.entitlement import calculate_entitlement
from leavedesk.leave.models import LeaveRequest
from leavedesk.leave.pricing import (
    DeductionBreakdown,
    available_balance,
    partition_days,
    price_request,
)
from leavedesk.leave.schemas import (
    DayPlanOut,
    LeaveBalanceOut,
    LeavePreviewOut,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveTypeOut,
)
from leavedesk.notifications.service import (
    notify_leave_decision,
    notify_leave_request,
    notify_leave_withdrawn,
)
from leavedesk.schedule.calendar import PlannedDay, plan_days
from leavedesk.schedule.service import ScheduleService

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# Allowed status moves. Who may make each move is checked separately.
_TRANSITIONS: dict[LeaveStatus, frozenset[LeaveStatus]] = {
    LeaveStatus.pending: frozenset({
        LeaveStatus.approved, LeaveStatus.rejected, LeaveStatus.cancelled,
    }),
    LeaveStatus.approved: frozenset({LeaveStatus.cancelled}),
    LeaveStatus.rejected: frozenset(),
    LeaveStatus.cancelled: frozenset(),
}

_OPEN_STATUSES = (LeaveStatus.pending, LeaveStatus.approved)

_AUDIT_ACTIONS: dict[LeaveStatus, str] = {
    LeaveStatus.approved: "approve",
    LeaveStatus.rejected: "reject",
    LeaveStatus.cancelled: "cancel",
}


def check_transition(current: LeaveStatus, target: LeaveStatus) -> None:
    if target not in _TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionException(current.value, target.value)


def can_act_on(actor: Employee, requester: Employee) -> bool:
    """Approver authority: direct manager or an org-wide role, never oneself."""
    if actor.id == requester.id:
        return False
    if requester.manager_id == actor.id:
        return True
    return actor.role in ORG_WIDE_APPROVER_ROLES


def reference_date_for(from_date: date, to_date: date) -> date:
    """Date entitlement is measured at: the last day of the request within
    the balance year (the calendar year of ``from_date``)."""
    return min(to_date, date(from_date.year, 12, 31))


def _year_bounds(year: int) -> tuple[date, date]:
    return date(year, 1, 1), date(year, 12, 31)


def _request_details(days: list[PlannedDay]) -> list[dict]:
    """Counted days only; excluded, weekend and holiday dates are dropped."""
    return [
        {"date": day.date.isoformat(), "session": day.session.value}
        for day in days
        if day.session is not None
    ]


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: types, balances, preview, requests, approvals."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _sum_days(
        db: AsyncSession,
        column,
        employee_id: uuid.UUID,
        year: int,
        statuses: tuple[LeaveStatus, ...] = (LeaveStatus.approved,),
        exclude_request_id: Optional[uuid.UUID] = None,
    ) -> Decimal:
        start, end = _year_bounds(year)
        query = select(func.coalesce(func.sum(column), 0)).where(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.in_(statuses),
            LeaveRequest.from_date >= start,
            LeaveRequest.from_date <= end,
        )
        if exclude_request_id is not None:
            query = query.where(LeaveRequest.id != exclude_request_id)
        result = await db.execute(query)
        return Decimal(str(result.scalar_one()))

    @staticmethod
    async def get_annual_days_used(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        *,
        exclude_request_id: Optional[uuid.UUID] = None,
    ) -> Decimal:
        """Sum of ``days_annual`` over approved requests starting in *year*."""
        return await LeaveService._sum_days(
            db, LeaveRequest.days_annual, employee_id, year,
            exclude_request_id=exclude_request_id,
        )

    @staticmethod
    async def _load_employee(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        result = await db.execute(
            select(Employee).where(
                Employee.id == employee_id, Employee.is_active.is_(True),
            )
        )
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def _load_request(db: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .options(selectinload(LeaveRequest.employee))
        )
        leave_req = result.scalars().first()
        if leave_req is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return leave_req

    @staticmethod
    def _build_request_response(req: LeaveRequest) -> LeaveRequestOut:
        return LeaveRequestOut.model_validate(req)

    @staticmethod
    async def _plan_and_price(
        db: AsyncSession,
        employee: Employee,
        data: LeaveRequestCreate,
    ) -> tuple[list[PlannedDay], DeductionBreakdown, int, Decimal]:
        """Classify the span and price it against the employee's balance.

        Returns ``(days, breakdown, entitlement, annual_used)``.
        """
        config = await ScheduleService.load_config(db, data.from_date, data.to_date)
        days = plan_days(data.from_date, data.to_date, config, data.sessions)

        reference = reference_date_for(data.from_date, data.to_date)
        entitlement = calculate_entitlement(employee.start_date, reference)
        used = await LeaveService.get_annual_days_used(db, employee.id, data.from_date.year)
        allowances = await ScheduleService.get_legal_allowances(db)

        breakdown = price_request(days, data.leave_type, entitlement, used, allowances)
        return days, breakdown, entitlement, used

    # ─────────────────────────────────────────────────────────────────
    # Leave Types
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_leave_types(db: AsyncSession) -> list[LeaveTypeOut]:
        allowances = await ScheduleService.get_legal_allowances(db)
        return [
            LeaveTypeOut(
                code=category,
                name=LEAVE_CATEGORY_LABELS[category],
                legal_allowance=allowances.get(category, ZERO),
                always_unpaid=category == LeaveCategory.unpaid,
            )
            for category in LeaveCategory
        ]

    # ─────────────────────────────────────────────────────────────────
    # Balance
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        as_of: date,
    ) -> LeaveBalanceOut:
        """Entitlement at *as_of* and what the year's requests have used."""
        employee = await LeaveService._load_employee(db, employee_id)
        year = as_of.year

        entitlement = calculate_entitlement(employee.start_date, as_of)
        annual_used = await LeaveService.get_annual_days_used(db, employee_id, year)
        unpaid_used = await LeaveService._sum_days(
            db, LeaveRequest.days_unpaid, employee_id, year,
        )
        exempt_used = await LeaveService._sum_days(
            db, LeaveRequest.days_exempt, employee_id, year,
        )
        pending_annual = await LeaveService._sum_days(
            db, LeaveRequest.days_annual, employee_id, year,
            statuses=(LeaveStatus.pending,),
        )

        return LeaveBalanceOut(
            employee_id=employee_id,
            year=year,
            as_of=as_of,
            entitlement=entitlement,
            annual_used=annual_used,
            unpaid_used=unpaid_used,
            exempt_used=exempt_used,
            pending_annual=pending_annual,
            available=available_balance(entitlement, annual_used),
        )

    # ─────────────────────────────────────────────────────────────────
    # Preview
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def preview(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: LeaveRequestCreate,
    ) -> LeavePreviewOut:
        """Day plan and priced split, without saving anything."""
        employee = await LeaveService._load_employee(db, employee_id)
        days, breakdown, entitlement, used = await LeaveService._plan_and_price(
            db, employee, data,
        )
        return LeavePreviewOut(
            leave_type=data.leave_type,
            from_date=data.from_date,
            to_date=data.to_date,
            entitlement=entitlement,
            annual_used=used,
            available=available_balance(entitlement, used),
            days=[DayPlanOut.from_planned(d) for d in days],
            breakdown=breakdown,
        )

    # ─────────────────────────────────────────────────────────────────
    # Apply Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def apply_leave(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: LeaveRequestCreate,
    ) -> LeaveRequestOut:
        """Submit a leave request:
        - At least one working session selected
        - No overlap with own pending/approved requests
        - Priced against the balance at the reference date
        - Stored as pending; the manager is notified
        """

        employee = await LeaveService._load_employee(db, employee_id)
        days, breakdown, entitlement, used = await LeaveService._plan_and_price(
            db, employee, data,
        )

        if breakdown.total <= 0:
            raise ValidationException(
                {"sessions": ["No working sessions selected in the requested range "
                              "(all days may be weekends, holidays or excluded)."]}
            )

        # ── Check overlapping leaves ────────────────────────────────
        overlap_result = await db.execute(
            select(func.count()).select_from(LeaveRequest).where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status.in_(_OPEN_STATUSES),
                LeaveRequest.from_date <= data.to_date,
                LeaveRequest.to_date >= data.from_date,
            )
        )
        if overlap_result.scalar_one() > 0:
            raise ValidationException(
                {"dates": [
                    "You already have a pending or approved leave request "
                    "overlapping with these dates."
                ]}
            )

        # ── Create leave request ────────────────────────────────────
        leave_request = LeaveRequest(
            employee=employee,
            leave_type=data.leave_type,
            from_date=data.from_date,
            to_date=data.to_date,
            request_details=_request_details(days),
            duration=breakdown.total,
            days_annual=breakdown.annual,
            days_unpaid=breakdown.unpaid,
            days_exempt=breakdown.exempt,
            exemption_note=breakdown.note,
            reason=data.reason,
            status=LeaveStatus.pending,
        )
        db.add(leave_request)
        await db.flush()
        await db.refresh(leave_request, attribute_names=["created_at", "updated_at"])

        logger.info(
            "Leave request %s submitted by %s: %s %s→%s, %s day(s) (%s); "
            "entitlement %d, used %s",
            leave_request.id, employee.email, data.leave_type.value,
            data.from_date, data.to_date, breakdown.total, breakdown.note,
            entitlement, used,
        )

        # ── Audit ───────────────────────────────────────────────────
        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_request",
            entity_id=leave_request.id,
            actor_id=employee_id,
            new_values={
                "leave_type": data.leave_type.value,
                "from_date": data.from_date.isoformat(),
                "to_date": data.to_date.isoformat(),
                "duration": str(breakdown.total),
                "days_annual": str(breakdown.annual),
                "days_unpaid": str(breakdown.unpaid),
                "days_exempt": str(breakdown.exempt),
                "status": LeaveStatus.pending.value,
            },
        )

        # ── Notify approver ─────────────────────────────────────────
        if employee.manager_id:
            manager = await db.get(Employee, employee.manager_id)
            if manager is not None and manager.is_active:
                await notify_leave_request(db, leave_request, manager, employee.name)
        else:
            logger.info("Employee %s has no manager; nobody notified", employee.email)

        return LeaveService._build_request_response(leave_request)

    # ─────────────────────────────────────────────────────────────────
    # Approve Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def _reprice_for_approval(db: AsyncSession, leave_req: LeaveRequest) -> None:
        """Recompute the split against the balance as it stands now.

        Other requests may have been approved since submission; the stored
        duration is kept, only the buckets move.
        """
        requester = leave_req.employee
        reference = reference_date_for(leave_req.from_date, leave_req.to_date)
        entitlement = calculate_entitlement(requester.start_date, reference)
        used = await LeaveService.get_annual_days_used(
            db, requester.id, leave_req.from_date.year,
            exclude_request_id=leave_req.id,
        )
        allowances = await ScheduleService.get_legal_allowances(db)
        breakdown = partition_days(
            leave_req.duration,
            leave_req.leave_type,
            available_balance(entitlement, used),
            allowances,
        )

        old = {
            "days_annual": Decimal(leave_req.days_annual),
            "days_unpaid": Decimal(leave_req.days_unpaid),
            "days_exempt": Decimal(leave_req.days_exempt),
        }
        new = {
            "days_annual": breakdown.annual,
            "days_unpaid": breakdown.unpaid,
            "days_exempt": breakdown.exempt,
        }
        if old == new:
            return

        logger.info(
            "Leave request %s re-priced at approval: %s → %s",
            leave_req.id, leave_req.exemption_note, breakdown.note,
        )
        leave_req.days_annual = breakdown.annual
        leave_req.days_unpaid = breakdown.unpaid
        leave_req.days_exempt = breakdown.exempt
        leave_req.exemption_note = breakdown.note

        await create_audit_entry(
            db,
            action="reprice",
            entity_type="leave_request",
            entity_id=leave_req.id,
            old_values={k: str(v) for k, v in old.items()},
            new_values={k: str(v) for k, v in new.items()},
        )

    @staticmethod
    async def approve_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        approver: Employee,
        *,
        remarks: Optional[str] = None,
    ) -> LeaveRequestOut:
        """Approve a pending request. The approver must have authority over
        the requester; the split is re-priced before it is confirmed."""

        leave_req = await LeaveService._load_request(db, request_id)
        check_transition(leave_req.status, LeaveStatus.approved)
        if not can_act_on(approver, leave_req.employee):
            raise ForbiddenException(
                "You are not authorized to approve this leave request."
            )

        await LeaveService._reprice_for_approval(db, leave_req)
        return await LeaveService._review(
            db, leave_req, approver, LeaveStatus.approved, remarks,
        )

    # ─────────────────────────────────────────────────────────────────
    # Reject Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def reject_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        approver: Employee,
        *,
        remarks: Optional[str] = None,
    ) -> LeaveRequestOut:
        """Reject a pending request."""

        leave_req = await LeaveService._load_request(db, request_id)
        check_transition(leave_req.status, LeaveStatus.rejected)
        if not can_act_on(approver, leave_req.employee):
            raise ForbiddenException(
                "You are not authorized to reject this leave request."
            )

        return await LeaveService._review(
            db, leave_req, approver, LeaveStatus.rejected, remarks,
        )

    @staticmethod
    async def _review(
        db: AsyncSession,
        leave_req: LeaveRequest,
        reviewer: Employee,
        target: LeaveStatus,
        remarks: Optional[str],
    ) -> LeaveRequestOut:
        now = datetime.now(timezone.utc)
        old_status = leave_req.status.value

        leave_req.status = target
        leave_req.reviewed_by = reviewer.id
        leave_req.reviewer_name = reviewer.name
        leave_req.reviewed_at = now
        leave_req.reviewer_remarks = remarks
        leave_req.updated_at = now
        if target == LeaveStatus.cancelled:
            leave_req.cancelled_at = now

        await db.flush()

        logger.info(
            "Leave request %s %s → %s by %s",
            leave_req.id, old_status, target.value, reviewer.email,
        )

        await create_audit_entry(
            db,
            action=_AUDIT_ACTIONS[target],
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=reviewer.id,
            old_values={"status": old_status},
            new_values={"status": target.value, "remarks": remarks},
        )

        await notify_leave_decision(db, leave_req, reviewer.name)
        return LeaveService._build_request_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Cancel Leave
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        actor: Employee,
        *,
        reason: Optional[str] = None,
    ) -> LeaveRequestOut:
        """Cancel a request.

        - pending  → cancelled: the requester only (withdrawal)
        - approved → cancelled: an approver with authority over the requester
        """

        leave_req = await LeaveService._load_request(db, request_id)
        check_transition(leave_req.status, LeaveStatus.cancelled)
        requester = leave_req.employee

        if leave_req.status == LeaveStatus.approved:
            if not can_act_on(actor, requester):
                raise ForbiddenException(
                    "Only an authorized approver can cancel an approved leave request."
                )
            return await LeaveService._review(
                db, leave_req, actor, LeaveStatus.cancelled, reason,
            )

        if actor.id != requester.id:
            raise ForbiddenException("Only the requester can withdraw a pending request.")

        now = datetime.now(timezone.utc)
        leave_req.status = LeaveStatus.cancelled
        leave_req.cancelled_at = now
        leave_req.updated_at = now
        if reason:
            leave_req.reviewer_remarks = f"Withdrawn by employee: {reason}"
        await db.flush()

        logger.info("Leave request %s withdrawn by %s", leave_req.id, actor.email)

        await create_audit_entry(
            db,
            action="cancel",
            entity_type="leave_request",
            entity_id=leave_req.id,
            actor_id=actor.id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.cancelled.value, "reason": reason},
        )

        if requester.manager_id:
            await notify_leave_withdrawn(db, leave_req, requester.manager_id, requester.name)

        return LeaveService._build_request_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Read
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_leave_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        viewer: Employee,
    ) -> LeaveRequestOut:
        """One request, visible to its owner and to approvers with authority."""
        leave_req = await LeaveService._load_request(db, request_id)
        if leave_req.employee_id != viewer.id and not can_act_on(viewer, leave_req.employee):
            raise ForbiddenException("You cannot view this leave request.")
        return LeaveService._build_request_response(leave_req)

    @staticmethod
    async def get_leave_requests(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        requestor: Employee,
        scope: str = "my",
        status: Optional[LeaveStatus] = None,
        leave_type: Optional[LeaveCategory] = None,
        year: Optional[int] = None,
    ) -> dict:
        """List leave requests with pagination and filters.

        Scopes:
          - my: own requests only
          - team: direct reports of requestor
          - pending: pending requests the requestor may decide on
        """

        query = (
            select(LeaveRequest)
            .options(selectinload(LeaveRequest.employee))
            .order_by(LeaveRequest.from_date.desc(), LeaveRequest.created_at.desc())
        )

        if scope == "my":
            query = query.where(LeaveRequest.employee_id == requestor.id)
        elif scope == "team":
            report_ids = await EmployeeService.get_direct_report_ids(db, requestor.id)
            query = query.where(LeaveRequest.employee_id.in_(report_ids))
        elif scope == "pending":
            query = query.where(
                LeaveRequest.status == LeaveStatus.pending,
                LeaveRequest.employee_id != requestor.id,
            )
            if requestor.role not in ORG_WIDE_APPROVER_ROLES:
                report_ids = await EmployeeService.get_direct_report_ids(db, requestor.id)
                query = query.where(LeaveRequest.employee_id.in_(report_ids))
            query = query.order_by(None).order_by(LeaveRequest.created_at.asc())
        else:
            raise ValidationException({"scope": [f"Unknown scope '{scope}'."]})

        if status:
            query = query.where(LeaveRequest.status == status)
        if leave_type:
            query = query.where(LeaveRequest.leave_type == leave_type)
        if year:
            start, end = _year_bounds(year)
            query = query.where(
                LeaveRequest.from_date >= start, LeaveRequest.from_date <= end,
            )

        rows, meta = await paginate(db, query, pagination)
        return {
            "data": [LeaveService._build_request_response(r) for r in rows],
            "meta": meta,
        }

