"""Leave router — types, balance, preview, submit, approve/reject/cancel, listings.

All endpoints require authentication. Approver authority is decided per
request by the service (direct manager or an org-wide approver role).
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import get_current_user, has_permission
from leavedesk.common.constants import LeaveCategory, LeaveStatus
from leavedesk.common.exceptions import ForbiddenException
from leavedesk.common.pagination import PaginatedResponse, PaginationParams
from leavedesk.common.rate_limit import limiter
from leavedesk.core_hr.models import Employee
from leavedesk.core_hr.service import EmployeeService
from leavedesk.database import get_db
from leavedesk.leave.schemas import (
    LeaveApproveRequest,
    LeaveBalanceOut,
    LeaveCancelRequest,
    LeavePreviewOut,
    LeaveRejectRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveTypeOut,
)
from leavedesk.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


# ── GET /types ──────────────────────────────────────────────────────

@router.get("/types", response_model=list[LeaveTypeOut])
async def list_leave_types(
    _employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Leave types with their legal allowance per occurrence."""
    return await LeaveService.get_leave_types(db)


# ── GET /balance ────────────────────────────────────────────────────

@router.get("/balance", response_model=LeaveBalanceOut)
async def get_balance(
    request: Request,
    as_of: Optional[date] = Query(None, description="Reference date; defaults to today"),
    employee_id: Optional[uuid.UUID] = Query(None, description="Another employee (approvers)"),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Entitlement, used and available annual leave at a date."""
    target_id = employee_id or employee.id
    if target_id != employee.id and not has_permission(request.state.user_role, "leave:read_all"):
        report_ids = await EmployeeService.get_direct_report_ids(db, employee.id)
        if target_id not in report_ids:
            raise ForbiddenException("You can only view your own or your team's balance.")
    return await LeaveService.get_balance(db, target_id, as_of or date.today())


# ── POST /preview ───────────────────────────────────────────────────

@router.post("/preview", response_model=LeavePreviewOut)
async def preview_leave(
    body: LeaveRequestCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Classify and price a request without saving it."""
    return await LeaveService.preview(db, employee.id, body)


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
@limiter.limit("20/minute")
async def apply_leave(
    request: Request,
    body: LeaveRequestCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit a leave request. Validates sessions and overlap, then prices it."""
    return await LeaveService.apply_leave(db, employee.id, body)


# ── GET /requests/mine ──────────────────────────────────────────────
# NOTE: Fixed paths MUST be registered before /requests/{request_id}.

@router.get("/requests/mine", response_model=PaginatedResponse[LeaveRequestOut])
async def my_requests(
    status: Optional[LeaveStatus] = Query(None),
    leave_type: Optional[LeaveCategory] = Query(None),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The authenticated user's leave history."""
    return await LeaveService.get_leave_requests(
        db, pagination,
        requestor=employee, scope="my",
        status=status, leave_type=leave_type, year=year,
    )


# ── GET /requests/team ──────────────────────────────────────────────

@router.get("/requests/team", response_model=PaginatedResponse[LeaveRequestOut])
async def team_requests(
    status: Optional[LeaveStatus] = Query(None),
    leave_type: Optional[LeaveCategory] = Query(None),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Leave requests of the caller's direct reports."""
    return await LeaveService.get_leave_requests(
        db, pagination,
        requestor=employee, scope="team",
        status=status, leave_type=leave_type, year=year,
    )


# ── GET /requests/pending ───────────────────────────────────────────

@router.get("/requests/pending", response_model=PaginatedResponse[LeaveRequestOut])
async def pending_requests(
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Pending requests the caller may approve or reject, oldest first."""
    return await LeaveService.get_leave_requests(
        db, pagination, requestor=employee, scope="pending",
    )


# ── GET /requests/{id} ──────────────────────────────────────────────

@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_request(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave_request(db, request_id, employee)


# ── PUT /requests/{id}/approve ──────────────────────────────────────

@router.put("/requests/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave(
    request_id: uuid.UUID,
    body: LeaveApproveRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Approve a pending leave request. The split is re-priced first."""
    return await LeaveService.approve_leave(
        db, request_id, employee, remarks=body.remarks,
    )


# ── PUT /requests/{id}/reject ───────────────────────────────────────

@router.put("/requests/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_leave(
    request_id: uuid.UUID,
    body: LeaveRejectRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Reject a pending leave request."""
    return await LeaveService.reject_leave(
        db, request_id, employee, remarks=body.remarks,
    )


# ── PUT /requests/{id}/cancel ───────────────────────────────────────

@router.put("/requests/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave(
    request_id: uuid.UUID,
    body: LeaveCancelRequest,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Withdraw a pending request (requester) or cancel an approved one (approver)."""
    return await LeaveService.cancel_leave(
        db, request_id, employee, reason=body.reason,
    )
