"""Core HR router — employee directory endpoints.

Routes:
    /employees/me   — Own profile (read, self-update)
    /employees      — Directory listing (manager+)
    /employees/{id} — Get, admin-update an employee
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import (
    get_current_user,
    has_permission,
    require_permission,
    require_role,
)
from leavedesk.common.constants import UserRole
from leavedesk.common.exceptions import ForbiddenException
from leavedesk.common.pagination import PaginationParams
from leavedesk.core_hr.models import Employee
from leavedesk.core_hr.schemas import (
    EmployeeAdminUpdate,
    EmployeeResponse,
    EmployeeSelfUpdate,
    EmployeeSummary,
)
from leavedesk.core_hr.service import EmployeeService
from leavedesk.database import get_db

employees_router = APIRouter(prefix="", tags=["employees"])


# ── GET /employees/me — Own profile ─────────────────────────────────
# NOTE: /me routes MUST be registered before /{employee_id}.

@employees_router.get("/me")
async def get_my_profile(
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    employee = await EmployeeService.get_employee(db, current_user.id)
    return {
        "data": EmployeeResponse.model_validate(employee).model_dump(mode="json"),
        "message": "Profile retrieved successfully.",
    }


# ── PATCH /employees/me — Self-update contact fields ────────────────

@employees_router.patch("/me")
async def update_my_profile(
    body: EmployeeSelfUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Update own phone, avatar or work location."""
    employee = await EmployeeService.update_employee(
        db, current_user.id, body, actor_id=current_user.id,
    )
    return {
        "data": EmployeeResponse.model_validate(employee).model_dump(mode="json"),
        "message": "Profile updated successfully.",
    }


# ── GET /employees — Directory ──────────────────────────────────────

@employees_router.get("")
async def list_employees(
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_role(UserRole.manager)),
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Search by name, email, or employee code"),
    department: Optional[str] = Query(None, description="Filter by department"),
):
    """List employees with pagination and search.

    - **manager**: direct reports only, summary fields
    - **director+**: everyone, full records
    """
    sees_all = has_permission(request.state.user_role, "profile:read_all")
    rows, meta = await EmployeeService.list_employees(
        db,
        pagination,
        search=search,
        department=department,
        manager_id=None if sees_all else current_user.id,
    )

    schema = EmployeeResponse if sees_all else EmployeeSummary
    return {
        "data": [schema.model_validate(emp).model_dump(mode="json") for emp in rows],
        "meta": meta.model_dump(),
    }


# ── GET /employees/{id} — One employee ──────────────────────────────

@employees_router.get("/{employee_id}")
async def get_employee(
    employee_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(get_current_user),
):
    """Retrieve an employee record.

    Access rules:
    - **employee**: own record only
    - **manager**: own + direct reports
    - **director+**: any employee
    """
    employee = await EmployeeService.get_employee(db, employee_id)

    is_own = current_user.id == employee_id
    is_manager = employee.manager_id == current_user.id
    if not (is_own or is_manager or has_permission(request.state.user_role, "profile:read_all")):
        raise ForbiddenException(
            detail="You can only view your own profile or your direct reports.",
        )

    return {
        "data": EmployeeResponse.model_validate(employee).model_dump(mode="json"),
        "message": "Employee retrieved successfully.",
    }


# ── PATCH /employees/{id} — Admin update ────────────────────────────

@employees_router.patch("/{employee_id}")
async def update_employee(
    employee_id: uuid.UUID,
    body: EmployeeAdminUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Employee = Depends(require_permission("profile:update")),
):
    """Update directory fields incl. start date, manager and role. HR only."""
    employee = await EmployeeService.update_employee(
        db, employee_id, body, actor_id=current_user.id,
    )
    return {
        "data": EmployeeResponse.model_validate(employee).model_dump(mode="json"),
        "message": "Employee updated successfully.",
    }
