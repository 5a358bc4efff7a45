"""Core HR service layer — employee directory reads and updates.

Uses:
  - ``paginate()`` from leavedesk.common.pagination
  - ``create_audit_entry`` from leavedesk.common.audit
  - ``NotFoundException / ConflictError`` from leavedesk.common.exceptions
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leavedesk.common.audit import create_audit_entry
from leavedesk.common.exceptions import (
    ConflictError,
    NotFoundException,
    ValidationException,
)
from leavedesk.common.pagination import PaginationMeta, PaginationParams, paginate
from leavedesk.core_hr.models import Employee
from leavedesk.core_hr.schemas import EmployeeSelfUpdate


# ═════════════════════════════════════════════════════════════════════
# EmployeeService
# ═════════════════════════════════════════════════════════════════════


class EmployeeService:
    """Async operations on the employee directory."""

    # ── List (paginated, searchable) ────────────────────────────────

    @staticmethod
    async def list_employees(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        department: Optional[str] = None,
        manager_id: Optional[uuid.UUID] = None,
        is_active: Optional[bool] = True,
    ) -> tuple[list[Employee], PaginationMeta]:
        """Return a page of employees ordered by name."""

        query = (
            select(Employee)
            .options(selectinload(Employee.manager))
            .order_by(Employee.name)
        )
        if is_active is not None:
            query = query.where(Employee.is_active.is_(is_active))
        if department:
            query = query.where(Employee.department == department)
        if manager_id:
            query = query.where(Employee.manager_id == manager_id)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    Employee.name.ilike(pattern),
                    Employee.email.ilike(pattern),
                    Employee.employee_code.ilike(pattern),
                )
            )

        return await paginate(db, query, pagination)

    # ── Get single ──────────────────────────────────────────────────

    @staticmethod
    async def get_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        populate_existing: bool = False,
    ) -> Employee:
        """Load an employee with its manager.

        *populate_existing* overwrites an instance already in the identity map,
        so relationships changed in this session are loaded eagerly again.
        """
        query = (
            select(Employee)
            .where(Employee.id == employee_id)
            .options(selectinload(Employee.manager))
        )
        if populate_existing:
            query = query.execution_options(populate_existing=True)
        result = await db.execute(query)
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: EmployeeSelfUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Employee:
        """Partial-update an employee. *data* may be a self or an admin update."""

        employee = await EmployeeService.get_employee(db, employee_id)

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return employee

        if changes.get("manager_id") is not None:
            await EmployeeService._check_manager(db, employee.id, changes["manager_id"])

        old_values: dict[str, Any] = {}
        for field, value in changes.items():
            old_val = getattr(employee, field, None)
            # Serialize enums / UUIDs for audit
            if hasattr(old_val, "value"):
                old_val = old_val.value
            elif isinstance(old_val, uuid.UUID):
                old_val = str(old_val)
            old_values[field] = old_val
            setattr(employee, field, value)

        employee.updated_at = datetime.now(timezone.utc)

        try:
            await db.flush()
        except IntegrityError as exc:
            await db.rollback()
            err = str(exc.orig)
            if "email" in err:
                raise ConflictError("email", changes.get("email", ""))
            if "employee_code" in err:
                raise ConflictError("employee_code", changes.get("employee_code", ""))
            raise

        await create_audit_entry(
            db,
            action="update",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=data.model_dump(mode="json", exclude_unset=True),
        )

        return await EmployeeService.get_employee(db, employee.id, populate_existing=True)

    @staticmethod
    async def _check_manager(
        db: AsyncSession,
        employee_id: uuid.UUID,
        manager_id: uuid.UUID,
    ) -> None:
        """Reject self-management and reporting cycles."""
        if manager_id == employee_id:
            raise ValidationException({"manager_id": ["An employee cannot manage themselves."]})

        seen: set[uuid.UUID] = set()
        current: Optional[uuid.UUID] = manager_id
        while current is not None and current not in seen:
            seen.add(current)
            row = (
                await db.execute(
                    select(Employee.id, Employee.manager_id).where(Employee.id == current)
                )
            ).first()
            if row is None:
                if current == manager_id:
                    raise NotFoundException("Employee", str(manager_id))
                break
            if row.manager_id == employee_id:
                raise ValidationException(
                    {"manager_id": ["This assignment would create a reporting cycle."]}
                )
            current = row.manager_id

    # ── Direct reports ──────────────────────────────────────────────

    @staticmethod
    async def get_direct_report_ids(
        db: AsyncSession,
        manager_id: uuid.UUID,
    ) -> list[uuid.UUID]:
        result = await db.execute(
            select(Employee.id).where(
                Employee.manager_id == manager_id,
                Employee.is_active.is_(True),
            )
        )
        return list(result.scalars().all())
