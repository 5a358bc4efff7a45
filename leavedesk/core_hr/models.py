"""Core HR ORM model: Employee.

SQLAlchemy 2.0 async-compatible model with Mapped[] annotations.
``start_date`` is kept exactly as the directory import supplied it, so it
may be an ISO date, a ``DD/MM/YYYY`` string, or garbage; the entitlement
calculator copes with all three.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leavedesk.common.constants import UserRole
from leavedesk.database import Base

if TYPE_CHECKING:
    from leavedesk.leave.models import LeaveRequest
    from leavedesk.notifications.models import Notification


class Employee(Base):
    """An employee record as mirrored from the directory."""

    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_code: Mapped[Optional[str]] = mapped_column(sa.String(20), unique=True)
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        sa.Enum(UserRole, name="user_role"),
        default=UserRole.employee,
        nullable=False,
    )
    department: Mapped[Optional[str]] = mapped_column(sa.String(150))
    job_title: Mapped[Optional[str]] = mapped_column(sa.String(150))
    work_location: Mapped[Optional[str]] = mapped_column(sa.String(150))
    phone: Mapped[Optional[str]] = mapped_column(sa.String(20))
    avatar_url: Mapped[Optional[str]] = mapped_column(sa.String(500))
    manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", name="fk_employee_manager"),
    )
    start_date: Mapped[Optional[str]] = mapped_column(sa.String(32))
    is_active: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )

    # ── Relationships ───────────────────────────────────────────────
    manager: Mapped[Optional[Employee]] = relationship(
        remote_side=[id], foreign_keys=[manager_id],
    )
    leave_requests: Mapped[list[LeaveRequest]] = relationship(
        back_populates="employee", foreign_keys="LeaveRequest.employee_id",
    )
    notifications: Mapped[list[Notification]] = relationship(
        back_populates="recipient",
    )

    def __repr__(self) -> str:
        return f"<Employee {self.email!r} ({self.role.value})>"
