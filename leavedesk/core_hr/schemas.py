"""Core HR Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Update            → request bodies (write)
  - *Response          → response bodies (read)
  - *Summary           → compact read representation
"""


import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from leavedesk.common.constants import UserRole
from leavedesk.leave.entitlement import parse_start_date


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class EmployeeSummary(BaseModel):
    """Minimal employee info embedded in other responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    department: Optional[str] = None
    job_title: Optional[str] = None


class EmployeeResponse(BaseModel):
    """Full directory record."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: Optional[str] = None
    name: str
    email: str
    role: UserRole
    department: Optional[str] = None
    job_title: Optional[str] = None
    work_location: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    manager_id: Optional[uuid.UUID] = None
    manager: Optional[EmployeeSummary] = None
    start_date: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class EmployeeSelfUpdate(BaseModel):
    """Fields an employee may change on their own profile."""

    phone: Optional[str] = Field(None, max_length=20)
    avatar_url: Optional[str] = Field(None, max_length=500)
    work_location: Optional[str] = Field(None, max_length=150)


class EmployeeAdminUpdate(EmployeeSelfUpdate):
    """Directory fields HR can change (partial update)."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    email: Optional[EmailStr] = None
    employee_code: Optional[str] = Field(None, max_length=20)
    role: Optional[UserRole] = None
    department: Optional[str] = Field(None, max_length=150)
    job_title: Optional[str] = Field(None, max_length=150)
    manager_id: Optional[uuid.UUID] = None
    start_date: Optional[str] = Field(None, max_length=32)
    is_active: Optional[bool] = None

    @field_validator("start_date")
    @classmethod
    def start_date_parses(cls, v: Optional[str]) -> Optional[str]:
        # Imports may carry anything; edits through the API must be readable.
        if v is not None and parse_start_date(v) is None:
            raise ValueError("start_date must be YYYY-MM-DD or DD/MM/YYYY.")
        return v
