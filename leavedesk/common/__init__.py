"""Common module — shared utilities for leavedesk."""

from leavedesk.common.audit import create_audit_entry
from leavedesk.common.constants import (
    DATE_FORMAT,
    DEFAULT_PAGE_SIZE,
    FULL_ENTITLEMENT_DAYS,
    LEGAL_ALLOWANCES,
    MAX_PAGE_SIZE,
    PERMISSIONS,
    DayKind,
    DaySession,
    LeaveCategory,
    LeaveStatus,
    NotificationType,
    UserRole,
    WorkSchedule,
)
from leavedesk.common.exceptions import (
    AppException,
    ConflictError,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
    register_exception_handlers,
)
from leavedesk.common.models import AppSetting, AuditTrail
from leavedesk.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Settings
    "AppSetting",
    # Constants / Enums
    "DayKind",
    "DaySession",
    "LeaveCategory",
    "LeaveStatus",
    "NotificationType",
    "UserRole",
    "WorkSchedule",
    "PERMISSIONS",
    "LEGAL_ALLOWANCES",
    "FULL_ENTITLEMENT_DAYS",
    "DATE_FORMAT",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConflictError",
    "ForbiddenException",
    "InvalidTransitionException",
    "NotFoundException",
    "UnauthorizedException",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
