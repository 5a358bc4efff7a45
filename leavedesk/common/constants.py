"""Enums and constants for leavedesk — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum
from decimal import Decimal


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    director = "director"
    hr_admin = "hr_admin"
    system_admin = "system_admin"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"


class LeaveCategory(str, enum.Enum):
    annual = "annual"
    sick = "sick"
    personal = "personal"
    unpaid = "unpaid"
    wedding_self = "wedding_self"
    wedding_child = "wedding_child"
    bereavement_close = "bereavement_close"
    bereavement_distant = "bereavement_distant"
    other = "other"


class DaySession(str, enum.Enum):
    """What the requester picked for one calendar day."""

    full = "full"
    morning = "morning"
    afternoon = "afternoon"
    excluded = "excluded"


class DayKind(str, enum.Enum):
    working = "working"
    half_day = "half_day"
    weekend = "weekend"
    holiday = "holiday"


# ── Schedule ────────────────────────────────────────────────────────

class WorkSchedule(str, enum.Enum):
    mon_fri = "mon_fri"
    mon_sat = "mon_sat"
    mon_sat_morning = "mon_sat_morning"


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    info = "info"
    action_required = "action_required"
    approval = "approval"
    alert = "alert"


# ── Leave policy ────────────────────────────────────────────────────

FULL_ENTITLEMENT_DAYS = 12

# Days per occurrence exempt from both annual and unpaid accounting.
LEGAL_ALLOWANCES: dict[LeaveCategory, Decimal] = {
    LeaveCategory.wedding_self: Decimal("3"),
    LeaveCategory.wedding_child: Decimal("1"),
    LeaveCategory.bereavement_close: Decimal("3"),
    LeaveCategory.bereavement_distant: Decimal("1"),
}

LEAVE_CATEGORY_LABELS: dict[LeaveCategory, str] = {
    LeaveCategory.annual: "Annual leave",
    LeaveCategory.sick: "Sick leave",
    LeaveCategory.personal: "Personal leave",
    LeaveCategory.unpaid: "Unpaid leave",
    LeaveCategory.wedding_self: "Wedding (self)",
    LeaveCategory.wedding_child: "Wedding (child)",
    LeaveCategory.bereavement_close: "Bereavement (parent/spouse/child)",
    LeaveCategory.bereavement_distant: "Bereavement (grandparent/sibling)",
    LeaveCategory.other: "Other",
}

# App-setting keys
SETTING_WORK_SCHEDULE = "work_schedule"
SETTING_LEGAL_ALLOWANCES = "legal_allowances"


# ── Role-based permissions ──────────────────────────────────────────
# Capabilities for role-gated endpoints. Approver authority over a single
# request is decided by the leave service (direct manager or org-wide role).

PERMISSIONS: dict[UserRole, list[str]] = {
    UserRole.employee: [],
    UserRole.manager: [],
    UserRole.director: [
        "profile:read_all",
        "leave:read_all",
    ],
    UserRole.hr_admin: [
        "profile:read_all",
        "profile:update",
        "leave:read_all",
        "leave:configure",
        "email:configure",
    ],
    UserRole.system_admin: [
        "profile:read_all",
        "profile:update",
        "leave:read_all",
        "leave:configure",
        "email:configure",
    ],
}

# Roles that may act on any employee's request, not only their reports'.
ORG_WIDE_APPROVER_ROLES: frozenset[UserRole] = frozenset({
    UserRole.director,
    UserRole.hr_admin,
    UserRole.system_admin,
})

# ── Misc constants ──────────────────────────────────────────────────

DATE_FORMAT = "%d/%m/%Y"
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
MAX_REQUEST_SPAN_DAYS = 365
