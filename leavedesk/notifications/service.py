"""Notification service — in-app notifications, email templates, leave dispatchers."""

from __future__ import annotations

import html
import logging
import math
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.constants import (
    DATE_FORMAT,
    LEAVE_CATEGORY_LABELS,
    LeaveStatus,
    NotificationType,
)
from leavedesk.common.exceptions import ForbiddenException, NotFoundException
from leavedesk.common.pagination import PaginationParams
from leavedesk.config import settings
from leavedesk.notifications.models import EmailTemplate, Notification
from leavedesk.notifications.schemas import (
    EmailTemplateUpdate,
    NotificationListMeta,
    NotificationListResponse,
    NotificationResponse,
    RenderedEmail,
)

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")

TEMPLATE_NEW_REQUEST = "new_request"
TEMPLATE_REQUEST_DECISION = "request_decision"


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        type: NotificationType = NotificationType.info,
        title: str,
        message: str,
        actor_name: Optional[str] = None,
        action_url: Optional[str] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        """Create a new notification and flush to DB."""
        notification = Notification(
            recipient_id=recipient_id,
            type=type,
            actor_name=actor_name,
            title=title,
            message=message,
            action_url=action_url,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.add(notification)
        await db.flush()
        return notification

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        employee_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        is_read: Optional[bool] = None,
    ) -> NotificationListResponse:
        """Return paginated notifications for an employee, newest first."""
        query = (
            select(Notification)
            .where(Notification.recipient_id == employee_id)
            .order_by(Notification.created_at.desc())
        )
        if is_read is not None:
            query = query.where(Notification.is_read == is_read)

        count_q = query.with_only_columns(func.count()).order_by(None)
        total: int = (await db.execute(count_q)).scalar_one()

        rows = (
            await db.execute(
                query.offset(pagination.offset).limit(pagination.page_size)
            )
        ).scalars().all()

        total_pages = math.ceil(total / pagination.page_size) if total else 0

        # Unread count (always unfiltered — for the badge)
        unread = await NotificationService.get_unread_count(db, employee_id)

        return NotificationListResponse(
            data=[NotificationResponse.model_validate(n) for n in rows],
            meta=NotificationListMeta(
                page=pagination.page,
                page_size=pagination.page_size,
                total=total,
                total_pages=total_pages,
                has_next=pagination.page < total_pages,
                has_prev=pagination.page > 1,
                unread=unread,
            ),
        )

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Notification:
        """Mark a single notification as read. Verifies ownership."""
        result = await db.execute(
            select(Notification).where(Notification.id == notification_id)
        )
        notification = result.scalars().first()

        if notification is None:
            raise NotFoundException("Notification", notification_id)

        if notification.recipient_id != employee_id:
            raise ForbiddenException("You can only mark your own notifications as read.")

        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        await db.flush()
        return notification

    @staticmethod
    async def get_unread_count(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> int:
        """Return the number of unread notifications for an employee."""
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()


# ── Email templates ─────────────────────────────────────────────────


def render_template_text(text: str, variables: dict[str, Any], *, escape: bool) -> tuple[str, set[str]]:
    """Substitute ``{{name}}`` placeholders; unknown names are left as written."""
    missing: set[str] = set()

    def _sub(match: re.Match) -> str:
        key = match.group(1)
        if key not in variables or variables[key] is None:
            missing.add(key)
            return match.group(0)
        value = str(variables[key])
        return html.escape(value) if escape else value

    return _PLACEHOLDER.sub(_sub, text), missing


class EmailTemplateService:
    """Stored email templates. Delivery happens outside this service."""

    @staticmethod
    async def list_templates(db: AsyncSession) -> list[EmailTemplate]:
        result = await db.execute(select(EmailTemplate).order_by(EmailTemplate.slug))
        return list(result.scalars().all())

    @staticmethod
    async def get_template(db: AsyncSession, slug: str) -> EmailTemplate:
        result = await db.execute(select(EmailTemplate).where(EmailTemplate.slug == slug))
        template = result.scalars().first()
        if template is None:
            raise NotFoundException("EmailTemplate", slug)
        return template

    @staticmethod
    async def update_template(
        db: AsyncSession,
        slug: str,
        data: EmailTemplateUpdate,
        *,
        updated_by: Optional[uuid.UUID] = None,
    ) -> EmailTemplate:
        template = await EmailTemplateService.get_template(db, slug)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(template, field, value)
        template.updated_by = updated_by
        template.updated_at = datetime.now(timezone.utc)
        await db.flush()
        logger.info("Email template %s updated by %s", slug, updated_by)
        return template

    @staticmethod
    def render(template: EmailTemplate, variables: dict[str, Any]) -> RenderedEmail:
        subject, missing_subject = render_template_text(
            template.subject, variables, escape=False,
        )
        body, missing_body = render_template_text(
            template.body_html, variables, escape=True,
        )
        return RenderedEmail(
            slug=template.slug,
            subject=subject,
            body_html=body,
            missing_variables=sorted(missing_subject | missing_body),
        )

    @staticmethod
    async def render_by_slug(
        db: AsyncSession, slug: str, variables: dict[str, Any],
    ) -> Optional[RenderedEmail]:
        """Render a stored template; ``None`` when the slug is not configured."""
        result = await db.execute(select(EmailTemplate).where(EmailTemplate.slug == slug))
        template = result.scalars().first()
        if template is None:
            logger.warning("Email template %s is not configured; no email prepared", slug)
            return None
        return EmailTemplateService.render(template, variables)


# ── Cross-module helper dispatchers ─────────────────────────────────
# Imported by the leave service. They accept the ORM objects directly to
# avoid tight schema coupling.


def _leave_email_variables(leave_request, requester_name: str) -> dict[str, Any]:
    return {
        "requester_name": requester_name,
        "leave_type": LEAVE_CATEGORY_LABELS.get(
            leave_request.leave_type, leave_request.leave_type.value,
        ),
        "from_date": leave_request.from_date.strftime(DATE_FORMAT),
        "to_date": leave_request.to_date.strftime(DATE_FORMAT),
        "duration": f"{leave_request.duration.normalize():f}",
        "deduction": leave_request.exemption_note or "",
        "reason": leave_request.reason or "",
        "action_url": f"{settings.site_base_url}/leave/requests/{leave_request.id}",
    }


async def _prepare_email(
    db: AsyncSession, slug: str, to_email: Optional[str], variables: dict[str, Any],
) -> Optional[RenderedEmail]:
    """Render the *slug* template for *to_email* and log it.

    Outbound delivery is not part of this service. The rendered email is
    returned for callers that hand it to a mail relay; the leave dispatchers
    only record it in the log.
    """
    if not to_email:
        return None
    email = await EmailTemplateService.render_by_slug(db, slug, variables)
    if email is not None:
        logger.info("Prepared %s email for %s: %s", slug, to_email, email.subject)
    return email


async def notify_leave_request(
    db: AsyncSession,
    leave_request,  # leavedesk.leave.models.LeaveRequest
    approver,  # leavedesk.core_hr.models.Employee
    requester_name: str,
) -> Notification:
    """Notify the approver that a new leave request needs review.

    Creates the in-app notification and prepares the ``new_request`` email
    (rendered and logged, not sent).
    """
    await _prepare_email(
        db,
        TEMPLATE_NEW_REQUEST,
        approver.email,
        _leave_email_variables(leave_request, requester_name),
    )
    return await NotificationService.create_notification(
        db,
        recipient_id=approver.id,
        type=NotificationType.action_required,
        actor_name=requester_name,
        title="New Leave Request",
        message=(
            f"{requester_name} requested leave from {leave_request.from_date} to "
            f"{leave_request.to_date} ({leave_request.exemption_note})."
        ),
        action_url=f"/leave/requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_leave_decision(
    db: AsyncSession,
    leave_request,  # leavedesk.leave.models.LeaveRequest
    reviewer_name: str,
) -> Notification:
    """Notify the requester that their request was approved, rejected or cancelled.

    The ``request_decision`` email is rendered and logged, not sent.
    """
    status = leave_request.status
    requester = leave_request.employee
    variables = _leave_email_variables(leave_request, requester.name)
    variables.update({
        "approver_name": reviewer_name,
        "status": status.value,
        "remarks": leave_request.reviewer_remarks or "",
    })
    await _prepare_email(db, TEMPLATE_REQUEST_DECISION, requester.email, variables)

    if status == LeaveStatus.approved:
        ntype, title = NotificationType.approval, "Leave Request Approved"
    elif status == LeaveStatus.rejected:
        ntype, title = NotificationType.alert, "Leave Request Rejected"
    else:
        ntype, title = NotificationType.alert, "Approved Leave Cancelled"

    message = (
        f"Your leave request from {leave_request.from_date} to "
        f"{leave_request.to_date} was {status.value} by {reviewer_name}."
    )
    if leave_request.reviewer_remarks:
        message += f" Remarks: {leave_request.reviewer_remarks}"

    return await NotificationService.create_notification(
        db,
        recipient_id=leave_request.employee_id,
        type=ntype,
        actor_name=reviewer_name,
        title=title,
        message=message,
        action_url=f"/leave/requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_leave_withdrawn(
    db: AsyncSession,
    leave_request,  # leavedesk.leave.models.LeaveRequest
    manager_id: uuid.UUID,
    requester_name: str,
) -> Notification:
    """Tell the manager a pending request was withdrawn by the requester (in-app only)."""
    return await NotificationService.create_notification(
        db,
        recipient_id=manager_id,
        type=NotificationType.info,
        actor_name=requester_name,
        title="Leave Request Withdrawn",
        message=(
            f"{requester_name} withdrew the leave request from "
            f"{leave_request.from_date} to {leave_request.to_date}."
        ),
        action_url=f"/leave/requests/{leave_request.id}",
        entity_type="leave_request",
        entity_id=leave_request.id,
    )
