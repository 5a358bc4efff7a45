"""Notification endpoints — list, mark read, email templates."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import get_current_user, require_permission
from leavedesk.common.pagination import PaginationParams
from leavedesk.core_hr.models import Employee
from leavedesk.database import get_db
from leavedesk.notifications.schemas import (
    EmailTemplateOut,
    EmailTemplateRenderRequest,
    EmailTemplateUpdate,
    NotificationListResponse,
    NotificationResponse,
    RenderedEmail,
)
from leavedesk.notifications.service import EmailTemplateService, NotificationService

router = APIRouter(prefix="", tags=["notifications"])

_email_admin_dep = require_permission("email:configure")


# ── GET / — list current user's notifications ───────────────────────

@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    is_read: Optional[bool] = Query(default=None, description="Filter by read status"),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List notifications for the authenticated user (paginated)."""
    return await NotificationService.get_notifications(
        db,
        employee_id=employee.id,
        pagination=pagination,
        is_read=is_read,
    )


# ── Email templates ─────────────────────────────────────────────────
# NOTE: These routes MUST be registered before /{notification_id}/read.

@router.get("/email-templates", response_model=list[EmailTemplateOut])
async def list_email_templates(
    _user: Employee = Depends(_email_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    return await EmailTemplateService.list_templates(db)


@router.put("/email-templates/{slug}", response_model=EmailTemplateOut)
async def update_email_template(
    slug: str,
    body: EmailTemplateUpdate,
    user: Employee = Depends(_email_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    """Edit subject, body or declared variables of a template."""
    return await EmailTemplateService.update_template(db, slug, body, updated_by=user.id)


@router.post("/email-templates/{slug}/render", response_model=RenderedEmail)
async def render_email_template(
    slug: str,
    body: EmailTemplateRenderRequest,
    _user: Employee = Depends(_email_admin_dep),
    db: AsyncSession = Depends(get_db),
):
    """Preview a template with sample values."""
    template = await EmailTemplateService.get_template(db, slug)
    return EmailTemplateService.render(template, body.variables)


# ── PUT /{notification_id}/read — mark single as read ───────────────

@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark a single notification as read."""
    notification = await NotificationService.mark_read(db, notification_id, employee.id)
    return {
        "message": "Notification marked as read",
        "data": NotificationResponse.model_validate(notification),
    }
