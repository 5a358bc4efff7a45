"""Notification Pydantic schemas for request / response validation."""


import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from leavedesk.common.constants import NotificationType
from leavedesk.common.pagination import PaginationMeta


# ── Responses ───────────────────────────────────────────────────────

class NotificationResponse(BaseModel):
    """Single notification in API responses."""

    id: uuid.UUID
    type: NotificationType
    actor_name: Optional[str] = None
    title: str
    message: str
    action_url: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[uuid.UUID] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class NotificationListMeta(PaginationMeta):
    """Extends standard pagination meta with unread count."""

    unread: int


class NotificationListResponse(BaseModel):
    """Paginated list of notifications with unread count in meta."""

    data: list[NotificationResponse]
    meta: NotificationListMeta


# ── Email templates ─────────────────────────────────────────────────

class EmailTemplateOut(BaseModel):
    id: uuid.UUID
    slug: str
    name: str
    description: Optional[str] = None
    subject: str
    body_html: str
    variables: list[str] = []
    updated_by: Optional[uuid.UUID] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class EmailTemplateUpdate(BaseModel):
    """Partial update; slug is immutable."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    subject: Optional[str] = Field(None, min_length=1, max_length=300)
    body_html: Optional[str] = Field(None, min_length=1)
    variables: Optional[list[str]] = None


class EmailTemplateRenderRequest(BaseModel):
    """Sample values substituted into ``{{name}}`` placeholders."""

    variables: dict[str, str] = {}


class RenderedEmail(BaseModel):
    slug: str
    subject: str
    body_html: str
    missing_variables: list[str] = []
