"""Core HR module — Employee model, schemas and services."""

from leavedesk.core_hr.models import Employee

__all__ = ["Employee"]
