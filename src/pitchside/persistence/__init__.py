"""Persistence layer: task store and audit log."""

from pitchside.persistence.audit_log import (
    AUDIT_EVENT_LABELS,
    AuditEvent,
    AuditEventType,
    AuditLog,
)
from pitchside.persistence.task_store import TaskStore

__all__ = [
    "AUDIT_EVENT_LABELS",
    "AuditEvent",
    "AuditEventType",
    "AuditLog",
    "TaskStore",
]
