"""Audit log storage, staging, and commit."""

from state_audit.audit.columns import (
    LOGICAL_FIELDS,
    ColumnMapper,
    ColumnMapping,
    MessagesStorage,
)
from state_audit.audit.db import SqliteStore
from state_audit.audit.models import AuditLogEntry, AuditSchema
from state_audit.audit.repository import AuditRepository
from state_audit.audit.staging import AuditStaging
from state_audit.audit.trail import AuditTrail

__all__ = [
    "LOGICAL_FIELDS",
    "AuditLogEntry",
    "AuditRepository",
    "AuditSchema",
    "AuditStaging",
    "AuditTrail",
    "ColumnMapper",
    "ColumnMapping",
    "MessagesStorage",
    "SqliteStore",
]
