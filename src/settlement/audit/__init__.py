"""Audit trail for administrator actions: models, store and logger."""

from settlement.audit.logger import AuditLogger
from settlement.audit.models import AuditEntry, EventType
from settlement.audit.store import init_audit_table, insert_audit_entry, query_audit_trail

__all__ = [
    "AuditEntry",
    "AuditLogger",
    "EventType",
    "init_audit_table",
    "insert_audit_entry",
    "query_audit_trail",
]
