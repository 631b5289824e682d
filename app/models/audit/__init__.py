from app.models.audit.audit_log import AuditLog, AuditAction
from app.models.audit.audit_session import AuditSession, AuditAccessLog
from app.models.audit.api_key import ApiKey, API_KEY_PREFIX

__all__ = [
    "AuditLog", "AuditAction",
    "AuditSession", "AuditAccessLog",
    "ApiKey", "API_KEY_PREFIX",
]
