from src.security.audit_trail import AuditTrailService
from src.security.auth import AuthService

__all__ = ["AuditTrailService", "AuthService"]
