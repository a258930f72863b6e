from src.db.models.audit_record import AuditRecord
from src.db.models.user import User

__all__ = [
    "AuditRecord",
    "User",
]
