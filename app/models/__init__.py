from app.models.audit_log import AuditEntry
from app.models.grant import GrantResult, Notification
from app.models.payment_record import PaymentRecord
from app.models.user_account import UserAccount

__all__ = [
    "UserAccount",
    "PaymentRecord",
    "AuditEntry",
    "GrantResult",
    "Notification",
]
