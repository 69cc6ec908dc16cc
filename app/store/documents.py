"""Beanie documents backing the mongo store; the core only sees app.models types."""

from datetime import datetime
from typing import Any

from beanie import Document, Indexed
from pydantic import Field

from app.models.audit_log import AuditEntry
from app.models.payment_record import PaymentRecord
from app.models.user_account import UserAccount


class UserAccountDocument(Document):
    id: str  # stable account identifier
    email: Indexed(str) = ""
    name: str = ""
    credit_balance: int = 0
    plan_kind: str = "none"
    unlimited_expires_at: datetime | None = None
    successful_purchase_count: int = 0
    last_purchase_amount: int | None = None
    last_purchase_granted_credits: int | None = None
    last_purchase_at: datetime | None = None
    version: int = 0

    class Settings:
        name = "users"

    @classmethod
    def from_domain(cls, account: UserAccount) -> "UserAccountDocument":
        return cls(**account.model_dump())

    def to_domain(self) -> UserAccount:
        return UserAccount.model_validate(self.model_dump())


class PaymentRecordDocument(Document):
    id: str  # payment reference; the unique _id makes creation create-if-absent
    status: str = "processing"
    payer_identifier: str
    amount: int
    processor_name: str
    created_at: datetime
    completed_at: datetime | None = None

    class Settings:
        name = "payments"
        indexes = [[("status", 1), ("created_at", 1)]]

    @classmethod
    def from_domain(cls, record: PaymentRecord) -> "PaymentRecordDocument":
        data = record.model_dump()
        data["id"] = data.pop("reference")
        return cls(**data)

    def to_domain(self) -> PaymentRecord:
        data = self.model_dump()
        data["reference"] = data.pop("id")
        return PaymentRecord.model_validate(data)


class AuditLogDocument(Document):
    user_id: str | None = None
    event_type: str
    entity_type: str
    entity_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    class Settings:
        name = "audit_logs"
        indexes = [
            [("user_id", 1), ("created_at", -1)],
            [("entity_type", 1), ("entity_id", 1)],
        ]

    @classmethod
    def from_domain(cls, entry: AuditEntry) -> "AuditLogDocument":
        return cls(**entry.model_dump())


DOCUMENT_MODELS = [
    UserAccountDocument,
    PaymentRecordDocument,
    AuditLogDocument,
]
