"""Document store used by the grant core: accounts, payment markers, audit entries."""

from abc import ABC, abstractmethod
from datetime import datetime

from app.core.config import Settings, get_settings
from app.models.audit_log import AuditEntry
from app.models.payment_record import PaymentRecord
from app.models.user_account import UserAccount


class DocumentStore(ABC):
    name: str = "base"

    @abstractmethod
    async def get_account(self, account_id: str) -> UserAccount | None:
        """Return the current committed state of an account."""
        ...

    @abstractmethod
    async def find_accounts_by_email(self, email: str, limit: int = 2) -> list[UserAccount]:
        """Return up to `limit` accounts whose email matches exactly."""
        ...

    @abstractmethod
    async def insert_account(self, account: UserAccount) -> None:
        ...

    @abstractmethod
    async def commit_account(self, account: UserAccount, expected_version: int) -> bool:
        """
        Replace the account only if its stored version still equals expected_version.
        The stored version becomes expected_version + 1. False on a version conflict.
        """
        ...

    @abstractmethod
    async def create_payment(self, record: PaymentRecord) -> bool:
        """Create-if-absent keyed by reference. False if the reference already exists."""
        ...

    @abstractmethod
    async def get_payment(self, reference: str) -> PaymentRecord | None:
        ...

    @abstractmethod
    async def delete_payment(self, reference: str) -> None:
        ...

    @abstractmethod
    async def mark_payment_succeeded(self, reference: str, completed_at: datetime) -> None:
        ...

    @abstractmethod
    async def list_payments(
        self,
        status: str,
        created_before: datetime | None = None,
        limit: int = 100,
    ) -> list[PaymentRecord]:
        """Payment records with the given status, oldest first."""
        ...

    @abstractmethod
    async def append_audit(self, entry: AuditEntry) -> None:
        ...

    async def open(self) -> None:
        pass

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        pass


def get_store(settings: Settings | None = None) -> DocumentStore:
    settings = settings or get_settings()
    if settings.store_backend == "mongo":
        from app.store.mongo import MongoDocumentStore
        return MongoDocumentStore(settings)
    from app.store.memory import MemoryDocumentStore
    return MemoryDocumentStore()
