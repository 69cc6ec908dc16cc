"""Process-local store. Used by tests and single-process development runs."""

import asyncio
from datetime import datetime

from app.models.audit_log import AuditEntry
from app.models.payment_record import STATUS_SUCCEEDED, PaymentRecord
from app.models.user_account import UserAccount
from app.store.base import DocumentStore


class MemoryDocumentStore(DocumentStore):
    name = "memory"

    def __init__(self) -> None:
        self.accounts: dict[str, UserAccount] = {}
        self.payments: dict[str, PaymentRecord] = {}
        self.audit_entries: list[AuditEntry] = []
        self._lock = asyncio.Lock()

    async def get_account(self, account_id: str) -> UserAccount | None:
        account = self.accounts.get(account_id)
        return account.model_copy() if account else None

    async def find_accounts_by_email(self, email: str, limit: int = 2) -> list[UserAccount]:
        found = [a.model_copy() for a in self.accounts.values() if a.email == email]
        return found[:limit]

    async def insert_account(self, account: UserAccount) -> None:
        async with self._lock:
            if account.id in self.accounts:
                raise ValueError(f"Account {account.id} already exists")
            self.accounts[account.id] = account.model_copy()

    async def commit_account(self, account: UserAccount, expected_version: int) -> bool:
        async with self._lock:
            current = self.accounts.get(account.id)
            if current is None or current.version != expected_version:
                return False
            self.accounts[account.id] = account.model_copy(update={"version": expected_version + 1})
            return True

    async def create_payment(self, record: PaymentRecord) -> bool:
        async with self._lock:
            if record.reference in self.payments:
                return False
            self.payments[record.reference] = record.model_copy()
            return True

    async def get_payment(self, reference: str) -> PaymentRecord | None:
        record = self.payments.get(reference)
        return record.model_copy() if record else None

    async def delete_payment(self, reference: str) -> None:
        async with self._lock:
            self.payments.pop(reference, None)

    async def mark_payment_succeeded(self, reference: str, completed_at: datetime) -> None:
        async with self._lock:
            record = self.payments.get(reference)
            if record is not None:
                self.payments[reference] = record.model_copy(
                    update={"status": STATUS_SUCCEEDED, "completed_at": completed_at}
                )

    async def list_payments(
        self,
        status: str,
        created_before: datetime | None = None,
        limit: int = 100,
    ) -> list[PaymentRecord]:
        out = [
            p.model_copy()
            for p in self.payments.values()
            if p.status == status and (created_before is None or p.created_at < created_before)
        ]
        out.sort(key=lambda p: p.created_at)
        return out[:limit]

    async def append_audit(self, entry: AuditEntry) -> None:
        self.audit_entries.append(entry)
