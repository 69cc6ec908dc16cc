"""MongoDB store on Beanie documents. Account commits are compare-and-set on `version`."""

from datetime import datetime

from pymongo import AsyncMongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.config import Settings
from app.core.exceptions import StoreError
from app.db.init import init_db
from app.models.audit_log import AuditEntry
from app.models.payment_record import STATUS_SUCCEEDED, PaymentRecord
from app.models.user_account import UserAccount
from app.store.base import DocumentStore
from app.store.documents import AuditLogDocument, PaymentRecordDocument, UserAccountDocument


class MongoDocumentStore(DocumentStore):
    name = "mongo"

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._client: AsyncMongoClient | None = None

    async def open(self) -> None:
        try:
            self._client = await init_db(self.settings)
        except PyMongoError as e:
            raise StoreError(f"MongoDB init failed: {e}") from e

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def ping(self) -> bool:
        if self._client is None:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError:
            return False

    async def get_account(self, account_id: str) -> UserAccount | None:
        try:
            doc = await UserAccountDocument.get(account_id)
        except PyMongoError as e:
            raise StoreError(str(e)) from e
        return doc.to_domain() if doc else None

    async def find_accounts_by_email(self, email: str, limit: int = 2) -> list[UserAccount]:
        try:
            docs = await UserAccountDocument.find(UserAccountDocument.email == email).limit(limit).to_list()
        except PyMongoError as e:
            raise StoreError(str(e)) from e
        return [d.to_domain() for d in docs]

    async def insert_account(self, account: UserAccount) -> None:
        try:
            await UserAccountDocument.from_domain(account).insert()
        except DuplicateKeyError as e:
            raise ValueError(f"Account {account.id} already exists") from e
        except PyMongoError as e:
            raise StoreError(str(e)) from e

    async def commit_account(self, account: UserAccount, expected_version: int) -> bool:
        fields = account.model_dump(exclude={"id"})
        fields["version"] = expected_version + 1
        try:
            result = await UserAccountDocument.find_one(
                UserAccountDocument.id == account.id,
                UserAccountDocument.version == expected_version,
            ).update({"$set": fields})
        except PyMongoError as e:
            raise StoreError(str(e)) from e
        return result.matched_count == 1

    async def create_payment(self, record: PaymentRecord) -> bool:
        try:
            await PaymentRecordDocument.from_domain(record).insert()
        except DuplicateKeyError:
            return False
        except PyMongoError as e:
            raise StoreError(str(e)) from e
        return True

    async def get_payment(self, reference: str) -> PaymentRecord | None:
        try:
            doc = await PaymentRecordDocument.get(reference)
        except PyMongoError as e:
            raise StoreError(str(e)) from e
        return doc.to_domain() if doc else None

    async def delete_payment(self, reference: str) -> None:
        try:
            await PaymentRecordDocument.find_one(PaymentRecordDocument.id == reference).delete()
        except PyMongoError as e:
            raise StoreError(str(e)) from e

    async def mark_payment_succeeded(self, reference: str, completed_at: datetime) -> None:
        try:
            await PaymentRecordDocument.find_one(PaymentRecordDocument.id == reference).update(
                {"$set": {"status": STATUS_SUCCEEDED, "completed_at": completed_at}}
            )
        except PyMongoError as e:
            raise StoreError(str(e)) from e

    async def list_payments(
        self,
        status: str,
        created_before: datetime | None = None,
        limit: int = 100,
    ) -> list[PaymentRecord]:
        filters = [PaymentRecordDocument.status == status]
        if created_before is not None:
            filters.append(PaymentRecordDocument.created_at < created_before)
        try:
            docs = (
                await PaymentRecordDocument.find(*filters)
                .sort(+PaymentRecordDocument.created_at)
                .limit(limit)
                .to_list()
            )
        except PyMongoError as e:
            raise StoreError(str(e)) from e
        return [d.to_domain() for d in docs]

    async def append_audit(self, entry: AuditEntry) -> None:
        try:
            await AuditLogDocument.from_domain(entry).insert()
        except PyMongoError as e:
            raise StoreError(str(e)) from e
