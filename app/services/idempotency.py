"""Payment markers: admit each payment reference at most once."""

import enum
from datetime import datetime, timedelta, timezone
from typing import Callable

from app.core.logging import get_logger
from app.models.payment_record import STATUS_PROCESSING, PaymentRecord
from app.store.base import DocumentStore

log = get_logger(__name__)


class Admission(enum.Enum):
    ADMITTED = "admitted"
    ALREADY_PROCESSED = "already_processed"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IdempotencyGuard:
    """
    begin_processing creates the marker in `processing` state (create-if-absent).
    The admitted caller must later call mark_succeeded (after its commit) or abort
    (on a failure before commit). Markers left in `processing` after a crash are not
    reclaimed automatically; find_stale lists them for manual reconciliation.
    """

    def __init__(self, store: DocumentStore, clock: Callable[[], datetime] = utcnow) -> None:
        self.store = store
        self.clock = clock

    async def begin_processing(
        self,
        reference: str,
        payer_identifier: str,
        amount: int,
        processor_name: str,
    ) -> Admission:
        record = PaymentRecord(
            reference=reference,
            payer_identifier=payer_identifier,
            amount=amount,
            processor_name=processor_name,
            created_at=self.clock(),
        )
        if await self.store.create_payment(record):
            log.info("payment_admitted", reference=reference, amount=amount)
            return Admission.ADMITTED
        log.info("payment_already_processed", reference=reference)
        return Admission.ALREADY_PROCESSED

    async def mark_succeeded(self, reference: str) -> None:
        await self.store.mark_payment_succeeded(reference, self.clock())

    async def abort(self, reference: str) -> None:
        await self.store.delete_payment(reference)
        log.info("payment_marker_deleted", reference=reference)

    async def find_stale(self, older_than: timedelta, limit: int = 100) -> list[PaymentRecord]:
        cutoff = self.clock() - older_than
        return await self.store.list_payments(STATUS_PROCESSING, created_before=cutoff, limit=limit)
