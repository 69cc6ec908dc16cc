from datetime import datetime

from pydantic import BaseModel


STATUS_PROCESSING = "processing"
STATUS_SUCCEEDED = "succeeded"


class PaymentRecord(BaseModel):
    """Idempotency marker: one per payment reference, created before the grant."""
    reference: str
    status: str = STATUS_PROCESSING  # "processing" | "succeeded"
    payer_identifier: str
    amount: int
    processor_name: str
    created_at: datetime
    completed_at: datetime | None = None
