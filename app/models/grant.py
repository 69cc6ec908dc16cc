from datetime import datetime

from pydantic import BaseModel


BENEFIT_CREDITS = "credits"
BENEFIT_UNLIMITED = "unlimited"
BENEFIT_DUPLICATE = "duplicate"


class Notification(BaseModel):
    title: str
    body: str


class GrantResult(BaseModel):
    """Outcome of one grant_benefit call (duplicates included)."""
    benefit_kind: str  # "credits" | "unlimited" | "duplicate"
    amount: int
    payment_reference: str
    processor_name: str
    account_id: str | None = None
    credits_granted: int = 0
    courtesy_bonus: int = 0
    days_granted: int = 0
    new_balance: int | None = None
    new_expiry: datetime | None = None
    granted_at: datetime | None = None
    message: Notification | None = None
