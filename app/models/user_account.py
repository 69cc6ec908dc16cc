from datetime import datetime

from pydantic import BaseModel


PLAN_NONE = "none"
PLAN_CREDITS = "credits"
PLAN_UNLIMITED = "unlimited"


class UserAccount(BaseModel):
    """Balance and plan state of one user; `version` guards concurrent grants."""
    id: str
    email: str = ""
    name: str = ""
    credit_balance: int = 0
    plan_kind: str = PLAN_NONE  # "none" | "credits" | "unlimited"
    unlimited_expires_at: datetime | None = None
    successful_purchase_count: int = 0
    last_purchase_amount: int | None = None
    last_purchase_granted_credits: int | None = None
    last_purchase_at: datetime | None = None
    version: int = 0
