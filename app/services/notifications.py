"""Confirmation messages shown to the buyer after a grant."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from app.models.grant import (
    BENEFIT_CREDITS,
    BENEFIT_DUPLICATE,
    BENEFIT_UNLIMITED,
    GrantResult,
    Notification,
)


def greeting(local: datetime) -> str:
    if 5 <= local.hour < 12:
        return "Buenos días"
    if 12 <= local.hour < 19:
        return "Buenas tardes"
    return "Buenas noches"


class NotificationComposer:
    def __init__(self, timezone_name: str = "America/Lima", currency_symbol: str = "S/") -> None:
        self.tz = ZoneInfo(timezone_name)
        self.currency = currency_symbol

    def compose(self, result: GrantResult, now: datetime | None = None) -> Notification:
        now = now or result.granted_at or datetime.now(timezone.utc)
        hello = greeting(now.astimezone(self.tz))
        paid = f"{self.currency}{result.amount}"

        if result.benefit_kind == BENEFIT_CREDITS:
            bonus = ""
            if result.courtesy_bonus:
                bonus = f" (incluye {result.courtesy_bonus} créditos de cortesía)"
            return Notification(
                title="Créditos activados",
                body=(
                    f"{hello}. Recibimos tu pago de {paid} y sumamos {result.credits_granted} créditos"
                    f"{bonus}. Tu saldo actual es de {result.new_balance} créditos."
                ),
            )
        if result.benefit_kind == BENEFIT_UNLIMITED:
            until = result.new_expiry.astimezone(self.tz).strftime("%d/%m/%Y %H:%M")
            return Notification(
                title="Plan ilimitado activado",
                body=(
                    f"{hello}. Recibimos tu pago de {paid}. Tu plan ilimitado suma {result.days_granted} días"
                    f" y está vigente hasta el {until}."
                ),
            )
        if result.benefit_kind == BENEFIT_DUPLICATE:
            return Notification(
                title="Pago ya procesado",
                body=f"{hello}. El pago {result.payment_reference} ya fue procesado anteriormente.",
            )
        raise ValueError(f"Unknown benefit kind: {result.benefit_kind}")
