from typing import Any

from fastapi import APIRouter, Depends
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.core.config import Settings
from app.core.exceptions import BadRequestError, InvalidAmount, NotFoundError
from app.core.logging import bind_payment_context, get_logger
from app.deps import get_ledger, get_settings_dep
from app.services.catalog import normalize_amount
from app.services.ledger import BenefitLedger

router = APIRouter()
log = get_logger(__name__)

# Final statuses per processor; anything else is answered 200 so the processor stops retrying
CONFIRMED_STATUSES = {
    "mercadopago": {"approved", "pagado"},
    "flow": {"paid", "pagado"},
}


class PaymentNotification(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    identifier: str | None = Field(default=None, validation_alias=AliasChoices("identifier", "uid", "userId"))
    email: str | None = None
    amount: Any = Field(default=None, validation_alias=AliasChoices("amount", "monto"))
    status: str | None = Field(default=None, validation_alias=AliasChoices("status", "estado"))
    reference: str | None = Field(
        default=None, validation_alias=AliasChoices("reference", "payment_id", "paymentId")
    )


async def _handle_notification(
    processor: str,
    body: PaymentNotification,
    ledger: BenefitLedger,
    settings: Settings,
) -> dict:
    if not settings.processor_enabled(processor):
        raise NotFoundError(f"Processor {processor} is not enabled", code="PROCESSOR_DISABLED")
    if not (body.identifier or body.email) or body.amount in (None, ""):
        raise BadRequestError("Faltan datos (email/monto).")
    reference = (body.reference or "").strip()
    if not reference:
        raise BadRequestError("Falta la referencia del pago.")

    status = (body.status or "").strip().lower()
    if status not in CONFIRMED_STATUSES[processor]:
        log.info("payment_not_confirmed", processor=processor, status=status, reference=reference)
        return {"ok": False, "message": "Pago no confirmado."}

    bind_payment_context(reference, processor)
    amount = normalize_amount(body.amount)
    if amount is None:
        raise InvalidAmount(body.amount)
    result = await ledger.grant_benefit(
        identifier=body.identifier,
        email=body.email,
        amount=amount,
        payment_reference=reference,
        processor_name=processor,
    )
    return {"ok": True, "result": result.model_dump(mode="json")}


@router.post("/webhook/mercadopago")
async def mercadopago_webhook(
    body: PaymentNotification,
    ledger: BenefitLedger = Depends(get_ledger),
    settings: Settings = Depends(get_settings_dep),
):
    """Mercado Pago notification: approved payment -> grant credits or unlimited days (idempotent)."""
    return await _handle_notification("mercadopago", body, ledger, settings)


@router.post("/webhook/flow")
async def flow_webhook(
    body: PaymentNotification,
    ledger: BenefitLedger = Depends(get_ledger),
    settings: Settings = Depends(get_settings_dep),
):
    """Flow notification: paid -> grant credits or unlimited days (idempotent)."""
    return await _handle_notification("flow", body, ledger, settings)


@router.get("/v1/packages")
async def list_packages(ledger: BenefitLedger = Depends(get_ledger)):
    """Configured packages: amount -> credits or unlimited days."""
    return {"packages": ledger.catalog.packages()}
