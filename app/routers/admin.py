from datetime import timedelta

from fastapi import APIRouter, Depends, Query

from app.core.exceptions import NotFoundError
from app.deps import get_ledger, get_store, require_admin
from app.services.ledger import BenefitLedger
from app.store.base import DocumentStore

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/payments/stale")
async def stale_payments(
    minutes: int = Query(30, ge=1, le=7 * 24 * 60),
    limit: int = Query(100, ge=1, le=500),
    ledger: BenefitLedger = Depends(get_ledger),
):
    """Payments stuck in `processing` (crash between admission and commit); reconcile by hand."""
    records = await ledger.guard.find_stale(timedelta(minutes=minutes), limit=limit)
    return {"payments": [r.model_dump(mode="json") for r in records], "minutes": minutes}


@router.get("/payments/{reference}")
async def get_payment(reference: str, store: DocumentStore = Depends(get_store)):
    record = await store.get_payment(reference)
    if not record:
        raise NotFoundError("Payment not found")
    return record.model_dump(mode="json")


@router.get("/accounts/{account_id}")
async def get_account(account_id: str, store: DocumentStore = Depends(get_store)):
    account = await store.get_account(account_id)
    if not account:
        raise NotFoundError("Account not found")
    return account.model_dump(mode="json")
