"""
Benefit ledger: applies a paid amount to a user account exactly once per payment reference.

Two phases:
1. the payment marker is created (IdempotencyGuard); a second delivery of the same
   reference stops here with a `duplicate` result;
2. the account is re-read and committed with a compare-and-set on its version. A
   version conflict repeats phase 2 only. Failures before the commit delete the marker
   so the processor can deliver the notification again, except when a failed commit may
   have been applied: then the marker stays `processing` for reconciliation.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from app.core.audit import AuditLogger
from app.core.config import Settings
from app.core.exceptions import (
    AmbiguousOrMissingIdentifier,
    InvalidAmount,
    StoreError,
    StoreUnavailable,
    UserNotFound,
)
from app.core.logging import get_logger
from app.models.grant import BENEFIT_DUPLICATE, GrantResult
from app.models.user_account import PLAN_CREDITS, PLAN_UNLIMITED, UserAccount
from app.services.catalog import BenefitCatalog, CreditTier, Tier, UnlimitedTier
from app.services.courtesy import CourtesyPolicy, FlatCourtesyPolicy, build_courtesy_policy
from app.services.idempotency import Admission, IdempotencyGuard, utcnow
from app.services.notifications import NotificationComposer
from app.store.base import DocumentStore

log = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


class CommitOutcomeUnknown(StoreError):
    """The account commit failed and a re-read could not tell whether it was applied."""


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


class BenefitLedger:
    def __init__(
        self,
        store: DocumentStore,
        catalog: BenefitCatalog,
        courtesy: CourtesyPolicy | None = None,
        composer: NotificationComposer | None = None,
        audit: AuditLogger | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.store = store
        self.catalog = catalog
        self.courtesy = courtesy or FlatCourtesyPolicy()
        self.composer = composer or NotificationComposer()
        self.audit = audit or AuditLogger(store)
        self.max_attempts = max_attempts
        self.clock = clock
        self.guard = IdempotencyGuard(store, clock=clock)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: DocumentStore,
        audit: AuditLogger | None = None,
    ) -> "BenefitLedger":
        return cls(
            store,
            BenefitCatalog.from_settings(settings),
            courtesy=build_courtesy_policy(settings),
            composer=NotificationComposer(settings.notification_timezone, settings.currency_symbol),
            audit=audit,
            max_attempts=settings.grant_max_attempts,
        )

    async def grant_benefit(
        self,
        *,
        amount: Any,
        payment_reference: str,
        processor_name: str,
        identifier: str | None = None,
        email: str | None = None,
    ) -> GrantResult:
        """
        Grant the benefit for `amount` to the account given by identifier (preferred) or email.
        Idempotent per payment_reference: repeated calls return a `duplicate` result.
        Raises InvalidAmount, UserNotFound, AmbiguousOrMissingIdentifier or StoreUnavailable.
        """
        reference = (payment_reference or "").strip()
        identifier = (identifier or "").strip() or None
        email = (email or "").strip() or None
        if not reference:
            raise AmbiguousOrMissingIdentifier("Payment reference is required", {"field": "reference"})
        if not identifier and not email:
            raise AmbiguousOrMissingIdentifier("User identifier or email is required", {"field": "identifier"})

        tier = self.catalog.resolve_tier(amount)
        if tier is None:
            log.warning("grant_invalid_amount", amount=amount, reference=reference)
            raise InvalidAmount(amount)

        try:
            admission = await self.guard.begin_processing(reference, identifier or email, amount, processor_name)
        except StoreError as e:
            raise StoreUnavailable(str(e)) from e

        if admission is Admission.ALREADY_PROCESSED:
            result = GrantResult(
                benefit_kind=BENEFIT_DUPLICATE,
                amount=amount,
                payment_reference=reference,
                processor_name=processor_name,
                granted_at=self.clock(),
            )
            result.message = self.composer.compose(result)
            log.info("grant_duplicate", reference=reference)
            return result

        try:
            account_id = await self._resolve_account_id(identifier, email)
            result = await self._apply(account_id, tier, reference, processor_name)
        except CommitOutcomeUnknown as e:
            # The grant may be committed: keep the marker so redelivery stays a duplicate
            log.error("grant_commit_unknown", reference=reference, account_id=account_id, error=str(e))
            await self.audit.log_event(
                account_id, "grant_commit_unknown", "payment", reference, {"error": str(e)}
            )
            raise StoreUnavailable("Grant outcome unknown, payment kept for reconciliation") from e
        except StoreError as e:
            await self._abort(reference, "STORE_ERROR")
            raise StoreUnavailable(str(e)) from e
        except Exception as e:
            await self._abort(reference, getattr(e, "code", type(e).__name__))
            raise

        try:
            await self.guard.mark_succeeded(reference)
        except StoreError as e:
            # Grant is committed; the marker stays `processing` and still blocks redelivery
            log.error("grant_marker_not_finalized", reference=reference, error=str(e))

        result.message = self.composer.compose(result)
        log.info(
            "grant_applied",
            reference=reference,
            account_id=account_id,
            kind=result.benefit_kind,
            credits=result.credits_granted,
            days=result.days_granted,
        )
        await self.audit.log_event(
            account_id,
            "payment_granted",
            "payment",
            reference,
            {
                "processor": processor_name,
                "amount": amount,
                "kind": result.benefit_kind,
                "credits_granted": result.credits_granted,
                "courtesy_bonus": result.courtesy_bonus,
                "days_granted": result.days_granted,
                "new_balance": result.new_balance,
                "new_expiry": result.new_expiry.isoformat() if result.new_expiry else None,
            },
        )
        return result

    async def _resolve_account_id(self, identifier: str | None, email: str | None) -> str:
        if identifier:
            account = await self.store.get_account(identifier)
            if account is not None:
                return account.id
            if not email:
                raise UserNotFound(identifier)
        matches = await self.store.find_accounts_by_email(email, limit=2)
        if not matches:
            raise UserNotFound(email)
        if len(matches) > 1:
            raise AmbiguousOrMissingIdentifier("Email matches more than one account", {"email": email})
        return matches[0].id

    async def _apply(self, account_id: str, tier: Tier, reference: str, processor_name: str) -> GrantResult:
        for attempt in range(1, self.max_attempts + 1):
            account = await self.store.get_account(account_id)
            if account is None:
                raise UserNotFound(account_id)
            now = self.clock()
            updated, result = self.compute_grant(account, tier, now, reference, processor_name)
            try:
                committed = await self.store.commit_account(updated, expected_version=account.version)
            except StoreError as e:
                committed = await self._resolve_failed_commit(account_id, account.version, now, e)
            if committed:
                return result
            log.info("grant_conflict_retry", account_id=account_id, attempt=attempt)
        log.error("grant_conflict_exhausted", account_id=account_id, attempts=self.max_attempts)
        raise StoreUnavailable("Account is being updated concurrently, retries exhausted")

    async def _resolve_failed_commit(
        self,
        account_id: str,
        expected_version: int,
        now: datetime,
        error: StoreError,
    ) -> bool:
        """
        A commit that raised may still have been applied (lost acknowledgement).
        True if it was, False if another writer got there first; re-raises `error` when
        nothing was written and CommitOutcomeUnknown when the state cannot tell.
        """
        try:
            current = await self.store.get_account(account_id)
        except StoreError:
            raise CommitOutcomeUnknown(str(error)) from error
        if current is None or current.version == expected_version:
            raise error
        if current.version == expected_version + 1:
            stamp = current.last_purchase_at
            # Mongo keeps millisecond precision
            if stamp is not None and abs(_aware(stamp) - now) < timedelta(milliseconds=1):
                log.warning("grant_commit_confirmed_after_error", account_id=account_id, error=str(error))
                return True
            return False
        raise CommitOutcomeUnknown(str(error)) from error

    def compute_grant(
        self,
        account: UserAccount,
        tier: Tier,
        now: datetime,
        reference: str,
        processor_name: str,
    ) -> tuple[UserAccount, GrantResult]:
        """Pure: the account state after the grant and the matching result."""
        changes: dict[str, Any] = {
            "successful_purchase_count": account.successful_purchase_count + 1,
            "last_purchase_amount": tier.amount,
            "last_purchase_at": now,
        }
        result = GrantResult(
            benefit_kind=tier.kind,
            amount=tier.amount,
            payment_reference=reference,
            processor_name=processor_name,
            account_id=account.id,
            granted_at=now,
        )
        prior_expiry = _aware(account.unlimited_expires_at) if account.unlimited_expires_at else None

        if isinstance(tier, CreditTier):
            bonus = self.courtesy(account.successful_purchase_count)
            granted = tier.base_credits + bonus
            new_balance = account.credit_balance + granted
            unlimited_active = prior_expiry is not None and prior_expiry > now
            changes.update(
                credit_balance=new_balance,
                plan_kind=PLAN_UNLIMITED if unlimited_active else PLAN_CREDITS,
                last_purchase_granted_credits=granted,
            )
            result.credits_granted = granted
            result.courtesy_bonus = bonus
            result.new_balance = new_balance
            result.new_expiry = prior_expiry
        elif isinstance(tier, UnlimitedTier):
            start = max(now, prior_expiry) if prior_expiry else now
            new_expiry = start + timedelta(days=tier.days)
            changes.update(
                unlimited_expires_at=new_expiry,
                plan_kind=PLAN_UNLIMITED,
                last_purchase_granted_credits=0,
            )
            result.days_granted = tier.days
            result.new_balance = account.credit_balance
            result.new_expiry = new_expiry
        else:
            raise TypeError(f"Unsupported tier: {tier!r}")
        return account.model_copy(update=changes), result

    async def _abort(self, reference: str, reason: str) -> None:
        try:
            await self.guard.abort(reference)
        except StoreError as e:
            log.error("grant_marker_abort_failed", reference=reference, reason=reason, error=str(e))
            return
        # The benefit is only granted if the processor delivers this notification again
        log.warning("grant_marker_aborted", reference=reference, reason=reason)
        await self.audit.log_event(None, "grant_marker_aborted", "payment", reference, {"reason": reason})
