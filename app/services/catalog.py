"""Benefit catalog: paid amount -> credit pack or unlimited-plan days."""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from app.core.config import Settings


@dataclass(frozen=True)
class CreditTier:
    amount: int
    base_credits: int
    kind: str = "credits"


@dataclass(frozen=True)
class UnlimitedTier:
    amount: int
    days: int
    kind: str = "unlimited"


Tier = CreditTier | UnlimitedTier


def normalize_amount(value: Any) -> int | None:
    """Integral positive amount from webhook payload values (10, 10.0, "10"); None otherwise."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        return int(value) if value.is_integer() and value > 0 else None
    if isinstance(value, str):
        s = value.strip()
        try:
            return normalize_amount(int(s))
        except ValueError:
            pass
        try:
            return normalize_amount(float(s))
        except ValueError:
            return None
    return None


class BenefitCatalog:
    """Immutable tier tables. An amount maps to at most one tier across both tables."""

    def __init__(self, credit_tiers: Mapping[int, int], unlimited_tiers: Mapping[int, int]) -> None:
        overlap = set(credit_tiers) & set(unlimited_tiers)
        if overlap:
            raise ValueError(f"Amounts configured as both credit and unlimited tiers: {sorted(overlap)}")
        for table in (credit_tiers, unlimited_tiers):
            for amount, value in table.items():
                if amount <= 0 or value <= 0:
                    raise ValueError(f"Tier {amount} -> {value} must use positive integers")
        self._credits = MappingProxyType({a: CreditTier(a, c) for a, c in credit_tiers.items()})
        self._unlimited = MappingProxyType({a: UnlimitedTier(a, d) for a, d in unlimited_tiers.items()})

    @classmethod
    def from_settings(cls, settings: Settings) -> "BenefitCatalog":
        return cls(settings.credit_tiers, settings.unlimited_tiers)

    def resolve_tier(self, amount: Any) -> Tier | None:
        if isinstance(amount, bool) or not isinstance(amount, int):
            return None
        return self._credits.get(amount) or self._unlimited.get(amount)

    def packages(self) -> list[dict]:
        out: list[dict] = [
            {"amount": t.amount, "kind": t.kind, "base_credits": t.base_credits} for t in self._credits.values()
        ]
        out += [{"amount": t.amount, "kind": t.kind, "days": t.days} for t in self._unlimited.values()]
        return sorted(out, key=lambda p: p["amount"])
