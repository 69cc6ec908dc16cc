"""Courtesy bonus credits added on top of a credit pack."""

from app.core.config import Settings


class FlatCourtesyPolicy:
    def __init__(self, bonus: int = 3) -> None:
        if bonus < 0:
            raise ValueError("Courtesy bonus must be >= 0")
        self.bonus = bonus

    def __call__(self, prior_successful_purchases: int) -> int:
        _check_count(prior_successful_purchases)
        return self.bonus


class ProgressiveCourtesyPolicy:
    """Grows by one credit per prior purchase: min(base + prior, cap)."""

    def __init__(self, base: int = 2, cap: int = 5) -> None:
        if base < 0 or cap < base:
            raise ValueError("Progressive courtesy needs 0 <= base <= cap")
        self.base = base
        self.cap = cap

    def __call__(self, prior_successful_purchases: int) -> int:
        _check_count(prior_successful_purchases)
        return min(self.base + prior_successful_purchases, self.cap)


CourtesyPolicy = FlatCourtesyPolicy | ProgressiveCourtesyPolicy


def _check_count(n: int) -> None:
    if n < 0:
        raise ValueError("Prior purchase count cannot be negative")


def build_courtesy_policy(settings: Settings) -> CourtesyPolicy:
    if settings.courtesy_policy == "progressive":
        return ProgressiveCourtesyPolicy(settings.courtesy_base, settings.courtesy_cap)
    if settings.courtesy_policy == "flat":
        return FlatCourtesyPolicy(settings.courtesy_flat_bonus)
    raise ValueError(f"Unknown courtesy policy: {settings.courtesy_policy}")
