from functools import lru_cache
from typing import Any, Dict, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["*"]

DEFAULT_CREDIT_TIERS = {10: 60, 20: 125, 50: 330, 100: 700, 200: 1500}
DEFAULT_UNLIMITED_TIERS = {60: 7, 120: 15, 220: 30}


def _parse_cors_origins(v: Any) -> List[str]:
    try:
        if v is None or v == "":
            return _DEFAULT_CORS.copy()
        if isinstance(v, list):
            return [x for x in v if isinstance(x, str) and x.strip()]
        s = str(v).strip()
        if not s:
            return _DEFAULT_CORS.copy()
        if s.startswith("["):
            import json
            out = json.loads(s)
            return [x for x in out if isinstance(x, str) and x.strip()] or _DEFAULT_CORS.copy()
        return [x.strip() for x in s.split(",") if x.strip()] or _DEFAULT_CORS.copy()
    except Exception:
        return _DEFAULT_CORS.copy()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")
    admin_token: str = Field(default="", alias="ADMIN_TOKEN")

    # Document store: "memory" | "mongo"
    store_backend: str = Field(default="memory", alias="STORE_BACKEND")
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="paygrant", alias="MONGODB_DB_NAME")

    # Benefit catalog (JSON objects in env: {"10": 60, ...})
    credit_tiers: Dict[int, int] = Field(default_factory=lambda: dict(DEFAULT_CREDIT_TIERS), alias="CREDIT_TIERS")
    unlimited_tiers: Dict[int, int] = Field(
        default_factory=lambda: dict(DEFAULT_UNLIMITED_TIERS), alias="UNLIMITED_TIERS"
    )

    # Courtesy bonus: "flat" | "progressive"
    courtesy_policy: str = Field(default="flat", alias="COURTESY_POLICY")
    courtesy_flat_bonus: int = Field(default=3, alias="COURTESY_FLAT_BONUS")
    courtesy_base: int = Field(default=2, alias="COURTESY_BASE")
    courtesy_cap: int = Field(default=5, alias="COURTESY_CAP")

    # Optimistic-concurrency attempts for the account commit
    grant_max_attempts: int = Field(default=5, ge=1, alias="GRANT_MAX_ATTEMPTS")

    # Notifications
    notification_timezone: str = Field(default="America/Lima", alias="NOTIFICATION_TIMEZONE")
    currency_symbol: str = Field(default="S/", alias="CURRENCY_SYMBOL")

    # Payment processors (capability flags)
    mercadopago_enabled: bool = Field(default=True, alias="MERCADOPAGO_ENABLED")
    flow_enabled: bool = Field(default=True, alias="FLOW_ENABLED")

    # Audit mirror to a GitHub repository (optional)
    audit_github_repo: str = Field(default="", alias="AUDIT_GITHUB_REPO")
    audit_github_token: str = Field(default="", alias="AUDIT_GITHUB_TOKEN")
    audit_github_path: str = Field(default="logs/payments.jsonl", alias="AUDIT_GITHUB_PATH")
    audit_github_branch: str = Field(default="main", alias="AUDIT_GITHUB_BRANCH")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="*",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @field_validator("courtesy_policy", "store_backend")
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors_origins(getattr(self, "cors_origins_raw", None))

    @property
    def audit_github_enabled(self) -> bool:
        return bool(self.audit_github_repo and self.audit_github_token)

    def processor_enabled(self, processor_name: str) -> bool:
        """Capability flag per payment processor; unknown names are disabled."""
        flags = {
            "mercadopago": self.mercadopago_enabled,
            "flow": self.flow_enabled,
        }
        return flags.get(processor_name, False)


@lru_cache
def get_settings() -> Settings:
    return Settings()
