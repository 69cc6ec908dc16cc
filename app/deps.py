"""Shared FastAPI dependencies."""

from fastapi import Header, Request

from app.core.config import Settings
from app.core.exceptions import UnauthorizedError
from app.core.security import verify_admin_token
from app.services.ledger import BenefitLedger
from app.store.base import DocumentStore


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_ledger(request: Request) -> BenefitLedger:
    """Dependency: the ledger built once at startup."""
    return request.app.state.ledger


async def require_admin(request: Request, x_admin_token: str | None = Header(None, alias="X-Admin-Token")) -> None:
    settings: Settings = request.app.state.settings
    if not verify_admin_token(x_admin_token, settings.admin_token):
        raise UnauthorizedError("Invalid admin token")
