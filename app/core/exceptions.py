from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse


class AppError(Exception):
    """Base application error with consistent schema."""

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED", status_code=status.HTTP_401_UNAUTHORIZED)


class NotFoundError(AppError):
    def __init__(self, message: str = "Not found", code: str = "NOT_FOUND"):
        super().__init__(message, code=code, status_code=status.HTTP_404_NOT_FOUND)


class BadRequestError(AppError):
    def __init__(self, message: str = "Bad request", details: dict[str, Any] | None = None):
        super().__init__(message, code="BAD_REQUEST", status_code=status.HTTP_400_BAD_REQUEST, details=details)


class StoreError(Exception):
    """Document store failure (driver error, connectivity). Raised by store backends."""


# Grant errors: payment confirmed by the processor but no benefit was applied.


class GrantError(AppError):
    pass


class InvalidAmount(GrantError):
    def __init__(self, amount: Any):
        super().__init__(
            f"Amount {amount!r} does not match any configured package",
            code="INVALID_AMOUNT",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"amount": amount},
        )


class UserNotFound(GrantError):
    def __init__(self, lookup: str):
        super().__init__(
            "User not found",
            code="USER_NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"lookup": lookup},
        )


class AmbiguousOrMissingIdentifier(GrantError):
    def __init__(self, message: str = "User identifier missing or ambiguous", details: dict[str, Any] | None = None):
        super().__init__(
            message,
            code="AMBIGUOUS_OR_MISSING_IDENTIFIER",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


class StoreUnavailable(GrantError):
    def __init__(self, message: str = "Document store unavailable"):
        super().__init__(message, code="STORE_UNAVAILABLE", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


def error_response(request: Request, exc: AppError) -> ORJSONResponse:
    body = {
        "error": {
            "message": exc.message,
            "code": exc.code,
            "details": exc.details,
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(status_code=exc.status_code, content=body)


async def app_exception_handler(request: Request, exc: AppError) -> ORJSONResponse:
    return error_response(request, exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> ORJSONResponse:
    body = {
        "error": {
            "message": "Validation error",
            "code": "VALIDATION_ERROR",
            "details": {"errors": exc.errors()},
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=body,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    from app.core.logging import get_logger
    get_logger(__name__).exception("unhandled_exception", exc_info=exc)
    body = {
        "error": {
            "message": "Internal server error",
            "code": "INTERNAL_ERROR",
            "details": {},
        }
    }
    if hasattr(request.state, "request_id"):
        body["request_id"] = request.state.request_id
    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body,
    )
