import time
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.core.audit import AuditLogger
from app.core.config import Settings, get_settings
from app.core.exceptions import (
    AppError,
    app_exception_handler,
    generic_exception_handler,
    validation_exception_handler,
)
from app.core.logging import bind_request_id, configure_logging, get_logger
from app.routers import admin, webhooks
from app.services.ledger import BenefitLedger
from app.store.base import DocumentStore, get_store

log = get_logger(__name__)


def create_app(settings: Settings | None = None, store: DocumentStore | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(debug=settings.debug)

    app = FastAPI(
        title="Paygrant webhooks",
        version="1.0.0",
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        bind_request_id(request_id)
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        log.info(
            "request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        response.headers["X-Request-ID"] = request_id
        return response

    app.add_exception_handler(AppError, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(webhooks.router, tags=["webhooks"])
    app.include_router(admin.router, prefix="/v1/admin", tags=["admin"])

    @app.on_event("startup")
    async def startup():
        if settings.sentry_dsn:
            import sentry_sdk
            sentry_sdk.init(dsn=settings.sentry_dsn, environment=settings.env, traces_sample_rate=0.1)
            log.info("startup", msg="Sentry enabled")
        app.state.store = store or get_store(settings)
        await app.state.store.open()
        app.state.audit = AuditLogger.from_settings(app.state.store, settings)
        app.state.ledger = BenefitLedger.from_settings(settings, app.state.store, audit=app.state.audit)
        log.info(
            "startup",
            store=app.state.store.name,
            courtesy_policy=settings.courtesy_policy,
            mercadopago=settings.processor_enabled("mercadopago"),
            flow=settings.processor_enabled("flow"),
        )

    @app.on_event("shutdown")
    async def shutdown():
        await app.state.audit.aclose()
        await app.state.store.close()

    @app.get("/")
    @app.get("/health")
    async def health(request: Request):
        """Health check for load balancers and monitoring."""
        store: DocumentStore = request.app.state.store
        return {"status": "ok", "store": store.name, "store_ok": await store.ping()}

    return app


app = create_app()
