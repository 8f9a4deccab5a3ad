import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from bookloans.api import auth, routes
from bookloans.api.deps import Services
from bookloans.core.config import Settings, settings as default_settings
from bookloans.services import errors
from bookloans.store.base import DocumentStore
from bookloans.store.memory import InMemoryDocumentStore
from bookloans.store.sql import SqlDocumentStore

logger = logging.getLogger("bookloans")

STATUS_CODES = {
    errors.Unauthorized: 401,
    errors.Forbidden: 403,
    errors.NotFound: 404,
    errors.BookUnavailable: 409,
    errors.AlreadyReturned: 409,
    errors.DuplicateError: 400,
    errors.InvalidOperation: 400,
    errors.NotSupported: 501,
    errors.Conflict: 503,
    errors.Timeout: 503,
    errors.StoreFailure: 503,
}


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level,
                        format="%(asctime)s %(levelname)s %(name)s - %(message)s")


def make_store(settings: Settings) -> DocumentStore:
    if settings.store_backend == "memory":
        return InMemoryDocumentStore()
    return SqlDocumentStore(settings.database_url)


async def ledger_error_handler(request: Request, exc: errors.LedgerError) -> JSONResponse:
    status = next((code for cls, code in STATUS_CODES.items() if isinstance(exc, cls)), 500)
    if status >= 500:
        logger.warning(f"{request.method} {request.url.path} failed: {exc.code} {exc.detail}")
    headers = {"WWW-Authenticate": "Bearer"} if status == 401 else None
    return JSONResponse({"detail": exc.detail, "code": exc.code}, status_code=status, headers=headers)


@asynccontextmanager
async def lifespan(app: FastAPI):
    services: Services = app.state.services
    services.store.create_schema()
    cfg = services.settings
    if cfg.admin_email and cfg.admin_password:
        services.accounts.ensure_admin(cfg.admin_name, cfg.admin_email, cfg.admin_password)
        logger.info(f"Bootstrap admin ready: {cfg.admin_email}")
    try:
        yield
    finally:
        services.store.dispose()


def create_app(store: Optional[DocumentStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level)
    app = FastAPI(title="Library Loans API", lifespan=lifespan)
    app.state.services = Services.build(store or make_store(settings), settings)
    app.add_exception_handler(errors.LedgerError, ledger_error_handler)
    app.include_router(auth.router)
    app.include_router(routes.router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
