"""Orders service API built with FastAPI.

:func:`create_app` wires configuration, the pooled engine, the
:class:`~orders.repo.OrderStore` and the authenticator into a FastAPI
application. Run it with ``uvicorn orders.main:create_app --factory`` or
``python -m orders``.

On startup the app waits for the database to accept connections and
creates the schema; on shutdown it disposes the engine's pool. Errors from
:mod:`orders.errors` are mapped to HTTP status codes here; responses only
carry the error code while 5xx causes are logged with their traceback.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from starlette.concurrency import run_in_threadpool

from .auth import Authenticator, CredentialStore, StaticCredentialStore, TokenSigner
from .db import build_engine, init_db, wait_for_database
from .errors import (
    AuthError,
    DuplicateKeyError,
    NotFoundError,
    OrderError,
    StoreTimeoutError,
    ValidationError,
)
from .logging_filters import configure_logging
from .middleware import add_request_id, limit_body_size
from .repo import OrderStore
from .settings import Settings, load_settings
from .views import router

logger = logging.getLogger("orders")

# most specific first; anything else is a 500
ERROR_STATUS = (
    (ValidationError, 400),
    (AuthError, 401),
    (NotFoundError, 404),
    (DuplicateKeyError, 409),
    (StoreTimeoutError, 503),
)


def status_for(exc: OrderError) -> int:
    for cls, code in ERROR_STATUS:
        if isinstance(exc, cls):
            return code
    return 500


async def handle_order_error(request: Request, exc: OrderError):
    code = status_for(exc)
    if code >= 500:
        logger.error(
            "request failed",
            exc_info=exc,
            extra={"path": request.url.path, "error": exc.code},
        )
    body = {"detail": exc.code}
    if isinstance(exc, ValidationError) and exc.fields:
        body["fields"] = exc.fields
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    return JSONResponse(body, status_code=code, headers=headers)


async def handle_request_validation(request: Request, exc: RequestValidationError):
    # undecodable bodies; fields are validated by the normalizer
    return JSONResponse({"detail": "INVALID_PAYLOAD"}, status_code=400)


def create_app(
    settings: Settings | None = None,
    engine: Engine | None = None,
    credentials: CredentialStore | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration; loaded from the environment when omitted,
            which fails with ``ConfigError`` if ``JWT_SECRET`` is absent.
        engine: Pre-built engine (tests); built from ``settings`` otherwise.
        credentials: Credential store; defaults to the users configured in
            ``AUTH_USERS_JSON``.

    Returns:
        FastAPI: The configured application.
    """
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    if engine is None:
        engine = build_engine(settings.database_url, settings.pool_size, settings.pool_timeout)
    if credentials is None:
        if not settings.auth_users:
            logger.warning("no users configured; every login will be rejected")
        credentials = StaticCredentialStore(settings.auth_users)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await run_in_threadpool(wait_for_database, engine, settings.db_wait_seconds)
        await run_in_threadpool(init_db, engine)
        logger.info("orders service started")
        yield
        engine.dispose()

    app = FastAPI(title="Orders Service", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = OrderStore(engine, op_timeout=settings.op_timeout)
    app.state.authenticator = Authenticator(
        credentials,
        TokenSigner(settings.jwt_secret, settings.jwt_ttl_seconds, settings.jwt_algorithm),
    )

    app.add_exception_handler(OrderError, handle_order_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    # the last registered middleware runs first
    app.middleware("http")(limit_body_size)
    app.middleware("http")(add_request_id)
    app.include_router(router)
    return app
