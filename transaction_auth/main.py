"""
Transaction Authorization Service: FastAPI Application.

This is the entry point for the application.
All routers and error handlers are registered here.
"""

import uuid
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from transaction_auth.config import get_settings
from transaction_auth.errors import InternalError, TransactionAuthError
from transaction_auth.logging_config import configure_logging
from transaction_auth.models.base import Database
from transaction_auth.api.audit import router as audit_router
from transaction_auth.api.auth import router as auth_router
from transaction_auth.api.health import router as health_router
from transaction_auth.api.transactions import router as transactions_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    app.state.database = Database(settings.DATABASE_URL)
    logger.info(
        "startup",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )
    yield
    app.state.database.dispose()
    logger.info("shutdown")


def _opaque_error(request: Request, exc: Exception) -> JSONResponse:
    # Full detail stays in the logs, the client only gets the id
    error_id = str(uuid.uuid4())
    logger.error(
        "unhandled_exception",
        error_id=error_id,
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": InternalError.code,
            "detail": "An internal error occurred. Please try again later.",
            "error_id": error_id,
        },
    )


async def transaction_auth_error_handler(request: Request, exc: TransactionAuthError):
    if isinstance(exc, InternalError):
        return _opaque_error(request, exc)

    headers = {}
    if exc.retry_after is not None:
        headers["Retry-After"] = str(exc.retry_after)

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": exc.message},
        headers=headers,
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    return _opaque_error(request, exc)


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Login, step-up verification and transaction approval with an audit trail",
        lifespan=lifespan,
    )

    app.add_exception_handler(TransactionAuthError, transaction_auth_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    # Register routers
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(transactions_router)
    app.include_router(audit_router)

    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "transaction_auth.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
