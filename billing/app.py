"""FastAPI application factory: entry point for the billing service."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from billing.config import get_settings
from billing.routers import auth, health, plans, subscriptions, users, webhooks
from billing.services.errors import BillingError
from src.utils import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.debug)

    # Auto-create tables for SQLite (dev mode); PostgreSQL uses Alembic
    from billing.db.session import engine
    from billing.models import Base

    if settings.database_url.startswith("sqlite"):
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    # Shared httpx client for calls to the payment gateway
    from billing.http_client import close_http_client, init_http_client
    await init_http_client()
    logger.info("%s started, webhook URL %s", settings.app_name, settings.webhook_url)

    yield

    await close_http_client()
    await engine.dispose()


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
    )
    app.state.settings = settings

    # --- Error handlers ---
    @app.exception_handler(BillingError)
    async def billing_error_handler(request: Request, exc: BillingError):
        logger.info("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    # --- Routers ---
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(plans.router)
    app.include_router(subscriptions.router)
    app.include_router(webhooks.router)

    return app


app = create_app()
