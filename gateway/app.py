"""FastAPI application factory: entry point for the payment gateway."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from gateway.config import get_settings
from gateway.routers import health, payments
from src.utils import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.debug)

    # Single table, created on startup for every backend
    from gateway.db.session import engine
    from gateway.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    from gateway.http_client import close_http_client, init_http_client
    await init_http_client()

    if settings.force_payment_success:
        logger.info("FORCE_PAYMENT_SUCCESS is set, every payment will succeed")

    yield

    from gateway.services.delivery_service import shutdown_deliveries
    await shutdown_deliveries()
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

    # --- Routers ---
    app.include_router(health.router)
    app.include_router(payments.router)

    return app


app = create_app()
