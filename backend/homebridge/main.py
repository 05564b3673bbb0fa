# backend/homebridge/main.py
"""
HomeBridge API application.

``create_app()`` builds the FastAPI app; the module-level ``app`` is what
``uvicorn homebridge.main:app`` serves.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI

from . import __version__, models  # noqa: F401
from .core.config import is_running_tests, settings
from .core.logging import configure_logging
from .database import Base, engine
from .errors import register_error_handlers
from .routes import (
    admin_bookings,
    admin_refunds,
    agent_applications,
    agent_billing,
    agent_payouts,
    agent_stripe_connect,
    health,
    stripe_webhooks,
    student_bookings,
    student_docs,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"HomeBridge API starting up (environment: {settings.environment})")
    if is_running_tests():
        logger.info("Running under pytest (test mode active)")
    if engine.dialect.name == "sqlite":
        # Local development only; deployed databases are migrated out of band
        Base.metadata.create_all(bind=engine)
    if not settings.stripe_configured:
        logger.warning("Stripe secret key not set: payment endpoints will return 400")
    if not settings.webhook_secrets:
        logger.warning("No Stripe webhook secret set: webhook deliveries will be acknowledged and ignored")
    yield
    logger.info("HomeBridge API shutting down")


def build_api_router() -> APIRouter:
    api = APIRouter(prefix="/api")
    api.include_router(health.router)
    api.include_router(student_bookings.router)
    api.include_router(student_docs.router)
    api.include_router(agent_applications.router)
    api.include_router(agent_billing.router)
    api.include_router(agent_payouts.router)
    api.include_router(agent_stripe_connect.router)
    api.include_router(admin_bookings.router)
    api.include_router(admin_refunds.router)
    api.include_router(stripe_webhooks.router)
    return api


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(
        title="HomeBridge API",
        description="Student housing bookings, offers, payments, refunds and agent payouts",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
    )
    register_error_handlers(app)
    app.include_router(build_api_router())
    return app


app = create_app()
