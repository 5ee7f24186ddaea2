"""
FastAPI application factory.

Assembles the app, registers routers and domain-error handlers, and
wires up lifecycle events.  Database schema is managed by Alembic — NOT
create_all.
"""

import logging

from fastapi import FastAPI

from app.controllers.auth_controller import router as auth_router
from app.controllers.security_devices_controller import router as security_devices_router
from app.core.config import settings
from app.core.database import engine
from app.core.exceptions import register_exception_handlers
from app.models import Base  # noqa: F401 — ensures all models are registered

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # ── Error handling ───────────────────────────────────────────────
    register_exception_handlers(app)

    # ── Register routers ─────────────────────────────────────────────
    app.include_router(auth_router)
    app.include_router(security_devices_router)

    # ── Shutdown ─────────────────────────────────────────────────────
    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await engine.dispose()
        logger.info("Database engine disposed.")

    # ── Health check ─────────────────────────────────────────────────
    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
