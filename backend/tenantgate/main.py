"""tenantgate API - FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map TenantGateError -> structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Backend client created on startup and closed on shutdown via lifespan

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Error handlers live in api/error_handlers.py to keep this module's imports small
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tenantgate.api.error_handlers import register_error_handlers
from tenantgate.api.routes import health, navigation
from tenantgate.config import get_settings
from tenantgate.infrastructure.backend_client import ResilientBackendClient
from tenantgate.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    app.state.backend = ResilientBackendClient.from_settings(settings)
    logger.info("tenantgate API started")
    yield
    await app.state.backend.aclose()
    logger.info("tenantgate API shutting down")


app = FastAPI(
    title="tenantgate API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(navigation.router)

register_error_handlers(app)
