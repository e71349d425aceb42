from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from src.jupiter.api.middlewares import setup_middlewares
from src.jupiter.api.v1.router import api_router
from src.jupiter.core.config import get_settings
from src.jupiter.core.db import dispose_engine
from src.jupiter.core.exceptions import setup_exception_handlers
from src.jupiter.core.health import setup_health_endpoint, setup_metrics
from src.jupiter.core.logging import get_logger, setup_logging
from src.jupiter.core.redis import close_redis
from src.jupiter.temporal.client import close_temporal_client

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan - startup and shutdown."""
    settings = get_settings()
    setup_logging(settings.debug)
    logger.info(f"Starting {settings.app_name}")

    yield

    logger.info("Closing connections...")
    await close_redis()
    await close_temporal_client()
    await dispose_engine()
    logger.info("Shutdown complete")


OPENAPI_TAGS = [
    {"name": "auth", "description": "NationBuilder sign-in"},
    {"name": "challenges", "description": "Cloudflare challenge recovery during sign-in"},
    {"name": "requests", "description": "Reimbursement, vendor payment and in-kind requests"},
]


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Reimbursement workflow portal with NationBuilder sign-in",
        version="0.1.0",
        openapi_tags=OPENAPI_TAGS,
        openapi_url="/openapi.json" if settings.enable_openapi else None,
        lifespan=lifespan,
    )

    setup_exception_handlers(app)
    setup_middlewares(app, settings)
    app.include_router(api_router)
    setup_metrics(app)
    setup_health_endpoint(app)

    return app


app = create_app()
