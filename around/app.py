"""
FastAPI application entry point.

Run with `uvicorn around.app:app`.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from around.config import get_settings
from around.dependencies import get_geo_index
from around.geo_index import ensure_index
from around.routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    provider = app.dependency_overrides.get(get_geo_index, get_geo_index)
    geo_index = provider()
    # One-time setup before requests; radius queries need the geo_point mapping.
    ensure_index(geo_index)
    logger.info("started-service")
    yield
    if hasattr(geo_index, "close"):
        geo_index.close()


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Around", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
        expose_headers=["X-Post-Id"],
    )
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
