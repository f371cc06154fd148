"""POSSync API: FastAPI entry point.

``create_app`` wires logging, CORS, the store-context middleware and the
POS integration router under /api/pos/. ``app`` is the instance built
from environment settings.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import StoreContextMiddleware
from api.routes import router as pos_router
from possync.config import ApiSettings
from possync.observability.logging_setup import setup_logging

logger = logging.getLogger("possync.api")

VERSION = "0.1.0"


def create_app(settings: ApiSettings | None = None) -> FastAPI:
    settings = settings or ApiSettings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level)
        logger.info("POSSync API started (log level %s)", settings.log_level)
        yield
        logger.info("POSSync API shutting down")

    app = FastAPI(
        title="POSSync",
        description="POS integration adapter framework: REST, XML and NAXML file exchange",
        version=VERSION,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "X-Store-ID"],
    )
    # Store id for log records
    app.add_middleware(StoreContextMiddleware)
    app.include_router(pos_router, prefix="/api/pos", tags=["POS Integrations"])

    @app.get("/health")
    async def health():
        return {"status": "healthy", "version": VERSION}

    return app


app = create_app()
