"""
Meez Web - FastAPI application.

Services are built once per process in the lifespan and closed on
shutdown. Tests pass their own IngestionServices to create_app().
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from meez import __version__
from meez.config import get_settings
from meez.observability import init_langsmith
from meez.services import IngestionServices, build_services
from meez.web.routes import router

logger = logging.getLogger(__name__)


def create_app(services: IngestionServices | None = None) -> FastAPI:
    """Create the API app. Without ``services``, they are built from settings on startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "services", None) is None:
            init_langsmith()
            owned = build_services(get_settings())
            app.state.services = owned
            logger.info("Ingestion services started")
        try:
            yield
        finally:
            if owned is not None:
                await owned.aclose()
                app.state.services = None
                logger.info("Ingestion services closed")

    app = FastAPI(title="Meez", version=__version__, lifespan=lifespan)
    app.state.services = services

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__, "service": "meez-ingest"}

    app.include_router(router)
    return app


app = create_app()
