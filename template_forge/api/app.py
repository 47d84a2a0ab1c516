"""FastAPI application exposing the template-forge commands."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import load_settings
from ..state.app_context import AppContext
from .routers import editors_router, packages_router, projects_router, templates_router

logger = logging.getLogger(__name__)


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """Build the app around ``context``; without one, settings and prefs are loaded from disk."""

    context = context or AppContext.load(load_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info("template-forge starting up...")
        logger.info("Cache dir: %s", context.cache_dir)
        logger.info("Editors known: %d", len(context.editors()))
        yield
        logger.info("template-forge shutting down...")

    app = FastAPI(
        title="template-forge",
        description="Template resolution and project generation for editor installs",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.context = context

    @app.get("/health")
    async def health_check() -> JSONResponse:
        return JSONResponse(
            status_code=200,
            content={"status": "healthy", "service": "template-forge", "version": __version__},
        )

    app.include_router(editors_router, prefix="/editors", tags=["editors"])
    app.include_router(templates_router, prefix="/templates", tags=["templates"])
    app.include_router(projects_router, prefix="/projects", tags=["projects"])
    app.include_router(packages_router, prefix="/packages", tags=["packages"])
    return app
