"""
FastAPI application factory for the org tree service.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..cache.manager import create_cache_manager
from ..database.config import initialize_database
from ..database.gateway import TreeStoreGateway
from ..errors import OrgTreeError
from ..services.directory import OrgDirectory
from ..utils.config import OrgTreeConfig
from . import groups, persons

logger = logging.getLogger(__name__)


async def build_directory(config: OrgTreeConfig) -> OrgDirectory:
    """Open the database and the cache backend named by the configuration."""
    db_config = initialize_database(config.database_url)
    cache = await create_cache_manager(config.cache_backend, default_ttl=config.cache_ttl)
    gateway = TreeStoreGateway(db_config)
    logger.info(f"Directory ready: database={db_config.db_type}, cache={cache.backend}")
    return OrgDirectory(cache, gateway, canonicalize_filters=config.canonicalize_filters)


def create_app(directory: Optional[OrgDirectory] = None, config: Optional[OrgTreeConfig] = None) -> FastAPI:
    """
    Create the application.

    Args:
        directory: Pre-built directory (tests pass one backed by sqlite and the in-process cache)
        config: Used to build the directory at startup when none is given

    Returns:
        FastAPI: Configured application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.directory is None
        if owned:
            app.state.directory = await build_directory(config or OrgTreeConfig())
        yield
        if owned:
            await app.state.directory.cache.close()
            app.state.directory.gateway.db.close()

    app = FastAPI(title="Org Tree", version=__version__, lifespan=lifespan)
    app.state.directory = directory

    @app.exception_handler(OrgTreeError)
    async def orgtree_error_handler(request: Request, exc: OrgTreeError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get("/health")
    async def health():
        directory = app.state.directory
        cache_health = await directory.cache.health_check()
        database_ok = directory.gateway.db.test_connection()
        status = "healthy" if database_ok and cache_health["status"] == "healthy" else "degraded"
        return {
            "status": status,
            "database": "connected" if database_ok else "unreachable",
            "cache": cache_health,
            "cache_stats": directory.cache.get_stats(),
        }

    app.include_router(persons.router)
    app.include_router(groups.router)
    return app
