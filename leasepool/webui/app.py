"""
FastAPI Application - LeasePool HTTP surface

Thin routing around the pool engine; all allocation rules live in
leasepool.core.pool. Served by uvicorn through the application factory:

    uvicorn leasepool.webui.app:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from leasepool import __version__
from leasepool.core.config import LeasePoolConfig, get_config
from leasepool.core.pool import LeasePoolEngine, get_engine, shutdown_engine
from leasepool.webui.api import admin, health, lease
from leasepool.webui.api.error_envelope import register_error_handlers

logger = logging.getLogger(__name__)


def create_app(engine: Optional[LeasePoolEngine] = None, config: Optional[LeasePoolConfig] = None) -> FastAPI:
    """
    Build the application

    Args:
        engine: Engine to serve; defaults to the process-wide engine
        config: Settings; defaults to get_config()
    """
    config = config or get_config()
    owns_engine = engine is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.engine is None:
            app.state.engine = get_engine(config)
        logger.info(f"LeasePool API started (db={config.db_path})")
        yield
        if owns_engine:
            shutdown_engine()
        logger.info("LeasePool API stopped")

    app = FastAPI(title="LeasePool", version=__version__, lifespan=lifespan)
    app.state.engine = engine
    app.state.config = config

    register_error_handlers(app)

    app.include_router(lease.router, tags=["lease"])
    app.include_router(admin.router, tags=["admin"])
    app.include_router(health.router, tags=["health"])

    return app
