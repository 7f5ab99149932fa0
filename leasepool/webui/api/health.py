"""
Health API - store reachability

GET /api/health - Get system health
"""

import logging
import sqlite3
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from leasepool import __version__
from leasepool.core.pool import LeasePoolEngine
from leasepool.core.time import utc_now
from leasepool.webui.api.deps import get_pool

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthStatus(BaseModel):
    """Health status response"""
    status: str  # "ok" | "down"
    version: str
    timestamp: str
    components: Dict[str, Any]


def check_db_health(pool: LeasePoolEngine) -> Dict[str, Any]:
    """Check database health"""
    try:
        pool.connections.get_connection().execute("SELECT 1 FROM items LIMIT 1")
        return {"status": "ok", "message": "Database operational"}
    except sqlite3.Error as e:
        logger.warning(f"Health check failed: {e}")
        return {"status": "down", "message": f"Database error: {e}"}


@router.get("/api/health", response_model=HealthStatus)
def health(pool: LeasePoolEngine = Depends(get_pool)) -> HealthStatus:
    db = check_db_health(pool)
    return HealthStatus(
        status=db["status"],
        version=__version__,
        timestamp=utc_now().isoformat(),
        components={"database": db},
    )
