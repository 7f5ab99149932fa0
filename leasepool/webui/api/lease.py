"""
Lease API - hand out pool items

GET  /api/lease                   - Lease one available item
POST /api/leases/{item_id}/release - Return a leased item before its TTL
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from leasepool.core.pool import LeasePoolEngine
from leasepool.core.time import utc_now
from leasepool.webui.api.deps import get_pool
from leasepool.webui.api.error_envelope import error_response

logger = logging.getLogger(__name__)

router = APIRouter()


class LeasedItem(BaseModel):
    id: int
    value: str
    leased_at: int


class LeaseResponse(BaseModel):
    ok: bool = True
    item: LeasedItem
    timestamp: int


class ReleaseResponse(BaseModel):
    ok: bool
    item_id: int
    released: bool
    message: Optional[str] = None


@router.get("/api/lease", response_model=LeaseResponse)
def acquire_lease(pool: LeasePoolEngine = Depends(get_pool)):
    """
    Lease one randomly chosen available item

    Returns 429 NO_ITEMS_AVAILABLE when every item is leased right now
    (or the race for the chosen item was lost); callers should retry later.
    Store failures surface as 503 STORE_UNAVAILABLE.
    """
    item = pool.acquire_one()
    if item is None:
        return error_response(
            status.HTTP_429_TOO_MANY_REQUESTS,
            "NO_ITEMS_AVAILABLE",
            "No available items at this time",
            {"hint": "Retry later"},
        )

    return LeaseResponse(
        item=LeasedItem(id=item.id, value=item.value, leased_at=item.leased_at),
        timestamp=int(utc_now().timestamp()),
    )


@router.post("/api/leases/{item_id}/release", response_model=ReleaseResponse)
def release_lease(item_id: int, pool: LeasePoolEngine = Depends(get_pool)):
    """Return a leased item to the pool; released=false if it was not leased"""
    released = pool.release(item_id)
    return ReleaseResponse(
        ok=True,
        item_id=item_id,
        released=released,
        message=None if released else "Item not found or not leased",
    )
