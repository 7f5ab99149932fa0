"""
Admin API - pool administration

GET  /api/admin/stats    - Aggregate counts (cached)
GET  /api/admin/items    - Paginated listing with optional search
POST /api/admin/items    - Add a single value
POST /api/admin/bulk     - bulk_add | bulk_delete | clear_locked
PUT  /api/admin/source   - Replace the source file and load it
GET  /api/admin/export   - Download every value as text
GET  /api/admin/preload  - Stats + first page, for the initial admin view
"""

import io
import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from leasepool.core.pool import LeasePoolEngine
from leasepool.core.pool.paginator import MAX_PAGE_SIZE, MIN_PAGE_SIZE
from leasepool.core.time import utc_now
from leasepool.webui.api.deps import get_pool
from leasepool.webui.api.error_envelope import ErrorEnvelope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin")

PRELOAD_PAGE_SIZE = 50


class BulkRequest(BaseModel):
    """Bulk operation request"""
    operation: Literal["bulk_add", "bulk_delete", "clear_locked"]
    values: List[str] = Field(default_factory=list)
    ids: List[int] = Field(default_factory=list)


class BulkResponse(BaseModel):
    ok: bool = True
    operation: str
    count: int
    message: str


class AddItemRequest(BaseModel):
    value: str


class SaveSourceRequest(BaseModel):
    values: List[str]


@router.get("/stats")
def get_stats(pool: LeasePoolEngine = Depends(get_pool)):
    """Aggregate counts; approximate=true marks an estimated total"""
    return ErrorEnvelope.format_success(pool.get_stats().to_dict())


@router.get("/items")
def list_items(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=100, ge=MIN_PAGE_SIZE, le=MAX_PAGE_SIZE),
    search: Optional[str] = Query(default=None, max_length=255),
    pool: LeasePoolEngine = Depends(get_pool),
):
    """One page of items, newest first; estimated=true marks a lower-bound total"""
    return ErrorEnvelope.format_success(pool.list(page, limit, search).to_dict())


@router.post("/items", status_code=status.HTTP_201_CREATED)
def add_item(req: AddItemRequest, pool: LeasePoolEngine = Depends(get_pool)):
    """Add one value; created=false when it already existed"""
    created = pool.add_one(req.value)
    return ErrorEnvelope.format_success({"created": created})


@router.post("/bulk", response_model=BulkResponse)
def bulk_operation(req: BulkRequest, pool: LeasePoolEngine = Depends(get_pool)):
    """Run a bulk operation"""
    if req.operation == "bulk_add":
        if not req.values:
            raise HTTPException(status_code=400, detail="No values provided")
        count = pool.ingest(req.values)
        message = f"Added {count} items"

    elif req.operation == "bulk_delete":
        if not req.ids:
            raise HTTPException(status_code=400, detail="No item IDs provided")
        count = pool.evict_by_ids(req.ids)
        message = f"Deleted {count} items"

    else:
        count = pool.force_release_all()
        message = f"Released {count} items"

    logger.info(f"Bulk {req.operation}: {message}")
    return BulkResponse(operation=req.operation, count=count, message=message)


@router.put("/source")
def save_source(req: SaveSourceRequest, request: Request, pool: LeasePoolEngine = Depends(get_pool)):
    """Replace the source file with the valid values and load it into the pool"""
    source_file = request.app.state.config.source_file
    saved = pool.save_file(req.values, source_file)
    return ErrorEnvelope.format_success({"count": saved}, message="Values saved successfully")


@router.get("/export", response_class=PlainTextResponse)
def export_items(pool: LeasePoolEngine = Depends(get_pool)):
    """Every stored value, oldest first, one per line"""
    buffer = io.StringIO()
    pool.export(buffer)
    filename = f"items_{utc_now().strftime('%Y-%m-%d')}.txt"
    return PlainTextResponse(
        buffer.getvalue(),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/preload")
def preload(pool: LeasePoolEngine = Depends(get_pool)):
    """Minimal data for the initial admin view"""
    stats = pool.get_stats()
    first_page = pool.list(1, PRELOAD_PAGE_SIZE)
    return ErrorEnvelope.format_success({
        "stats": stats.to_dict(),
        "items": first_page.to_dict(),
        "has_data": first_page.total > 0,
    })
