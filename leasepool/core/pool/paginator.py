"""Paginator - page-windowed listing with an optional substring search

Rows are fetched newest first (id DESC), one extra row per page to learn
whether a further page exists without a COUNT query. Totals are taken
from the stats cache for the first pages of an unfiltered listing and
estimated from the page window otherwise.
"""

import logging
import sqlite3
from typing import Optional

from leasepool.core.pool.errors import StoreUnavailable
from leasepool.core.pool.models import Item, ItemPage
from leasepool.core.pool.stats import StatsCache
from leasepool.store import ConnectionFactory

logger = logging.getLogger(__name__)

MIN_PAGE_SIZE = 10
MAX_PAGE_SIZE = 1000
# Unfiltered pages up to this one report the cached stats total
STATS_TOTAL_MAX_PAGE = 5


def _like_pattern(search: str) -> str:
    escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class Paginator:
    def __init__(self, connections: ConnectionFactory, stats: StatsCache):
        self.connections = connections
        self.stats = stats

    def list(self, page: int = 1, page_size: int = 100, search: Optional[str] = None) -> ItemPage:
        """List one page of items ordered by id descending

        Args:
            page: 1-based page number
            page_size: Rows per page, 10..1000
            search: Case-insensitive substring filter on value

        Returns:
            ItemPage; estimated=True means total is a lower bound

        Raises:
            ValueError: page or page_size out of range
            StoreUnavailable: If the database query fails
        """
        if page < 1:
            raise ValueError("page must be >= 1")
        if not MIN_PAGE_SIZE <= page_size <= MAX_PAGE_SIZE:
            raise ValueError(f"page_size must be between {MIN_PAGE_SIZE} and {MAX_PAGE_SIZE}")

        search = (search or "").strip()
        offset = (page - 1) * page_size

        where = ""
        params: list = []
        if search:
            # LIKE is case-insensitive for ASCII in SQLite
            where = "WHERE value LIKE ? ESCAPE '\\'"
            params.append(_like_pattern(search))

        conn = self.connections.get_connection()
        try:
            rows = conn.execute(
                f"""
                SELECT id, value, state, leased_at, created_at
                FROM items
                {where}
                ORDER BY id DESC
                LIMIT ? OFFSET ?
                """,
                (*params, page_size + 1, offset),
            ).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Failed to list items (page={page}, search={search!r}): {e}")
            raise StoreUnavailable(f"Failed to list items: {e}") from e

        has_more = len(rows) > page_size
        items = [Item.from_row(r) for r in rows[:page_size]]

        if not search and page <= STATS_TOTAL_MAX_PAGE:
            stats = self.stats.get_stats()
            total = stats.total
            estimated = stats.approximate
        else:
            # Lower bound: everything before this page, this page, and at
            # least one row after it when has_more
            total = page * page_size + 1 if has_more else offset + len(items)
            estimated = True

        return ItemPage(
            items=items,
            page=page,
            page_size=page_size,
            has_more=has_more,
            total=total,
            estimated=estimated,
        )
