"""
Pagination query service.
Computes page windows over the newest-first event ordering.
"""
import math
from dataclasses import dataclass
from typing import List

from signal_feed.core.event_store import EventStore
from signal_feed.core.exceptions import ValidationError
from signal_feed.schemas import SignalEvent
from signal_feed.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PageWindow:
    """One page of the feed plus the totals the viewer needs."""
    items: List[SignalEvent]
    total_pages: int
    current_page: int
    total_count: int
    limit: int


class PaginationService:
    """
    Serves page windows from the event store.

    ``limit`` is clamped to ``max_limit`` to bound query cost; totals are
    computed with the clamped value so ``total_pages`` always matches the
    windows actually served.
    """

    def __init__(self, store: EventStore, max_limit: int = 100):
        self.store = store
        self.max_limit = max_limit

    def get_page(self, page: int, limit: int) -> PageWindow:
        """
        Fetch one page.

        Args:
            page: 0-based page index
            limit: Requested page size

        Returns:
            PageWindow; ``items`` is empty when ``page`` is past the end
        """
        if page < 0:
            raise ValidationError("page must be >= 0", reason="bad_page")
        if limit < 1:
            raise ValidationError("limit must be > 0", reason="bad_limit")

        effective_limit = min(limit, self.max_limit)
        if effective_limit != limit:
            logger.debug(f"Clamped page limit {limit} to {effective_limit}")

        total = self.store.count()
        total_pages = math.ceil(total / effective_limit)

        if page >= total_pages:
            items = []
        else:
            items = self.store.query_page(page * effective_limit, effective_limit)

        return PageWindow(
            items=items,
            total_pages=total_pages,
            current_page=page,
            total_count=total,
            limit=effective_limit,
        )
