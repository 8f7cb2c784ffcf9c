"""
Feed read endpoints.
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query

from signal_feed.api.deps import get_app_settings, get_store
from signal_feed.config.settings import Settings
from signal_feed.core.event_store import EventStore
from signal_feed.core.exceptions import SignalFeedError
from signal_feed.core.pagination import PaginationService
from signal_feed.schemas import PageResponse
from signal_feed.utils.metrics import record_page_request

router = APIRouter()

@router.get("/data", response_model=PageResponse)
def get_data(
    page: int = Query(0, description="0-based page index"),
    limit: Optional[int] = Query(None, description="Page size, clamped to MAX_PAGE_LIMIT"),
    store: EventStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    """
    Get one page of signal events, newest first.
    Pages past the end return an empty ``data`` list.
    """
    if limit is None:
        limit = settings.DEFAULT_PAGE_LIMIT

    service = PaginationService(store, max_limit=settings.MAX_PAGE_LIMIT)
    try:
        window = service.get_page(page, limit)
    except SignalFeedError as e:
        record_page_request("invalid" if e.status_code < 500 else "error")
        raise

    record_page_request("ok")
    return PageResponse(
        data=window.items,
        totalPages=window.total_pages,
        currentPage=window.current_page,
        totalCount=window.total_count,
    )
