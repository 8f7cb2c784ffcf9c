"""
Client reconciliation engine.

Merges independently fetched, possibly overlapping pages and a stream of
payload-free change hints into one de-duplicated, date-grouped view.

State machine:
    IDLE -> LOADING_INITIAL -> READY <-> LOADING_MORE
                         \\-> ERROR (left only through reload())
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import tzinfo
from typing import Optional, Protocol

from signal_feed.client.state import (
    ClientViewState,
    FeedPage,
    ViewPhase,
    is_last_page,
    merge_events,
)
from signal_feed.core.exceptions import NetworkError
from signal_feed.utils.constants import CHANGE_HINT, SCROLL_THRESHOLD
from signal_feed.utils.logging import get_logger

logger = get_logger(__name__)

RELOAD_INCREMENTAL = "incremental"
RELOAD_FULL = "full"


class PageFetcher(Protocol):
    async def fetch_page(self, page: int) -> FeedPage:
        ...


@dataclass(frozen=True)
class ScrollPosition:
    """Viewport geometry, in the same units as the rendered content."""
    scroll_top: float
    client_height: float
    scroll_height: float

    def near_bottom(self, threshold: float = SCROLL_THRESHOLD) -> bool:
        return self.scroll_top + self.client_height >= self.scroll_height - threshold


class ReconciliationEngine:
    """
    Owns one viewer's ``ClientViewState``.

    At most one fetch is in flight: every fetch runs inside ``_loading()``,
    which sets ``is_loading`` and clears it on every exit path, and each
    fetch is bounded by ``fetch_timeout`` so a hung request cannot leave the
    viewer stuck.

    Change hints arriving before the first load completes are dropped (that
    load already returns current data); hints arriving during a fetch are
    remembered and served once the fetch settles.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        fetch_timeout: float = 10.0,
        reload_mode: str = RELOAD_INCREMENTAL,
        catch_up_max_pages: int = 5,
        tz: Optional[tzinfo] = None,
        scroll_threshold: float = SCROLL_THRESHOLD,
    ):
        if reload_mode not in (RELOAD_INCREMENTAL, RELOAD_FULL):
            raise ValueError(f"Unknown reload mode: {reload_mode}")
        self.fetcher = fetcher
        self.fetch_timeout = fetch_timeout
        self.reload_mode = reload_mode
        self.catch_up_max_pages = max(1, catch_up_max_pages)
        self.tz = tz
        self.scroll_threshold = scroll_threshold
        self.state = ClientViewState()

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    async def start(self) -> bool:
        """Initial load of page 0. Only valid from IDLE."""
        if self.state.phase != ViewPhase.IDLE:
            return False
        return await self._load_initial()

    async def reload(self) -> bool:
        """Discard all view state and load page 0 again."""
        if self.state.is_loading:
            return False
        self.state = ClientViewState()
        return await self._load_initial()

    async def on_scroll(self, position: ScrollPosition) -> bool:
        """Load the next page when the viewport is near the end of the content."""
        if not position.near_bottom(self.scroll_threshold):
            return False
        return await self.load_more()

    async def load_more(self) -> bool:
        """Fetch ``current_page + 1`` and merge its novel events."""
        state = self.state
        if state.phase != ViewPhase.READY or state.is_loading or not state.has_more_data:
            return False

        requested = state.current_page + 1
        state.phase = ViewPhase.LOADING_MORE
        try:
            page = await self._fetch(requested)
        except NetworkError as e:
            self._fail(e)
            return False

        added = merge_events(state, page.items, self.tz)
        if is_last_page(page, requested):
            state.has_more_data = False
        state.current_page = requested
        state.phase = ViewPhase.READY

        logger.debug(
            f"Loaded page {requested}: {len(page.items)} received, {len(added)} new, "
            f"has_more={state.has_more_data}"
        )
        await self._run_pending()
        return True

    async def on_hint(self, message: str) -> bool:
        """Handle one message from the push channel."""
        state = self.state
        if message != CHANGE_HINT:
            logger.debug("Ignoring unknown push message", message=message)
            return False
        if not state.initial_load_complete or state.phase == ViewPhase.ERROR:
            logger.debug("Ignoring change hint", phase=state.phase.value)
            return False
        if state.is_loading:
            state.pending_refresh = True
            return False
        return await self.refresh()

    async def refresh(self) -> bool:
        """Bring the top of the feed up to date according to ``reload_mode``."""
        if self.reload_mode == RELOAD_FULL:
            return await self.reload()
        return await self._refresh_incremental()

    # ------------------------------------------------------------------
    # Loads
    # ------------------------------------------------------------------

    async def _load_initial(self) -> bool:
        state = self.state
        state.phase = ViewPhase.LOADING_INITIAL
        try:
            page = await self._fetch(0)
        except NetworkError as e:
            self._fail(e)
            return False

        merge_events(state, page.items, self.tz)
        if is_last_page(page, 0):
            state.has_more_data = False
        state.current_page = 0
        state.synced_count = page.total_count
        state.initial_load_complete = True
        state.phase = ViewPhase.READY

        logger.info("Initial load complete", events=len(page.items), total_pages=page.total_pages)
        await self._run_pending()
        return True

    async def _refresh_incremental(self) -> bool:
        """
        Re-fetch from page 0 and merge without discarding older pages.

        The walk goes on to the following pages until a page overlaps the
        view and one of these holds:
        - every row the server gained since the last sync has been merged
        - the page reaches below the oldest rendered event, so anything
          still missing sits where scrolling will find it

        Producer timestamps are not monotonic, so new rows can land inside
        already revealed pages, not only on page 0. A walk that would need
        more than ``catch_up_max_pages`` pages falls back to a full reload.
        """
        state = self.state
        state.phase = ViewPhase.LOADING_INITIAL
        baseline = state.synced_count
        floor = state.oldest_key()
        added_total = 0
        requested = 0

        while True:
            try:
                page = await self._fetch(requested)
            except NetworkError as e:
                self._fail(e)
                return False

            added = merge_events(state, page.items, self.tz, highlight=True)
            added_total += len(added)
            overlapped = len(added) < len(page.items)

            if is_last_page(page, requested):
                break
            if overlapped:
                if baseline is not None and page.total_count is not None:
                    if page.total_count - baseline <= added_total:
                        break
                if floor is None or page.items[-1].sort_key() < floor:
                    break
            if requested + 1 >= self.catch_up_max_pages:
                logger.info("Catch-up bound reached, reloading", pages=requested + 1, added=added_total)
                return await self.reload()
            requested += 1

        if page.total_pages - 1 > state.current_page:
            state.has_more_data = True
        if page.total_count is not None:
            state.synced_count = page.total_count
        state.phase = ViewPhase.READY

        logger.info("Feed refreshed", added=added_total, pages=requested + 1)
        await self._run_pending()
        return True

    async def _run_pending(self) -> None:
        state = self.state
        if state.pending_refresh and state.phase == ViewPhase.READY:
            state.pending_refresh = False
            await self.refresh()

    @asynccontextmanager
    async def _loading(self):
        state = self.state
        state.is_loading = True
        try:
            yield state
        except asyncio.CancelledError:
            # Leave the view usable: back to where the interrupted load started from
            state.phase = ViewPhase.READY if state.initial_load_complete else ViewPhase.IDLE
            raise
        finally:
            state.is_loading = False

    async def _fetch(self, page: int) -> FeedPage:
        async with self._loading():
            try:
                return await asyncio.wait_for(self.fetcher.fetch_page(page), timeout=self.fetch_timeout)
            except asyncio.TimeoutError as e:
                raise NetworkError(f"Request for page {page} timed out after {self.fetch_timeout}s") from e

    def _fail(self, error: NetworkError) -> None:
        self.state.phase = ViewPhase.ERROR
        self.state.error = error.message
        self.state.pending_refresh = False
        logger.error("Error loading data", error=error.message)
