"""
Viewer session: wires the reconciliation engine to its transports.
"""
from typing import Callable, Optional

from signal_feed.client.engine import ReconciliationEngine, ScrollPosition
from signal_feed.client.state import ClientViewState
from signal_feed.client.transport import FeedApiClient, HintSubscriber
from signal_feed.config.settings import Settings, get_settings
from signal_feed.utils.logging import get_logger

logger = get_logger(__name__)


class FeedViewer:
    """
    One live viewer.

    ``run`` performs the initial load and then consumes change hints until
    cancelled. The hint channel opens with a catch-up hint, which covers
    rows stored between the initial fetch and the socket connecting. Scroll events come from the UI through ``scroll``; both paths
    share the engine's single-fetch guard.
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        subscriber: HintSubscriber,
        on_change: Optional[Callable[[ClientViewState], None]] = None,
    ):
        self.engine = engine
        self.subscriber = subscriber
        self.on_change = on_change

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        on_change: Optional[Callable[[ClientViewState], None]] = None,
    ) -> "FeedViewer":
        settings = settings or get_settings()
        fetcher = FeedApiClient(
            settings.FEED_BASE_URL,
            page_size=settings.CLIENT_PAGE_SIZE,
            timeout=settings.CLIENT_FETCH_TIMEOUT,
        )
        engine = ReconciliationEngine(
            fetcher,
            fetch_timeout=settings.CLIENT_FETCH_TIMEOUT,
            reload_mode=settings.CLIENT_RELOAD_MODE,
            catch_up_max_pages=settings.CATCH_UP_MAX_PAGES,
        )
        return cls(engine, HintSubscriber(settings.FEED_WS_URL), on_change=on_change)

    @property
    def state(self) -> ClientViewState:
        return self.engine.state

    async def run(self) -> None:
        await self.engine.start()
        self._emit()
        async for message in self.subscriber.hints():
            if await self.engine.on_hint(message):
                self._emit()

    async def scroll(self, position: ScrollPosition) -> bool:
        changed = await self.engine.on_scroll(position)
        if changed:
            self._emit()
        return changed

    async def reload(self) -> bool:
        changed = await self.engine.reload()
        self._emit()
        return changed

    def _emit(self) -> None:
        if self.on_change is not None:
            self.on_change(self.engine.state)
