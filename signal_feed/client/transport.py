"""
Network side of the viewer: page fetches over HTTP and change hints over a
WebSocket.
"""
import asyncio
from typing import AsyncIterator, Optional

import httpx
import pydantic
import websockets
from websockets.exceptions import WebSocketException

from signal_feed.client.state import FeedPage
from signal_feed.core.exceptions import NetworkError
from signal_feed.schemas import SignalEvent
from signal_feed.utils.constants import CHANGE_HINT, RECONNECT_DELAY_INITIAL, RECONNECT_DELAY_MAX
from signal_feed.utils.logging import get_logger

logger = get_logger(__name__)


class FeedApiClient:
    """
    Fetches feed pages from ``GET /api/data``.

    Every failure (connection, timeout, non-200 status, ``success: false``,
    malformed body) is raised as ``NetworkError``.
    """

    def __init__(
        self,
        base_url: str,
        page_size: int = 10,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.timeout = timeout
        self._client = client

    async def fetch_page(self, page: int) -> FeedPage:
        url = f"{self.base_url}/api/data"
        params = {"page": page, "limit": self.page_size}

        try:
            if self._client is not None:
                response = await self._client.get(url, params=params)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params)
        except httpx.HTTPError as e:
            raise NetworkError(f"Request failed: {e.__class__.__name__}: {e}") from e

        if response.status_code != 200:
            raise NetworkError(f"HTTP error! Status: {response.status_code}")

        try:
            result = response.json()
        except ValueError as e:
            raise NetworkError("Response was not valid JSON") from e

        if not isinstance(result, dict) or not result.get("success"):
            message = result.get("message", "unknown error") if isinstance(result, dict) else "unknown error"
            raise NetworkError(f"Failed to fetch data: {message}")

        try:
            items = [SignalEvent.model_validate(item) for item in result.get("data", [])]
            return FeedPage(
                items=items,
                total_pages=int(result["totalPages"]),
                current_page=int(result.get("currentPage", page)),
                total_count=int(result["totalCount"]) if "totalCount" in result else None,
            )
        except (pydantic.ValidationError, KeyError, TypeError, ValueError) as e:
            raise NetworkError(f"Malformed page response: {e}") from e


class HintSubscriber:
    """
    Yields change hints from the WebSocket channel, reconnecting with
    exponential backoff.

    Hints sent while no socket is open are lost, so every successful
    connect, the first one included, yields one synthetic hint that makes
    the viewer catch up on whatever it missed.
    """

    def __init__(self, ws_url: str, open_timeout: float = 10.0):
        self.ws_url = ws_url
        self.open_timeout = open_timeout

    async def hints(self) -> AsyncIterator[str]:
        delay = RECONNECT_DELAY_INITIAL

        while True:
            try:
                async with websockets.connect(self.ws_url, open_timeout=self.open_timeout) as ws:
                    logger.info("Hint channel connected", url=self.ws_url)
                    delay = RECONNECT_DELAY_INITIAL
                    yield CHANGE_HINT

                    async for message in ws:
                        if isinstance(message, bytes):
                            message = message.decode("utf-8", errors="replace")
                        yield message
                logger.info("Hint channel closed by server", url=self.ws_url)
            except (WebSocketException, OSError, asyncio.TimeoutError) as e:
                logger.warning("Hint channel error, reconnecting", error=str(e), retry_in=delay)
            await asyncio.sleep(delay)
            delay = min(delay * 2, RECONNECT_DELAY_MAX)
