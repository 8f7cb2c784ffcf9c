import asyncio

import httpx
import pytest

from signal_feed.client import transport
from signal_feed.client.transport import FeedApiClient, HintSubscriber
from signal_feed.core.exceptions import NetworkError

PAGE = {
    "success": True,
    "data": [
        {
            "id": 2,
            "symbol": "ETH",
            "price": 3000,
            "signal": "SELL",
            "timestamp": "2024-03-15T12:05:00Z",
            "additionalInfo": "breakdown",
        },
        {
            "id": 1,
            "symbol": "BTC",
            "price": 50000.5,
            "signal": "BUY",
            "timestamp": "2024-03-15T12:00:00Z",
            "additionalInfo": "",
        },
    ],
    "totalPages": 1,
    "currentPage": 0,
    "totalCount": 2,
}


def _fetch(handler, page: int = 0):
    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            api = FeedApiClient("http://feed.test/", page_size=10, client=client)
            return await api.fetch_page(page)

    return asyncio.run(scenario())


def test_fetch_page_parses_envelope():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        return httpx.Response(200, json=PAGE)

    page = _fetch(handler)

    assert seen["url"] == "http://feed.test/api/data?page=0&limit=10"
    assert page.total_pages == 1
    assert page.current_page == 0
    assert page.total_count == 2
    assert [event.symbol for event in page.items] == ["ETH", "BTC"]
    assert page.items[0].additional_info == "breakdown"
    assert page.items[0].timestamp.utcoffset().total_seconds() == 0


def test_http_error_status_is_network_error():
    def handler(request):
        return httpx.Response(500, json={"success": False, "message": "db down"})

    with pytest.raises(NetworkError) as exc_info:
        _fetch(handler)

    assert exc_info.value.message == "HTTP error! Status: 500"


def test_unsuccessful_envelope_is_network_error():
    def handler(request):
        return httpx.Response(200, json={"success": False, "message": "nope"})

    with pytest.raises(NetworkError) as exc_info:
        _fetch(handler)

    assert exc_info.value.message == "Failed to fetch data: nope"


def test_malformed_items_are_network_error():
    def handler(request):
        return httpx.Response(200, json={"success": True, "data": [{"id": "x"}], "totalPages": 1})

    with pytest.raises(NetworkError):
        _fetch(handler)


def test_non_json_body_is_network_error():
    def handler(request):
        return httpx.Response(200, text="<html>gateway</html>")

    with pytest.raises(NetworkError):
        _fetch(handler)


def test_connection_failure_is_network_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(NetworkError):
        _fetch(handler)


class ScriptedSubscriber:
    def __init__(self, messages):
        self.messages = messages

    async def hints(self):
        for message in self.messages:
            yield message


def test_feed_viewer_redraws_on_load_and_accepted_hints(feed):
    from signal_feed.client.engine import ReconciliationEngine
    from signal_feed.client.session import FeedViewer

    feed.add_many(3)
    frames = []
    viewer = FeedViewer(
        ReconciliationEngine(feed),
        ScriptedSubscriber(["pong", "newData"]),
        on_change=lambda state: frames.append(state.rendered_count),
    )

    asyncio.run(viewer.run())

    assert feed.requests == [0, 0]
    assert frames == [3, 3]


def test_row_stored_before_the_channel_opens_is_picked_up(feed):
    from signal_feed.client.engine import ReconciliationEngine
    from signal_feed.client.session import FeedViewer

    class LateOpeningChannel:
        async def hints(self):
            # A webhook lands after the initial fetch but before the socket is up
            feed.add(30, symbol="ETH")
            yield "newData"

    feed.add_many(3)
    viewer = FeedViewer(ReconciliationEngine(feed), LateOpeningChannel())

    asyncio.run(viewer.run())

    assert viewer.state.rendered_count == 4
    assert 4 in viewer.state.highlighted_ids


class FakeSocket:
    def __init__(self, messages):
        self.messages = list(messages)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.messages:
            yield message


@pytest.fixture
def scripted_channel(monkeypatch):
    """Replaces ``websockets.connect`` with a script of outcomes and records backoff sleeps."""
    outcomes = []
    sleeps = []
    real_sleep = asyncio.sleep

    def fake_connect(url, open_timeout=None):
        outcome = outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return FakeSocket(outcome)

    async def fake_sleep(delay):
        sleeps.append(delay)
        await real_sleep(0)

    monkeypatch.setattr(transport.websockets, "connect", fake_connect)
    monkeypatch.setattr(transport.asyncio, "sleep", fake_sleep)
    return outcomes, sleeps


def _take_hints(count: int) -> list:
    async def scenario():
        hints = HintSubscriber("ws://feed.test/ws").hints()
        received = []
        async for message in hints:
            received.append(message)
            if len(received) == count:
                break
        await hints.aclose()
        return received

    return asyncio.run(scenario())


def test_every_connect_starts_with_a_catch_up_hint(scripted_channel):
    outcomes, sleeps = scripted_channel
    outcomes.extend([["hello", b"newData"], []])

    received = _take_hints(4)

    # First connect, two server frames, then the reconnect after the close
    assert received == ["newData", "hello", "newData", "newData"]
    assert sleeps == [1.0]


def test_failed_connects_back_off_exponentially(scripted_channel):
    outcomes, sleeps = scripted_channel
    outcomes.extend([OSError("refused"), OSError("refused"), OSError("refused"), []])

    received = _take_hints(1)

    assert received == ["newData"]
    assert sleeps == [1.0, 2.0, 4.0]
