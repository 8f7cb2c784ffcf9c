import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from signal_feed.config.settings import Settings
from signal_feed.core import notifier as notifier_module
from signal_feed.core.exceptions import TransportError
from signal_feed.core.notifier import (
    LocalChangeNotifier,
    QueueSession,
    RedisChangeNotifier,
    ViewerSession,
    build_notifier,
)


class RecordingSession(ViewerSession):
    def __init__(self, fail: bool = False, hang: bool = False):
        super().__init__()
        self.received = []
        self.fail = fail
        self.hang = hang

    async def send(self, message: str) -> None:
        if self.fail:
            raise TransportError("socket closed")
        if self.hang:
            await asyncio.sleep(10)
        self.received.append(message)


def test_broadcast_reaches_only_connected_sessions():
    async def scenario():
        notifier = LocalChangeNotifier()
        connected = [RecordingSession() for _ in range(3)]
        gone = RecordingSession()

        for session in connected + [gone]:
            await notifier.connect(session)
        await notifier.disconnect(gone)

        reached = await notifier.broadcast()
        return reached, connected, gone

    reached, connected, gone = asyncio.run(scenario())

    assert reached == 3
    assert all(session.received == ["newData"] for session in connected)
    assert gone.received == []


def test_failed_send_drops_session_without_raising():
    async def scenario():
        notifier = LocalChangeNotifier()
        healthy = RecordingSession()
        broken = RecordingSession(fail=True)
        await notifier.connect(healthy)
        await notifier.connect(broken)

        reached = await notifier.broadcast()
        return notifier, reached, healthy

    notifier, reached, healthy = asyncio.run(scenario())

    assert reached == 1
    assert notifier.session_count == 1
    assert healthy.received == ["newData"]


def test_slow_session_is_dropped_after_send_timeout():
    async def scenario():
        notifier = LocalChangeNotifier(send_timeout=0.05)
        slow = RecordingSession(hang=True)
        fast = RecordingSession()
        await notifier.connect(slow)
        await notifier.connect(fast)

        reached = await notifier.broadcast()
        return notifier, reached

    notifier, reached = asyncio.run(scenario())

    assert reached == 1
    assert notifier.session_count == 1


def test_broadcast_with_no_sessions_is_a_no_op():
    assert asyncio.run(LocalChangeNotifier().broadcast()) == 0


def test_queue_session_drops_when_consumer_stops_reading():
    async def scenario():
        notifier = LocalChangeNotifier()
        session = QueueSession(maxsize=2)
        await notifier.connect(session)

        results = [await notifier.broadcast() for _ in range(3)]
        return notifier, session, results

    notifier, session, results = asyncio.run(scenario())

    assert results == [1, 1, 0]
    assert session.queue.qsize() == 2
    assert notifier.session_count == 0


def test_sessions_can_join_and_leave_during_broadcast():
    async def scenario():
        notifier = LocalChangeNotifier()
        sessions = [RecordingSession() for _ in range(20)]
        for session in sessions[:10]:
            await notifier.connect(session)

        await asyncio.gather(
            notifier.broadcast(),
            *(notifier.connect(s) for s in sessions[10:]),
            *(notifier.disconnect(s) for s in sessions[:5]),
        )
        return notifier

    notifier = asyncio.run(scenario())
    assert notifier.session_count == 15


class FakeRedis:
    def __init__(self, receivers: int = 2, fail: bool = False, subscriptions=None):
        self.receivers = receivers
        self.fail = fail
        self.published = []
        # One entry per pubsub() call: a list of messages, or an exception to raise from listen()
        self.subscriptions = list(subscriptions or [])
        self.pubsubs = []
        self.closed = False

    async def publish(self, channel, message):
        if self.fail:
            raise RedisConnectionError("redis down")
        self.published.append((channel, message))
        return self.receivers

    def pubsub(self):
        script = self.subscriptions.pop(0) if self.subscriptions else []
        pubsub = FakePubSub(script)
        self.pubsubs.append(pubsub)
        return pubsub

    async def aclose(self):
        self.closed = True


class FakePubSub:
    def __init__(self, script):
        self.script = script
        self.channels = []
        self.closed = False

    async def subscribe(self, channel):
        self.channels.append(channel)

    async def listen(self):
        if isinstance(self.script, Exception):
            raise self.script
        for message in self.script:
            yield message
        # Stay subscribed until the listener task is cancelled
        await asyncio.Event().wait()

    async def aclose(self):
        self.closed = True


def test_redis_broadcast_publishes_hint_on_channel():
    fake = FakeRedis(receivers=2)
    notifier = RedisChangeNotifier("redis", 6379, "feed:changes", client=fake)

    reached = asyncio.run(notifier.broadcast())

    assert reached == 2
    assert fake.published == [("feed:changes", "newData")]


def test_redis_publish_failure_is_a_transport_error():
    notifier = RedisChangeNotifier("redis", 6379, "feed:changes", client=FakeRedis(fail=True))

    with pytest.raises(TransportError):
        asyncio.run(notifier.broadcast())


def test_build_notifier_selects_backend():
    assert isinstance(build_notifier(Settings(NOTIFIER_BACKEND="local")), LocalChangeNotifier)

    with pytest.raises(ValueError):
        build_notifier(Settings(NOTIFIER_BACKEND="carrier-pigeon"))


async def _wait_for_hint(session: RecordingSession) -> None:
    for _ in range(200):
        if session.received:
            return
        await asyncio.sleep(0.01)


def test_redis_listener_relays_channel_messages_to_local_sessions():
    fake = FakeRedis(subscriptions=[[
        {"type": "subscribe", "channel": "feed:changes", "data": 1},
        {"type": "message", "channel": "feed:changes", "data": "newData"},
    ]])
    notifier = RedisChangeNotifier("redis", 6379, "feed:changes", client=fake)
    session = RecordingSession()

    async def scenario():
        await notifier.connect(session)
        await notifier.start()
        await _wait_for_hint(session)
        await notifier.stop()

    asyncio.run(scenario())

    assert session.received == ["newData"]
    assert fake.pubsubs[0].channels == ["feed:changes"]
    assert fake.pubsubs[0].closed is True
    assert fake.closed is True


def test_redis_listener_resubscribes_after_connection_loss(monkeypatch):
    monkeypatch.setattr(notifier_module, "RECONNECT_DELAY_INITIAL", 0.01)
    fake = FakeRedis(subscriptions=[
        RedisConnectionError("connection reset"),
        [{"type": "message", "channel": "feed:changes", "data": "newData"}],
    ])
    notifier = RedisChangeNotifier("redis", 6379, "feed:changes", client=fake)
    session = RecordingSession()

    async def scenario():
        await notifier.connect(session)
        await notifier.start()
        await _wait_for_hint(session)
        await notifier.stop()

    asyncio.run(scenario())

    assert session.received == ["newData"]
    assert len(fake.pubsubs) == 2
    assert fake.pubsubs[0].closed is True
