"""
Change notifier.
Fans a payload-free "data changed" hint out to every connected viewer session.

Delivery is at-most-once and best-effort: sessions that are gone when a
broadcast runs simply miss it and catch up on their next fetch.
"""
import asyncio
import uuid
from abc import ABC, abstractmethod
from typing import Dict, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from signal_feed.config.settings import Settings
from signal_feed.core.exceptions import TransportError
from signal_feed.utils.constants import CHANGE_HINT, RECONNECT_DELAY_INITIAL, RECONNECT_DELAY_MAX
from signal_feed.utils.logging import get_logger
from signal_feed.utils.metrics import (
    record_broadcast,
    record_hint_delivery,
    update_sessions_connected,
)

logger = get_logger(__name__)


class ViewerSession(ABC):
    """A connected viewer that can receive change hints."""

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id or uuid.uuid4().hex[:12]

    @abstractmethod
    async def send(self, message: str) -> None:
        """Deliver one hint. Raises ``TransportError`` when the session is gone."""
        raise NotImplementedError


class QueueSession(ViewerSession):
    """
    Session backed by a bounded asyncio queue.
    Used by the server-sent-events stream; a full queue means the consumer
    stopped reading and the session is dropped.
    """

    def __init__(self, maxsize: int = 16, session_id: Optional[str] = None):
        super().__init__(session_id)
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    async def send(self, message: str) -> None:
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull as e:
            raise TransportError(f"Session {self.session_id} is not reading") from e


class ChangeNotifier(ABC):
    """Publish/subscribe interface between ingestion and the push transports."""

    async def start(self) -> None:
        """Acquire background resources."""

    async def stop(self) -> None:
        """Release background resources."""

    @abstractmethod
    async def connect(self, session: ViewerSession) -> None:
        raise NotImplementedError

    @abstractmethod
    async def disconnect(self, session: ViewerSession) -> None:
        raise NotImplementedError

    @abstractmethod
    async def broadcast(self) -> int:
        """Send the change hint; returns how many receivers it reached."""
        raise NotImplementedError

    @property
    @abstractmethod
    def session_count(self) -> int:
        raise NotImplementedError


class LocalChangeNotifier(ChangeNotifier):
    """
    In-process fan-out.

    The session set is guarded by an asyncio lock; broadcasts iterate a
    snapshot so sessions may join or leave while hints are being sent.
    """

    def __init__(self, send_timeout: float = 5.0, hint: str = CHANGE_HINT):
        self.send_timeout = send_timeout
        self.hint = hint
        self._sessions: Dict[str, ViewerSession] = {}
        self._lock = asyncio.Lock()

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    async def connect(self, session: ViewerSession) -> None:
        async with self._lock:
            self._sessions[session.session_id] = session
            update_sessions_connected(len(self._sessions))
        logger.info("Viewer connected", session_id=session.session_id, sessions=self.session_count)

    async def disconnect(self, session: ViewerSession) -> None:
        async with self._lock:
            removed = self._sessions.pop(session.session_id, None)
            update_sessions_connected(len(self._sessions))
        if removed is not None:
            logger.info("Viewer disconnected", session_id=session.session_id, sessions=self.session_count)

    async def broadcast(self) -> int:
        record_broadcast()
        return await self.fan_out()

    async def fan_out(self) -> int:
        """Send the hint to every local session; returns the number reached."""
        async with self._lock:
            sessions = list(self._sessions.values())

        if not sessions:
            return 0

        results = await asyncio.gather(*(self._deliver(session) for session in sessions))

        for session, delivered in zip(sessions, results):
            if not delivered:
                await self.disconnect(session)

        reached = sum(1 for delivered in results if delivered)
        logger.debug("Change hint sent", reached=reached, dropped=len(sessions) - reached)
        return reached

    async def _deliver(self, session: ViewerSession) -> bool:
        try:
            await asyncio.wait_for(session.send(self.hint), timeout=self.send_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Hint send to {session.session_id} timed out")
            record_hint_delivery("dropped")
            return False
        except TransportError as e:
            logger.warning(f"Hint send to {session.session_id} failed: {e.message}")
            record_hint_delivery("dropped")
            return False
        except Exception as e:
            logger.exception("Hint send raised", session_id=session.session_id, error=repr(e))
            record_hint_delivery("dropped")
            return False
        record_hint_delivery("delivered")
        return True


class RedisChangeNotifier(LocalChangeNotifier):
    """
    Cross-process fan-out over Redis pub/sub.

    ``broadcast`` publishes the hint on a channel; every API process listens
    on that channel and fans out to its own local sessions, so viewers
    connected to any worker see hints for ingests handled by any other.
    """

    def __init__(
        self,
        host: str,
        port: int,
        channel: str,
        send_timeout: float = 5.0,
        client: Optional[aioredis.Redis] = None,
    ):
        super().__init__(send_timeout=send_timeout)
        self.channel = channel
        self._redis = client or aioredis.Redis(host=host, port=port, decode_responses=True)
        self._listener: Optional[asyncio.Task] = None

    async def start(self) -> None:
        self._listener = asyncio.create_task(self._listen())
        logger.info(f"Redis notifier started on channel {self.channel}")

    async def stop(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        await self._redis.aclose()
        logger.info(f"Redis notifier stopped on channel {self.channel}")

    async def broadcast(self) -> int:
        record_broadcast()
        try:
            receivers = await self._redis.publish(self.channel, self.hint)
        except RedisError as e:
            raise TransportError(f"Could not publish change hint: {e}") from e
        return int(receivers)

    async def _listen(self) -> None:
        delay = RECONNECT_DELAY_INITIAL
        while True:
            pubsub = self._redis.pubsub()
            try:
                await pubsub.subscribe(self.channel)
                delay = RECONNECT_DELAY_INITIAL
                async for message in pubsub.listen():
                    if message.get("type") == "message":
                        await self.fan_out()
            except RedisError as e:
                logger.warning(f"Redis subscription lost, retrying in {delay}s: {e}")
                await asyncio.sleep(delay)
                delay = min(delay * 2, RECONNECT_DELAY_MAX)
            finally:
                await pubsub.aclose()


def build_notifier(settings: Settings) -> ChangeNotifier:
    """Create the notifier selected by ``NOTIFIER_BACKEND``."""
    backend = settings.NOTIFIER_BACKEND.lower()

    if backend == "local":
        return LocalChangeNotifier(send_timeout=settings.NOTIFY_SEND_TIMEOUT)
    if backend == "redis":
        return RedisChangeNotifier(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            channel=settings.NOTIFY_CHANNEL,
            send_timeout=settings.NOTIFY_SEND_TIMEOUT,
        )
    raise ValueError(f"Unknown notifier backend: {settings.NOTIFIER_BACKEND}")
