"""
Push channels for change hints.

Both transports register a session with the same notifier; they only
differ in how the hint text reaches the viewer.
"""
import asyncio

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from signal_feed.core.exceptions import TransportError
from signal_feed.core.notifier import QueueSession, ViewerSession
from signal_feed.utils.constants import KEEPALIVE_PING, KEEPALIVE_PONG, SSE_QUEUE_SIZE

router = APIRouter()

# Seconds between SSE comment lines that keep idle proxies from closing the stream
SSE_KEEPALIVE_INTERVAL = 15.0


class WebSocketSession(ViewerSession):
    """Viewer connected over a WebSocket."""

    def __init__(self, websocket: WebSocket):
        super().__init__()
        self.websocket = websocket

    async def send(self, message: str) -> None:
        try:
            await self.websocket.send_text(message)
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            raise TransportError(f"WebSocket {self.session_id} closed: {e}") from e


@router.websocket("/ws")
async def change_hints_ws(websocket: WebSocket):
    """
    WebSocket change-hint channel.
    Sends ``newData`` whenever the feed changes; answers ``ping`` with ``pong``.
    """
    notifier = websocket.app.state.notifier
    await websocket.accept()
    session = WebSocketSession(websocket)
    await notifier.connect(session)
    try:
        while True:
            message = await websocket.receive_text()
            if message == KEEPALIVE_PING:
                await websocket.send_text(KEEPALIVE_PONG)
    except WebSocketDisconnect:
        pass
    finally:
        await notifier.disconnect(session)


@router.get("/api/stream")
async def change_hints_sse(request: Request):
    """Server-sent-events change-hint channel."""
    notifier = request.app.state.notifier
    session = QueueSession(maxsize=SSE_QUEUE_SIZE)
    await notifier.connect(session)

    async def events():
        try:
            yield ": connected\n\n"
            while not await request.is_disconnected():
                try:
                    message = await asyncio.wait_for(session.queue.get(), timeout=SSE_KEEPALIVE_INTERVAL)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield f"data: {message}\n\n"
        finally:
            await notifier.disconnect(session)

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
