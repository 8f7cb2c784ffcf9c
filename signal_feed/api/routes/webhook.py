"""
Webhook endpoint for TradingView-style signal producers.
"""
from fastapi import APIRouter, Depends, Request

from signal_feed.api.deps import get_notifier, get_store
from signal_feed.core.event_store import EventStore
from signal_feed.core.exceptions import ValidationError
from signal_feed.core.ingestion import IngestionService, parse_body
from signal_feed.core.notifier import ChangeNotifier
from signal_feed.schemas import WebhookAck
from signal_feed.utils.constants import ACCEPTED_MESSAGE
from signal_feed.utils.logging import get_logger
from signal_feed.utils.metrics import record_webhook_rejected

logger = get_logger(__name__)

router = APIRouter()

@router.post("/webhook", response_model=WebhookAck)
async def receive_webhook(
    request: Request,
    store: EventStore = Depends(get_store),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    """
    Store one signal event and notify connected viewers.
    Body: ``{symbol, price, signal, timestamp?, additionalInfo?}``
    """
    service = IngestionService(store, notifier)
    try:
        payload = parse_body(await request.body())
        event = await service.ingest(payload)
    except ValidationError as e:
        record_webhook_rejected(e.reason)
        logger.info("Webhook rejected", reason=e.reason, message=e.message)
        raise

    return WebhookAck(message=ACCEPTED_MESSAGE, id=event.id)
