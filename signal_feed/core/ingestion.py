"""
Webhook ingestion.
Validates producer payloads, appends them to the event store and triggers
exactly one change hint per stored event.
"""
import json
import math
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from starlette.concurrency import run_in_threadpool

from signal_feed.core.event_store import EventStore, SignalCandidate
from signal_feed.core.exceptions import TransportError, ValidationError
from signal_feed.core.notifier import ChangeNotifier
from signal_feed.schemas import SignalEvent
from signal_feed.utils.constants import (
    EPOCH_MILLIS_THRESHOLD,
    MAX_SIGNAL_LENGTH,
    MAX_SYMBOL_LENGTH,
    MISSING_FIELDS_MESSAGE,
    REQUIRED_FIELDS,
)
from signal_feed.utils.logging import get_logger
from signal_feed.utils.metrics import record_event_ingested

logger = get_logger(__name__)

# Producer spellings accepted for each canonical field
FIELD_ALIASES = {
    "symbol": ("symbol",),
    "price": ("price",),
    "signal": ("signal", "signal_"),
    "timestamp": ("timestamp",),
    "additional_info": ("additionalInfo", "additional_info"),
}


def parse_body(body: bytes) -> Dict[str, Any]:
    """
    Decode a webhook body as JSON regardless of its content type.
    TradingView posts JSON alert messages as text/plain.
    """
    if not body or not body.strip():
        raise ValidationError(MISSING_FIELDS_MESSAGE, reason="missing_fields")
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError("Malformed JSON body", reason="malformed") from e
    if not isinstance(payload, dict):
        raise ValidationError(MISSING_FIELDS_MESSAGE, reason="missing_fields")
    return payload


def _pick(payload: Dict[str, Any], field: str) -> Any:
    for key in FIELD_ALIASES[field]:
        if key in payload:
            return payload[key]
    return None


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, bool):
        return not value
    if isinstance(value, (int, float)):
        return value == 0
    return False


def _parse_price(value: Any) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValidationError("Invalid price", reason="bad_price")
    try:
        price = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValidationError("Invalid price", reason="bad_price") from e
    if not price.is_finite():
        raise ValidationError("Invalid price", reason="bad_price")
    return price


def _from_epoch(value: float) -> datetime:
    if not math.isfinite(value):
        raise ValidationError("Invalid timestamp", reason="bad_timestamp")
    seconds = value / 1000.0 if abs(value) >= EPOCH_MILLIS_THRESHOLD else value
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise ValidationError("Invalid timestamp", reason="bad_timestamp") from e


def parse_timestamp(value: Any, now: Optional[datetime] = None) -> datetime:
    """
    Normalise a producer timestamp to an aware UTC datetime.

    Accepts epoch numbers (milliseconds, or seconds below 1e11), numeric
    strings, and ISO-8601 strings. Missing values default to ``now``.
    Naive datetimes are taken as UTC.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return now or datetime.now(timezone.utc)

    if isinstance(value, bool):
        raise ValidationError("Invalid timestamp", reason="bad_timestamp")

    if isinstance(value, (int, float)):
        return _from_epoch(float(value))

    if not isinstance(value, str):
        raise ValidationError("Invalid timestamp", reason="bad_timestamp")

    text = value.strip()
    try:
        return _from_epoch(float(text))
    except ValueError:
        pass

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValidationError("Invalid timestamp", reason="bad_timestamp") from e

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def validate_payload(payload: Dict[str, Any], now: Optional[datetime] = None) -> SignalCandidate:
    """
    Turn a raw webhook payload into a storable candidate.

    Raises:
        ValidationError: symbol, price or signal missing/empty, or a field
            that is present but malformed
    """
    symbol, price, signal = (_pick(payload, name) for name in REQUIRED_FIELDS)

    if any(_is_missing(value) for value in (symbol, price, signal)):
        raise ValidationError(MISSING_FIELDS_MESSAGE, reason="missing_fields")

    symbol = str(symbol).strip()
    signal = str(signal).strip()
    if len(symbol) > MAX_SYMBOL_LENGTH:
        raise ValidationError("Symbol too long", reason="bad_symbol")
    if len(signal) > MAX_SIGNAL_LENGTH:
        raise ValidationError("Signal too long", reason="bad_signal")

    additional_info = _pick(payload, "additional_info")

    return SignalCandidate(
        symbol=symbol,
        price=_parse_price(price),
        signal=signal,
        timestamp=parse_timestamp(_pick(payload, "timestamp"), now=now),
        additional_info="" if additional_info is None else str(additional_info),
    )


class IngestionService:
    """
    Ingestion flow:
    1. Validate the payload (reject before touching the store)
    2. Append to the event store
    3. Broadcast one change hint; failures are logged, never raised
    """

    def __init__(self, store: EventStore, notifier: ChangeNotifier):
        self.store = store
        self.notifier = notifier

    async def ingest(self, payload: Dict[str, Any]) -> SignalEvent:
        candidate = validate_payload(payload)

        event = await run_in_threadpool(self.store.append, candidate)
        record_event_ingested(event.signal)
        logger.info(f"Received webhook data: #{event.id} {event.symbol} {event.signal} @ {event.price}")

        await self._notify(event.id)
        return event

    async def _notify(self, event_id: int) -> None:
        try:
            reached = await self.notifier.broadcast()
        except TransportError as e:
            logger.warning(f"Broadcast for event {event_id} failed: {e.message}")
            return
        except Exception as e:
            logger.exception("Broadcast raised", event_id=event_id, error=repr(e))
            return
        logger.debug(f"Broadcast for event {event_id} reached {reached} viewers")
