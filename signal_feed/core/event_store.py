"""
Append-only event store.
Durable ordered log of signal events backed by the ``trading_data`` table.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List

from sqlalchemy import desc, func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from signal_feed.core.exceptions import StorageUnavailable
from signal_feed.models.signal_events import SignalEventRecord
from signal_feed.schemas import SignalEvent
from signal_feed.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SignalCandidate:
    """A validated event that has not been assigned an id yet."""
    symbol: str
    price: Decimal
    signal: str
    timestamp: datetime
    additional_info: str = ""


class EventStore:
    """
    Query interface over the append-only signal table.

    Ordering contract:
    - Newest ``timestamp`` first
    - Ties broken by ``id`` descending so page windows are deterministic

    Every database failure surfaces as ``StorageUnavailable``; retries belong
    to the caller.
    """

    def __init__(self, db: Session):
        self.db = db

    def append(self, candidate: SignalCandidate) -> SignalEvent:
        """
        Insert one event and return it with its assigned id.

        Args:
            candidate: Validated event without an id

        Returns:
            The stored event
        """
        record = SignalEventRecord(
            symbol=candidate.symbol,
            price=candidate.price,
            signal=candidate.signal,
            timestamp=candidate.timestamp,
            additional_info=candidate.additional_info,
        )
        try:
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Append failed for {candidate.symbol}: {e}")
            raise StorageUnavailable(f"Could not store event: {e.__class__.__name__}") from e

        return SignalEvent.from_record(record)

    def count(self) -> int:
        """Total number of stored events."""
        try:
            return self.db.query(func.count(SignalEventRecord.id)).scalar() or 0
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Count failed: {e}")
            raise StorageUnavailable(f"Could not count events: {e.__class__.__name__}") from e

    def query_page(self, offset: int, limit: int) -> List[SignalEvent]:
        """
        Return a window of events over the newest-first ordering.

        Args:
            offset: Number of events to skip
            limit: Maximum number of events to return

        Returns:
            Events ordered newest timestamp first, then id descending
        """
        try:
            records = (
                self.db.query(SignalEventRecord)
                .order_by(desc(SignalEventRecord.timestamp), desc(SignalEventRecord.id))
                .offset(offset)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Page query failed", offset=offset, limit=limit, error=str(e))
            raise StorageUnavailable(f"Could not read events: {e.__class__.__name__}") from e

        return [SignalEvent.from_record(record) for record in records]

    def ping(self) -> bool:
        """Check connectivity with a trivial query."""
        try:
            self.db.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageUnavailable(f"Database unreachable: {e.__class__.__name__}") from e
