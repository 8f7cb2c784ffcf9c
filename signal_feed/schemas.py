"""
Wire schemas shared by the API and the viewer client.
"""
from datetime import datetime, timezone
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class SignalEvent(BaseModel):
    """A stored signal event as served by ``GET /api/data``."""
    id: int
    symbol: str
    price: float
    signal: str
    timestamp: datetime
    additional_info: str = Field("", alias="additionalInfo")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # SQLite drops tzinfo; stored values are always UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("additional_info", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return "" if value is None else value

    @classmethod
    def from_record(cls, record) -> "SignalEvent":
        """Build from a ``SignalEventRecord`` row."""
        return cls(
            id=record.id,
            symbol=record.symbol,
            price=float(record.price),
            signal=record.signal,
            timestamp=record.timestamp,
            additional_info=record.additional_info,
        )

    def sort_key(self):
        """Newest-first ordering key: timestamp, then id."""
        return (self.timestamp, self.id)


class PageResponse(BaseModel):
    """Envelope for one page of the feed."""
    success: bool = True
    data: List[SignalEvent]
    totalPages: int
    currentPage: int
    totalCount: int


class WebhookAck(BaseModel):
    """Envelope returned for an accepted webhook call."""
    success: bool = True
    message: str
    id: Optional[int] = None


class ErrorResponse(BaseModel):
    """Envelope returned for every rejected or failed call."""
    success: bool = False
    message: str
