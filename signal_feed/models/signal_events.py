"""Signal event database model."""
from sqlalchemy import Column, String, Numeric, DateTime, Integer, Text, Index
from sqlalchemy.sql import func
from signal_feed.models.base import Base

class SignalEventRecord(Base):
    """
    One trading signal received on the webhook.
    Rows are append-only: never updated, never deleted.
    """
    __tablename__ = 'trading_data'

    # Primary key, assigned by the database on insert
    id = Column(Integer, primary_key=True, autoincrement=True)

    # Signal payload
    symbol = Column(String(32), nullable=False)
    price = Column(Numeric(20, 8), nullable=False)
    signal = Column('signal_', String(32), nullable=False)
    additional_info = Column(Text, nullable=False, default='')

    # Display ordering key, supplied by the producer or defaulted to insert time
    timestamp = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index('ix_trading_data_timestamp_id', 'timestamp', 'id'),
    )
