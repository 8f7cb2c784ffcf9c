"""Database models."""
from signal_feed.models.base import Base, get_db, get_engine, init_db
from signal_feed.models.signal_events import SignalEventRecord

__all__ = ["Base", "get_db", "get_engine", "init_db", "SignalEventRecord"]
