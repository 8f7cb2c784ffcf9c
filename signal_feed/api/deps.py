"""Shared FastAPI dependencies."""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from signal_feed.config.settings import Settings, get_settings
from signal_feed.core.event_store import EventStore
from signal_feed.core.notifier import ChangeNotifier
from signal_feed.models.base import get_db


def get_notifier(request: Request) -> ChangeNotifier:
    """Notifier created by the application lifespan."""
    return request.app.state.notifier


def get_store(db: Session = Depends(get_db)) -> EventStore:
    """Event store bound to the request's database session."""
    return EventStore(db)


def get_app_settings() -> Settings:
    return get_settings()
