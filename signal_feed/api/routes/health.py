"""
Health check and metrics endpoints.
"""
from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from datetime import datetime, timezone

from signal_feed.api.deps import get_notifier, get_store
from signal_feed.core.event_store import EventStore
from signal_feed.core.exceptions import StorageUnavailable
from signal_feed.core.notifier import ChangeNotifier
from signal_feed.utils.metrics import registry

router = APIRouter()

@router.get("/health")
def health_check(
    store: EventStore = Depends(get_store),
    notifier: ChangeNotifier = Depends(get_notifier),
):
    """
    Health check endpoint.
    Verifies database connectivity and reports connected viewers.
    """
    try:
        store.ping()
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": "connected",
            "viewers": notifier.session_count,
        }
    except StorageUnavailable as e:
        return {
            "status": "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "database": "disconnected",
            "viewers": notifier.session_count,
            "error": e.message,
        }

@router.get("/metrics")
def metrics():
    """Prometheus exposition of the signal feed registry."""
    return Response(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)
