"""Viewer-side reconciliation of paged snapshots and live change hints."""
from signal_feed.client.engine import ReconciliationEngine, ScrollPosition
from signal_feed.client.state import ClientViewState, FeedPage, ViewPhase

__all__ = ["ReconciliationEngine", "ScrollPosition", "ClientViewState", "FeedPage", "ViewPhase"]
