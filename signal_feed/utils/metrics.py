"""Prometheus metrics exporters."""
from prometheus_client import Counter, Gauge, CollectorRegistry

# Create registry
registry = CollectorRegistry()

# ========== INGESTION METRICS ==========
events_ingested = Counter(
    'signal_events_ingested_total',
    'Total number of signal events stored',
    ['signal'],
    registry=registry
)

webhooks_rejected = Counter(
    'webhooks_rejected_total',
    'Total number of webhook calls rejected',
    ['reason'],
    registry=registry
)

# ========== READ METRICS ==========
page_requests = Counter(
    'page_requests_total',
    'Total number of feed page requests',
    ['outcome'],
    registry=registry
)

# ========== NOTIFIER METRICS ==========
broadcasts = Counter(
    'broadcasts_total',
    'Total number of change hints broadcast',
    registry=registry
)

hint_deliveries = Counter(
    'hint_deliveries_total',
    'Change hint sends per session',
    ['outcome'],
    registry=registry
)

sessions_connected = Gauge(
    'viewer_sessions_connected',
    'Number of viewer sessions currently connected',
    registry=registry
)

# ========== HELPER FUNCTIONS ==========
SIGNAL_LABELS = ("BUY", "SELL", "NEUTRAL")


def signal_label(signal: str) -> str:
    """Bounded label set for producer-supplied signal text."""
    label = signal.strip().upper()
    return label if label in SIGNAL_LABELS else "OTHER"


def record_event_ingested(signal: str):
    """Record a stored signal event."""
    events_ingested.labels(signal=signal_label(signal)).inc()

def record_webhook_rejected(reason: str):
    """Record a rejected webhook call."""
    webhooks_rejected.labels(reason=reason).inc()

def record_page_request(outcome: str):
    """Record a page request outcome (ok, invalid, error)."""
    page_requests.labels(outcome=outcome).inc()

def record_broadcast():
    """Record a broadcast of the change hint."""
    broadcasts.inc()

def record_hint_delivery(outcome: str):
    """Record one per-session hint send (delivered, dropped)."""
    hint_deliveries.labels(outcome=outcome).inc()

def update_sessions_connected(count: int):
    """Update the connected sessions gauge."""
    sessions_connected.set(count)
