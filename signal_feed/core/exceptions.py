"""Error taxonomy for the signal feed."""


class SignalFeedError(Exception):
    """Base class for all signal feed errors."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SignalFeedError):
    """Malformed ingestion payload or query parameters. Rejected, never retried."""

    status_code = 400

    def __init__(self, message: str, reason: str = "invalid"):
        super().__init__(message)
        self.reason = reason


class StorageUnavailable(SignalFeedError):
    """Event store unreachable or a query failed."""

    status_code = 500


class TransportError(SignalFeedError):
    """Sending a change hint to a viewer session failed."""


class NetworkError(SignalFeedError):
    """Client-side page fetch failed (connection, timeout, bad status or envelope)."""
