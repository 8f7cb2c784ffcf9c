"""Trading signal feed: webhook ingestion, paginated reads and live change hints."""

__version__ = "1.0.0"
