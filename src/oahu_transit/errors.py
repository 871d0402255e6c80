"""Exceptions raised by feed ingestion and trip planning."""


class TransitError(Exception):
    """Base exception for all oahu_transit failures."""


class FeedError(TransitError):
    """Base exception for feed ingestion failures."""


class FetchError(FeedError):
    """Raised when the feed source cannot be retrieved. Retryable."""


class ParseError(FeedError):
    """Raised when a required table is missing or unparsable."""


class PartialDataError(FeedError):
    """An optional table was missing. Logged and recorded, never fatal."""


class GeocodingError(TransitError):
    """Raised when a free-text location cannot be resolved."""


class NoCoverageError(TransitError):
    """No stops or corridors cover the requested endpoints."""


class RealtimeUnavailableError(TransitError):
    """A configured live feed could not be fetched. Callers degrade to schedule."""
