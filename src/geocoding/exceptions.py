class GeocodingError(Exception):
    """Base class for reverse geocoding failures."""


class ValidationFailure(GeocodingError):
    """The coordinate is malformed or out of range. Never retried."""


class TransientUpstreamFailure(GeocodingError):
    """Network error, non-2xx status or an unusable response body. Retryable."""


class PersistenceFailure(GeocodingError):
    """The address cache could not be written."""
