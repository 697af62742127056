"""Custom exception types for consistent error handling."""


class FirestoreUnavailableError(Exception):
    """Raised when Firestore queries fail or are unavailable."""


class GeocodingError(Exception):
    """Raised when a postcode lookup fails or returns no usable result."""
