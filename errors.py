class MatchingError(Exception):
    """Base class for errors raised by the matching service."""


class InputError(MatchingError, ValueError):
    """Malformed coordinates, precision, polyline or query fields."""


class NotFoundError(MatchingError, LookupError):
    """A referenced ride or user does not exist."""
