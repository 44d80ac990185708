"""Domain errors raised by the service layer and mapped to HTTP responses by the routes."""


class FitcoachError(Exception):
    """Base class for service-level failures."""


class NotFoundError(FitcoachError):
    """A referenced coach, availability block or appointment does not exist."""


class ConflictError(FitcoachError):
    """The requested change collides with existing state (double booking, closed appointment)."""


class EmptyAudienceError(FitcoachError):
    """No active users matched the notification target criteria."""


class DependencyFailure(FitcoachError):
    """The database or another collaborator failed; the caller may retry."""
