"""Custom exceptions for Takeout Wrapped."""


class TakeoutWrappedError(Exception):
    """Base exception for all Takeout Wrapped errors."""

    pass


class AuthenticationError(TakeoutWrappedError):
    """Authentication failed."""

    pass


class AuthorizationError(TakeoutWrappedError):
    """Caller not authorized for this action."""

    pass


class NotFoundError(TakeoutWrappedError):
    """Resource not found."""

    pass


class ValidationError(TakeoutWrappedError):
    """Validation failed."""

    pass


class InvalidExportError(ValidationError):
    """Uploaded file is not a usable Google Takeout watch history export."""

    pass


class ExternalServiceError(TakeoutWrappedError):
    """External service (YouTube Data API, etc.) failed."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service}: {message}")


class RateLimitError(ExternalServiceError):
    """Rate limited or out of quota on an external service."""

    pass


class ProcessingError(TakeoutWrappedError):
    """A pipeline step failed after exhausting its attempts."""

    def __init__(self, stage: str, message: str, progress: int = 0):
        self.stage = stage
        self.progress = progress
        super().__init__(f"{stage}: {message}")
