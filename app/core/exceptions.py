from typing import Optional, Any


class GirondeLeadsError(Exception):
    """
    Base exception for the lead capture backend.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class BadRequestError(GirondeLeadsError):
    """
    Raised when a request is well-formed but cannot be honoured.
    """
    def __init__(self, message: str = "Bad request", code: str = "BAD_REQUEST", details: Optional[Any] = None):
        super().__init__(message, code=code, status_code=400, details=details)


class SessionExpiredError(BadRequestError):
    """
    Raised when a verification session is unknown or past its expiry.
    """
    def __init__(self, message: str = "Session expirée ou invalide", details: Optional[Any] = None):
        super().__init__(message, code="SESSION_EXPIRED", details=details)


class AuthenticationError(GirondeLeadsError):
    """
    Raised when authentication fails.
    """
    def __init__(self, message: str = "Authentication failed", details: Optional[Any] = None):
        super().__init__(message, code="AUTHENTICATION_FAILED", status_code=401, details=details)


class ResourceNotFoundError(GirondeLeadsError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class ConflictError(GirondeLeadsError):
    """
    Raised on duplicates and invalid status transitions.
    """
    def __init__(self, message: str = "Conflict", details: Optional[Any] = None):
        super().__init__(message, code="CONFLICT", status_code=409, details=details)


class ValidationError(GirondeLeadsError):
    """
    Raised when input validation fails.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=422, details=details)


class RateLimitError(GirondeLeadsError):
    """
    Raised when a client exceeds a route's request budget.
    """
    def __init__(self, message: str = "Trop de tentatives. Veuillez réessayer dans quelques minutes.", details: Optional[Any] = None):
        super().__init__(message, code="RATE_LIMITED", status_code=429, details=details)


class ExternalServiceError(GirondeLeadsError):
    """
    Raised when an external service (e.g., Twilio, SMTP) fails.
    """
    def __init__(self, message: str = "External service error", details: Optional[Any] = None):
        super().__init__(message, code="EXTERNAL_SERVICE_ERROR", status_code=502, details=details)
