"""
Base exception classes for the application.

Exception hierarchy follows the layer structure:
- Repository layer raises technical exceptions
- Core/service layer raises domain and provider exceptions
- API layer transforms them to HTTP responses (see api/exception_handlers.py)

A field that cannot be normalized is NOT an exception: normalizers return
None for it. A market-data leg that falls back to its static default is NOT
an exception either: it is logged and recorded in MarketSnapshot.sources.
"""


class AppException(Exception):
    """
    Base exception for all application-specific exceptions.

    All custom exceptions inherit from this class so callers can catch
    every app error at once if needed.
    """

    def __init__(self, message: str = "An application error occurred"):
        self.message = message
        super().__init__(self.message)


# ============================================================================
# DOMAIN EXCEPTIONS (raised by service layer)
# ============================================================================


class ValidationError(AppException):
    """
    Raised when business validation rules are violated.

    Examples:
    - Empty chat message
    - Uploaded file is not an image

    Typically maps to HTTP 400
    """

    pass


class NotFoundError(AppException):
    """
    Raised when a requested resource doesn't exist.

    Typically maps to HTTP 404
    """

    pass


class ExtractionError(AppException):
    """
    Raised when no structured object can be recovered from a model response.

    Fatal to that one screenshot analysis; the message is user-facing and
    suggests entering the trade manually.

    Typically maps to HTTP 422
    """

    def __init__(
        self,
        message: str = (
            "Failed to analyze screenshot. Please ensure the image shows clear "
            "trading information, or enter the trade manually."
        ),
    ):
        super().__init__(message)


# ============================================================================
# PROVIDER EXCEPTIONS (remote model / data providers)
# ============================================================================


class ProviderError(AppException):
    """Base for failures of an external provider call."""

    pass


class TransientProviderError(ProviderError):
    """
    Rate-limit or quota exhaustion that outlived the retry budget.

    Typically maps to HTTP 503
    """

    def __init__(
        self,
        message: str = (
            "AI analysis is temporarily unavailable due to high demand. Please try "
            "again in a few minutes, or enter your trade data manually."
        ),
    ):
        super().__init__(message)


class FatalProviderError(ProviderError):
    """
    Any other provider failure (auth, malformed request, network).
    Never retried.

    Typically maps to HTTP 502
    """

    pass


# ============================================================================
# REPOSITORY/TECHNICAL EXCEPTIONS
# ============================================================================


class RepositoryError(AppException):
    """
    Base exception for repository layer errors.

    Examples:
    - Generic database errors
    - Transaction failures
    - Connection issues
    """

    pass
