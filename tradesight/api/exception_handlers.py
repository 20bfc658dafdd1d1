"""
Global exception handlers for the API layer.

These handlers transform domain and provider exceptions (from the service
layer) into HTTP responses, so endpoints carry no try/except of their own:

Repository (DB exceptions) -> Service (Domain/Provider exceptions) -> API (HTTP)
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse

from tradesight.core.exceptions import (
    AppException,
    ExtractionError,
    FatalProviderError,
    NotFoundError,
    RepositoryError,
    TransientProviderError,
    ValidationError,
)
from tradesight.utils.logger import get_logger

logger = get_logger(__name__)


def _detail(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message})


async def not_found_exception_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Maps to HTTP 404 Not Found."""
    return _detail(status.HTTP_404_NOT_FOUND, exc.message)


async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """
    Handle ValidationError (business validation failures).
    Maps to HTTP 400 Bad Request.

    Note: This is different from Pydantic validation errors,
    which are handled by FastAPI automatically.
    """
    return _detail(status.HTTP_400_BAD_REQUEST, exc.message)


async def extraction_exception_handler(request: Request, exc: ExtractionError) -> JSONResponse:
    """No JSON object could be recovered from the model response. HTTP 422."""
    return _detail(status.HTTP_422_UNPROCESSABLE_ENTITY, exc.message)


async def transient_provider_exception_handler(request: Request, exc: TransientProviderError) -> JSONResponse:
    """Still rate limited after retries. HTTP 503 with a Retry-After hint."""
    response = _detail(status.HTTP_503_SERVICE_UNAVAILABLE, exc.message)
    response.headers["Retry-After"] = "60"
    return response


async def fatal_provider_exception_handler(request: Request, exc: FatalProviderError) -> JSONResponse:
    """Upstream provider failure that retrying would not fix. HTTP 502."""
    logger.error(f"[API] {request.method} {request.url.path} provider failure: {exc.message}")
    return _detail(status.HTTP_502_BAD_GATEWAY, exc.message)


async def repository_exception_handler(request: Request, exc: RepositoryError) -> JSONResponse:
    """
    Handle RepositoryError (database/technical errors that weren't caught by service layer).
    Maps to HTTP 500 Internal Server Error.
    """
    logger.error(f"[API] {request.method} {request.url.path} repository error: {exc.message}")
    return _detail(status.HTTP_500_INTERNAL_SERVER_ERROR, "An internal database error occurred")


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Fallback handler for any AppException that wasn't caught by more specific handlers.
    Maps to HTTP 500 Internal Server Error.
    """
    return _detail(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message)


# Dictionary mapping exception types to their handlers
# This can be used to register all handlers at once in main.py
EXCEPTION_HANDLERS = {
    NotFoundError: not_found_exception_handler,
    ValidationError: validation_exception_handler,
    ExtractionError: extraction_exception_handler,
    TransientProviderError: transient_provider_exception_handler,
    FatalProviderError: fatal_provider_exception_handler,
    RepositoryError: repository_exception_handler,
    AppException: app_exception_handler,
}
