"""
Custom middleware for the TradeSight API.

Cross-cutting request concerns: one access line per request, and removal of
the StreamHandler SQLAlchemy attaches when it opens a new connection (which
would otherwise print every engine log line twice).
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware

from tradesight.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        self._cleanup_sqlalchemy_handlers()
        start = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"[HTTP] {request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)"
        )
        # New DB connections made during this request may have added handlers
        self._cleanup_sqlalchemy_handlers()
        return response

    @staticmethod
    def _cleanup_sqlalchemy_handlers():
        if logging.getLogger("sqlalchemy.engine.Engine").handlers:
            setup_logging()
