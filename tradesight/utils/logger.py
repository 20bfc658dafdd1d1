"""
Logging configuration for the TradeSight API.

- Colored console output in development (ENV=dev)
- JSON lines everywhere else, so log shippers can index provider degradations
- Deduplication of SQLAlchemy's self-added handlers
- Timing decorator for sync and async callables (dev/qa only)
"""

import asyncio
import json
import logging
import os
import sys
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, Optional


class ColoredFormatter(logging.Formatter):
    """Formatter with colored log levels and grey logger names."""

    COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[1;31m", # Bold Red
    }
    GREY = "\033[90m"
    RESET = "\033[0m"

    def formatTime(self, record, datefmt=None):
        """Include milliseconds in the timestamp."""
        ct = self.converter(record.created)
        s = time.strftime(datefmt or "%Y-%m-%d %H:%M:%S", ct)
        return f"{s},{int(record.msecs):03d}"

    def format(self, record: logging.LogRecord) -> str:
        original_levelname = record.levelname
        original_name = record.name

        log_color = self.COLORS.get(record.levelname, "")
        if log_color:
            record.levelname = f"{log_color}{record.levelname}{self.RESET}"
        record.name = f"{self.GREY}{record.name}{self.RESET}"

        formatted = super().format(record)

        # Restore for the next handler
        record.levelname = original_levelname
        record.name = original_name
        return formatted


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging in production environments."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "correlation_id"):
            log_data["correlation_id"] = record.correlation_id

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


def _get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def _get_environment() -> str:
    """Current environment name from ENV (dev, qa, prod...)."""
    return os.getenv("ENV", "prod").lower()


def setup_logging() -> None:
    """
    Install a single stdout handler on the root logger.

    Called once at application startup. Safe to call again: existing
    StreamHandlers are replaced rather than stacked, and handlers that
    SQLAlchemy attaches to its own loggers are removed so every record
    is emitted exactly once through the root logger.
    """
    env = _get_environment()
    root_logger = logging.getLogger()
    root_logger.setLevel(_get_log_level())

    if env == "dev":
        formatter: logging.Formatter = ColoredFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = JSONFormatter()

    other_handlers = [
        h for h in root_logger.handlers
        if not isinstance(h, logging.StreamHandler) or isinstance(h, logging.FileHandler)
    ]
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    for h in other_handlers:
        root_logger.addHandler(h)

    for logger_name in list(logging.Logger.manager.loggerDict):
        if logger_name.startswith("sqlalchemy"):
            sa_logger = logging.getLogger(logger_name)
            if isinstance(sa_logger, logging.Logger) and sa_logger.handlers:
                sa_logger.handlers.clear()
                sa_logger.propagate = True

    # Chatty transport loggers stay at WARNING unless explicitly debugging
    if _get_log_level() != "DEBUG":
        for noisy in ("httpx", "httpcore", "google_genai"):
            logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get or create a logger with the specified name.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("[MarketData] snapshot assembled")
    """
    return logging.getLogger(name)


def log_execution_time(func: Optional[Callable] = None, *, level: str = "DEBUG") -> Callable:
    """
    Decorator to log execution time of a sync or async callable.

    Only active in dev and qa environments; in production the wrapped
    callable runs untouched.

    Example:
        >>> @log_execution_time(level="INFO")
        ... async def fetch_snapshot():
        ...     ...
    """
    def decorator(f: Callable) -> Callable:
        logger = get_logger(f.__module__)
        log_method = getattr(logger, level.lower(), logger.debug)

        if asyncio.iscoroutinefunction(f):
            @wraps(f)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                if _get_environment() not in ("dev", "qa"):
                    return await f(*args, **kwargs)
                start_time = time.perf_counter()
                try:
                    return await f(*args, **kwargs)
                finally:
                    elapsed = time.perf_counter() - start_time
                    log_method(f"Function '{f.__name__}' executed in {elapsed:.4f}s")

            return async_wrapper

        @wraps(f)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if _get_environment() not in ("dev", "qa"):
                return f(*args, **kwargs)
            start_time = time.perf_counter()
            try:
                return f(*args, **kwargs)
            finally:
                elapsed = time.perf_counter() - start_time
                log_method(f"Function '{f.__name__}' executed in {elapsed:.4f}s")

        return wrapper

    if func is None:
        return decorator
    return decorator(func)
