"""
FORMCOACH Shared Utilities

Logging, error-mapping decorators, and time helpers.
"""

import asyncio
import logging
import sys
from datetime import datetime, timezone
from functools import wraps

from fastapi import HTTPException


# ============================================
# Logging Configuration
# ============================================

def setup_logger(name: str = "formcoach", level: int = logging.INFO) -> logging.Logger:
    """
    Set up a configured logger with console output.

    Usage:
        logger = setup_logger(__name__)
        logger.info("Hello from FORMCOACH")
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


# Default logger for imports
logger = setup_logger("formcoach")


# ============================================
# Decorators
# ============================================

def handle_exceptions(func):
    """
    Decorator to catch exceptions and return proper HTTP errors.

    LookupError -> 404, ValueError -> 400, anything else -> 500.
    """
    def to_http(e: Exception) -> HTTPException:
        if isinstance(e, LookupError):
            return HTTPException(status_code=404, detail=f"Session not found: {e}")
        if isinstance(e, ValueError):
            return HTTPException(status_code=400, detail=str(e))
        logger.error(f"Unhandled error in {func.__name__}: {e}")
        return HTTPException(status_code=500, detail="Internal server error")

    @wraps(func)
    async def async_wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except HTTPException:
            raise
        except Exception as e:
            raise to_http(e) from e

    @wraps(func)
    def sync_wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except HTTPException:
            raise
        except Exception as e:
            raise to_http(e) from e

    if asyncio.iscoroutinefunction(func):
        return async_wrapper
    return sync_wrapper


# ============================================
# Utility Functions
# ============================================

def get_now_iso() -> str:
    """Get current UTC datetime as ISO string."""
    return datetime.now(timezone.utc).isoformat()
