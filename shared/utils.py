"""
ROBOSTORE Shared Utilities

Logging, response envelopes and time helpers.
"""

import logging
import sys
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any


# ============================================
# Logging Configuration
# ============================================

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(name: str = "robostore", level: int = logging.INFO) -> logging.Logger:
    """
    Set up a configured logger with console output.

    Usage:
        logger = setup_logger(__name__)
        logger.info("Hello from ROBOSTORE")
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logger.addHandler(console_handler)

    # Root logger already prints; keep one line per record
    logger.propagate = False

    return logger


# Default logger for imports
logger = setup_logger("robostore")


# ============================================
# Response Envelopes
# ============================================

def success_response(data: Any = None, message: str = "Success") -> dict:
    """Create a success response dict."""
    return {
        "success": True,
        "message": message,
        "data": data,
        "timestamp": get_now_iso()
    }


# ============================================
# Decorators
# ============================================

def log_execution_time(func):
    """Decorator to log coroutine execution time."""
    @wraps(func)
    async def wrapper(*args, **kwargs):
        start = time.perf_counter()
        try:
            return await func(*args, **kwargs)
        finally:
            elapsed = (time.perf_counter() - start) * 1000
            logger.debug(f"{func.__name__} executed in {elapsed:.2f}ms")

    return wrapper


# ============================================
# Time Helpers
# ============================================

def get_now() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def get_now_iso() -> str:
    """Get current UTC datetime as ISO string."""
    return get_now().isoformat()


def now_ms() -> float:
    """Wall-clock milliseconds since the epoch."""
    return time.time() * 1000

