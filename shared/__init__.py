"""
ROBOSTORE Shared Module

Common utilities used across all services.
"""

from .utils import (
    setup_logger,
    success_response,
    log_execution_time,
    get_now_iso,
    now_ms,
)

__all__ = [
    'setup_logger',
    'success_response',
    'log_execution_time',
    'get_now_iso',
    'now_ms',
]
