"""
Utility functions for autolog-events
====================================

This package provides:
- Structured logging configuration
- Subscriber and event validation
"""

from .logging import setup_logging, get_logger, LogContext, log_error_with_context
from .validation import (
    SubscriberValidator,
    ValidationError,
    validate_subscriber,
    validate_event,
    safe_validate,
)

__all__ = [
    'setup_logging',
    'get_logger',
    'LogContext',
    'log_error_with_context',
    'SubscriberValidator',
    'ValidationError',
    'validate_subscriber',
    'validate_event',
    'safe_validate',
]
