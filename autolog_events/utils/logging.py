"""
Logging utilities for autolog-events
====================================

Centralized logging configuration and utilities:
- Structured logging with JSON formatting
- Colored console output
- Thread-local publisher context (subscriber, execution, component)
- Error logging with attached context

Every module logs through get_logger(__name__) so setup_logging() controls the
whole package from one place.
"""

import sys
import logging
import logging.handlers
import json
import traceback
from datetime import datetime
from typing import Dict, Any, Optional, List
from pathlib import Path
import threading

# Thread-local storage for context
_context = threading.local()

_CONTEXT_FIELDS = ("subscriber_id", "execution_id", "component")


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def __init__(self, include_fields: List[str] = None):
        super().__init__()
        self.include_fields = include_fields

    def format(self, record):
        """Format log record as JSON"""
        try:
            log_data = {
                'timestamp': datetime.fromtimestamp(record.created).isoformat(),
                'level': record.levelname,
                'logger': record.name,
                'message': record.getMessage(),
                'module': record.module,
                'function': record.funcName,
                'line': record.lineno,
                'thread_name': record.threadName,
            }

            if record.exc_info:
                log_data['exception'] = {
                    'type': record.exc_info[0].__name__,
                    'message': str(record.exc_info[1]),
                    'traceback': traceback.format_exception(*record.exc_info)
                }

            for field in _CONTEXT_FIELDS:
                if hasattr(_context, field):
                    log_data[field] = getattr(_context, field)

            # Custom fields passed through `extra`
            for key, value in record.__dict__.items():
                if key.startswith('custom_') and key not in log_data:
                    log_data[key] = value

            if self.include_fields:
                log_data = {k: v for k, v in log_data.items()
                            if any(field in k for field in self.include_fields)}

            return json.dumps(log_data, default=str)

        except Exception as e:
            return f"LOGGING_ERROR: {str(e)} | Original: {record.getMessage()}"


class ColoredConsoleFormatter(logging.Formatter):
    """Colored console formatter for better readability"""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and hasattr(sys.stderr, 'isatty') and sys.stderr.isatty()

    def format(self, record):
        try:
            timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')
            level = record.levelname.ljust(8)
            logger_name = record.name.split('.')[-1]
            message = record.getMessage()

            context_parts = []
            if hasattr(_context, 'component'):
                context_parts.append(f"{_context.component}")
            if hasattr(_context, 'execution_id'):
                context_parts.append(f"exec:{_context.execution_id}")
            if hasattr(_context, 'subscriber_id'):
                context_parts.append(f"sub:{str(_context.subscriber_id)[:8]}")

            context_str = f"[{','.join(context_parts)}]" if context_parts else ""

            formatted = f"{timestamp} {level} {logger_name:15} {context_str:20} {message}"

            if record.exc_info:
                formatted += f"\n{self.formatException(record.exc_info)}"

            if self.use_colors:
                color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
                formatted = f"{color}{formatted}{self.COLORS['RESET']}"

            return formatted

        except Exception as e:
            return f"FORMATTING_ERROR: {str(e)} | Original: {record.getMessage()}"


def setup_logging(
    level: Optional[str] = None,
    log_dir: Optional[str] = None,
    enable_json: Optional[bool] = None,
    enable_console_colors: bool = True,
) -> logging.Logger:
    """
    Setup logging for the autolog_events package

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL); configured default when None
        log_dir: Directory for a rotating log file; configured default when None
        enable_json: Whether to use JSON formatting for the file handler; configured default when None
        enable_console_colors: Whether to use colored console output

    Returns:
        The configured package logger
    """
    from ..config import config
    logging_config = config.get_logging_config()
    level = level or logging_config["level"]
    log_dir = log_dir or logging_config["log_dir"]
    enable_json = logging_config["json"] if enable_json is None else enable_json

    package_logger = logging.getLogger('autolog_events')
    package_logger.setLevel(getattr(logging, level.upper()))
    package_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    if enable_console_colors:
        console_formatter = ColoredConsoleFormatter()
    else:
        console_formatter = logging.Formatter(
            '%(asctime)s [%(levelname)-8s] %(name)-15s %(message)s',
            datefmt='%H:%M:%S'
        )
    console_handler.setFormatter(console_formatter)
    package_logger.addHandler(console_handler)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path / "autolog_events.log",
            maxBytes=10*1024*1024,
            backupCount=5
        )
        if enable_json:
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s [%(levelname)-8s] %(name)-20s %(message)s'
            ))
        file_handler.setLevel(logging.DEBUG)
        package_logger.addHandler(file_handler)

    package_logger.propagate = False
    configure_logger_levels()

    package_logger.debug(f"autolog_events logging initialized at {level}")
    return package_logger


def configure_logger_levels():
    """Configure specific logger levels to reduce noise"""
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('requests').setLevel(logging.WARNING)
    logging.getLogger('mlflow').setLevel(logging.WARNING)
    logging.getLogger('pyarrow').setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the specified name

    Args:
        name: Logger name (usually module name)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_error_with_context(
    logger: logging.Logger,
    error: Exception,
    context: Dict[str, Any] = None,
    message: str = None,
    level: str = "error",
):
    """
    Log an error with additional context

    Args:
        logger: Logger instance
        error: Exception that occurred
        context: Additional context dictionary
        message: Optional custom message
        level: Log level to emit at
    """
    if message is None:
        message = f"Error occurred: {type(error).__name__}: {error}"

    extra_data = {
        'error_type': type(error).__name__,
        'error_message': str(error),
        'error_context': context or {}
    }

    log_method = getattr(logger, level.lower())
    log_method(message, exc_info=error, extra={f'custom_{k}': v for k, v in extra_data.items()})


class LogContext:
    """Context manager for temporary logging context"""

    def __init__(self, **context):
        self.context = context
        self.original_context = {}

    def __enter__(self):
        for key in self.context:
            if hasattr(_context, key):
                self.original_context[key] = getattr(_context, key)

        for key, value in self.context.items():
            setattr(_context, key, value)

        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for key in self.context:
            if key in self.original_context:
                setattr(_context, key, self.original_context[key])
            elif hasattr(_context, key):
                delattr(_context, key)


def with_component_context(component: str):
    """Context manager for component logging"""
    return LogContext(component=component)


def with_subscriber_context(subscriber_id: str):
    """Context manager for per-subscriber logging"""
    return LogContext(subscriber_id=subscriber_id)


def get_context() -> Dict[str, Any]:
    """Current thread's logging context as a dict"""
    return {field: getattr(_context, field) for field in _CONTEXT_FIELDS if hasattr(_context, field)}

