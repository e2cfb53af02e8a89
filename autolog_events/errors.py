"""
Error taxonomy for autolog-events
=================================

Only ConfigurationError and NotInitializedError ever reach callers. The
subscriber and extraction errors are built to carry context into the logs and
are contained by the component that detects them.
"""

from __future__ import annotations

from typing import Optional


class AutologError(Exception):
    """Base class for all autolog-events errors"""
    pass


class ConfigurationError(AutologError):
    """Raised by init() when no engine session is available"""
    pass


class NotInitializedError(AutologError):
    """Raised when subscribers are registered on a publisher that is not running"""
    pass


class SubscriberNotifyError(AutologError):
    """A subscriber's notify() call raised or timed out"""

    def __init__(self, subscriber_id: str, cause: Optional[BaseException] = None, timed_out: bool = False):
        self.subscriber_id = subscriber_id
        self.cause = cause
        self.timed_out = timed_out
        if timed_out:
            message = f"Subscriber {subscriber_id} did not answer notify() in time"
        else:
            message = f"Subscriber {subscriber_id} failed notify(): {cause!r}"
        super().__init__(message)


class SubscriberPingError(AutologError):
    """A subscriber's ping() call raised or timed out; the subscriber gets evicted"""

    def __init__(self, subscriber_id: str, cause: Optional[BaseException] = None, timed_out: bool = False):
        self.subscriber_id = subscriber_id
        self.cause = cause
        self.timed_out = timed_out
        if timed_out:
            message = f"Subscriber {subscriber_id} did not answer ping() in time"
        else:
            message = f"Subscriber {subscriber_id} failed ping(): {cause!r}"
        super().__init__(message)


class PlanExtractionError(AutologError):
    """Datasource information could not be derived from an executed plan"""

    def __init__(self, execution_id: Optional[int], cause: BaseException):
        self.execution_id = execution_id
        self.cause = cause
        super().__init__(f"Failed to extract datasources from execution {execution_id}: {cause!r}")


__all__ = [
    "AutologError",
    "ConfigurationError",
    "NotInitializedError",
    "SubscriberNotifyError",
    "SubscriberPingError",
    "PlanExtractionError",
]
