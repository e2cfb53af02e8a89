"""
Validation utilities for autolog-events
=======================================

Shape checks for subscriber handles and datasource events. Handles are duck
typed, so anything with a string `subscriber_id` and callable `notify`/`ping`
is accepted.
"""

from typing import Any
import logging

from ..events import DatasourceEvent

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Custom exception for validation failures"""
    pass


class SubscriberValidator:
    """Validation for subscriber handles and the events sent to them"""

    MAX_SUBSCRIBER_ID_LENGTH = 256
    MAX_FORMAT_LENGTH = 64

    @classmethod
    def validate_subscriber(cls, subscriber: Any) -> bool:
        """
        Validate that an object can act as a subscriber handle

        Args:
            subscriber: Candidate handle

        Returns:
            True if valid

        Raises:
            ValidationError: If validation fails
        """
        if subscriber is None:
            raise ValidationError("Subscriber cannot be None")

        try:
            subscriber_id = subscriber.subscriber_id
        except Exception as e:
            raise ValidationError(f"Subscriber has no readable subscriber_id: {e}")

        cls.validate_subscriber_id(subscriber_id)

        for method in ("notify", "ping"):
            if not callable(getattr(subscriber, method, None)):
                raise ValidationError(f"Subscriber {subscriber_id} has no callable {method}()")

        return True

    @classmethod
    def validate_subscriber_id(cls, subscriber_id: Any) -> bool:
        if not isinstance(subscriber_id, str):
            raise ValidationError(f"Subscriber id must be string, got {type(subscriber_id)}")

        if not subscriber_id.strip():
            raise ValidationError("Subscriber id cannot be empty")

        if len(subscriber_id) > cls.MAX_SUBSCRIBER_ID_LENGTH:
            raise ValidationError(
                f"Subscriber id too long: {len(subscriber_id)} > {cls.MAX_SUBSCRIBER_ID_LENGTH}"
            )

        return True

    @classmethod
    def validate_event(cls, event: Any) -> bool:
        """
        Validate a datasource event before broadcast

        Raises:
            ValidationError: If validation fails
        """
        if not isinstance(event, DatasourceEvent):
            raise ValidationError(f"Expected DatasourceEvent, got {type(event)}")

        for name in ("path", "version", "format"):
            value = getattr(event, name)
            if not isinstance(value, str) or not value:
                raise ValidationError(f"Datasource event field '{name}' must be a non-empty string")

        if len(event.format) > cls.MAX_FORMAT_LENGTH:
            raise ValidationError(f"Datasource format tag too long: {event.format[:20]}...")

        return True


def validate_subscriber(subscriber: Any) -> bool:
    return SubscriberValidator.validate_subscriber(subscriber)


def validate_event(event: Any) -> bool:
    return SubscriberValidator.validate_event(event)


def safe_validate(validation_func, *args, **kwargs) -> bool:
    """
    Run a validation function, logging instead of raising

    Returns:
        True if validation passed, False otherwise
    """
    try:
        return validation_func(*args, **kwargs)
    except ValidationError as e:
        logger.warning(f"Validation failed: {e}")
        return False
