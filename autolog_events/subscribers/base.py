# autolog_events/subscribers/base.py
from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import Callable, Optional


class SubscriberHandle(ABC):
    """
    Handle to one subscriber of datasource events.

    The publisher only needs three things: a stable `subscriber_id`, plus
    `notify()` and `ping()`. Both calls may raise or block; the publisher
    bounds and contains them. Any object with the same shape is accepted on
    registration, subclassing is optional.
    """

    def __init__(self, subscriber_id: Optional[str] = None) -> None:
        self._subscriber_id = subscriber_id or str(uuid.uuid4())

    @property
    def subscriber_id(self) -> str:
        return self._subscriber_id

    @abstractmethod
    def notify(self, path: str, version: str, format: str) -> None:
        """Receive one datasource access."""

    @abstractmethod
    def ping(self) -> None:
        """Liveness probe; raise if the subscriber is gone."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._subscriber_id})"


class CallbackSubscriber(SubscriberHandle):
    """In-process subscriber wrapping plain callables."""

    def __init__(
        self,
        on_notify: Callable[[str, str, str], None],
        on_ping: Optional[Callable[[], None]] = None,
        subscriber_id: Optional[str] = None,
    ) -> None:
        super().__init__(subscriber_id)
        self._on_notify = on_notify
        self._on_ping = on_ping

    def notify(self, path: str, version: str, format: str) -> None:
        self._on_notify(path, version, format)

    def ping(self) -> None:
        if self._on_ping is not None:
            self._on_ping()
