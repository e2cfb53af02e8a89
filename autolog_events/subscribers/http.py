# autolog_events/subscribers/http.py
"""
Remote subscriber reached over HTTP.

    POST {base_url}/notify   {"path": ..., "version": ..., "format": ...}
    GET  {base_url}/ping

Any transport error or non-2xx response raises, which the publisher treats as
a notify failure (logged) or a ping failure (eviction).
"""

from __future__ import annotations

from typing import Dict, Optional

import requests

from ..config import config
from ..utils.logging import get_logger
from .base import SubscriberHandle

logger = get_logger(__name__)


class HttpSubscriber(SubscriberHandle):
    """Subscriber handle backed by a small HTTP endpoint."""

    def __init__(
        self,
        base_url: str,
        subscriber_id: Optional[str] = None,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(subscriber_id)
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout if timeout is not None else config.get_http_subscriber_config()["timeout_seconds"])
        self._session = session or requests.Session()
        self._session.headers.update({"X-Autolog-Subscriber": self.subscriber_id, **(headers or {})})

    def notify(self, path: str, version: str, format: str) -> None:
        resp = self._session.post(
            f"{self.base_url}/notify",
            json={"path": path, "version": version, "format": format},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        logger.debug(f"Notified {self.base_url} of {path} ({format})")

    def ping(self) -> None:
        resp = self._session.get(f"{self.base_url}/ping", timeout=self.timeout)
        resp.raise_for_status()

    def close(self) -> None:
        self._session.close()

    def __repr__(self) -> str:
        return f"HttpSubscriber({self.subscriber_id} -> {self.base_url})"
