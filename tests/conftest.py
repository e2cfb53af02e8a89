from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from autolog_events import EventPublisher
from autolog_events.engine import EngineSession, write_table
from autolog_events.subscribers import SubscriberHandle

FORMATS = ("csv", "parquet", "json")
ROWS = [
    {"number": 8, "word": "bat"},
    {"number": 64, "word": "mouse"},
    {"number": -27, "word": "horse"},
]
COLUMNS = ["number", "word"]


class RecordingSubscriber(SubscriberHandle):
    """Records every notify() call; ping always succeeds."""

    def __init__(self, subscriber_id=None) -> None:
        super().__init__(subscriber_id)
        self.calls = []
        self.pings = 0
        self._lock = threading.Lock()

    def notify(self, path, version, format):
        with self._lock:
            self.calls.append((path, version, format))

    def ping(self):
        with self._lock:
            self.pings += 1


class BrokenSubscriber(RecordingSubscriber):
    """Both notify() and ping() fail."""

    def notify(self, path, version, format):
        super().notify(path, version, format)
        raise RuntimeError("Unable to notify subscriber!")

    def ping(self):
        raise RuntimeError("Oh no, failing ping!")


class FailingNotifySubscriber(RecordingSubscriber):
    """notify() always fails, ping() always succeeds."""

    def notify(self, path, version, format):
        super().notify(path, version, format)
        raise RuntimeError("notify is broken")


def file_uri(path) -> str:
    return Path(path).resolve().as_uri()


def wait_for(condition, timeout: float = 5.0, interval: float = 0.05) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(interval)
    return condition()


@pytest.fixture(scope="session")
def tables(tmp_path_factory):
    """The same three rows saved once per format: {format: table_dir}"""
    base = tmp_path_factory.mktemp("tables")
    paths = {}
    for data_format in FORMATS:
        path = base / data_format
        write_table(str(path), data_format, ROWS, COLUMNS, options={"header": "true"})
        paths[data_format] = str(path)
    return paths


@pytest.fixture
def session():
    session = EngineSession.builder().app_name("autolog-tests").get_or_create()
    yield session
    session.stop()


@pytest.fixture
def publisher(session):
    publisher = EventPublisher(notify_timeout=5.0, ping_timeout=1.0)
    publisher.init()
    yield publisher
    publisher.stop()


@pytest.fixture
def drain(session):
    """Wait until the engine has delivered every query event to its listeners."""
    def _drain(timeout: float = 5.0) -> None:
        assert session.listener_bus.wait_until_empty(timeout), "listener bus did not drain"
    return _drain
