from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import mlflow
import pytest
import requests

from autolog_events.subscribers import CallbackSubscriber, HttpSubscriber, MlflowDatasourceSubscriber


class _FakeMlflowClient:
    """Minimal stand-in for MlflowClient keeping tags in memory."""

    def __init__(self, fail=False):
        self.tags = {}
        self.set_calls = 0
        self.fail = fail

    def get_run(self, run_id):
        if self.fail:
            raise ConnectionError("tracking server unreachable")
        return SimpleNamespace(data=SimpleNamespace(tags=dict(self.tags.get(run_id, {}))))

    def set_tag(self, run_id, key, value):
        self.set_calls += 1
        self.tags.setdefault(run_id, {})[key] = value


@pytest.fixture
def no_active_run(monkeypatch):
    monkeypatch.setattr(mlflow, "active_run", lambda: None)


# ---------------------- callback ----------------------

def test_callback_subscriber_forwards_calls():
    seen, pings = [], []
    sub = CallbackSubscriber(lambda *args: seen.append(args), on_ping=lambda: pings.append(1))

    sub.notify("file:///t", "unknown", "csv")
    sub.ping()

    assert seen == [("file:///t", "unknown", "csv")]
    assert pings == [1]
    assert sub.subscriber_id


def test_callback_without_ping_is_always_alive():
    CallbackSubscriber(lambda *args: None, subscriber_id="cb").ping()


def test_generated_ids_are_unique():
    assert CallbackSubscriber(print).subscriber_id != CallbackSubscriber(print).subscriber_id


# ---------------------- http ----------------------

def _http_with_mock_session(**kwargs):
    session = MagicMock(spec=requests.Session)
    session.headers = {}
    return HttpSubscriber("http://tracker:9000/", session=session, **kwargs), session


def test_http_notify_posts_event_json():
    sub, session = _http_with_mock_session(subscriber_id="remote", timeout=1.5)

    sub.notify("file:///t", "unknown", "json")

    session.post.assert_called_once_with(
        "http://tracker:9000/notify",
        json={"path": "file:///t", "version": "unknown", "format": "json"},
        timeout=1.5,
    )
    session.post.return_value.raise_for_status.assert_called_once()
    assert session.headers["X-Autolog-Subscriber"] == "remote"


def test_http_ping_failure_raises():
    sub, session = _http_with_mock_session()
    session.get.return_value.raise_for_status.side_effect = requests.HTTPError("503")

    with pytest.raises(requests.HTTPError):
        sub.ping()
    session.get.assert_called_once_with("http://tracker:9000/ping", timeout=sub.timeout)


def test_http_timeout_defaults_from_config():
    sub, _ = _http_with_mock_session()
    assert sub.timeout == 2.0


# ---------------------- mlflow ----------------------

def test_mlflow_subscriber_merges_and_dedupes_tag_lines():
    client = _FakeMlflowClient()
    sub = MlflowDatasourceSubscriber(client=client, run_id="run-1")

    sub.notify("file:///a", "unknown", "csv")
    sub.notify("file:///b", "3", "parquet")
    sub.notify("file:///a", "unknown", "csv")

    assert client.tags["run-1"]["datasourceInfo"] == (
        "path=file:///a,version=unknown,format=csv\n"
        "path=file:///b,version=3,format=parquet"
    )
    assert client.set_calls == 2


def test_mlflow_subscriber_buffers_until_a_run_is_attached(no_active_run):
    client = _FakeMlflowClient()
    sub = MlflowDatasourceSubscriber(client=client, tag_key="reads")

    sub.notify("file:///a", "unknown", "json")
    sub.notify("file:///a", "unknown", "json")
    assert sub.pending == ["path=file:///a,version=unknown,format=json"]
    assert client.tags == {}

    sub.attach_run("run-2")

    assert sub.pending == []
    assert client.tags["run-2"]["reads"] == "path=file:///a,version=unknown,format=json"


def test_mlflow_subscriber_uses_active_run(monkeypatch):
    client = _FakeMlflowClient()
    monkeypatch.setattr(mlflow, "active_run", lambda: SimpleNamespace(info=SimpleNamespace(run_id="active")))
    sub = MlflowDatasourceSubscriber(client=client)

    sub.notify("file:///a", "unknown", "csv")

    assert "active" in client.tags


def test_tracking_block_restores_previous_run(no_active_run):
    client = _FakeMlflowClient()
    sub = MlflowDatasourceSubscriber(client=client)

    with sub.tracking("inner"):
        sub.notify("file:///a", "unknown", "csv")
    sub.notify("file:///b", "unknown", "csv")

    assert list(client.tags) == ["inner"]
    assert sub.pending == ["path=file:///b,version=unknown,format=csv"]
    assert sub.flush_pending("later") == 1
    assert sub.flush_pending("later") == 0


def test_mlflow_errors_are_logged_not_raised():
    sub = MlflowDatasourceSubscriber(client=_FakeMlflowClient(fail=True), run_id="run-1")

    sub.notify("file:///a", "unknown", "csv")
    sub.ping()


def test_oversized_tag_is_skipped():
    client = _FakeMlflowClient()
    sub = MlflowDatasourceSubscriber(client=client, run_id="run-1", max_tag_length=60)

    sub.notify("file:///a", "unknown", "csv")
    sub.notify("file:///a-much-longer-path", "unknown", "csv")

    assert client.tags["run-1"]["datasourceInfo"] == "path=file:///a,version=unknown,format=csv"
