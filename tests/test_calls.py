from __future__ import annotations

import threading

import pytest

from autolog_events.publisher.calls import InFlightCalls, call_in_thread


def test_call_in_thread_settles_with_result_or_error():
    assert call_in_thread(lambda a, b: a + b, 2, 3, name="add").result(timeout=5) == 5

    def _fail():
        raise ValueError("boom")

    with pytest.raises(ValueError):
        call_in_thread(_fail, name="fail").result(timeout=5)


def test_one_outstanding_call_per_key():
    release = threading.Event()
    calls = InFlightCalls("test")

    first = calls.submit("a", "a", release.wait, 10)
    assert first is not None
    assert calls.submit("a", "a", release.wait, 10) is None
    other = calls.submit("b", "b", lambda: "b")
    assert other.result(timeout=5) == "b"
    assert calls.outstanding() == 1

    release.set()
    assert first.result(timeout=5) is True
    second = calls.submit("a", "a", lambda: "again")
    assert second.result(timeout=5) == "again"
