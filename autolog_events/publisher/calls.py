# autolog_events/publisher/calls.py
"""
Subscriber calls on dedicated daemon threads.

notify() and ping() are foreign code that may never return. A shared worker
pool would let a few hung subscribers occupy every worker and starve the
healthy ones, so each call gets its own thread, and each subscriber has at
most one call outstanding: while a previous call is still running, the next
one is refused instead of queued.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, Hashable, Optional


def call_in_thread(fn: Callable[..., Any], *args: Any, name: str) -> Future:
    """Run fn(*args) on a new daemon thread; the returned Future settles when it returns."""
    future: Future = Future()

    def _run() -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = fn(*args)
        except BaseException as e:
            future.set_exception(e)
        else:
            future.set_result(result)

    threading.Thread(target=_run, name=name, daemon=True).start()
    return future


class InFlightCalls:
    """
    Tracks the outstanding call per key.

    Args:
        name_prefix: Thread name prefix, e.g. "autolog-notify"
    """

    def __init__(self, name_prefix: str) -> None:
        self.name_prefix = name_prefix
        self._lock = threading.Lock()
        self._calls: Dict[Hashable, Future] = {}

    def submit(self, key: Hashable, label: str, fn: Callable[..., Any], *args: Any) -> Optional[Future]:
        """
        Start fn(*args) for `key` unless a call for `key` is still running.

        Returns:
            The call's Future, or None when the previous call has not returned yet
        """
        with self._lock:
            previous = self._calls.get(key)
            if previous is not None and not previous.done():
                return None
            future = call_in_thread(fn, *args, name=f"{self.name_prefix}-{label}")
            self._calls[key] = future
        future.add_done_callback(lambda f: self._discard(key, f))
        return future

    def _discard(self, key: Hashable, future: Future) -> None:
        with self._lock:
            if self._calls.get(key) is future:
                del self._calls[key]

    def outstanding(self) -> int:
        with self._lock:
            return sum(1 for f in self._calls.values() if not f.done())
