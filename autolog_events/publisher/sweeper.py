# autolog_events/publisher/sweeper.py
"""
Background garbage collection of dead subscribers.

Every `interval` seconds the sweeper pings a snapshot of the registry and
evicts any subscriber whose ping raises or does not answer within
`ping_timeout`. Each ping runs on its own thread, so pings that hang never
delay anyone else's. This is the only path that removes subscribers on its own;
failed notify() calls never do.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, TimeoutError as FutureTimeout
from typing import Callable, List, Optional

from ..errors import SubscriberPingError
from ..utils.logging import get_logger, log_error_with_context, with_component_context
from .calls import InFlightCalls
from .registry import SubscriberRegistry

logger = get_logger(__name__)


class LivenessSweeper:
    """Periodic ping-and-evict loop over a SubscriberRegistry."""

    def __init__(
        self,
        registry: SubscriberRegistry,
        interval: float = 1.0,
        ping_timeout: float = 5.0,
        on_evict: Optional[Callable[[List[str]], None]] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"Sweep interval must be positive, got {interval}")
        self.registry = registry
        self.interval = float(interval)
        self.ping_timeout = float(ping_timeout)
        self._on_evict = on_evict

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._pings = InFlightCalls("autolog-ping")
        self._lock = threading.Lock()
        self.sweeps = 0

    # ---------------------- lifecycle ----------------------

    def start(self) -> None:
        with self._lock:
            if self._thread is not None:
                if self._stop.is_set():
                    raise RuntimeError("A stopped LivenessSweeper cannot be restarted")
                return
            self._thread = threading.Thread(target=self._loop, name="AutologLivenessSweeper", daemon=True)
            self._thread.start()
        logger.debug(f"Liveness sweeper started (every {self.interval}s)")

    def stop(self, timeout: float = 5.0) -> None:
        """Terminate the sweep thread; safe to call more than once."""
        self._stop.set()
        with self._lock:
            thread = self._thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        logger.debug("Liveness sweeper stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    # ---------------------- sweeping ----------------------

    def _loop(self) -> None:
        with with_component_context("sweeper"):
            while not self._stop.wait(self.interval):
                try:
                    self.sweep_once()
                except Exception as e:
                    logger.error(f"Liveness sweep failed: {e}", exc_info=True)

    def sweep_once(self) -> List[str]:
        """
        Ping every registered subscriber once and evict the dead ones.

        All pings of a pass run concurrently and share one `ping_timeout`
        deadline.

        Returns:
            Ids of evicted subscribers
        """
        pending = [
            (subscriber_id, handle, self._start_ping(subscriber_id, handle))
            for subscriber_id, handle in self.registry.snapshot()
        ]
        deadline = time.monotonic() + self.ping_timeout

        evicted: List[str] = []
        for subscriber_id, handle, future in pending:
            if self._stop.is_set():
                break
            error = self._ping_result(subscriber_id, future, deadline)
            if error is None:
                continue
            if self._stop.is_set():
                break
            log_error_with_context(
                logger, error,
                context={"subscriber_id": subscriber_id},
                message=f"Evicting subscriber {subscriber_id}: {error}",
                level="warning",
            )
            # only evict the handle that actually failed, not a newer re-registration
            if self.registry.unregister(subscriber_id, handle):
                evicted.append(subscriber_id)

        self.sweeps += 1
        if evicted and self._on_evict is not None:
            self._on_evict(evicted)
        return evicted

    def _start_ping(self, subscriber_id: str, handle) -> Optional[Future]:
        return self._pings.submit((subscriber_id, id(handle)), subscriber_id[:8], handle.ping)

    def _ping_result(self, subscriber_id: str, future: Optional[Future], deadline: float) -> Optional[SubscriberPingError]:
        if future is None:
            # the ping from the previous pass is still hanging
            return SubscriberPingError(subscriber_id, timed_out=True)
        try:
            future.result(timeout=max(0.0, deadline - time.monotonic()))
            return None
        except FutureTimeout:
            return SubscriberPingError(subscriber_id, timed_out=True)
        except Exception as e:
            return SubscriberPingError(subscriber_id, e)
