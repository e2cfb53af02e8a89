# autolog_events/publisher/core.py
"""
EventPublisher: attaches to the engine and broadcasts datasource reads.

Lifecycle
---------
    UNINIT --init()--> RUNNING --stop()--> UNINIT

- init() is idempotent. While a listener is attached to a live session it does
  nothing, including ignoring a different gc interval; the first caller's
  interval holds until stop().
- stop() is idempotent. It detaches the listener, drops every subscriber and
  terminates the sweeper. A later init() starts from a clean registry.
- register() only works while RUNNING.

Broadcasts run each subscriber's notify() on its own thread and wait at most
`notify_timeout` seconds for the whole fan-out. A subscriber whose previous
notify() has not returned yet is skipped and counted as a timeout, so a hung
subscriber holds one thread at most and never delays the others. Failures and timeouts are
logged and counted, never raised, and never evict: eviction belongs to the
LivenessSweeper alone.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import wait
from types import MappingProxyType
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple

from ..config import config
from ..engine.session import EngineSession, QueryListener
from ..errors import ConfigurationError, NotInitializedError, SubscriberNotifyError
from ..events import DatasourceEvent
from ..monitoring.prom_metrics import AutologMetrics
from ..utils.logging import get_logger, log_error_with_context, with_subscriber_context
from ..utils.validation import safe_validate, validate_event, validate_subscriber
from .calls import InFlightCalls
from .listener import DatasourceListener
from .registry import SubscriberRegistry
from .sweeper import LivenessSweeper

logger = get_logger(__name__)

SessionProvider = Callable[[], Optional[EngineSession]]
ListenerFactory = Callable[["EventPublisher"], QueryListener]
SubscriberSource = Callable[[], Iterable[Tuple[str, Any]]]


class EventPublisher:
    """
    Broadcasts DatasourceEvents from an engine session to registered subscribers.

    Args:
        session_provider: Returns the engine session to attach to, or None
        listener_factory: Builds the engine listener for this publisher
        subscriber_source: Overrides which subscribers a broadcast goes to;
            defaults to a snapshot of the registry
        notify_timeout: Upper bound in seconds on one broadcast
        ping_timeout: Upper bound in seconds on one liveness ping
        metrics: Prometheus metrics sink; a private registry is used when None
    """

    def __init__(
        self,
        session_provider: Optional[SessionProvider] = None,
        listener_factory: Optional[ListenerFactory] = None,
        subscriber_source: Optional[SubscriberSource] = None,
        notify_timeout: Optional[float] = None,
        ping_timeout: Optional[float] = None,
        metrics: Optional[AutologMetrics] = None,
    ) -> None:
        publisher_config = config.get_publisher_config()

        self._session_provider: SessionProvider = session_provider or EngineSession.get_active_session
        self._listener_factory: ListenerFactory = listener_factory or DatasourceListener
        self._subscriber_source: SubscriberSource = subscriber_source or self._registry_snapshot

        self.default_gc_interval = publisher_config["gc_interval_seconds"]
        self.notify_timeout = float(notify_timeout if notify_timeout is not None else publisher_config["notify_timeout_seconds"])
        self.ping_timeout = float(ping_timeout if ping_timeout is not None else publisher_config["ping_timeout_seconds"])
        self.metrics = metrics or AutologMetrics(metrics_port=config.get_metrics_config()["port"])

        self._lock = threading.RLock()
        self._listener: Optional[QueryListener] = None
        self._session: Optional[EngineSession] = None
        self._registry: Optional[SubscriberRegistry] = None
        self._sweeper: Optional[LivenessSweeper] = None
        self._notify_calls: Optional[InFlightCalls] = None
        self._gc_interval: Optional[float] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def init(self, gc_interval_seconds: Optional[float] = None) -> None:
        """
        Attach to the active engine session and start the liveness sweeper.

        Raises:
            ConfigurationError: If no engine session is available
        """
        with self._lock:
            if self._listener is not None:
                if self._session is not None and not self._session.stopped:
                    logger.debug("Publisher already initialized; init() is a no-op")
                    return
                self._rebind_session()
                return

            session = self._session_provider()
            if session is None:
                raise ConfigurationError("no active engine session")

            interval = float(gc_interval_seconds if gc_interval_seconds is not None else self.default_gc_interval)
            registry = self._registry if self._registry is not None else SubscriberRegistry()
            listener = self._listener_factory(self)
            sweeper = LivenessSweeper(
                registry,
                interval=interval,
                ping_timeout=self.ping_timeout,
                on_evict=self._on_evict,
            )

            session.add_listener(listener)
            sweeper.start()

            self._session = session
            self._listener = listener
            self._registry = registry
            self._sweeper = sweeper
            self._notify_calls = InFlightCalls("autolog-notify")
            self._gc_interval = interval
            self.metrics.set_subscriber_count(registry.size())

        if config.get_metrics_config()["enabled"]:
            self.metrics.start_metrics_server()
        logger.info(f"Event publisher attached to session '{session.app_name}' (sweep every {interval}s)")

    def _rebind_session(self) -> None:
        # Attached session was stopped underneath us; move the listener to the current one.
        session = self._session_provider()
        if session is None:
            raise ConfigurationError("no active engine session")
        old_session, old_listener = self._session, self._listener
        if old_session is not None and old_listener is not None:
            old_session.remove_listener(old_listener)
        listener = self._listener_factory(self)
        session.add_listener(listener)
        self._session = session
        self._listener = listener
        logger.info(f"Event publisher re-attached to session '{session.app_name}'")

    def stop(self) -> None:
        """Detach from the engine, drop all subscribers, stop the sweeper."""
        with self._lock:
            if self._listener is None:
                return
            session, listener = self._session, self._listener
            sweeper, registry = self._sweeper, self._registry

            self._listener = None
            self._session = None
            self._sweeper = None
            self._notify_calls = None
            self._registry = None
            self._gc_interval = None

            if session is not None:
                session.remove_listener(listener)

        if sweeper is not None:
            sweeper.stop()
        dropped = registry.clear() if registry is not None else 0
        self.metrics.set_subscriber_count(0)
        logger.info(f"Event publisher stopped ({dropped} subscriber(s) dropped)")

    def __enter__(self) -> "EventPublisher":
        self.init()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------
    def register(self, subscriber: Any) -> None:
        """
        Add or replace a subscriber under its subscriber_id.

        Raises:
            NotInitializedError: If init() has not been called (or stop() was)
            ValidationError: If the object is not a usable subscriber handle
        """
        with self._lock:
            registry = self._registry
            if registry is None or self._listener is None:
                raise NotInitializedError(
                    "Event publisher is not initialized; call init() before registering subscribers"
                )
            validate_subscriber(subscriber)
            registry.register(subscriber.subscriber_id, subscriber)
            count = registry.size()
        self.metrics.set_subscriber_count(count)
        logger.debug(f"Registered subscriber {subscriber.subscriber_id} ({count} total)")

    def unregister(self, subscriber: Any) -> bool:
        """Remove a subscriber by handle or id; unknown subscribers are ignored."""
        subscriber_id = subscriber if isinstance(subscriber, str) else subscriber.subscriber_id
        with self._lock:
            registry = self._registry
        if registry is None:
            return False
        removed = registry.unregister(subscriber_id)
        self.metrics.set_subscriber_count(registry.size())
        return removed

    @property
    def subscribers(self) -> Mapping[str, Any]:
        """Read-only view of the registered subscribers at this moment."""
        with self._lock:
            registry = self._registry
        return MappingProxyType(dict(registry.snapshot()) if registry is not None else {})

    def _registry_snapshot(self) -> List[Tuple[str, Any]]:
        with self._lock:
            registry = self._registry
        return registry.snapshot() if registry is not None else []

    def _on_evict(self, subscriber_ids: List[str]) -> None:
        self.metrics.record_eviction(len(subscriber_ids))
        self.metrics.set_subscriber_count(len(self._registry_snapshot()))
        logger.info(f"Evicted {len(subscriber_ids)} unresponsive subscriber(s)")

    # ------------------------------------------------------------------
    # Broadcast
    # ------------------------------------------------------------------
    def publish_event(self, event: DatasourceEvent) -> None:
        """
        Deliver one datasource event to every subscriber in the current snapshot.

        Never raises. Each notify() runs independently; one failing or hung
        subscriber only loses its own delivery.
        """
        with self._lock:
            calls = self._notify_calls
            running = self._listener is not None
        if not running or calls is None:
            logger.debug(f"Publisher not running; dropping event for {event.path}")
            return

        if not safe_validate(validate_event, event):
            return

        try:
            subscribers = list(self._subscriber_source())
        except Exception as e:
            log_error_with_context(logger, e, message=f"Could not list subscribers: {e}")
            return

        started = time.perf_counter()
        futures = {}
        for subscriber_id, handle in subscribers:
            future = calls.submit(
                (subscriber_id, id(handle)), subscriber_id[:8],
                self._notify_one, subscriber_id, handle, event,
            )
            if future is None:
                self._record_notify_timeout(subscriber_id, still_busy=True)
                continue
            futures[future] = subscriber_id

        if futures:
            _, not_done = wait(futures, timeout=self.notify_timeout)
            for future in not_done:
                self._record_notify_timeout(futures[future])

        self.metrics.record_event(event.format)
        self.metrics.broadcast_duration.observe(time.perf_counter() - started)

    def _record_notify_timeout(self, subscriber_id: str, still_busy: bool = False) -> None:
        error = SubscriberNotifyError(subscriber_id, timed_out=True)
        if still_busy:
            logger.warning(f"{error}; previous notify() still running, event skipped")
        else:
            logger.warning(str(error))
        self.metrics.record_notify_failure(timed_out=True)

    def _notify_one(self, subscriber_id: str, handle: Any, event: DatasourceEvent) -> bool:
        with with_subscriber_context(subscriber_id):
            try:
                handle.notify(event.path, event.version, event.format)
                return True
            except Exception as e:
                error = SubscriberNotifyError(subscriber_id, e)
                log_error_with_context(
                    logger, error,
                    context={"subscriber_id": subscriber_id, "path": event.path, "format": event.format},
                    level="warning",
                )
                self.metrics.record_notify_failure()
                return False

    def record_extraction_failure(self) -> None:
        self.metrics.record_extraction_failure()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._listener is not None

    @property
    def listener(self) -> Optional[QueryListener]:
        return self._listener

    @property
    def session(self) -> Optional[EngineSession]:
        return self._session

    @property
    def gc_interval_seconds(self) -> Optional[float]:
        return self._gc_interval

    @property
    def sweeper(self) -> Optional[LivenessSweeper]:
        return self._sweeper


# ----------------------------------------------------------------------
# Process default publisher, used by the autologging integration layer
# ----------------------------------------------------------------------
_default_publisher: Optional[EventPublisher] = None
_default_lock = threading.Lock()


def get_publisher() -> EventPublisher:
    """The process-wide publisher, created on first use."""
    global _default_publisher
    with _default_lock:
        if _default_publisher is None:
            _default_publisher = EventPublisher()
        return _default_publisher


def init(gc_interval_seconds: Optional[float] = None) -> EventPublisher:
    publisher = get_publisher()
    publisher.init(gc_interval_seconds)
    return publisher


def stop() -> None:
    with _default_lock:
        publisher = _default_publisher
    if publisher is not None:
        publisher.stop()


def register(subscriber: Any) -> None:
    get_publisher().register(subscriber)
