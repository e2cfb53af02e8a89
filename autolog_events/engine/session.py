# autolog_events/engine/session.py
"""
Local query engine session and its listener bus.

Query executions run on the calling thread. When an execution finishes the
session posts a QueryExecutionEnd event to its ListenerBus, which delivers it
to listeners on a single dispatch thread, in completion order. A listener that
raises is logged and skipped; it can never fail or slow down the query that
produced the event.
"""

from __future__ import annotations

import itertools
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional, Sequence

from ..utils.logging import get_logger
from . import sources
from .plan import (
    FileRelation, Filter, Join, Limit, LocalRelation, PlanNode, Project, Row,
    compile_predicate,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class QueryExecutionEnd:
    """Posted once per finished query execution"""
    execution_id: int
    plan: PlanNode
    started_at: float
    duration_s: float
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class QueryListener:
    """Base listener; override the callbacks you care about."""

    def on_query_execution_end(self, event: QueryExecutionEnd) -> None:
        pass


class ListenerBus:
    """
    Asynchronous FIFO event delivery to registered listeners.

    Listeners are read at dispatch time, so a listener removed before an event
    is dispatched never sees it.
    """

    def __init__(self, name: str = "engine-listener-bus") -> None:
        self.name = name
        self._listeners: List[QueryListener] = []
        self._listeners_lock = threading.Lock()

        self._queue: Deque[QueryExecutionEnd] = deque()
        self._cond = threading.Condition()
        self._pending = 0
        self._stopped = False
        self._thread = threading.Thread(target=self._dispatch_loop, name=name, daemon=True)
        self._thread.start()

    # ---------------------- listeners ----------------------

    def add_listener(self, listener: QueryListener) -> None:
        with self._listeners_lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: QueryListener) -> bool:
        with self._listeners_lock:
            for i, existing in enumerate(self._listeners):
                if existing is listener:
                    del self._listeners[i]
                    return True
        return False

    @property
    def listeners(self) -> List[QueryListener]:
        with self._listeners_lock:
            return list(self._listeners)

    # ---------------------- delivery ----------------------

    def post(self, event: QueryExecutionEnd) -> None:
        with self._cond:
            if self._stopped:
                logger.debug(f"Dropping event for execution {event.execution_id}; bus stopped")
                return
            self._queue.append(event)
            self._pending += 1
            self._cond.notify_all()

    def wait_until_empty(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every posted event has been delivered.

        Returns:
            True if the bus drained, False on timeout
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while self._pending > 0:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True

    def stop(self, timeout: float = 5.0) -> None:
        """Deliver what is queued, then end the dispatch thread."""
        with self._cond:
            if self._stopped:
                return
            self._stopped = True
            self._cond.notify_all()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)

    @property
    def stopped(self) -> bool:
        return self._stopped

    def _dispatch_loop(self) -> None:
        while True:
            with self._cond:
                while not self._queue and not self._stopped:
                    self._cond.wait()
                if not self._queue:
                    return
                event = self._queue.popleft()

            try:
                for listener in self.listeners:
                    try:
                        listener.on_query_execution_end(event)
                    except Exception as e:
                        logger.error(
                            f"Listener {type(listener).__name__} threw on execution {event.execution_id}: {e}",
                            exc_info=True,
                        )
            finally:
                with self._cond:
                    self._pending -= 1
                    self._cond.notify_all()


class EngineSession:
    """
    Entry point to the local engine.

    Typical usage:
        session = EngineSession.builder().app_name("demo").get_or_create()
        df = session.read.format("csv").option("header", "true").load("/data/t")
        rows = df.filter("number > 0").collect()
        session.stop()
    """

    _active: Optional["EngineSession"] = None
    _active_lock = threading.Lock()

    def __init__(self, app_name: str = "autolog-events", conf: Optional[Dict[str, str]] = None) -> None:
        self.app_name = app_name
        self.conf: Dict[str, str] = dict(conf or {})
        self.listener_bus = ListenerBus(name=f"{app_name}-listener-bus")
        self._execution_ids = itertools.count()
        self._id_lock = threading.Lock()
        self._stopped = False

    # ---------------------- lifecycle ----------------------

    class Builder:
        def __init__(self) -> None:
            self._app_name = "autolog-events"
            self._conf: Dict[str, str] = {}

        def app_name(self, name: str) -> "EngineSession.Builder":
            self._app_name = name
            return self

        def config(self, key: str, value: Any) -> "EngineSession.Builder":
            self._conf[key] = str(value)
            return self

        def get_or_create(self) -> "EngineSession":
            with EngineSession._active_lock:
                active = EngineSession._active
                if active is not None and not active.stopped:
                    active.conf.update(self._conf)
                    return active
                session = EngineSession(self._app_name, self._conf)
                EngineSession._active = session
                logger.info(f"Started engine session '{self._app_name}'")
                return session

    @classmethod
    def builder(cls) -> "EngineSession.Builder":
        return cls.Builder()

    @classmethod
    def get_active_session(cls) -> Optional["EngineSession"]:
        with cls._active_lock:
            active = cls._active
            if active is not None and active.stopped:
                return None
            return active

    def stop(self) -> None:
        with EngineSession._active_lock:
            if self._stopped:
                return
            self._stopped = True
            if EngineSession._active is self:
                EngineSession._active = None
        self.listener_bus.stop()
        logger.info(f"Stopped engine session '{self.app_name}'")

    @property
    def stopped(self) -> bool:
        return self._stopped

    def __enter__(self) -> "EngineSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    # ---------------------- listeners ----------------------

    def add_listener(self, listener: QueryListener) -> None:
        self._require_running()
        self.listener_bus.add_listener(listener)

    def remove_listener(self, listener: QueryListener) -> bool:
        return self.listener_bus.remove_listener(listener)

    @property
    def listeners(self) -> List[QueryListener]:
        return self.listener_bus.listeners

    # ---------------------- dataframes ----------------------

    @property
    def read(self):
        from .dataframe import DataFrameReader
        return DataFrameReader(self)

    def create_dataframe(self, rows: Sequence[Sequence[Any]], columns: Sequence[str]):
        from .dataframe import DataFrame
        plan = LocalRelation(rows=tuple(tuple(r) for r in rows), columns=tuple(columns))
        return DataFrame(self, plan)

    # ---------------------- execution ----------------------

    def execute(self, plan: PlanNode) -> List[Row]:
        """Run a plan and post its QueryExecutionEnd event."""
        self._require_running()
        with self._id_lock:
            execution_id = next(self._execution_ids)

        started = time.time()
        t0 = time.perf_counter()
        error: Optional[BaseException] = None
        try:
            return _evaluate(plan)
        except Exception as e:
            error = e
            raise
        finally:
            self.listener_bus.post(QueryExecutionEnd(
                execution_id=execution_id,
                plan=plan,
                started_at=started,
                duration_s=time.perf_counter() - t0,
                error=error,
            ))

    def _require_running(self) -> None:
        if self._stopped:
            raise RuntimeError(f"Engine session '{self.app_name}' has been stopped")


def _evaluate(plan: PlanNode) -> List[Row]:
    if isinstance(plan, FileRelation):
        return sources.read_table(plan.path, plan.format, plan.option_map())

    if isinstance(plan, LocalRelation):
        return [dict(zip(plan.columns, row)) for row in plan.rows]

    if isinstance(plan, Filter):
        predicate = compile_predicate(plan.predicate)
        return [row for row in _evaluate(plan.child) if predicate(row)]

    if isinstance(plan, Project):
        rows = _evaluate(plan.child)
        for row in rows[:1]:
            missing = [c for c in plan.columns if c not in row]
            if missing:
                raise KeyError(f"Columns not found: {missing}")
        return [{c: row.get(c) for c in plan.columns} for row in rows]

    if isinstance(plan, Limit):
        return _evaluate(plan.child)[: max(0, plan.n)]

    if isinstance(plan, Join):
        left_rows = _evaluate(plan.left)
        right_rows = _evaluate(plan.right)
        joined: List[Row] = []
        for left in left_rows:
            for right in right_rows:
                if plan.on and any(left.get(c) != right.get(c) for c in plan.on):
                    continue
                merged = dict(left)
                for key, value in right.items():
                    if key in plan.on:
                        continue
                    merged[f"{key}_right" if key in merged else key] = value
                joined.append(merged)
        return joined

    raise TypeError(f"Unsupported plan node: {type(plan).__name__}")
