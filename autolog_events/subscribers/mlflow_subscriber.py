# autolog_events/subscribers/mlflow_subscriber.py
"""
Tracking-side subscriber: records datasource reads on MLflow runs.

Each datasource becomes one `path=...,version=...,format=...` line in a run
tag (default key `datasourceInfo`). Lines are deduplicated and kept in first
seen order. Reads that happen while no run is attached are buffered and
written by flush_pending() once a run is known.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import List, Optional

import mlflow
from mlflow.tracking import MlflowClient

from ..config import config
from ..events import DatasourceEvent
from ..utils.logging import get_logger, log_error_with_context
from .base import SubscriberHandle

logger = get_logger(__name__)


def _merge_tag_lines(existing: Optional[str], new_entries: List[str]) -> str:
    lines = [line for line in (existing or "").split("\n") if line]
    for entry in new_entries:
        if entry not in lines:
            lines.append(entry)
    return "\n".join(lines)


class MlflowDatasourceSubscriber(SubscriberHandle):
    """Write datasource reads into the tags of an MLflow run."""

    def __init__(
        self,
        client: Optional[MlflowClient] = None,
        run_id: Optional[str] = None,
        tag_key: Optional[str] = None,
        max_tag_length: Optional[int] = None,
        subscriber_id: Optional[str] = None,
    ) -> None:
        super().__init__(subscriber_id)
        mlflow_config = config.get_mlflow_subscriber_config()
        self.tag_key = tag_key or mlflow_config["tag_key"]
        self.max_tag_length = int(max_tag_length or mlflow_config["max_tag_length"])

        self._client = client
        self._run_id = run_id
        self._pending: List[str] = []
        self._lock = threading.Lock()

    @property
    def client(self) -> MlflowClient:
        if self._client is None:
            self._client = MlflowClient()
        return self._client

    # ------------------------------------------------------------------
    # SubscriberHandle
    # ------------------------------------------------------------------
    def notify(self, path: str, version: str, format: str) -> None:
        entry = DatasourceEvent(path=path, version=version, format=format).as_tag_entry()
        try:
            run_id = self._resolve_run_id()
            with self._lock:
                if run_id is None:
                    if entry not in self._pending:
                        self._pending.append(entry)
                    logger.debug(f"No active run; buffered datasource {path}")
                    return
                self._write_entries(run_id, [entry])
        except Exception as e:
            # Tag writes are best effort; a tracking server outage must not look like a dead subscriber
            log_error_with_context(
                logger, e,
                context={"subscriber_id": self.subscriber_id, "path": path, "format": format},
                message=f"Failed to record datasource {path} on MLflow run",
            )

    def ping(self) -> None:
        return None

    # ------------------------------------------------------------------
    # Run attachment
    # ------------------------------------------------------------------
    def attach_run(self, run_id: str) -> None:
        """Send future reads to `run_id` and write anything buffered so far."""
        self._run_id = run_id
        self.flush_pending(run_id)

    @contextmanager
    def tracking(self, run_id: str):
        """Attach a run for the duration of a block"""
        previous = self._run_id
        self.attach_run(run_id)
        try:
            yield self
        finally:
            self._run_id = previous

    def flush_pending(self, run_id: str) -> int:
        """
        Write buffered datasource entries to a run.

        Returns:
            Number of entries flushed
        """
        with self._lock:
            if not self._pending:
                return 0
            entries = list(self._pending)
            self._write_entries(run_id, entries)
            self._pending.clear()
            return len(entries)

    @property
    def pending(self) -> List[str]:
        with self._lock:
            return list(self._pending)

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    def _resolve_run_id(self) -> Optional[str]:
        if self._run_id is not None:
            return self._run_id
        run = mlflow.active_run()
        return run.info.run_id if run is not None else None

    def _write_entries(self, run_id: str, entries: List[str]) -> None:
        run = self.client.get_run(run_id)
        existing = run.data.tags.get(self.tag_key)
        merged = _merge_tag_lines(existing, entries)
        if merged == (existing or ""):
            return
        if len(merged) > self.max_tag_length:
            logger.warning(
                f"Tag '{self.tag_key}' on run {run_id} would exceed {self.max_tag_length} chars; "
                f"dropping {len(entries)} datasource entr{'y' if len(entries) == 1 else 'ies'}"
            )
            return
        self.client.set_tag(run_id, self.tag_key, merged)
        logger.debug(f"Recorded {len(entries)} datasource entries on run {run_id}")
