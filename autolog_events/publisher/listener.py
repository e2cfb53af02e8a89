# autolog_events/publisher/listener.py
"""
Engine listener that turns finished query executions into DatasourceEvents.

Runs on the engine's listener-bus thread. Nothing raised while inspecting a
plan leaves this module: failures are logged and the execution simply yields
no events.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional

from ..engine.plan import FileRelation, PlanNode, iter_leaves
from ..engine.session import QueryExecutionEnd, QueryListener
from ..errors import PlanExtractionError
from ..events import UNKNOWN_VERSION, DatasourceEvent
from ..utils.logging import LogContext, get_logger, log_error_with_context

if TYPE_CHECKING:
    from .core import EventPublisher

logger = get_logger(__name__)

Extractor = Callable[[PlanNode], List[DatasourceEvent]]


def to_uri(path: str) -> str:
    """Local paths become file:// URIs; anything with a scheme is kept as-is."""
    if "://" in path:
        return path
    return Path(path).expanduser().resolve().as_uri()


def extract_datasource_events(plan: PlanNode) -> List[DatasourceEvent]:
    """
    One event per datasource leaf of the plan, left to right.

    A table read twice (e.g. a self-join) produces two events.
    """
    events: List[DatasourceEvent] = []
    for leaf in iter_leaves(plan):
        if not isinstance(leaf, FileRelation):
            continue
        events.append(DatasourceEvent(
            path=to_uri(leaf.path),
            version=leaf.version or UNKNOWN_VERSION,
            format=leaf.format,
        ))
    return events


class DatasourceListener(QueryListener):
    """Forwards datasource reads of every successful execution to a publisher."""

    def __init__(self, publisher: "EventPublisher", extractor: Optional[Extractor] = None) -> None:
        self.publisher = publisher
        self.extractor: Extractor = extractor or extract_datasource_events

    def on_query_execution_end(self, event: QueryExecutionEnd) -> None:
        with LogContext(component="listener", execution_id=event.execution_id):
            if not event.succeeded:
                logger.debug(f"Execution {event.execution_id} failed; no datasource events")
                return

            try:
                datasource_events = self.extractor(event.plan)
            except Exception as e:
                error = PlanExtractionError(event.execution_id, e)
                log_error_with_context(logger, error, context={"execution_id": event.execution_id})
                self.publisher.record_extraction_failure()
                return

            for datasource_event in datasource_events:
                self.publisher.publish_event(datasource_event)

    def __repr__(self) -> str:
        return f"DatasourceListener(id={id(self):#x})"
