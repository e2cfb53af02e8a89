from __future__ import annotations

from pathlib import Path

from autolog_events import DatasourceEvent
from autolog_events.engine import FileRelation, Filter, Join, Limit, LocalRelation, Project, QueryExecutionEnd
from autolog_events.publisher import DatasourceListener, extract_datasource_events, to_uri


class _StubPublisher:
    def __init__(self):
        self.events = []
        self.extraction_failures = 0

    def publish_event(self, event):
        self.events.append(event)

    def record_extraction_failure(self):
        self.extraction_failures += 1


def _end(plan, error=None, execution_id=0):
    return QueryExecutionEnd(execution_id=execution_id, plan=plan, started_at=0.0, duration_s=0.01, error=error)


def test_extract_walks_through_unary_nodes(tmp_path):
    relation = FileRelation(path=str(tmp_path / "t"), format="csv")
    plan = Limit(Project(Filter(relation, "number > 0"), ("number",)), 2)

    assert extract_datasource_events(plan) == [
        DatasourceEvent(path=(tmp_path / "t").resolve().as_uri(), version="unknown", format="csv"),
    ]


def test_extract_reports_both_join_sides_left_first(tmp_path):
    left = FileRelation(path=str(tmp_path / "l"), format="parquet")
    right = FileRelation(path=str(tmp_path / "r"), format="json")

    events = extract_datasource_events(Join(left, right))

    assert [(e.format, Path(e.path).name) for e in events] == [("parquet", "l"), ("json", "r")]


def test_extract_keeps_known_versions_and_remote_uris():
    relation = FileRelation(path="s3://bucket/table", format="delta", version="12")

    assert extract_datasource_events(relation) == [
        DatasourceEvent(path="s3://bucket/table", version="12", format="delta"),
    ]


def test_in_memory_leaves_are_not_datasources():
    assert extract_datasource_events(LocalRelation(rows=((1,),), columns=("n",))) == []


def test_to_uri_for_local_paths(tmp_path):
    assert to_uri(str(tmp_path)) == tmp_path.resolve().as_uri()
    assert to_uri(str(tmp_path)).startswith("file:///")


def test_listener_forwards_one_event_per_leaf(tmp_path):
    publisher = _StubPublisher()
    listener = DatasourceListener(publisher)
    relation = FileRelation(path=str(tmp_path / "t"), format="json")

    listener.on_query_execution_end(_end(Join(relation, relation)))

    assert len(publisher.events) == 2
    assert publisher.events[0] == publisher.events[1]


def test_listener_ignores_failed_executions(tmp_path):
    publisher = _StubPublisher()
    listener = DatasourceListener(publisher)

    listener.on_query_execution_end(_end(FileRelation(str(tmp_path), "csv"), error=FileNotFoundError("x")))

    assert publisher.events == []


def test_listener_swallows_extraction_errors(tmp_path):
    def _explode(plan):
        raise AttributeError("plan changed shape")

    publisher = _StubPublisher()
    listener = DatasourceListener(publisher, extractor=_explode)

    listener.on_query_execution_end(_end(FileRelation(str(tmp_path), "csv")))

    assert publisher.events == []
    assert publisher.extraction_failures == 1
