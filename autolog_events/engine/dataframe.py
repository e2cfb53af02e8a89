# autolog_events/engine/dataframe.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING

from . import sources
from .plan import FileRelation, Filter, Join, Limit, PlanNode, Predicate, Project, Row

if TYPE_CHECKING:
    from .session import EngineSession


class DataFrame:
    """Lazy, immutable query over a plan; nothing runs until collect()/count()."""

    def __init__(self, session: "EngineSession", plan: PlanNode) -> None:
        self.session = session
        self.plan = plan

    def filter(self, predicate: Predicate) -> "DataFrame":
        return DataFrame(self.session, Filter(self.plan, predicate))

    where = filter

    def select(self, *columns: str) -> "DataFrame":
        if len(columns) == 1 and isinstance(columns[0], (list, tuple)):
            columns = tuple(columns[0])
        return DataFrame(self.session, Project(self.plan, tuple(columns)))

    def limit(self, n: int) -> "DataFrame":
        return DataFrame(self.session, Limit(self.plan, int(n)))

    def join(self, other: "DataFrame", on: Optional[Sequence[str]] = None) -> "DataFrame":
        if isinstance(on, str):
            on = (on,)
        return DataFrame(self.session, Join(self.plan, other.plan, tuple(on or ())))

    def collect(self) -> List[Row]:
        return self.session.execute(self.plan)

    def count(self) -> int:
        return len(self.collect())

    def explain(self) -> str:
        return self.plan.explain()

    @property
    def write(self) -> "DataFrameWriter":
        return DataFrameWriter(self)

    def __repr__(self) -> str:
        return f"DataFrame[{self.plan.describe()}]"


class DataFrameReader:
    """Builder for FileRelation reads: session.read.format(...).option(...).load(path)"""

    def __init__(self, session: "EngineSession") -> None:
        self._session = session
        self._format = "parquet"
        self._options: Dict[str, str] = {}

    def format(self, data_format: str) -> "DataFrameReader":
        data_format = data_format.lower()
        if data_format not in sources.SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported format '{data_format}'")
        self._format = data_format
        return self

    def option(self, key: str, value: Any) -> "DataFrameReader":
        self._options[key] = str(value).lower() if isinstance(value, bool) else str(value)
        return self

    def options(self, **opts: Any) -> "DataFrameReader":
        for key, value in opts.items():
            self.option(key, value)
        return self

    def load(self, path: str) -> DataFrame:
        resolved = str(Path(path).expanduser().resolve()) if "://" not in str(path) else str(path)
        relation = FileRelation(
            path=resolved,
            format=self._format,
            options=tuple(sorted(self._options.items())),
        )
        return DataFrame(self._session, relation)

    def csv(self, path: str) -> DataFrame:
        return self.format("csv").load(path)

    def json(self, path: str) -> DataFrame:
        return self.format("json").load(path)

    def parquet(self, path: str) -> DataFrame:
        return self.format("parquet").load(path)


class DataFrameWriter:
    """df.write.format(...).option(...).mode(...).save(path)"""

    def __init__(self, df: DataFrame) -> None:
        self._df = df
        self._format = "parquet"
        self._options: Dict[str, str] = {}
        self._mode = "error"

    def format(self, data_format: str) -> "DataFrameWriter":
        self._format = data_format.lower()
        return self

    def option(self, key: str, value: Any) -> "DataFrameWriter":
        self._options[key] = str(value).lower() if isinstance(value, bool) else str(value)
        return self

    def mode(self, mode: str) -> "DataFrameWriter":
        self._mode = mode
        return self

    def save(self, path: str) -> None:
        rows = self._df.collect()
        columns = _columns_of(self._df.plan, rows)
        sources.write_table(path, self._format, rows, columns, self._options, mode=self._mode)


def _columns_of(plan: PlanNode, rows: List[Row]) -> List[str]:
    columns = getattr(plan, "columns", None)
    if columns:
        return list(columns)
    seen: Dict[str, None] = {}
    for row in rows:
        for key in row:
            seen.setdefault(key)
    return list(seen)
