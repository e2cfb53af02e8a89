# autolog_events/engine/plan.py
"""
Logical plan nodes for the local query engine.

Plans are immutable trees. Leaves are either FileRelation (a datasource read)
or LocalRelation (in-memory rows); everything else wraps one or two children.
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

Row = Dict[str, Any]
Predicate = Union[str, Callable[[Row], bool]]

_COMPARISON_RE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_.]*)\s*(>=|<=|==|!=|=|>|<)\s*(.+?)\s*$")

_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "=": operator.eq,
    "==": operator.eq,
    "!=": operator.ne,
}


class PlanNode:
    """Base class for logical plan nodes"""

    @property
    def children(self) -> Tuple["PlanNode", ...]:
        return ()

    def describe(self) -> str:
        return type(self).__name__

    def explain(self) -> str:
        """Indented tree rendering of this plan"""
        lines: List[str] = []

        def _walk(node: PlanNode, depth: int) -> None:
            lines.append(f"{'  ' * depth}{'+- ' if depth else ''}{node.describe()}")
            for child in node.children:
                _walk(child, depth + 1)

        _walk(self, 0)
        return "\n".join(lines)


@dataclass(frozen=True)
class FileRelation(PlanNode):
    """A read of a file-based datasource"""
    path: str
    format: str
    options: Tuple[Tuple[str, str], ...] = ()
    version: Optional[str] = None

    def option_map(self) -> Dict[str, str]:
        return dict(self.options)

    def describe(self) -> str:
        return f"FileRelation[{self.format}] {self.path}"


@dataclass(frozen=True)
class LocalRelation(PlanNode):
    """Rows held in memory"""
    rows: Tuple[Tuple[Any, ...], ...]
    columns: Tuple[str, ...]

    def describe(self) -> str:
        return f"LocalRelation [{', '.join(self.columns)}] ({len(self.rows)} rows)"


@dataclass(frozen=True)
class Filter(PlanNode):
    child: PlanNode
    predicate: Predicate = field(compare=False)

    @property
    def children(self) -> Tuple[PlanNode, ...]:
        return (self.child,)

    def describe(self) -> str:
        text = self.predicate if isinstance(self.predicate, str) else getattr(self.predicate, "__name__", "<fn>")
        return f"Filter ({text})"


@dataclass(frozen=True)
class Project(PlanNode):
    child: PlanNode
    columns: Tuple[str, ...]

    @property
    def children(self) -> Tuple[PlanNode, ...]:
        return (self.child,)

    def describe(self) -> str:
        return f"Project [{', '.join(self.columns)}]"


@dataclass(frozen=True)
class Limit(PlanNode):
    child: PlanNode
    n: int

    @property
    def children(self) -> Tuple[PlanNode, ...]:
        return (self.child,)

    def describe(self) -> str:
        return f"Limit {self.n}"


@dataclass(frozen=True)
class Join(PlanNode):
    """Inner join on `on` columns, or a cross join when `on` is empty"""
    left: PlanNode
    right: PlanNode
    on: Tuple[str, ...] = ()

    @property
    def children(self) -> Tuple[PlanNode, ...]:
        return (self.left, self.right)

    def describe(self) -> str:
        return f"Join {'Cross' if not self.on else 'Inner'}{' on ' + ', '.join(self.on) if self.on else ''}"


def iter_nodes(plan: PlanNode) -> Iterator[PlanNode]:
    """Pre-order walk over every node of the plan"""
    stack = [plan]
    while stack:
        node = stack.pop()
        yield node
        # reversed so the left child is visited first
        stack.extend(reversed(node.children))


def iter_leaves(plan: PlanNode) -> Iterator[PlanNode]:
    """Leaves of the plan, left to right"""
    for node in iter_nodes(plan):
        if not node.children:
            yield node


def compile_predicate(predicate: Predicate) -> Callable[[Row], bool]:
    """
    Turn a filter predicate into a row function.

    String predicates take the form "<column> <op> <literal>", for example
    "number > 0" or "word = 'bat'".
    """
    if callable(predicate):
        return predicate

    match = _COMPARISON_RE.match(predicate)
    if not match:
        raise ValueError(f"Unsupported filter expression: {predicate!r}")

    column, op, raw_literal = match.groups()
    literal = _parse_literal(raw_literal)
    compare = _OPERATORS[op]

    def _row_predicate(row: Row) -> bool:
        if column not in row:
            raise KeyError(f"Column '{column}' not found; available: {sorted(row)}")
        value = row[column]
        if value is None:
            return False
        try:
            return bool(compare(value, literal))
        except TypeError:
            return bool(compare(str(value), str(literal)))

    _row_predicate.__name__ = predicate
    return _row_predicate


def _parse_literal(text: str) -> Any:
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return text[1:-1]
    lowered = text.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if lowered == "null":
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text
