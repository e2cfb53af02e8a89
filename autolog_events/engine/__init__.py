"""
Local query engine
==================

A small in-process engine that plays the host-engine role for the publisher:
- DataFrame API over csv / json / parquet tables
- Logical plans with datasource leaves (FileRelation)
- A listener bus that reports every finished query execution
"""

from .plan import FileRelation, LocalRelation, Filter, Project, Limit, Join, PlanNode, iter_leaves, iter_nodes
from .session import EngineSession, ListenerBus, QueryExecutionEnd, QueryListener
from .dataframe import DataFrame, DataFrameReader, DataFrameWriter
from .sources import SUPPORTED_FORMATS, read_table, write_table

__all__ = [
    'EngineSession',
    'ListenerBus',
    'QueryExecutionEnd',
    'QueryListener',
    'DataFrame',
    'DataFrameReader',
    'DataFrameWriter',
    'PlanNode',
    'FileRelation',
    'LocalRelation',
    'Filter',
    'Project',
    'Limit',
    'Join',
    'iter_leaves',
    'iter_nodes',
    'SUPPORTED_FORMATS',
    'read_table',
    'write_table',
]
