# autolog_events/events.py
from __future__ import annotations

from dataclasses import dataclass

UNKNOWN_VERSION = "unknown"


@dataclass(frozen=True)
class DatasourceEvent:
    """One datasource access seen in a completed query execution."""
    path: str
    version: str
    format: str

    def as_tag_entry(self) -> str:
        """Render as the `path=...,version=...,format=...` line used in run tags."""
        return f"path={self.path},version={self.version},format={self.format}"
