# autolog_events/engine/sources.py
"""
File formats understood by the local engine.

A saved table is a directory of `part-NNNNN.<ext>` files, the same layout the
big engines use, so paths recorded by the publisher always name the table
directory rather than an individual part file.
"""

from __future__ import annotations

import csv
import json
import shutil
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import pyarrow as pa
import pyarrow.parquet as pq

Row = Dict[str, Any]

SUPPORTED_FORMATS = ("csv", "json", "parquet")

_EXTENSIONS = {"csv": "csv", "json": "json", "parquet": "parquet"}


def _truthy(value: Optional[str]) -> bool:
    return str(value).strip().lower() in ("true", "1", "yes")


def _infer_value(text: Optional[str]) -> Any:
    if text is None or text == "":
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


def _part_files(path: Path, data_format: str) -> List[Path]:
    if path.is_file():
        return [path]
    if not path.is_dir():
        raise FileNotFoundError(f"Path does not exist: {path}")
    ext = _EXTENSIONS[data_format]
    return sorted(p for p in path.iterdir() if p.is_file() and p.name.startswith("part-") and p.suffix == f".{ext}")


# ---------------------------------------------------------------- readers

def _read_csv(path: Path, options: Dict[str, str]) -> List[Row]:
    header = _truthy(options.get("header", "false"))
    infer = _truthy(options.get("inferSchema", "false"))
    delimiter = options.get("sep", options.get("delimiter", ","))
    rows: List[Row] = []
    for part in _part_files(path, "csv"):
        with open(part, "r", newline="") as f:
            reader = csv.reader(f, delimiter=delimiter)
            columns: Optional[List[str]] = None
            for record in reader:
                if columns is None:
                    if header:
                        columns = record
                        continue
                    columns = [f"_c{i}" for i in range(len(record))]
                values = [_infer_value(v) if infer else v for v in record]
                rows.append(dict(zip(columns, values)))
    return rows


def _read_json(path: Path, options: Dict[str, str]) -> List[Row]:
    rows: List[Row] = []
    for part in _part_files(path, "json"):
        with open(part, "r") as f:
            for line in f:
                line = line.strip()
                if line:
                    rows.append(json.loads(line))
    return rows


def _read_parquet(path: Path, options: Dict[str, str]) -> List[Row]:
    rows: List[Row] = []
    for part in _part_files(path, "parquet"):
        rows.extend(pq.read_table(part).to_pylist())
    return rows


READERS: Dict[str, Callable[[Path, Dict[str, str]], List[Row]]] = {
    "csv": _read_csv,
    "json": _read_json,
    "parquet": _read_parquet,
}


def read_table(path: str, data_format: str, options: Optional[Dict[str, str]] = None) -> List[Row]:
    """Read every row of a saved table"""
    data_format = data_format.lower()
    if data_format not in READERS:
        raise ValueError(f"Unsupported format '{data_format}'. Supported: {', '.join(SUPPORTED_FORMATS)}")
    return READERS[data_format](Path(path), options or {})


# ---------------------------------------------------------------- writers

def _write_csv(target: Path, rows: Sequence[Row], columns: Sequence[str], options: Dict[str, str]) -> None:
    with open(target, "w", newline="") as f:
        writer = csv.writer(f, delimiter=options.get("sep", options.get("delimiter", ",")))
        if _truthy(options.get("header", "false")):
            writer.writerow(columns)
        for row in rows:
            writer.writerow(["" if row.get(c) is None else row.get(c) for c in columns])


def _write_json(target: Path, rows: Sequence[Row], columns: Sequence[str], options: Dict[str, str]) -> None:
    with open(target, "w") as f:
        for row in rows:
            f.write(json.dumps({c: row.get(c) for c in columns}, default=str) + "\n")


def _write_parquet(target: Path, rows: Sequence[Row], columns: Sequence[str], options: Dict[str, str]) -> None:
    table = pa.table({c: [row.get(c) for row in rows] for c in columns})
    pq.write_table(table, target)


WRITERS: Dict[str, Callable[[Path, Sequence[Row], Sequence[str], Dict[str, str]], None]] = {
    "csv": _write_csv,
    "json": _write_json,
    "parquet": _write_parquet,
}


def write_table(
    path: str,
    data_format: str,
    rows: Sequence[Row],
    columns: Sequence[str],
    options: Optional[Dict[str, str]] = None,
    mode: str = "error",
) -> Path:
    """
    Save rows as a table directory.

    Args:
        path: Target table directory
        data_format: csv, json or parquet
        rows: Rows to write
        columns: Column order
        options: Format options (e.g. header for csv)
        mode: "error" (default), "overwrite" or "ignore"

    Returns:
        The written part file
    """
    data_format = data_format.lower()
    if data_format not in WRITERS:
        raise ValueError(f"Unsupported format '{data_format}'. Supported: {', '.join(SUPPORTED_FORMATS)}")

    table_dir = Path(path)
    if table_dir.exists():
        if mode == "overwrite":
            shutil.rmtree(table_dir)
        elif mode == "ignore":
            return table_dir
        else:
            raise FileExistsError(f"Path already exists: {table_dir}")

    table_dir.mkdir(parents=True)
    target = table_dir / f"part-00000.{_EXTENSIONS[data_format]}"
    WRITERS[data_format](target, rows, columns, options or {})
    return target
