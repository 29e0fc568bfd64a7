"""Snapshot sinks — write-only audit trail of settled steps.

The executor hands every settled :class:`StepResult` to a sink exactly once,
wrapped in a record carrying ``run_id``, ``process_id`` and a per-run
``sequence`` number.  Sinks are never read during a live run, and a sink
that raises is logged and ignored so auditing cannot fail a run.

Example:
    >>> sink = JsonlSnapshotSink("runs/snapshots.jsonl")
    >>> executor = ProcessExecutor(registry, implementations, snapshot_sink=sink)
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class SnapshotSink(Protocol):
    """Receives one record per settled step."""

    def write(self, record: dict[str, Any]) -> None: ...


class InMemorySnapshotSink:
    """Keeps records in a list; handy for tests and the CLI."""

    def __init__(self) -> None:
        self.records: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def write(self, record: dict[str, Any]) -> None:
        with self._lock:
            self.records.append(record)

    def for_run(self, run_id: str) -> list[dict[str, Any]]:
        return [r for r in self.records if r.get("run_id") == run_id]

    def __len__(self) -> int:
        return len(self.records)


class JsonlSnapshotSink:
    """Appends one JSON document per line to ``path``."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def write(self, record: dict[str, Any]) -> None:
        line = json.dumps(record, default=str, sort_keys=True)
        with self._lock:
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")

    def read_all(self) -> list[dict[str, Any]]:
        """Load every record (offline inspection only)."""
        if not self.path.exists():
            return []
        with self.path.open(encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]


__all__ = ["SnapshotSink", "InMemorySnapshotSink", "JsonlSnapshotSink"]
