"""Tests for snapshot sinks."""

from __future__ import annotations

from skillweave.orchestration.snapshots import (
    InMemorySnapshotSink,
    JsonlSnapshotSink,
    SnapshotSink,
)


class TestInMemorySnapshotSink:
    def test_records_by_run(self):
        sink = InMemorySnapshotSink()
        sink.write({"run_id": "r1", "step_id": "a"})
        sink.write({"run_id": "r2", "step_id": "a"})
        sink.write({"run_id": "r1", "step_id": "b"})
        assert len(sink) == 3
        assert [r["step_id"] for r in sink.for_run("r1")] == ["a", "b"]

    def test_satisfies_protocol(self, tmp_path):
        assert isinstance(InMemorySnapshotSink(), SnapshotSink)
        assert isinstance(JsonlSnapshotSink(tmp_path / "s.jsonl"), SnapshotSink)


class TestJsonlSnapshotSink:
    def test_append_and_read(self, tmp_path):
        path = tmp_path / "runs" / "snapshots.jsonl"
        sink = JsonlSnapshotSink(path)
        assert sink.read_all() == []

        sink.write({"run_id": "r1", "sequence": 1, "output": {"value": 1}})
        sink.write({"run_id": "r1", "sequence": 2, "when": object})

        records = sink.read_all()
        assert [r["sequence"] for r in records] == [1, 2]
        assert records[0]["output"] == {"value": 1}
        assert isinstance(records[1]["when"], str)
        assert len(path.read_text(encoding="utf-8").splitlines()) == 2

    def test_parent_directory_created_up_front(self, tmp_path):
        path = tmp_path / "a" / "b" / "snapshots.jsonl"
        JsonlSnapshotSink(path)
        assert path.parent.is_dir()
        assert not path.exists()

    def test_write_does_not_create_directories(self, tmp_path, monkeypatch):
        sink = JsonlSnapshotSink(tmp_path / "runs" / "snapshots.jsonl")
        calls = []
        monkeypatch.setattr(type(sink.path), "mkdir", lambda self, *a, **kw: calls.append(self))

        sink.write({"run_id": "r1", "sequence": 1})
        sink.write({"run_id": "r1", "sequence": 2})

        assert calls == []
        assert [r["sequence"] for r in sink.read_all()] == [1, 2]
