"""Tests for the ``skillweave`` CLI."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest
import structlog
from typer.testing import CliRunner

from skillweave.cli.app import app

runner = CliRunner()

PROCESS_YAML = """\
metadata:
  name: adr-flow
spec:
  steps:
    - id: draft
      capabilities: [drafting]
      kind: {kind}
      context:
        title: "${{input.title}}"
    - id: review
      handler: reviewer
      context:
        adr: "${{draft.adr}}"
"""


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    """Keep log lines out of stdout so ``--json`` output stays parseable."""
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL))
    monkeypatch.setattr(
        sys.modules["skillweave.cli.app"], "configure_logging", lambda **kwargs: None
    )


@pytest.fixture
def handlers_dir(tmp_path: Path) -> Path:
    root = tmp_path / "handlers"
    root.mkdir()
    (root / "drafter-a.handler.yaml").write_text(
        "kind: skill\ncapabilities: [adr, drafting]\n", encoding="utf-8"
    )
    (root / "drafter-b.handler.yaml").write_text(
        "kind: agent\ncapabilities: [adr, drafting]\n", encoding="utf-8"
    )
    (root / "reviewer.handler.yaml").write_text(
        "kind: skill\ncapabilities: [adr, review]\ntarget-processes: [adr-flow]\n",
        encoding="utf-8",
    )
    return root


def _process_file(tmp_path: Path, kind: str = "agent") -> Path:
    path = tmp_path / "adr-flow.yaml"
    path.write_text(PROCESS_YAML.format(kind=kind), encoding="utf-8")
    return path


def _json(result) -> object:
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.stdout.startswith("skillweave ")

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "handlers" in result.output
        assert "process" in result.output


class TestHandlers:
    def test_list_json(self, handlers_dir):
        rows = _json(runner.invoke(app, ["handlers", "list", "--path", str(handlers_dir), "--json"]))
        assert {row["id"] for row in rows} == {"drafter-a", "drafter-b", "reviewer"}

    def test_list_filters(self, handlers_dir):
        path = str(handlers_dir)
        by_kind = _json(runner.invoke(app, ["handlers", "list", "-p", path, "--kind", "agent", "--json"]))
        assert [row["id"] for row in by_kind] == ["drafter-b"]

        by_tag = _json(runner.invoke(app, ["handlers", "list", "-p", path, "-c", "review", "--json"]))
        assert [row["id"] for row in by_tag] == ["reviewer"]

        by_process = _json(
            runner.invoke(app, ["handlers", "list", "-p", path, "--process", "adr-flow", "--json"])
        )
        assert [row["processes"] for row in by_process] == [["adr-flow"]]

    def test_list_table(self, handlers_dir):
        result = runner.invoke(app, ["handlers", "list", "--path", str(handlers_dir)])
        assert result.exit_code == 0
        assert "reviewer" in result.stdout

    def test_list_empty_registry(self, tmp_path):
        result = runner.invoke(app, ["handlers", "list", "--path", str(tmp_path)])
        assert result.exit_code == 0
        assert "No items" in result.stdout

    def test_show(self, handlers_dir):
        data = _json(
            runner.invoke(app, ["handlers", "show", "reviewer", "-p", str(handlers_dir), "--json"])
        )
        assert data["kind"] == "skill"
        assert data["capability_tags"] == ["adr", "review"]
        assert data["input_schema"] == {"type": "object"}

    def test_show_unknown_handler(self, handlers_dir):
        result = runner.invoke(app, ["handlers", "show", "ghost", "-p", str(handlers_dir)])
        assert result.exit_code == 1

    def test_resolve_with_kind(self, handlers_dir):
        data = _json(
            runner.invoke(
                app,
                ["handlers", "resolve", "drafting", "-p", str(handlers_dir), "--kind", "agent", "--json"],
            )
        )
        assert data == {"handler_id": "drafter-b", "candidates": ["drafter-a", "drafter-b"]}

    def test_resolve_ambiguous(self, handlers_dir):
        result = runner.invoke(app, ["handlers", "resolve", "drafting", "-p", str(handlers_dir)])
        assert result.exit_code == 1

    def test_stats(self, handlers_dir):
        data = _json(runner.invoke(app, ["handlers", "stats", "-p", str(handlers_dir), "--json"]))
        assert data["total"] == 3
        assert data["by_kind"] == {"skill": 2, "agent": 1}
        assert data["shared_tags"] == ["adr", "drafting"]

    def test_descriptor_paths_from_settings(self, handlers_dir, monkeypatch):
        monkeypatch.setenv("SKILLWEAVE_DESCRIPTOR_PATHS", json.dumps([str(handlers_dir)]))
        data = _json(runner.invoke(app, ["handlers", "stats", "--json"]))
        assert data["total"] == 3


class TestProcess:
    def test_validate_structure_only(self, tmp_path):
        result = runner.invoke(app, ["process", "validate", str(_process_file(tmp_path))])
        assert result.exit_code == 0
        assert "structure OK" in result.stdout

    def test_validate_with_resolution(self, tmp_path, handlers_dir):
        data = _json(
            runner.invoke(
                app,
                ["process", "validate", str(_process_file(tmp_path)), "-p", str(handlers_dir), "--json"],
            )
        )
        assert data["valid"] is True
        assert data["resolution"] == {
            "draft": {"handler_id": "drafter-b"},
            "review": {"handler_id": "reviewer"},
        }

    def test_validate_reports_unresolved_steps(self, tmp_path, handlers_dir):
        path = _process_file(tmp_path, kind="skill")
        (handlers_dir / "drafter-c.handler.yaml").write_text(
            "kind: skill\ncapabilities: [drafting]\n", encoding="utf-8"
        )
        result = runner.invoke(
            app, ["process", "validate", str(path), "-p", str(handlers_dir), "--json"]
        )
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["valid"] is False
        assert data["resolution"]["draft"]["error"]["error_type"] == "AmbiguousCapabilityError"

    def test_validate_invalid_document(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("metadata:\n  name: p\nspec:\n  steps:\n    - id: a\n", encoding="utf-8")
        result = runner.invoke(app, ["process", "validate", str(path)])
        assert result.exit_code == 1

    def test_validate_missing_file(self, tmp_path):
        result = runner.invoke(app, ["process", "validate", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 2

    def test_plan_json(self, tmp_path):
        data = _json(runner.invoke(app, ["process", "plan", str(_process_file(tmp_path)), "--json"]))
        assert data["levels"] == [["draft"], ["review"]]
        assert data["output_dependencies"]["review"] == ["draft"]

    def test_plan_table(self, tmp_path):
        result = runner.invoke(app, ["process", "plan", str(_process_file(tmp_path))])
        assert result.exit_code == 0
        assert "review" in result.stdout
