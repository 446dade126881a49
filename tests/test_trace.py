"""Tests for orchestration/trace.py: run trace files."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from cadre.errors import NotFoundError
from cadre.orchestration.models import AgentRunTrace, ExecutionRecord, RoutingDecision
from cadre.orchestration.trace import list_runs, read_trace, trace_path, write_trace


def _trace(run_id: str, started_at: str = "2026-02-10T00:00:00+00:00") -> AgentRunTrace:
    return AgentRunTrace(
        run_id=run_id,
        started_at=started_at,
        completed_at=started_at,
        entry_agent_id="ceo",
        user_message="hi",
        routing=RoutingDecision(
            entry_agent_id="ceo",
            target_agent_id="ceo",
            confidence=1.0,
            reason="Empty message; keeping current agent.",
            rewritten_message="hi",
        ),
        execution=ExecutionRecord(
            agent_id="ceo", provider_id="command", exit_code=0, stdout="ok", duration_ms=5
        ),
    )


class TestWriteTrace:
    def test_writes_named_json(self, tmp_path: Path):
        runs_dir = tmp_path / "runs"
        path = write_trace(runs_dir, _trace("run-1"))
        assert path == trace_path(runs_dir, "run-1") == runs_dir / "run-1.json"
        data = json.loads(path.read_text())
        assert data["schema_version"] == 1
        assert data["run_id"] == "run-1"
        assert data["execution"]["stdout"] == "ok"

    def test_no_temp_files_left(self, tmp_path: Path):
        write_trace(tmp_path, _trace("run-1"))
        assert [p.name for p in tmp_path.iterdir()] == ["run-1.json"]

    def test_never_overwrites(self, tmp_path: Path):
        write_trace(tmp_path, _trace("run-1"))
        with pytest.raises(FileExistsError):
            write_trace(tmp_path, _trace("run-1"))

    def test_trace_is_immutable(self):
        trace = _trace("run-1")
        with pytest.raises(ValueError):
            trace.run_id = "other"


class TestReadTrace:
    def test_round_trip(self, tmp_path: Path):
        original = _trace("run-1")
        write_trace(tmp_path, original)
        assert read_trace(tmp_path, "run-1") == original

    def test_missing(self, tmp_path: Path):
        with pytest.raises(NotFoundError, match="Run not found: nope"):
            read_trace(tmp_path, "nope")


class TestListRuns:
    def test_newest_first_with_limit(self, tmp_path: Path):
        write_trace(tmp_path, _trace("a", "2026-02-10T00:00:00+00:00"))
        write_trace(tmp_path, _trace("b", "2026-02-12T00:00:00+00:00"))
        write_trace(tmp_path, _trace("c", "2026-02-11T00:00:00+00:00"))
        assert [t.run_id for t in list_runs(tmp_path)] == ["b", "c", "a"]
        assert [t.run_id for t in list_runs(tmp_path, limit=1)] == ["b"]

    def test_skips_unreadable_files(self, tmp_path: Path):
        write_trace(tmp_path, _trace("a"))
        (tmp_path / "junk.json").write_text("{not json")
        assert [t.run_id for t in list_runs(tmp_path)] == ["a"]

    def test_missing_dir(self, tmp_path: Path):
        assert list_runs(tmp_path / "missing") == []
