"""Run trace JSON files: one immutable ``<run_id>.json`` per orchestration run."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

from cadre.errors import NotFoundError
from cadre.orchestration.models import AgentRunTrace


def trace_path(runs_dir: Path, run_id: str) -> Path:
    return runs_dir / f"{run_id}.json"


def write_trace(runs_dir: Path, trace: AgentRunTrace) -> Path:
    """Write the trace atomically, creating the runs dir as needed.

    Raises ``FileExistsError`` rather than overwriting an existing trace.
    """
    path = trace_path(runs_dir, trace.run_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        raise FileExistsError(f"Trace already exists: {path}")
    content = json.dumps(trace.model_dump(mode="json"), indent=2) + "\n"
    fd, tmp = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        os.write(fd, content.encode())
        os.close(fd)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.close(fd)
        except OSError:
            pass
        Path(tmp).unlink(missing_ok=True)
        raise
    return path


def read_trace(runs_dir: Path, run_id: str) -> AgentRunTrace:
    path = trace_path(runs_dir, run_id)
    try:
        return AgentRunTrace.model_validate_json(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise NotFoundError("run", run_id) from e


def list_runs(runs_dir: Path, *, limit: int = 20) -> list[AgentRunTrace]:
    """Most recent traces first (by ``started_at``); unreadable files are skipped."""
    if not runs_dir.is_dir():
        return []
    traces: list[AgentRunTrace] = []
    for path in runs_dir.glob("*.json"):
        try:
            traces.append(AgentRunTrace.model_validate_json(path.read_text(encoding="utf-8")))
        except (OSError, ValueError):
            continue
    traces.sort(key=lambda t: t.started_at, reverse=True)
    return traces[: max(0, limit)]
