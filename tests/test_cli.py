"""Tests for CLI entry point."""

import json
import shlex
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from cadre.cli import main


@pytest.fixture
def cli_home(home: Path) -> Path:
    (home / "config.json").write_text(json.dumps({"rootAgentId": "ceo"}))
    return home


def _run(home: Path, *argv: str) -> None:
    with patch("sys.argv", ["cadre", "--home", str(home), *argv]):
        main()


def _provider_script(monkeypatch: pytest.MonkeyPatch, script: str) -> None:
    monkeypatch.setenv("CADRE_PROVIDER_CMD", shlex.join([sys.executable, "-c", script]))


class TestAgentsCommand:
    def test_lists_org(self, cli_home: Path, capsys: pytest.CaptureFixture[str]):
        _run(cli_home, "agents")
        out = capsys.readouterr().out
        lines = out.strip().splitlines()
        assert [line.split()[0] for line in lines] == ["ceo", "cto", "engineer", "qa"]
        assert "manager" in lines[0]
        assert "individual" in lines[2]

    def test_json_output(self, cli_home: Path, capsys: pytest.CaptureFixture[str]):
        _run(cli_home, "agents", "--json")
        data = json.loads(capsys.readouterr().out)
        assert data[1]["agent_id"] == "cto"
        assert data[1]["metadata"]["reports_to"] == "ceo"

    def test_empty_home(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]):
        _run(tmp_path, "agents")
        assert "No agents found." in capsys.readouterr().out


class TestAgentCommand:
    def test_info(self, cli_home: Path, capsys: pytest.CaptureFixture[str]):
        _run(cli_home, "agent", "info", "CEO")
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "id: ceo"
        assert "name: CEO" in lines
        assert "type: manager" in lines
        assert "total reportees: 3" in lines
        reports = [line.strip() for line in lines if line.startswith("  - ")]
        assert reports == [
            "- cto (CTO, manager), total reportees: 1",
            "- qa (QA, individual), total reportees: 0",
        ]

    def test_reportees(self, cli_home: Path, capsys: pytest.CaptureFixture[str]):
        _run(cli_home, "agent", "reportees", "ceo")
        assert capsys.readouterr().out == "cto\nqa\nengineer\n"

    def test_unknown_agent(self, cli_home: Path, capsys: pytest.CaptureFixture[str]):
        with pytest.raises(SystemExit) as exc_info:
            _run(cli_home, "agent", "info", "ghost")
        assert exc_info.value.code == 1
        assert "Agent not found: ghost" in capsys.readouterr().err

    def test_provider_get_and_set(
        self, cli_home: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ):
        monkeypatch.delenv("CADRE_DEFAULT_PROVIDER", raising=False)
        _run(cli_home, "agent", "provider", "get", "cto")
        assert capsys.readouterr().out == "command\n"

        _run(cli_home, "agent", "provider", "set", "cto", "openai")
        assert capsys.readouterr().out == "cto -> openai\n"
        saved = json.loads((cli_home / "agents" / "cto" / "config.json").read_text())
        assert saved == {"provider": {"id": "openai"}}

        _run(cli_home, "agent", "provider", "get", "cto")
        assert capsys.readouterr().out == "openai\n"

    def test_provider_set_unknown(self, cli_home: Path, capsys: pytest.CaptureFixture[str]):
        with pytest.raises(SystemExit) as exc_info:
            _run(cli_home, "agent", "provider", "set", "cto", "carrier-pigeon")
        assert exc_info.value.code == 1
        assert "carrier-pigeon" in capsys.readouterr().err
        assert not (cli_home / "agents" / "cto" / "config.json").exists()


class TestProvidersCommand:
    def test_lists_registered(
        self, cli_home: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ):
        monkeypatch.delenv("CADRE_DEFAULT_PROVIDER", raising=False)
        _run(cli_home, "providers")
        assert capsys.readouterr().out == "command (default)\nopenai\n"


class TestRouteCommand:
    def test_defaults_to_root(self, cli_home: Path, capsys: pytest.CaptureFixture[str]):
        _run(cli_home, "route", "Please review the architecture for the new API")
        data = json.loads(capsys.readouterr().out)
        assert data["entry_agent_id"] == "ceo"
        assert data["target_agent_id"] == "cto"

    def test_root_from_env(
        self, home: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ):
        monkeypatch.setenv("CADRE_ROOT_AGENT", "cto")
        _run(home, "route", "anything", "--agent", "nobody")
        assert json.loads(capsys.readouterr().out)["entry_agent_id"] == "cto"


@pytest.mark.integration
class TestRunCommand:
    def test_runs_delegated_agent(
        self,
        cli_home: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ):
        _provider_script(monkeypatch, "import sys; print('handled by ' + sys.argv[2])")
        _run(cli_home, "run", "Please review the architecture for the new API")
        captured = capsys.readouterr()
        assert captured.out == "handled by cto\n"
        assert "[ceo -> cto]" in captured.err
        assert "trace:" in captured.err
        assert len(list((cli_home / "runs").glob("*.json"))) == 1

    def test_nonzero_exit_propagates(
        self,
        cli_home: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ):
        _provider_script(monkeypatch, "import sys; sys.stderr.write('bad'); sys.exit(4)")
        with pytest.raises(SystemExit) as exc_info:
            _run(cli_home, "run", "fix it", "--agent", "engineer")
        assert exc_info.value.code == 4
        assert "bad" in capsys.readouterr().err

    def test_missing_provider_binary(
        self,
        cli_home: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ):
        monkeypatch.setenv("CADRE_PROVIDER_CMD", "definitely-not-a-real-cadre-binary")
        with pytest.raises(SystemExit) as exc_info:
            _run(cli_home, "run", "fix it", "--agent", "engineer")
        assert exc_info.value.code == 127
        assert "Error:" in capsys.readouterr().err

    def test_runs_listing(
        self,
        cli_home: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ):
        _provider_script(monkeypatch, "print('ok')")
        _run(cli_home, "run", "fix it", "--agent", "engineer")
        capsys.readouterr()
        _run(cli_home, "runs")
        line = capsys.readouterr().out.strip()
        assert "engineer -> engineer" in line
        assert "exit=0" in line

        run_id = line.split()[0]
        _run(cli_home, "runs", run_id)
        trace = json.loads(capsys.readouterr().out)
        assert trace["execution"]["stdout"] == "ok\n"


class TestBoardCommands:
    def test_board_and_task_flow(self, cli_home: Path, capsys: pytest.CaptureFixture[str]):
        _run(cli_home, "board", "create", "Platform", "--actor", "cto")
        board = json.loads(capsys.readouterr().out)

        _run(
            cli_home,
            "task",
            "create",
            "Ship API",
            "--actor",
            "cto",
            "--board",
            board["board_id"],
            "--assign",
            "engineer",
        )
        task = json.loads(capsys.readouterr().out)
        assert task["assigned_to"] == "engineer"

        _run(
            cli_home,
            "task",
            "status",
            task["task_id"],
            "blocked",
            "--actor",
            "engineer",
            "--reason",
            "waiting on infra",
        )
        assert json.loads(capsys.readouterr().out)["status"] == "blocked"

        _run(cli_home, "task", "worklog", task["task_id"], "started", "--actor", "engineer")
        assert len(json.loads(capsys.readouterr().out)["worklog"]) == 1

        _run(cli_home, "board", "show", board["board_id"])
        shown = json.loads(capsys.readouterr().out)
        assert [t["task_id"] for t in shown["tasks"]] == [task["task_id"]]

        _run(cli_home, "task", "latest", "--assignee", "engineer")
        assert [t["task_id"] for t in json.loads(capsys.readouterr().out)] == [task["task_id"]]

    def test_permission_error_exits_nonzero(
        self, cli_home: Path, capsys: pytest.CaptureFixture[str]
    ):
        with pytest.raises(SystemExit) as exc_info:
            _run(cli_home, "board", "create", "Mine", "--actor", "engineer")
        assert exc_info.value.code == 1
        assert "Only managers can create boards." in capsys.readouterr().err

    def test_actor_required(self, cli_home: Path):
        with pytest.raises(SystemExit) as exc_info:
            _run(cli_home, "board", "create", "Platform")
        assert exc_info.value.code == 2


class TestServeCommand:
    def test_port_override(self, cli_home: Path):
        with patch("cadre.cli.run_server") as run_server:
            _run(cli_home, "serve", "--port", "5001")
        config = run_server.call_args.args[0]
        assert config.port == 5001
        assert config.home_dir == cli_home


class TestNoCommand:
    def test_prints_help(self, capsys: pytest.CaptureFixture[str]):
        with patch("sys.argv", ["cadre"]):
            with pytest.raises(SystemExit) as exc_info:
                main()
        assert exc_info.value.code == 1
        assert "usage:" in capsys.readouterr().out
