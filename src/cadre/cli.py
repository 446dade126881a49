"""CLI entry point for cadre."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import cast

from pydantic import BaseModel

from cadre import __version__
from cadre.boards.store import DEFAULT_LATEST_TASKS, BoardStore
from cadre.config import Config, load_config
from cadre.errors import CadreError, ExecutionError, NotFoundError
from cadre.orchestration.runner import OrchestrationRunner
from cadre.providers.base import ProviderInvokeOptions
from cadre.providers.service import ProviderService
from cadre.registry.hierarchy import is_manager_agent, normalize_agent_id
from cadre.registry.loader import OrgGraph
from cadre.server.runner import run_server


def _load(args: argparse.Namespace) -> Config:
    home = cast(Path | None, args.home)
    return load_config(home_dir=home)


def _print_json(value: BaseModel | list[BaseModel]) -> None:
    if isinstance(value, list):
        data = [item.model_dump(mode="json") for item in value]
    else:
        data = value.model_dump(mode="json")
    print(json.dumps(data, indent=2))


def _cmd_agents(args: argparse.Namespace) -> None:
    graph = OrgGraph.from_config(_load(args))
    manifests = graph.list_manifests()
    if args.json:
        _print_json(manifests)
        return
    if not manifests:
        print("No agents found.")
        return
    for m in manifests:
        kind = "manager" if is_manager_agent(m) else "individual"
        reports_to = m.metadata.reports_to or "-"
        print(f"{m.agent_id:<20} {kind:<11} reports to {reports_to:<16} {m.metadata.name}")


def _require_agent(graph: OrgGraph, agent_id: str) -> str:
    if not graph.has_agent(agent_id):
        raise NotFoundError("agent", agent_id)
    return normalize_agent_id(agent_id)


def _cmd_agent(args: argparse.Namespace) -> None:
    config = _load(args)
    graph = OrgGraph.from_config(config)
    agent_id = _require_agent(graph, args.agent_id)
    action = cast(str, args.agent_action)
    if action == "info":
        m = graph.get_manifest(agent_id)
        all_reportees = graph.list_all_reportees(agent_id)
        print(f"id: {m.agent_id}")
        print(f"name: {m.metadata.name}")
        print(f"type: {m.metadata.type.value}")
        print(f"description: {m.metadata.description}")
        print(f"reports to: {m.metadata.reports_to or '-'}")
        print(f"total reportees: {len(all_reportees)}")
        print("direct reportees:")
        direct = graph.list_direct_reports(agent_id)
        if not direct:
            print("  (none)")
        for report in direct:
            count = len(graph.list_all_reportees(report.agent_id))
            print(
                f"  - {report.agent_id} ({report.metadata.name}, {report.metadata.type.value}), "
                f"total reportees: {count}"
            )
    elif action == "reportees":
        for m in graph.list_all_reportees(agent_id):
            print(m.agent_id)
    elif action == "provider":
        service = ProviderService.from_config(config)
        if args.provider_action == "get":
            print(service.get_agent_provider(agent_id).provider_id)
        else:
            binding = service.set_agent_provider(agent_id, args.provider_id)
            print(f"{binding.agent_id} -> {binding.provider_id}")


def _cmd_providers(args: argparse.Namespace) -> None:
    service = ProviderService.from_config(_load(args))
    for provider_id in service.list_provider_ids():
        marker = " (default)" if provider_id == service.default_provider_id else ""
        print(f"{provider_id}{marker}")


def _cmd_route(args: argparse.Namespace) -> None:
    runner = OrchestrationRunner.from_config(_load(args))
    _print_json(runner.route_message(args.agent or "", args.message))


def _cmd_run(args: argparse.Namespace) -> None:
    runner = OrchestrationRunner.from_config(_load(args))
    options = ProviderInvokeOptions(
        message=args.message,
        session_ref=args.session,
        cwd=args.cwd,
        system_prompt=args.system_prompt,
    )
    result = runner.run_agent(args.agent or "", options)
    if result.routing.delegated:
        print(
            f"[{result.entry_agent_id} -> {result.agent_id}] {result.routing.reason}",
            file=sys.stderr,
        )
    if result.stdout:
        print(result.stdout, end="" if result.stdout.endswith("\n") else "\n")
    if result.stderr:
        print(result.stderr, file=sys.stderr, end="" if result.stderr.endswith("\n") else "\n")
    print(f"Run {result.run_id} trace: {result.trace_path}", file=sys.stderr)
    if result.exit_code != 0:
        sys.exit(result.exit_code)


def _cmd_runs(args: argparse.Namespace) -> None:
    runner = OrchestrationRunner.from_config(_load(args))
    if args.run_id:
        _print_json(runner.read_trace(args.run_id))
        return
    for trace in runner.list_runs(limit=args.limit):
        execution = trace.execution
        print(
            f"{trace.run_id}  {trace.started_at}  {trace.entry_agent_id} -> "
            f"{execution.agent_id}  exit={execution.exit_code}"
        )


def _cmd_board(args: argparse.Namespace) -> None:
    store = BoardStore.from_config(_load(args))
    try:
        action = cast(str, args.board_action)
        if action == "create":
            _print_json(store.create_board(args.actor, args.title))
        elif action == "list":
            _print_json(store.list_boards())
        elif action == "show":
            _print_json(store.get_board(args.board_id))
        elif action == "update":
            _print_json(store.update_board(args.actor, args.board_id, title=args.title))
    finally:
        store.close()


def _cmd_task(args: argparse.Namespace) -> None:
    store = BoardStore.from_config(_load(args))
    try:
        action = cast(str, args.task_action)
        if action == "create":
            task = store.create_task(
                args.actor,
                args.board,
                title=args.title,
                description=args.description,
                assigned_to=args.assign,
                status=args.status,
                reason=args.reason,
                project=args.project,
            )
            _print_json(task)
        elif action == "show":
            _print_json(store.get_task(args.task_id))
        elif action == "list":
            _print_json(store.list_tasks(args.board_id))
        elif action == "latest":
            _print_json(store.list_latest_tasks(assignee=args.assignee, limit=args.limit))
        elif action == "status":
            _print_json(
                store.update_task_status(args.actor, args.task_id, args.status, args.reason)
            )
        elif action == "blocker":
            _print_json(store.add_task_blocker(args.actor, args.task_id, args.content))
        elif action == "artifact":
            _print_json(store.add_task_artifact(args.actor, args.task_id, args.content))
        elif action == "worklog":
            _print_json(store.add_task_worklog(args.actor, args.task_id, args.content))
    finally:
        store.close()


def _cmd_serve(args: argparse.Namespace) -> None:
    config = _load(args)
    if args.port is not None:
        config.port = args.port
    run_server(config)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cadre",
        description="Hierarchical agent delegation and task boards",
    )
    _ = parser.add_argument("-V", "--version", action="version", version=f"cadre {__version__}")
    _ = parser.add_argument(
        "--home", type=Path, default=None, help="cadre home directory (default: $CADRE_HOME)"
    )
    _ = parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    # agents subcommand
    agents_p = subparsers.add_parser("agents", help="List the agent organization")
    _ = agents_p.add_argument("--json", action="store_true", help="Print full manifests as JSON")

    # agent subcommand
    agent_p = subparsers.add_parser("agent", help="Inspect one agent or its provider binding")
    agent_sub = agent_p.add_subparsers(dest="agent_action", required=True)
    ai = agent_sub.add_parser("info", help="Show an agent and its direct reportees")
    _ = ai.add_argument("agent_id")
    ar = agent_sub.add_parser("reportees", help="List all transitive reportees")
    _ = ar.add_argument("agent_id")
    ap = agent_sub.add_parser("provider", help="Get or set the agent's provider")
    ap_sub = ap.add_subparsers(dest="provider_action", required=True)
    apg = ap_sub.add_parser("get", help="Print the bound provider id")
    _ = apg.add_argument("agent_id")
    aps = ap_sub.add_parser("set", help="Bind the agent to a provider")
    _ = aps.add_argument("agent_id")
    _ = aps.add_argument("provider_id")

    # providers subcommand
    _ = subparsers.add_parser("providers", help="List registered providers")

    # route subcommand
    route_p = subparsers.add_parser("route", help="Preview a routing decision")
    _ = route_p.add_argument("message", help="User message")
    _ = route_p.add_argument("--agent", default=None, help="Entry agent id (default: root)")

    # run subcommand
    run_p = subparsers.add_parser("run", help="Route a message and invoke the target agent")
    _ = run_p.add_argument("message", help="User message")
    _ = run_p.add_argument("--agent", default=None, help="Entry agent id (default: root)")
    _ = run_p.add_argument("--session", default=None, help="Provider session reference")
    _ = run_p.add_argument("--cwd", default=None, help="Working directory for the provider")
    _ = run_p.add_argument(
        "--system-prompt", default=None, dest="system_prompt", help="System prompt override"
    )

    # runs subcommand
    runs_p = subparsers.add_parser("runs", help="List run traces or show one")
    _ = runs_p.add_argument("run_id", nargs="?", default=None, help="Run id to show")
    _ = runs_p.add_argument("--limit", type=int, default=20)

    # board subcommand
    board_p = subparsers.add_parser("board", help="Board operations")
    board_sub = board_p.add_subparsers(dest="board_action", required=True)
    bc = board_sub.add_parser("create", help="Create a board (managers only)")
    _ = bc.add_argument("title")
    _ = bc.add_argument("--actor", required=True, help="Acting agent id")
    _ = board_sub.add_parser("list", help="List boards")
    bs = board_sub.add_parser("show", help="Show a board and its tasks")
    _ = bs.add_argument("board_id")
    bu = board_sub.add_parser("update", help="Update a board (owner only)")
    _ = bu.add_argument("board_id")
    _ = bu.add_argument("--actor", required=True, help="Acting agent id")
    _ = bu.add_argument("--title", default=None)

    # task subcommand
    task_p = subparsers.add_parser("task", help="Task operations")
    task_sub = task_p.add_subparsers(dest="task_action", required=True)
    tc = task_sub.add_parser("create", help="Create a task")
    _ = tc.add_argument("title")
    _ = tc.add_argument("--actor", required=True, help="Acting agent id")
    _ = tc.add_argument("--board", default=None, help="Board id (managers may omit)")
    _ = tc.add_argument("--description", default="")
    _ = tc.add_argument("--assign", default=None, help="Assignee agent id (default: actor)")
    _ = tc.add_argument("--status", default=None)
    _ = tc.add_argument("--reason", default=None)
    _ = tc.add_argument("--project", default=None)
    ts = task_sub.add_parser("show", help="Show a task")
    _ = ts.add_argument("task_id")
    tl = task_sub.add_parser("list", help="List tasks on a board")
    _ = tl.add_argument("board_id")
    tla = task_sub.add_parser("latest", help="Latest tasks across boards")
    _ = tla.add_argument("--assignee", default=None)
    _ = tla.add_argument("--limit", type=int, default=DEFAULT_LATEST_TASKS)
    tst = task_sub.add_parser("status", help="Update task status (assignee only)")
    _ = tst.add_argument("task_id")
    _ = tst.add_argument("status")
    _ = tst.add_argument("--actor", required=True, help="Acting agent id")
    _ = tst.add_argument("--reason", default=None)
    for name, help_text in (
        ("blocker", "Add a blocker"),
        ("artifact", "Add an artifact"),
        ("worklog", "Add a worklog entry"),
    ):
        entry_p = task_sub.add_parser(name, help=help_text)
        _ = entry_p.add_argument("task_id")
        _ = entry_p.add_argument("content")
        _ = entry_p.add_argument("--actor", required=True, help="Acting agent id")

    # serve subcommand
    serve_p = subparsers.add_parser("serve", help="Start the HTTP API server")
    _ = serve_p.add_argument("--port", type=int, default=None)

    return parser


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args(sys.argv[1:])

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    dispatch = {
        "agents": _cmd_agents,
        "agent": _cmd_agent,
        "providers": _cmd_providers,
        "route": _cmd_route,
        "run": _cmd_run,
        "runs": _cmd_runs,
        "board": _cmd_board,
        "task": _cmd_task,
        "serve": _cmd_serve,
    }
    command = cast(str | None, args.command)
    handler = dispatch.get(command) if command is not None else None
    if not handler:
        parser.print_help()
        sys.exit(1)

    try:
        handler(args)
    except ExecutionError as e:
        print(f"Error: {e}", file=sys.stderr)
        if e.stderr:
            print(e.stderr, file=sys.stderr)
        sys.exit(e.exit_code or 1)
    except CadreError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
