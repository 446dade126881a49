"""Uvicorn launcher with a port.lock file in the cadre home."""

from __future__ import annotations

import json
import os
import signal
from pathlib import Path

from cadre.config import Config, load_config
from cadre.errors import CadreError

PORT_LOCK_FILE = "port.lock"


def get_port_lock_path(config: Config) -> Path:
    return config.home_dir / PORT_LOCK_FILE


def write_port_lock(config: Config) -> Path:
    lock_path = get_port_lock_path(config)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_path.write_text(json.dumps({"port": config.port, "pid": os.getpid()}))
    return lock_path


def read_port_lock(config: Config) -> dict:
    try:
        return json.loads(get_port_lock_path(config).read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def remove_port_lock(config: Config) -> None:
    get_port_lock_path(config).unlink(missing_ok=True)


def running_server_pid(config: Config) -> int | None:
    """Pid recorded in port.lock when that process is still alive."""
    pid = read_port_lock(config).get("pid")
    if not isinstance(pid, int) or pid <= 0 or pid == os.getpid():
        return None
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return None
    except PermissionError:
        # Alive but owned by another user
        return pid
    return pid


def run_server(config: Config | None = None, *, host: str = "127.0.0.1") -> None:
    """Start the HTTP API server with uvicorn."""
    import uvicorn

    from cadre.server.app import create_app

    if config is None:
        config = load_config()

    pid = running_server_pid(config)
    if pid is not None:
        port = read_port_lock(config).get("port")
        raise CadreError(f"cadre API already running on port {port} (pid {pid})")

    config.home_dir.mkdir(parents=True, exist_ok=True)
    write_port_lock(config)

    def cleanup(signum, frame):
        remove_port_lock(config)
        raise SystemExit(0)

    signal.signal(signal.SIGTERM, cleanup)
    signal.signal(signal.SIGINT, cleanup)

    try:
        uvicorn.run(create_app(config), host=host, port=config.port)
    finally:
        remove_port_lock(config)
