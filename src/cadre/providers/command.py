"""Command-line provider: runs an external agent CLI as a subprocess."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import threading
from collections.abc import Iterator
from typing import IO, cast

from cadre.errors import ExecutionError
from cadre.providers.base import (
    ChunkKind,
    OutputChunk,
    Provider,
    ProviderCapabilities,
    ProviderInvokeOptions,
)

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = "codex exec"
COMMAND_ENV_VAR = "CADRE_PROVIDER_CMD"


class CommandProvider(Provider):
    """Streams stdout line by line; stderr is drained on a side thread.

    ``timeout`` is optional and off by default: the caller decides whether a
    turn may be cut short.
    """

    id = "command"
    capabilities = ProviderCapabilities(agent=True)

    def __init__(
        self,
        command: list[str] | None = None,
        *,
        timeout: float | None = None,
    ) -> None:
        if command is None:
            command = shlex.split(os.environ.get(COMMAND_ENV_VAR, DEFAULT_COMMAND))
        self._command = command
        self._timeout = timeout

    def build_command(self, options: ProviderInvokeOptions) -> list[str]:
        cmd = list(self._command)
        if options.agent:
            cmd += ["--agent", options.agent]
        if options.session_ref:
            cmd += ["--session", options.session_ref]
        if options.system_prompt:
            cmd += ["--system-prompt", options.system_prompt]
        cmd.append(options.message)
        return cmd

    def stream(self, options: ProviderInvokeOptions) -> Iterator[OutputChunk]:
        cmd = self.build_command(options)
        env = {**os.environ, **options.env} if options.env else None
        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                cwd=options.cwd,
                env=env,
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
            raise ExecutionError(
                f"Failed to start provider command {cmd[0]!r}: {e}",
                exit_code=127,
                stderr=str(e),
                provider_id=self.id,
            ) from e

        stderr_parts: list[str] = []
        drain = threading.Thread(
            target=lambda: stderr_parts.extend(proc.stderr or []),
            daemon=True,
        )
        drain.start()
        killer = None
        if self._timeout is not None:
            killer = threading.Timer(self._timeout, proc.kill)
            killer.start()

        stdout = cast(IO[str], proc.stdout)
        try:
            for line in stdout:
                yield OutputChunk(kind=ChunkKind.STDOUT, text=line)
            exit_code = proc.wait()
        finally:
            if killer is not None:
                killer.cancel()
            if proc.poll() is None:
                proc.kill()
                proc.wait()
            drain.join()

        if stderr_parts:
            yield OutputChunk(kind=ChunkKind.STDERR, text="".join(stderr_parts))
        logger.debug(f"Provider command exited: {cmd[0]} code={exit_code}")
        yield OutputChunk(kind=ChunkKind.EXIT, exit_code=exit_code)
