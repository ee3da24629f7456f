"""Shell tool: run one command in a fresh shell and capture its output."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from typing import ClassVar

from pydantic import BaseModel, Field

from chainagent.tool.base import BaseTool, ToolError, ToolOk, ToolResult
from chainagent.tool.truncation import strip_ansi

logger = logging.getLogger(__name__)


class ShellParams(BaseModel):
    command: str = Field(description="the shell command to execute")
    timeout: int = Field(default=120, description="timeout in seconds")
    stdin: str | None = Field(
        default=None,
        description="optional input fed to the command's stdin, sent as-is",
    )


class ShellTool(BaseTool[ShellParams]):
    """Execute shell commands, one process per call.

    State such as ``cd`` or exported variables does not survive between
    calls. Pair it with an action confirmation hook when a human should
    approve commands first.
    """

    name: ClassVar[str] = "shell"
    description: ClassVar[str] = (
        "Execute a shell command and return its combined stdout and stderr. "
        "Every call runs in a fresh shell; use `stdin` to feed input to "
        "programs that read from it."
    )
    param_model: ClassVar[type[BaseModel]] = ShellParams

    def __init__(self, cwd: str | None = None) -> None:
        self._cwd = cwd or os.getcwd()

    async def run(self, params: ShellParams) -> ToolResult:
        if not os.path.isdir(self._cwd):
            return ToolError(output=f"Directory does not exist: {self._cwd}")

        logger.debug("Running shell command: %s", params.command)
        process = await asyncio.create_subprocess_shell(
            params.command,
            stdin=asyncio.subprocess.PIPE if params.stdin else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=self._cwd,
            start_new_session=True,  # New process group, killable as a whole
            env={**os.environ, "TERM": "dumb"},  # Reduce ANSI output
        )

        try:
            stdin_bytes = params.stdin.encode("utf-8") if params.stdin else None
            stdout, _ = await asyncio.wait_for(
                process.communicate(input=stdin_bytes), timeout=params.timeout
            )
        except asyncio.TimeoutError:
            try:
                os.killpg(os.getpgid(process.pid), signal.SIGKILL)
            except ProcessLookupError:
                pass
            return ToolError(
                output=f"Command timed out after {params.timeout}s: {params.command}"
            )

        output = strip_ansi(stdout.decode("utf-8", errors="replace") if stdout else "")
        exit_code = process.returncode or 0
        if exit_code != 0:
            return ToolError(output=f"[Exit code: {exit_code}]\n{output}")
        return ToolOk(output=output)
