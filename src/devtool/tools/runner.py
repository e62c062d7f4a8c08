"""Asynchronous shell command runner for tool updaters.

Every command's stdout and stderr are merged into one buffer attributed to
the calling tool. Nothing is written to the terminal; the live progress
view stays the only terminal writer while a run is active.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import re
import signal
from dataclasses import dataclass
from pathlib import Path

from devtool.core.console import get_logger
from devtool.core.result import Err, Ok, Result, ToolExecutionError

logger = get_logger(__name__)

TAIL_LINES = 40
DEFAULT_SHELL = "/bin/sh"
TERMINATE_TIMEOUT = 2.0

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9_.-]+")


@dataclass(slots=True)
class CommandOutput:
    """Captured result of one shell command."""

    step: str
    command: str
    returncode: int
    output: str
    log_path: Path | None = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def tail(self) -> str:
        """The last 40 lines of merged output."""
        return "\n".join(self.output.splitlines()[-TAIL_LINES:])


class CommandRunner:
    """Runs shell commands on behalf of one tool.

    Args:
        tool_id: Tool the output is attributed to
        log_dir: Directory for per-step log files
        keep_logs: Write ``<log_dir>/<tool>-<step>.log`` for every command
        shell: Shell used to interpret command strings
        terminate_timeout: Seconds between SIGTERM and SIGKILL on cancellation
    """

    def __init__(
        self,
        tool_id: str,
        *,
        log_dir: Path | None = None,
        keep_logs: bool = False,
        shell: str = DEFAULT_SHELL,
        terminate_timeout: float = TERMINATE_TIMEOUT,
    ) -> None:
        self.tool_id = tool_id
        self.log_dir = log_dir
        self.keep_logs = keep_logs and log_dir is not None
        self.shell = shell
        self.terminate_timeout = terminate_timeout

    def log_path(self, step: str) -> Path | None:
        if not self.keep_logs or self.log_dir is None:
            return None
        name = _UNSAFE_FILENAME.sub("_", f"{self.tool_id}-{step}")
        return self.log_dir.expanduser() / f"{name}.log"

    async def run(
        self,
        step: str,
        command: str,
        env: dict[str, str] | None = None,
    ) -> Result[CommandOutput, ToolExecutionError]:
        """Run ``command`` through the shell and capture its merged output.

        A non-zero exit is still ``Ok``; callers decide what it means.
        ``Err`` is returned only when the process could not be started.
        On cancellation the child is terminated before the error propagates.
        """
        merged_env = {**os.environ, **env} if env else None
        logger.debug("[%s] %s: %s", self.tool_id, step, command)

        try:
            proc = await asyncio.create_subprocess_exec(
                self.shell,
                "-c",
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                stdin=asyncio.subprocess.DEVNULL,
                env=merged_env,
                start_new_session=True,
            )
        except FileNotFoundError as exc:
            return Err(
                ToolExecutionError(
                    "Shell not found",
                    context={"tool": self.tool_id, "step": step, "error": str(exc)},
                )
            )
        except OSError as exc:
            return Err(
                ToolExecutionError(
                    "Failed to start command",
                    context={"tool": self.tool_id, "step": step, "error": str(exc)},
                )
            )

        try:
            stdout_bytes, _ = await proc.communicate()
        except asyncio.CancelledError:
            await self._terminate(proc)
            raise

        output = (stdout_bytes or b"").decode(errors="replace")
        returncode = proc.returncode if proc.returncode is not None else 1
        result = CommandOutput(
            step=step,
            command=command,
            returncode=returncode,
            output=output,
            log_path=self.log_path(step),
        )

        if result.log_path is not None:
            await self._write_log(result)

        logger.debug("[%s] %s exited with %d", self.tool_id, step, returncode)
        return Ok(result)

    async def run_checked(
        self,
        step: str,
        command: str,
        env: dict[str, str] | None = None,
    ) -> Result[CommandOutput, ToolExecutionError]:
        """Like run(), but a non-zero exit becomes ``Err``."""
        match await self.run(step, command, env=env):
            case Ok(output) if not output.ok:
                return Err(step_error(output))
            case other:
                return other

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """SIGTERM the command's process group, then SIGKILL it after the timeout."""
        if proc.returncode is not None:
            return
        logger.debug("[%s] terminating process group %s", self.tool_id, proc.pid)
        _signal_group(proc, signal.SIGTERM)
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.terminate_timeout)
        except asyncio.TimeoutError:
            _signal_group(proc, signal.SIGKILL)
            await proc.wait()

    async def _write_log(self, result: CommandOutput) -> None:
        assert result.log_path is not None
        path = result.log_path

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(f"$ {result.command}\n{result.output}", encoding="utf-8")

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            logger.warning("[%s] could not write log %s: %s", self.tool_id, path, exc)


def _signal_group(proc: asyncio.subprocess.Process, sig: signal.Signals) -> None:
    # Each command runs in its own session, so its pid is also its group id
    try:
        os.killpg(proc.pid, sig)
    except ProcessLookupError:
        return
    except PermissionError:
        with contextlib.suppress(ProcessLookupError):
            proc.send_signal(sig)


def step_error(output: CommandOutput) -> ToolExecutionError:
    """Describe a command that exited non-zero."""
    lines = [line for line in output.tail.splitlines() if line.strip()]
    last_line = lines[-1] if lines else ""
    message = f"{output.step} failed with exit code {output.returncode}"
    if last_line:
        message += f": {last_line.strip()}"
    return ToolExecutionError(message, context={"command": output.command})


__all__ = ["CommandOutput", "CommandRunner", "TAIL_LINES", "step_error"]
