"""Bounded subprocess execution shared by the phase analyzers."""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import signal
import sys
import time
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_CAPTURE = 20_000


@dataclass
class CommandResult:
    """Outcome of one external command."""

    args: list[str]
    exit_code: int | None
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    timed_out: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out and self.error is None

    @property
    def output(self) -> str:
        """stdout and stderr combined."""
        if self.stderr:
            return f"{self.stdout}\n{self.stderr}" if self.stdout else self.stderr
        return self.stdout

    @property
    def command(self) -> str:
        return shlex.join(self.args)


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")[:MAX_CAPTURE]


async def run_command(
    args: list[str],
    cwd: Path | None = None,
    timeout: float = 30.0,
    env: dict[str, str] | None = None,
    input_text: str | None = None,
) -> CommandResult:
    """Run a command without a shell, killing it if it exceeds the timeout.

    Args:
        args: Program and arguments
        cwd: Working directory
        timeout: Wall-clock limit in seconds
        env: Extra environment variables layered over os.environ
        input_text: Text written to the command's stdin

    Returns:
        CommandResult; spawn failures are reported in ``error`` rather than raised
    """
    start = time.monotonic()
    merged_env = {**os.environ, **env} if env else None

    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.PIPE if input_text is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=merged_env,
            start_new_session=sys.platform != "win32",
        )
    except OSError as e:
        return CommandResult(
            args=list(args),
            exit_code=None,
            duration_ms=int((time.monotonic() - start) * 1000),
            error=f"Failed to start {args[0]}: {e}",
        )

    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(input_text.encode() if input_text is not None else None),
            timeout=timeout,
        )
    except TimeoutError:
        await _kill_process_tree(process)
        return CommandResult(
            args=list(args),
            exit_code=None,
            duration_ms=int((time.monotonic() - start) * 1000),
            timed_out=True,
            error=f"TIMEOUT after {timeout} seconds",
        )
    except asyncio.CancelledError:
        # The phase was cancelled or timed out while the command was running
        logger.debug(f"Cancelled while running {shlex.join(args)}, killing PID {process.pid}")
        await _kill_process_tree(process)
        raise

    return CommandResult(
        args=list(args),
        exit_code=process.returncode,
        stdout=_decode(stdout),
        stderr=_decode(stderr),
        duration_ms=int((time.monotonic() - start) * 1000),
    )


async def _kill_process_tree(process: asyncio.subprocess.Process) -> None:
    """Kill the command and everything it spawned (install scripts fork freely)."""
    if process.returncode is not None:
        return

    with suppress(ProcessLookupError, OSError):
        if sys.platform == "win32":
            process.kill()
        else:
            # start_new_session made the child its own process group leader
            try:
                os.killpg(process.pid, signal.SIGKILL)
            except ProcessLookupError:
                process.kill()
    await process.wait()
