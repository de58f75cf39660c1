"""
Shell command execution for the runCommand tool.

Design constraints:
  - Runs in a subprocess with the project root (or a subdirectory) as cwd
  - Enforces a wall-clock timeout; the whole process group is killed when it expires
  - Captures stdout and stderr even on non-zero exit
  - Stops collecting output at max_output_bytes per stream

This is NOT a security sandbox: the command can touch anything the
current user can. Path confinement applies to cwd only.
"""

import asyncio
import logging
import os
import signal
import time
from dataclasses import dataclass
from pathlib import Path

from agent.models import ToolResult
from .paths import PathEscapeError, resolve_in_root

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 120.0  # seconds
_KILL_GRACE = 2.0  # seconds to wait for the group to die after SIGKILL
_CHUNK_SIZE = 64 * 1024
MAX_OUTPUT_BYTES = 5 * 1024 * 1024
OUTPUT_TRUNCATED_MARKER = "[output truncated]"


@dataclass
class CommandResult:
    exit_code: int | None
    stdout: str
    stderr: str
    timed_out: bool = False
    truncated: bool = False
    elapsed_seconds: float = 0.0


class _BoundedBuffer:
    """Keeps the first `limit` bytes of a stream and discards the rest."""

    def __init__(self, limit: int):
        self.limit = limit
        self.data = bytearray()
        self.truncated = False

    async def drain(self, stream: asyncio.StreamReader) -> None:
        # Reading continues past the cap so the child never blocks on a full pipe.
        while True:
            chunk = await stream.read(_CHUNK_SIZE)
            if not chunk:
                return
            room = self.limit - len(self.data)
            if len(chunk) > room:
                self.truncated = True
            if room > 0:
                self.data.extend(chunk[:room])

    def text(self) -> str:
        decoded = bytes(self.data).decode("utf-8", errors="replace")
        if self.truncated:
            decoded += f"\n{OUTPUT_TRUNCATED_MARKER}"
        return decoded


def _kill_process_group(proc: asyncio.subprocess.Process) -> None:
    # The shell leads its own session, so its pgid is its pid.
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


async def run_command(
    command: str,
    cwd: Path,
    timeout: float = _DEFAULT_TIMEOUT,
    max_output_bytes: int = MAX_OUTPUT_BYTES,
) -> CommandResult:
    """Run a shell command; never raises for non-zero exit or timeout."""
    start = time.monotonic()
    proc = await asyncio.create_subprocess_shell(
        command,
        cwd=str(cwd),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True,
    )
    stdout = _BoundedBuffer(max_output_bytes)
    stderr = _BoundedBuffer(max_output_bytes)

    async def _collect() -> None:
        await asyncio.gather(stdout.drain(proc.stdout), stderr.drain(proc.stderr))
        await proc.wait()

    try:
        await asyncio.wait_for(_collect(), timeout=timeout)
    except asyncio.TimeoutError:
        _kill_process_group(proc)
        try:
            await asyncio.wait_for(proc.wait(), timeout=_KILL_GRACE)
        except asyncio.TimeoutError:
            logger.error("Process group %d still alive after SIGKILL", proc.pid)
        logger.warning("Command timed out after %.1fs: %s", timeout, command)
        return CommandResult(
            exit_code=None,
            stdout=stdout.text(),
            stderr=stderr.text() + f"\nCOMMAND TIMEOUT after {timeout}s",
            timed_out=True,
            truncated=stdout.truncated or stderr.truncated,
            elapsed_seconds=time.monotonic() - start,
        )

    if stdout.truncated or stderr.truncated:
        logger.info("Output of %r capped at %d bytes per stream", command, max_output_bytes)
    return CommandResult(
        exit_code=proc.returncode,
        stdout=stdout.text(),
        stderr=stderr.text(),
        truncated=stdout.truncated or stderr.truncated,
        elapsed_seconds=time.monotonic() - start,
    )


def format_command_result(result: CommandResult) -> ToolResult:
    parts = []
    if result.stdout:
        parts.append(f"STDOUT:\n{result.stdout}")
    if result.stderr:
        parts.append(f"STDERR:\n{result.stderr}")

    if result.exit_code == 0:
        return ToolResult(
            True,
            "\n\n".join(parts) or "Command completed with no output",
            {"exitCode": 0},
        )

    exit_label = "timeout" if result.timed_out else result.exit_code
    parts.append(f"Exit code: {exit_label}")
    return ToolResult(
        False,
        "\n\n".join(parts),
        {"exitCode": result.exit_code, "timedOut": result.timed_out},
    )


async def run_command_tool(
    root: Path,
    command: str,
    cwd: str | None = None,
    timeout_ms: float | None = None,
    default_timeout: float = _DEFAULT_TIMEOUT,
) -> ToolResult:
    try:
        workdir = resolve_in_root(root, cwd) if cwd else root.resolve()
    except PathEscapeError:
        return ToolResult(False, f"Working directory outside project root: {cwd}")
    if not workdir.is_dir():
        return ToolResult(False, f"Working directory not found: {cwd}")

    timeout = timeout_ms / 1000.0 if timeout_ms else default_timeout
    try:
        result = await run_command(command, workdir, timeout=timeout)
    except OSError as exc:
        return ToolResult(False, f"Command failed: {exc}")
    return format_command_result(result)
