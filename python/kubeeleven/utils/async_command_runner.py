"""
kubeeleven/utils/async_command_runner.py

Provides an asynchronous command runner for external tools. Output is streamed
line by line to a logger while the process runs (long-running tools such as
kubeone would otherwise stay silent for minutes) and is also captured for the
return value and error messages.

There is no retry logic: a failed command raises CommandError once. A timeout
can be given; on expiry (or when the awaiting task is cancelled) the child
process is killed before the exception propagates.

Usage example:
    from kubeeleven.utils.async_command_runner import run_command, CommandError

    try:
        output = await run_command(
            ["kubeone", "apply", "-m", "kubeone.yaml", "-y"],
            cwd="/path/to/cluster-dir",
            timeout=3600,
            log_prefix="cluster-abc123",
        )
    except CommandError as err:
        print(f"Command failed: {err}")
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)

# Output is read in chunks, so lines of any length are handled.
_READ_CHUNK_SIZE = 64 * 1024


class CommandError(Exception):
    """Represents a failure when executing a shell command.

    Attributes:
        message (str): The error message describing the command failure.
        return_code (Optional[int]): The exit code if available.
        timed_out (bool): True if the command was killed after its timeout.
    """

    def __init__(
        self,
        message: str,
        return_code: Optional[int] = None,
        *,
        timed_out: bool = False,
    ) -> None:
        """
        Initialize a CommandError.

        Args:
            message (str): The error message describing the command failure.
            return_code (Optional[int]): The exit code if known.
            timed_out (bool): Whether the command hit its timeout.
        """
        super().__init__(message)
        self.return_code = return_code
        self.timed_out = timed_out


def _emit_line(
    raw: bytes,
    sink: List[str],
    out_logger: logging.Logger,
    log_prefix: Optional[str],
) -> None:
    line = raw.decode(errors="replace").rstrip("\r")
    sink.append(line)
    if log_prefix:
        out_logger.info("[%s] %s", log_prefix, line)
    else:
        out_logger.info("%s", line)


async def _pump_stream(
    stream: Optional[asyncio.StreamReader],
    sink: List[str],
    out_logger: logging.Logger,
    log_prefix: Optional[str],
) -> None:
    """Read `stream` until EOF, appending decoded lines to `sink` and logging each."""
    if stream is None:
        return
    pending = b""
    while True:
        chunk = await stream.read(_READ_CHUNK_SIZE)
        if not chunk:
            break
        pending += chunk
        *complete, pending = pending.split(b"\n")
        for raw in complete:
            _emit_line(raw, sink, out_logger, log_prefix)
    if pending:
        _emit_line(pending, sink, out_logger, log_prefix)


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()


async def run_command(
    command: List[str],
    *,
    sensitive: bool = True,
    cwd: Optional[str] = None,
    timeout: Optional[float] = None,
    log_prefix: Optional[str] = None,
    output_logger: Optional[logging.Logger] = None,
) -> str:
    """
    Executes a local command in a subprocess, asynchronously, streaming its
    output to a logger.

    If the command exits non-zero we raise CommandError. When `sensitive=True`,
    we omit the command, stdout, and stderr from the final error message.

    Args:
        command (List[str]):
            The command and arguments to execute.
        sensitive (bool):
            If True, hides command details in the raised error.
        cwd (Optional[str]):
            Working directory for the command.
        timeout (Optional[float]):
            Seconds to wait before killing the process. None waits indefinitely.
        log_prefix (Optional[str]):
            Prefix for every streamed output line, e.g. the cluster build id.
        output_logger (Optional[logging.Logger]):
            Logger receiving the output lines. Defaults to this module's logger.

    Returns:
        str: The captured stdout of the command on success.

    Raises:
        CommandError: If the command cannot be started, times out, its output
            cannot be read, or it exits non-zero.
    """
    out_logger = output_logger or logger

    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
    except OSError as e:
        detail = "" if sensitive else f" Command: {' '.join(command)}"
        raise CommandError(f"Failed to start command: {e}.{detail}") from e

    stdout_lines: List[str] = []
    stderr_lines: List[str] = []

    async def _communicate() -> int:
        await asyncio.gather(
            _pump_stream(proc.stdout, stdout_lines, out_logger, log_prefix),
            _pump_stream(proc.stderr, stderr_lines, out_logger, log_prefix),
        )
        return await proc.wait()

    try:
        return_code = await asyncio.wait_for(_communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        await _kill(proc)
        raise CommandError(
            f"Command timed out after {timeout} seconds.", proc.returncode, timed_out=True
        ) from e
    except asyncio.CancelledError:
        await _kill(proc)
        raise
    except Exception as e:
        await _kill(proc)
        raise CommandError(
            f"Failed while reading command output: {e}", proc.returncode
        ) from e

    stdout_str = "\n".join(stdout_lines).strip()
    stderr_str = "\n".join(stderr_lines).strip()

    if return_code != 0:
        detail = ""
        if not sensitive:
            detail = (
                f"\nCommand: {' '.join(command)}"
                f"\nStdout: {stdout_str}"
                f"\nStderr: {stderr_str}"
            )

        raise CommandError(
            f"Command failed with return code {return_code}.{detail}",
            return_code,
        )

    return stdout_str
