"""
Async execution of window manager CLI commands.

Every command runs through asyncio.create_subprocess_exec so the event loop
is never blocked on process IO, and is bounded by a timeout: a hung yabai or
AeroSpace invocation fails the fetch instead of stalling the scheduler.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, List, Sequence

from ..errors import CommandFailed, CommandTimeout, DecodeFailure, ProcessSpawnFailure

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 3.0


@dataclass
class CommandResult:
    """Completed command output."""
    args: List[str]
    returncode: int
    stdout: str
    stderr: str
    duration_ms: float


class CommandRunner:
    """Runs external commands with a bounded timeout."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Initialize command runner.

        Args:
            timeout: Seconds to wait for each command before killing it
        """
        self.timeout = timeout

    async def run(self, args: Sequence[str], check: bool = True) -> CommandResult:
        """Run a command and capture its output.

        Args:
            args: Executable path followed by its arguments
            check: Raise CommandFailed on non-zero exit status

        Returns:
            CommandResult with decoded stdout/stderr

        Raises:
            ProcessSpawnFailure: Executable missing or not executable
            CommandTimeout: Command exceeded the timeout (process is killed)
            CommandFailed: Non-zero exit status and check=True
        """
        argv = [str(a) for a in args]
        start = time.perf_counter()

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise ProcessSpawnFailure(argv, "executable not found")
        except PermissionError:
            raise ProcessSpawnFailure(argv, "permission denied")
        except OSError as e:
            raise ProcessSpawnFailure(argv, str(e))

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{argv[0]} timed out after {self.timeout}s, killing")
            proc.kill()
            await proc.wait()
            raise CommandTimeout(argv, self.timeout)

        duration_ms = (time.perf_counter() - start) * 1000
        result = CommandResult(
            args=argv,
            returncode=proc.returncode,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            duration_ms=duration_ms,
        )

        logger.debug(f"Ran {' '.join(argv)} (exit {result.returncode}, {duration_ms:.1f}ms)")

        if check and result.returncode != 0:
            raise CommandFailed(argv, result.returncode, result.stderr)

        return result

    async def run_json(self, args: Sequence[str], what: str) -> Any:
        """Run a command and parse its stdout as JSON.

        Args:
            args: Executable path followed by its arguments
            what: Query description used in error messages

        Raises:
            DecodeFailure: Output is not valid JSON
        """
        result = await self.run(args)
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise DecodeFailure(what, str(e), invalid_json=True)
