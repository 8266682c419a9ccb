"""
Async external command execution.

Commands are executed directly (no shell) with optional environment
overrides. Non-zero exit codes are returned as data; only failures to start
the process, timeouts and caller cancellation raise.
"""

import asyncio
import logging
import os
import shlex
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from mpcdev.errors import ProcessCanceledError, ProcessSpawnError

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    """Result of an external command (mirrors subprocess.CompletedProcess)."""

    args: List[str]
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    combined: bool = False

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """All captured text, stdout first."""
        if self.combined or not self.stderr:
            return self.stdout
        if not self.stdout:
            return self.stderr
        return f"{self.stdout}\n{self.stderr}"


@dataclass
class ProcessRunner:
    """
    Runs external commands with timeout/cancellation and output capture.

    Args:
        base_env: Environment overrides applied to every command
        kill_grace: Seconds to wait for a killed process to be reaped
    """

    base_env: Dict[str, str] = field(default_factory=dict)
    kill_grace: float = 5.0

    async def run(
        self,
        argv: Sequence[str],
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        combine_output: bool = False,
        cwd: Optional[str] = None,
    ) -> ProcessResult:
        """
        Execute a command and capture its output.

        Args:
            argv: Command and arguments
            env: Environment overrides merged over the daemon's environment
            timeout: Seconds before the process is killed
            combine_output: Capture stderr interleaved into stdout
            cwd: Working directory

        Returns:
            ProcessResult with exit code and captured output

        Raises:
            ProcessSpawnError: If the command could not be started
            ProcessCanceledError: If the timeout expired (process is killed)
            asyncio.CancelledError: If the caller was cancelled (process is killed)
        """
        args = [str(a) for a in argv]
        overrides = {**self.base_env, **(env or {})}
        full_env = {**os.environ, **overrides} if overrides else None

        cmd_str = shlex.join(args)
        # Per-call overrides may hold credentials; only the base env is logged
        prefix = " ".join(f"{k}={v}" for k, v in self.base_env.items())
        logger.info(f"Executing: {prefix} {cmd_str}" if prefix else f"Executing: {cmd_str}")

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT if combine_output else asyncio.subprocess.PIPE,
                env=full_env,
                cwd=cwd,
            )
        except OSError as e:
            logger.error(f"Failed to start {args[0]}: {e}")
            raise ProcessSpawnError(f"Failed to start '{cmd_str}': {e}") from e

        try:
            if timeout is not None:
                stdout_bytes, stderr_bytes = await asyncio.wait_for(
                    process.communicate(), timeout=timeout
                )
            else:
                stdout_bytes, stderr_bytes = await process.communicate()
        except asyncio.TimeoutError:
            await self._kill(process)
            logger.warning(f"Command timed out after {timeout}s: {cmd_str}")
            raise ProcessCanceledError(f"Command '{cmd_str}' timed out after {timeout}s")
        except asyncio.CancelledError:
            await self._kill(process)
            logger.warning(f"Command cancelled: {cmd_str}")
            raise

        result = ProcessResult(
            args=args,
            exit_code=process.returncode,
            stdout=_decode(stdout_bytes),
            stderr=_decode(stderr_bytes),
            combined=combine_output,
        )

        name = os.path.basename(args[0])
        if result.stdout:
            logger.info(f"{name} {'output' if combine_output else 'stdout'}:\n{result.stdout}")
        if result.stderr:
            logger.info(f"{name} stderr:\n{result.stderr}")
        if not result.success:
            logger.warning(f"Command exited with code {result.exit_code}: {cmd_str}")

        return result

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        """Kill the process and reap it so it does not outlive the caller."""
        if process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(asyncio.shield(process.wait()), timeout=self.kill_grace)
        except asyncio.TimeoutError:
            logger.error(f"Process {process.pid} did not exit after kill")


def _decode(data: Optional[bytes]) -> str:
    return data.decode("utf-8", errors="replace") if data else ""
