"""
Shared pytest fixtures for MPC Dev Environment tests.

This module provides common fixtures including:
- CommandMocker: Fake ProcessRunner returning canned responses for kind/kubectl/pipelines
- Cluster manager and orchestrator instances wired to the fake runner
"""

import asyncio
import os
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern, Sequence, Union

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from mpcdev.errors import ProcessCanceledError, ProcessSpawnError
from mpcdev.modules.cluster import ClusterLifecycleManager, ClusterSettings
from mpcdev.modules.environment import EnvironmentOrchestrator
from mpcdev.modules.process import ProcessResult


# =============================================================================
# Command Mocking Infrastructure
# =============================================================================

@dataclass
class CommandResponse:
    """Represents a mocked command response."""
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0
    delay: float = 0.0
    spawn_error: bool = False
    gate: Optional[asyncio.Event] = None  # Response is held until the event is set


@dataclass
class CommandCall:
    """Record of a command run during testing."""
    argv: List[str]
    command_str: str
    env: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None
    combine_output: bool = False
    matched_pattern: Optional[str] = None


class CommandMocker:
    """
    Fake ProcessRunner with pattern-matched responses.

    Registering a list of responses for one pattern returns them in order,
    repeating the last one, which lets tests script a cluster coming up.

    Usage:
        async def test_status(command_mocker):
            command_mocker.register("get clusters", CommandResponse(stdout="konflux\\n"))
            command_mocker.register("cluster-info", CommandResponse(exit_code=1))

            status = await resolver.resolve()

            assert command_mocker.was_called_with("cluster-info")
    """

    def __init__(self):
        self._responses: List[tuple] = []
        self._call_history: List[CommandCall] = []
        self._default_response = CommandResponse(
            stderr="Error: mock not configured for this command",
            exit_code=1,
        )

    def register(
        self,
        pattern: Union[str, Pattern],
        response: Union[CommandResponse, Sequence[CommandResponse]],
    ) -> "CommandMocker":
        """
        Register responses for commands matching the pattern.

        Args:
            pattern: String (substring match) or compiled regex
            response: A response, or a sequence returned one per call

        Returns:
            self for chaining
        """
        queue = [response] if isinstance(response, CommandResponse) else list(response)
        # Later registrations win
        self._responses.insert(0, (pattern, queue))
        return self

    def set_default_response(self, response: CommandResponse) -> "CommandMocker":
        self._default_response = response
        return self

    def _match(self, command_str: str):
        for pattern, queue in self._responses:
            if isinstance(pattern, str):
                matched = pattern in command_str
                name = pattern
            else:
                matched = bool(pattern.search(command_str))
                name = pattern.pattern
            if matched:
                response = queue.pop(0) if len(queue) > 1 else queue[0]
                return name, response
        return None, self._default_response

    async def run(
        self,
        argv: Sequence[str],
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        combine_output: bool = False,
        cwd: Optional[str] = None,
    ) -> ProcessResult:
        """Mock implementation of ProcessRunner.run."""
        args = [str(a) for a in argv]
        command_str = " ".join(args)
        matched, response = self._match(command_str)

        self._call_history.append(
            CommandCall(
                argv=args,
                command_str=command_str,
                env=dict(env or {}),
                timeout=timeout,
                combine_output=combine_output,
                matched_pattern=matched,
            )
        )

        if response.spawn_error:
            raise ProcessSpawnError(f"Failed to start '{command_str}': No such file or directory")

        if response.gate is not None:
            await response.gate.wait()

        if response.delay:
            if timeout and response.delay > timeout:
                await asyncio.sleep(timeout)
                raise ProcessCanceledError(f"Command '{command_str}' timed out after {timeout}s")
            await asyncio.sleep(response.delay)

        stdout, stderr = response.stdout, response.stderr
        if combine_output:
            stdout, stderr = stdout + stderr, ""
        return ProcessResult(
            args=args,
            exit_code=response.exit_code,
            stdout=stdout,
            stderr=stderr,
            combined=combine_output,
        )

    @property
    def calls(self) -> List[CommandCall]:
        return self._call_history

    @property
    def call_count(self) -> int:
        return len(self._call_history)

    def was_called_with(self, pattern: str) -> bool:
        """Check if any call contained the given pattern."""
        return any(pattern in call.command_str for call in self._call_history)

    def get_calls_matching(self, pattern: str) -> List[CommandCall]:
        return [c for c in self._call_history if pattern in c.command_str]

    def reset(self):
        """Clear call history (but keep registered responses)."""
        self._call_history = []


# Canned lifecycle tool output
NO_CLUSTERS = CommandResponse(stderr="No kind clusters found.\n")
KONFLUX_LISTED = CommandResponse(stdout="konflux\n")
PROBE_FAILS = CommandResponse(
    stderr="The connection to the server 127.0.0.1:6443 was refused\n", exit_code=1
)
PROBE_OK = CommandResponse(stdout="Kubernetes control plane is running at https://127.0.0.1:6443\n")


@pytest.fixture
def command_mocker():
    return CommandMocker()


@pytest.fixture
def cluster_settings(tmp_path):
    return ClusterSettings(
        name="konflux",
        kind_provider="podman",
        kubeconfig_path=str(tmp_path / "kubeconfig"),
        status_timeout=2.0,
        create_timeout=5.0,
        destroy_timeout=5.0,
    )


@pytest.fixture
def cluster_manager(command_mocker, cluster_settings):
    return ClusterLifecycleManager(command_mocker, cluster_settings)


@pytest.fixture
def orchestrator(command_mocker, cluster_manager):
    return EnvironmentOrchestrator(
        cluster_manager,
        runner=command_mocker,
        operation_timeout=5.0,
        controller_image="localhost/mpc:dev",
        otp_image="localhost/otp:dev",
    )


# =============================================================================
# Test Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "command_mock: Tests using the mocked process runner"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests requiring kind and podman"
    )
