"""
External operation pipelines.

The build, test and deploy pipelines themselves live outside the daemon; each
operation is an external command the daemon runs and supervises. A pipeline
fails when its command exits non-zero, and the failure carries the command's
full output.
"""

import logging
import shlex
from dataclasses import dataclass
from typing import Dict, List, Optional

from mpcdev.errors import OperationFailed, ProcessRunnerError
from mpcdev.modules.api.models import Operation
from mpcdev.modules.process import ProcessResult, ProcessRunner

logger = logging.getLogger(__name__)


# Config key holding the command for each operation
PIPELINE_CONFIG_KEYS = {
    Operation.REBUILDING: "rebuild_command",
    Operation.SMOKE_TESTING: "smoke_test_command",
    Operation.DEPLOYING_METRICS: "metrics_deploy_command",
    Operation.CONFIGURING_AWS: "aws_feature_command",
    Operation.CONFIGURING_IBM: "ibm_feature_command",
}

# Feature names accepted by the enable-feature endpoint
FEATURE_OPERATIONS = {
    "aws": Operation.CONFIGURING_AWS,
    "aws-secrets": Operation.CONFIGURING_AWS,
    "ibm": Operation.CONFIGURING_IBM,
}


@dataclass
class CommandPipeline:
    """An operation implemented by one external command."""

    operation: Operation
    argv: List[str]
    cwd: Optional[str] = None

    @classmethod
    def from_command(
        cls, operation: Operation, command: Optional[str], cwd: Optional[str] = None
    ) -> Optional["CommandPipeline"]:
        """Build a pipeline from a shell-style command string (None if unset)."""
        if not command or not command.strip():
            return None
        return cls(operation=operation, argv=shlex.split(command), cwd=cwd)

    async def run(
        self,
        runner: ProcessRunner,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ProcessResult:
        """
        Run the pipeline command.

        Raises:
            OperationFailed: If the command exits non-zero
            ProcessRunnerError: If the command cannot start or times out
        """
        result = await runner.run(
            self.argv, env=env, timeout=timeout, combine_output=True, cwd=self.cwd
        )
        if not result.success:
            raise OperationFailed(
                f"{self.operation.value} failed (exit code {result.exit_code})",
                output=result.output,
            )
        return result


def build_pipelines(config) -> Dict[Operation, CommandPipeline]:
    """Build the configured pipelines, keyed by operation."""
    cwd = config.get("dev_env_path")
    pipelines = {}
    for operation, key in PIPELINE_CONFIG_KEYS.items():
        pipeline = CommandPipeline.from_command(operation, config.get(key), cwd=cwd)
        if pipeline:
            pipelines[operation] = pipeline
        else:
            logger.info(f"No pipeline configured for '{operation.value}' ({key})")
    return pipelines


async def source_git_hash(runner: ProcessRunner, repo_path: Optional[str]) -> str:
    """Commit checked out in `repo_path`, or "" if it cannot be determined."""
    if not repo_path:
        return ""
    try:
        result = await runner.run(["git", "-C", repo_path, "rev-parse", "HEAD"], timeout=10)
    except ProcessRunnerError as e:
        logger.warning(f"Cannot read source commit of {repo_path}: {e}")
        return ""
    return result.stdout.strip() if result.success else ""
