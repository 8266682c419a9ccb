"""
Kind cluster lifecycle management (create, destroy, status).

The manager works against one cluster identity given at construction and
keeps no state of its own: every status call asks the tooling again.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Pattern, Tuple

from mpcdev.errors import ClusterCreateFailed, ClusterDestroyFailed, ProcessRunnerError
from mpcdev.modules.api.models import ObservedClusterStatus
from mpcdev.modules.process import ProcessRunner

from .resolver import ClusterStateResolver

logger = logging.getLogger(__name__)


# Diagnostics printed by kind/podman when the cluster to delete does not exist.
# Matched against stderr only; anything else is a real failure.
NOT_FOUND_PATTERNS: Tuple[Pattern, ...] = (
    re.compile(r"No kind clusters found", re.IGNORECASE),
    re.compile(r'\bcluster "?[\w.-]+"? not found\b', re.IGNORECASE),
    re.compile(r'\bunknown cluster "?[\w.-]+"?', re.IGNORECASE),
    re.compile(r'\bno nodes found for cluster "?[\w.-]+"?', re.IGNORECASE),
)


# Extra seconds the status guard allows for killing and reaping a timed-out tool
STATUS_GUARD_MARGIN = 1.0


def is_not_found(stderr: str) -> bool:
    """Check whether delete diagnostics say the cluster does not exist."""
    return any(pattern.search(stderr) for pattern in NOT_FOUND_PATTERNS)


@dataclass
class ClusterSettings:
    """Cluster identity and tooling configuration."""

    name: str = "konflux"
    kind_binary: str = "kind"
    kubectl_binary: str = "kubectl"
    kind_provider: Optional[str] = "podman"
    kind_config_path: Optional[str] = None
    kubeconfig_path: str = ""
    status_timeout: float = 10.0
    create_timeout: float = 600.0
    destroy_timeout: float = 300.0

    @property
    def tool_env(self) -> Dict[str, str]:
        if self.kind_provider:
            return {"KIND_EXPERIMENTAL_PROVIDER": self.kind_provider}
        return {}

    @classmethod
    def from_config(cls, config) -> "ClusterSettings":
        """Build settings from a ConfigModule."""
        kind_config = Path(config.get("dev_env_path")) / "kind-config.yaml"
        return cls(
            name=config.get("cluster_name"),
            kind_binary=config.get("kind_binary"),
            kubectl_binary=config.get("kubectl_binary"),
            kind_provider=config.get("kind_provider"),
            kind_config_path=str(kind_config) if kind_config.is_file() else None,
            kubeconfig_path=config.get("kubeconfig_path"),
            status_timeout=config.get("status_probe_timeout"),
            create_timeout=config.get("cluster_create_timeout"),
            destroy_timeout=config.get("cluster_destroy_timeout"),
        )


class ClusterLifecycleManager:
    """Creates, destroys and reports the status of a single Kind cluster."""

    def __init__(
        self,
        runner: ProcessRunner,
        settings: ClusterSettings,
        resolver: Optional[ClusterStateResolver] = None,
    ):
        self.runner = runner
        self.settings = settings
        self.resolver = resolver or ClusterStateResolver(
            runner,
            cluster_name=settings.name,
            kind_binary=settings.kind_binary,
            kubectl_binary=settings.kubectl_binary,
            env=settings.tool_env,
        )

    @property
    def cluster_name(self) -> str:
        return self.settings.name

    async def create(self, timeout: Optional[float] = None) -> None:
        """
        Create the cluster.

        Returning does not mean the cluster is ready; poll status() until RUNNING.

        Raises:
            ClusterCreateFailed: With the combined tool output
        """
        logger.info(f"Creating Kind cluster '{self.cluster_name}'...")

        args = [self.settings.kind_binary, "create", "cluster", "--name", self.cluster_name]
        if self.settings.kind_config_path:
            args += ["--config", self.settings.kind_config_path]

        try:
            result = await self.runner.run(
                args,
                env=self.settings.tool_env,
                timeout=timeout if timeout is not None else self.settings.create_timeout,
                combine_output=True,
            )
        except ProcessRunnerError as e:
            raise ClusterCreateFailed(f"Failed to create Kind cluster: {e.message}", output="")

        if not result.success:
            raise ClusterCreateFailed(
                f"Failed to create Kind cluster (exit code {result.exit_code})",
                output=result.output,
            )

        logger.info("Kind cluster created successfully")

    async def destroy(self, timeout: Optional[float] = None) -> None:
        """
        Delete the cluster. Deleting a cluster that does not exist succeeds.

        Raises:
            ClusterDestroyFailed: With the captured stderr
        """
        logger.info(f"Destroying Kind cluster '{self.cluster_name}'...")

        try:
            result = await self.runner.run(
                [self.settings.kind_binary, "delete", "cluster", "--name", self.cluster_name],
                env=self.settings.tool_env,
                timeout=timeout if timeout is not None else self.settings.destroy_timeout,
            )
        except ProcessRunnerError as e:
            raise ClusterDestroyFailed(f"Failed to delete Kind cluster: {e.message}", output="")

        if not result.success:
            if is_not_found(result.stderr):
                logger.info("Cluster does not exist (already deleted or never created)")
                return
            raise ClusterDestroyFailed(
                f"Failed to delete Kind cluster (exit code {result.exit_code})",
                output=result.stderr or result.stdout,
            )

        logger.info("Kind cluster destroyed successfully")

    async def status(self, timeout: Optional[float] = None) -> ObservedClusterStatus:
        """
        Report the observed cluster status.

        The resolver spends at most `timeout` (default: the configured status
        timeout) across both of its commands. The outer guard only fires when
        a killed tool cannot be reaped, and then yields ERROR.
        """
        if timeout is None:
            timeout = self.settings.status_timeout
        try:
            return await asyncio.wait_for(
                self.resolver.resolve(timeout=timeout), timeout=timeout + STATUS_GUARD_MARGIN
            )
        except asyncio.TimeoutError:
            logger.error(f"Cluster status check did not finish within {timeout}s")
            return ObservedClusterStatus.ERROR
