"""
Cluster state resolution.

Combines two independent signals into one observed status:

1. Registry membership: is the cluster listed by `kind get clusters`?
2. Control-plane reachability: does `kubectl cluster-info` succeed?

The checks are ordered and short-circuit. A cluster absent from the registry
is NOT_RUNNING without probing, because a probe against a missing cluster
fails the same way as a probe against one that is still starting.
"""

import asyncio
import logging
from typing import Dict, List, Optional

from mpcdev.errors import ProcessCanceledError, ProcessRunnerError, ProcessSpawnError
from mpcdev.modules.api.models import ObservedClusterStatus
from mpcdev.modules.process import ProcessRunner

logger = logging.getLogger(__name__)


def parse_cluster_list(stdout: str) -> List[str]:
    """Parse `kind get clusters` output into cluster names."""
    return [line.strip() for line in stdout.splitlines() if line.strip()]


class ClusterStateResolver:
    """Classifies a named cluster as not running, initializing, running or error."""

    def __init__(
        self,
        runner: ProcessRunner,
        cluster_name: str,
        kind_binary: str = "kind",
        kubectl_binary: str = "kubectl",
        env: Optional[Dict[str, str]] = None,
    ):
        self.runner = runner
        self.cluster_name = cluster_name
        self.kind_binary = kind_binary
        self.kubectl_binary = kubectl_binary
        self.env = env or {}

    @property
    def kube_context(self) -> str:
        return f"kind-{self.cluster_name}"

    async def resolve(self, timeout: Optional[float] = None) -> ObservedClusterStatus:
        """
        Determine the observed cluster status.

        Args:
            timeout: Budget in seconds shared by the registry query and the
                readiness probe; the probe gets whatever the query left over

        Returns:
            ObservedClusterStatus (never raises for tooling failures)
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        try:
            registry = await asyncio.wait_for(
                self.runner.run([self.kind_binary, "get", "clusters"], env=self.env, timeout=timeout),
                timeout=timeout,
            )
        except ProcessRunnerError as e:
            logger.error(f"Failed to list clusters: {e}")
            return ObservedClusterStatus.ERROR
        except asyncio.TimeoutError:
            logger.error(f"Listing clusters timed out after {timeout}s")
            return ObservedClusterStatus.ERROR

        if not registry.success:
            logger.error(f"Failed to list clusters (exit code {registry.exit_code})")
            return ObservedClusterStatus.ERROR

        clusters = parse_cluster_list(registry.stdout)
        if not clusters:
            logger.info("No Kind clusters found")
            return ObservedClusterStatus.NOT_RUNNING

        if self.cluster_name not in clusters:
            logger.info(f"Cluster '{self.cluster_name}' not found")
            return ObservedClusterStatus.NOT_RUNNING

        remaining = None if deadline is None else deadline - loop.time()
        if remaining is not None and remaining <= 0:
            logger.info(f"No time left to probe '{self.cluster_name}' (still initializing)")
            return ObservedClusterStatus.INITIALIZING

        logger.info(f"Cluster '{self.cluster_name}' found, verifying kubectl accessibility...")
        try:
            probe = await asyncio.wait_for(
                self.runner.run(
                    [self.kubectl_binary, "cluster-info", "--context", self.kube_context],
                    timeout=remaining,
                ),
                timeout=remaining,
            )
        except ProcessSpawnError as e:
            logger.error(f"Cannot run readiness probe: {e}")
            return ObservedClusterStatus.ERROR
        except (ProcessCanceledError, asyncio.TimeoutError):
            logger.info(f"Readiness probe for '{self.cluster_name}' timed out (still initializing)")
            return ObservedClusterStatus.INITIALIZING

        if not probe.success:
            logger.info(
                f"Cluster '{self.cluster_name}' exists but kubectl cannot access it yet "
                f"(still initializing)"
            )
            return ObservedClusterStatus.INITIALIZING

        logger.info(f"Cluster '{self.cluster_name}' is running and accessible via kubectl")
        return ObservedClusterStatus.RUNNING
