"""
Environment orchestration.

Binds the cluster lifecycle manager and the operation tracker into one
environment per daemon. Reads (status) never wait for a running operation;
writes go through the tracker so only one operation runs at a time.
"""

import asyncio
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from mpcdev.errors import (
    AlreadyRunningError,
    DevEnvError,
    OperationInProgressError,
    OperationUnavailableError,
    UnsupportedFeatureError,
)
from mpcdev.modules.api.models import (
    IDLE,
    ClusterState,
    DeclaredClusterStatus,
    DevEnvironment,
    MpcDeployment,
    ObservedClusterStatus,
    Operation,
    PrerequisiteCheckResult,
    RepositoryState,
)
from mpcdev.modules.cluster import ClusterLifecycleManager, ClusterSettings
from mpcdev.modules.operations import (
    FEATURE_OPERATIONS,
    CommandPipeline,
    OperationTracker,
    build_pipelines,
    source_git_hash,
)
from mpcdev.modules.prereq import PrerequisiteChecker
from mpcdev.modules.process import ProcessRunner

logger = logging.getLogger(__name__)

Work = Callable[[], Awaitable[Any]]
SuccessHook = Callable[[Any], Awaitable[None]]

CLUSTER_OPERATIONS = {Operation.CREATING_CLUSTER.value, Operation.DESTROYING_CLUSTER.value}


class EnvironmentOrchestrator:
    """Per-session handle over the development environment."""

    def __init__(
        self,
        cluster_manager: ClusterLifecycleManager,
        runner: Optional[ProcessRunner] = None,
        pipelines: Optional[Dict[Operation, CommandPipeline]] = None,
        operation_timeout: Optional[float] = None,
        mpc_repo_path: Optional[str] = None,
        controller_image: str = "",
        otp_image: str = "",
        session_id: Optional[str] = None,
        prerequisites: Optional[PrerequisiteChecker] = None,
    ):
        self.cluster_manager = cluster_manager
        self.runner = runner or cluster_manager.runner
        self.pipelines = pipelines or {}
        self.operation_timeout = operation_timeout
        self.mpc_repo_path = mpc_repo_path
        self.controller_image = controller_image
        self.otp_image = otp_image
        self.prerequisites = prerequisites or PrerequisiteChecker(self.runner)

        self._environment = DevEnvironment(session_id=session_id or str(uuid.uuid4()))
        self._lock = asyncio.Lock()
        self.tracker = OperationTracker(self._environment, self._lock)
        self._task: Optional[asyncio.Task] = None
        # Bumped whenever create or destroy replaces the cluster record
        self._cluster_generation = 0

    @classmethod
    def from_config(cls, config) -> "EnvironmentOrchestrator":
        """Wire the orchestrator and its modules from a ConfigModule."""
        settings = ClusterSettings.from_config(config)
        runner = ProcessRunner()
        return cls(
            cluster_manager=ClusterLifecycleManager(runner, settings),
            runner=runner,
            pipelines=build_pipelines(config),
            operation_timeout=config.get("operation_timeout"),
            mpc_repo_path=config.get("mpc_repo_path"),
            controller_image=config.get("controller_image", ""),
            otp_image=config.get("otp_image", ""),
            prerequisites=PrerequisiteChecker.with_binaries(
                runner, kind=settings.kind_binary, kubectl=settings.kubectl_binary
            ),
        )

    @property
    def session_id(self) -> str:
        return self._environment.session_id

    # Reads

    async def get_status(self) -> DevEnvironment:
        """
        Snapshot of the environment with a freshly observed cluster status.

        Never raises for tooling failures and never waits longer than the
        cluster manager's status timeout. An observation that started before
        a create or destroy replaced the cluster record is discarded.
        """
        generation = self._cluster_generation
        observed = await self.cluster_manager.status()
        async with self._lock:
            if generation == self._cluster_generation:
                self._reconcile_cluster(observed)
            else:
                logger.info(f"Discarding stale cluster observation '{observed.value}'")
            self._environment.touch()
            return self._environment.model_copy(deep=True)

    async def cluster_status(self) -> ObservedClusterStatus:
        return await self.cluster_manager.status()

    async def check_prerequisites(self) -> PrerequisiteCheckResult:
        return await self.prerequisites.check_all()

    def snapshot(self) -> DevEnvironment:
        """Current state without querying the cluster."""
        return self._environment.model_copy(deep=True)

    def _reconcile_cluster(self, observed: ObservedClusterStatus) -> None:
        env = self._environment
        if env.operation_status in CLUSTER_OPERATIONS:
            # The running create/destroy owns the cluster record
            if env.cluster:
                env.cluster.observed_status = observed
            return

        if env.cluster is None:
            if observed in (ObservedClusterStatus.RUNNING, ObservedClusterStatus.INITIALIZING):
                logger.info(f"Adopting existing cluster '{self.cluster_manager.cluster_name}'")
                env.cluster = self._new_cluster_record()
                env.cluster.observed_status = observed
            return

        env.cluster.observed_status = observed
        if observed == ObservedClusterStatus.RUNNING:
            env.cluster.status = DeclaredClusterStatus.RUNNING
        elif observed == ObservedClusterStatus.NOT_RUNNING:
            env.cluster.status = DeclaredClusterStatus.STOPPED

    def _new_cluster_record(self) -> ClusterState:
        return ClusterState(
            name=self.cluster_manager.cluster_name,
            status=DeclaredClusterStatus.RUNNING,
            kubeconfig_path=self.cluster_manager.settings.kubeconfig_path,
        )

    # Operations

    async def start_operation(
        self,
        operation: Union[Operation, str],
        work: Work,
        on_success: Optional[SuccessHook] = None,
    ) -> asyncio.Task:
        """
        Start `work` in the background as the environment's single operation.

        The tracker is completed exactly once when the work finishes, fails,
        times out or is cancelled.

        Returns:
            The background task

        Raises:
            AlreadyRunningError: If another operation is in progress
        """
        name = operation.value if isinstance(operation, Operation) else operation
        await self.tracker.begin(name)
        self._task = asyncio.create_task(
            self._run_operation(name, work, on_success), name=f"operation:{name}"
        )
        return self._task

    async def _run_operation(
        self, operation: str, work: Work, on_success: Optional[SuccessHook]
    ) -> None:
        error: Optional[str] = None
        try:
            if self.operation_timeout is not None:
                result = await asyncio.wait_for(work(), timeout=self.operation_timeout)
            else:
                result = await work()
            if on_success:
                await on_success(result)
        except asyncio.CancelledError:
            error = "operation canceled"
            raise
        except asyncio.TimeoutError:
            error = f"operation timed out after {self.operation_timeout}s"
        except DevEnvError as e:
            error = str(e)
        except Exception as e:
            logger.exception(f"Unexpected failure in operation '{operation}'")
            error = f"{type(e).__name__}: {e}"
        finally:
            await self.tracker.complete(operation, error)

    async def wait_for_operation(self) -> None:
        """Wait until the current background operation (if any) has finished."""
        task = self._task
        if task and not task.done():
            await asyncio.wait({task})

    async def create_cluster(self) -> asyncio.Task:
        """Start cluster creation as a tracked operation."""

        async def record_cluster(_):
            async with self._lock:
                self._environment.cluster = self._new_cluster_record()
                self._cluster_generation += 1

        return await self.start_operation(
            Operation.CREATING_CLUSTER, self.cluster_manager.create, on_success=record_cluster
        )

    async def destroy_environment(self) -> None:
        """
        Destroy the cluster and clear cluster-bound state.

        Raises:
            OperationInProgressError: If any operation is in progress
            ClusterDestroyFailed: If the lifecycle tool fails
        """
        current, _ = self.tracker.current_status()
        if current != IDLE:
            raise OperationInProgressError(current)
        try:
            await self.tracker.begin(Operation.DESTROYING_CLUSTER)
        except AlreadyRunningError as e:
            raise OperationInProgressError(e.current)

        error: Optional[str] = None
        try:
            await self.cluster_manager.destroy()
            async with self._lock:
                self._environment.cluster = None
                self._environment.mpc_deployment = None
                self._cluster_generation += 1
        except asyncio.CancelledError:
            error = "operation canceled"
            raise
        except DevEnvError as e:
            error = str(e)
            raise
        finally:
            await self.tracker.complete(Operation.DESTROYING_CLUSTER, error)

    async def run_pipeline(
        self, operation: Operation, env: Optional[Dict[str, str]] = None
    ) -> asyncio.Task:
        """
        Start the configured external pipeline for `operation`.

        Raises:
            OperationUnavailableError: If no pipeline is configured
            AlreadyRunningError: If another operation is in progress
        """
        pipeline = self.pipelines.get(operation)
        if pipeline is None:
            raise OperationUnavailableError(
                f"No pipeline is configured for '{operation.value}'"
            )

        async def work():
            return await pipeline.run(self.runner, env=env, timeout=self.operation_timeout)

        return await self.start_operation(operation, work, on_success=self._success_hooks().get(operation))

    async def rebuild(self) -> asyncio.Task:
        return await self.run_pipeline(Operation.REBUILDING)

    async def smoke_test(self) -> asyncio.Task:
        return await self.run_pipeline(Operation.SMOKE_TESTING)

    async def deploy_metrics(self) -> asyncio.Task:
        return await self.run_pipeline(Operation.DEPLOYING_METRICS)

    async def enable_feature(
        self, feature_name: str, credentials: Optional[Dict[str, str]] = None
    ) -> asyncio.Task:
        """Start the pipeline enabling a provider feature; credentials go to its environment only."""
        operation = FEATURE_OPERATIONS.get(feature_name)
        if operation is None:
            raise UnsupportedFeatureError(feature_name)
        return await self.run_pipeline(operation, env=dict(credentials or {}))

    def _success_hooks(self) -> Dict[Operation, SuccessHook]:
        async def record_deployment(_):
            git_hash = await source_git_hash(self.runner, self.mpc_repo_path)
            async with self._lock:
                self._environment.mpc_deployment = MpcDeployment(
                    controller_image=self.controller_image,
                    otp_image=self.otp_image,
                    source_git_hash=git_hash,
                )

        def enable(flag: str) -> SuccessHook:
            async def hook(_):
                async with self._lock:
                    setattr(self._environment.features, flag, True)
            return hook

        return {
            Operation.REBUILDING: record_deployment,
            Operation.DEPLOYING_METRICS: enable("metrics_enabled"),
            Operation.CONFIGURING_AWS: enable("aws_enabled"),
            Operation.CONFIGURING_IBM: enable("ibm_enabled"),
        }

    # Repositories

    async def set_repository_state(self, state: RepositoryState) -> None:
        """Store repository state reported by the Git integration."""
        async with self._lock:
            self._environment.repositories[state.name] = state
            self._environment.touch()

    async def shutdown(self) -> None:
        """Cancel the running operation, if any, and wait for it to settle."""
        task = self._task
        if task and not task.done():
            logger.info(f"Cancelling {task.get_name()}")
            task.cancel()
            await asyncio.wait({task})
