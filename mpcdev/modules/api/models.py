"""
MPC Dev Environment shared data models.

These models define the structure of all data passed between
components and exposed to IDE clients through the status API.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

# Enums


class ObservedClusterStatus(str, Enum):
    """Cluster status as observed from the lifecycle tool and control plane."""

    NOT_RUNNING = "not_running"
    INITIALIZING = "initializing"
    RUNNING = "running"
    ERROR = "error"


class DeclaredClusterStatus(str, Enum):
    """Cluster status as recorded by the daemon."""

    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class Operation(str, Enum):
    """Long-running operations tracked for mutual exclusion."""

    CREATING_CLUSTER = "creating_cluster"
    DESTROYING_CLUSTER = "destroying_cluster"
    REBUILDING = "rebuilding"
    SMOKE_TESTING = "smoke_testing"
    DEPLOYING_METRICS = "deploying_metrics"
    CONFIGURING_AWS = "configuring_aws"
    CONFIGURING_IBM = "configuring_ibm"


class PrerequisiteStatus(str, Enum):
    OK = "ok"
    MISSING = "missing"
    OUTDATED = "outdated"
    UNKNOWN = "unknown"


IDLE = "idle"


def utcnow() -> datetime:
    return datetime.now(UTC)


# Environment state


class ClusterState(BaseModel):
    """State of the Kind cluster backing the environment."""

    name: str
    created_at: datetime = Field(default_factory=utcnow)
    status: DeclaredClusterStatus = DeclaredClusterStatus.RUNNING
    kubeconfig_path: str = ""
    konflux_deployed: bool = False
    observed_status: Optional[ObservedClusterStatus] = None


class RepositoryState(BaseModel):
    """Branch and sync state of a tracked Git repository."""

    name: str
    path: str = ""
    current_branch: str = ""
    last_synced: Optional[datetime] = None
    commits_behind_upstream: int = Field(default=0, ge=0)
    has_local_changes: bool = False


class MpcDeployment(BaseModel):
    """Images deployed into the cluster and the source they were built from."""

    controller_image: str = ""
    otp_image: str = ""
    deployed_at: datetime = Field(default_factory=utcnow)
    source_git_hash: str = ""


class FeatureState(BaseModel):
    """Optional features enabled for the environment."""

    metrics_enabled: bool = False
    aws_enabled: bool = False
    ibm_enabled: bool = False


class DevEnvironment(BaseModel):
    """
    Top-level development environment state.

    This is the snapshot returned by GET /api/status. `operation_status` is
    "idle" or the name of the single running operation; `last_operation_error`
    holds the failure of the most recent operation until the next one starts.
    """

    session_id: str
    created_at: datetime = Field(default_factory=utcnow)
    last_active: datetime = Field(default_factory=utcnow)
    cluster: Optional[ClusterState] = None
    repositories: Dict[str, RepositoryState] = Field(default_factory=dict)
    mpc_deployment: Optional[MpcDeployment] = None
    features: FeatureState = Field(default_factory=FeatureState)
    operation_status: str = IDLE
    last_operation_error: Optional[str] = None

    def touch(self) -> None:
        """Record an interaction with the environment."""
        self.last_active = utcnow()


# Request/Response Models (API)


class EnableFeatureRequest(BaseModel):
    """Request to enable an optional feature."""

    feature_name: str = Field(..., min_length=1, description="Feature to enable (aws, ibm)")
    credentials: Dict[str, str] = Field(
        default_factory=dict,
        description="Passed to the feature pipeline as environment variables, never stored",
    )


class OperationStartedResponse(BaseModel):
    status: str = "started"
    operation: str
    message: Optional[str] = None


class ClusterStatusResponse(BaseModel):
    """Observed cluster status. `error` is set only when the status check failed."""

    status: ObservedClusterStatus
    error: Optional[str] = None


class ErrorResponse(BaseModel):
    status: str
    error: str
    output: Optional[str] = None


# Prerequisites


class PrerequisiteResult(BaseModel):
    """Installation and version check of one required tool."""

    name: str
    installed: bool = False
    version: str = "Not Found"
    required: str
    status: PrerequisiteStatus = PrerequisiteStatus.MISSING


class PrerequisiteCheckResult(BaseModel):
    prerequisites: Dict[str, PrerequisiteResult] = Field(default_factory=dict)
    all_met: bool = True
    errors: List[str] = Field(default_factory=list)
