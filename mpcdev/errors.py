"""
Error taxonomy for the MPC Dev Environment daemon.

Every user-visible failure is carried as a (kind, message) pair. Failures of
lifecycle commands additionally carry the full captured output of the tool so
operators can see exactly what it printed.
"""

from typing import Any, Dict, Optional


class DevEnvError(Exception):
    """Base exception for all daemon errors."""

    kind = "dev_env_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class ConfigError(DevEnvError):
    """Raised when configuration cannot be loaded or is invalid."""

    kind = "config_error"


# =============================================================================
# Process execution
# =============================================================================


class ProcessRunnerError(DevEnvError):
    """Base exception for process execution failures."""

    kind = "process_error"


class ProcessSpawnError(ProcessRunnerError):
    """Raised when a command cannot be started at all (missing binary, permissions)."""

    kind = "process_spawn_failed"


class ProcessCanceledError(ProcessRunnerError):
    """Raised when a command was terminated because its timeout expired."""

    kind = "process_canceled"


# =============================================================================
# Cluster lifecycle
# =============================================================================


class ClusterLifecycleError(DevEnvError):
    """Base exception for lifecycle command failures, carrying the tool output."""

    kind = "cluster_lifecycle_failed"

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["output"] = self.output
        return data

    def __str__(self) -> str:
        if self.output:
            return f"{self.message} (output: {self.output.strip()})"
        return self.message


class ClusterCreateFailed(ClusterLifecycleError):
    kind = "cluster_create_failed"


class ClusterDestroyFailed(ClusterLifecycleError):
    kind = "cluster_destroy_failed"


# =============================================================================
# Operations
# =============================================================================


class AlreadyRunningError(DevEnvError):
    """Raised when an operation is requested while another one is active."""

    kind = "already_running"

    def __init__(self, requested: str, current: str):
        super().__init__(
            f"Cannot start '{requested}': operation '{current}' is already in progress"
        )
        self.requested = requested
        self.current = current


class OperationInProgressError(DevEnvError):
    """Raised when the environment is destroyed while an operation is active."""

    kind = "operation_in_progress"

    def __init__(self, current: str):
        super().__init__(
            f"Cannot destroy the environment while operation '{current}' is in progress"
        )
        self.current = current


class OperationFailed(ClusterLifecycleError):
    """Raised by an operation pipeline whose external command failed."""

    kind = "operation_failed"


class OperationUnavailableError(DevEnvError):
    """Raised when an operation has no pipeline configured."""

    kind = "operation_unavailable"


class UnsupportedFeatureError(DevEnvError):
    kind = "unsupported_feature"

    def __init__(self, feature_name: Optional[str]):
        super().__init__(f"Unsupported feature: {feature_name}")
        self.feature_name = feature_name
