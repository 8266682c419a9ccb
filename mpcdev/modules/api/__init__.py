"""
API Module - Black Box Interface

Purpose: Shared data models for the environment state and HTTP contracts
Interface: DevEnvironment and its parts, request/response models
Hidden: Validation and serialization details

The HTTP routes themselves live in mpcdev.main and contain no business logic.
"""

from .models import (
    IDLE,
    ClusterState,
    ClusterStatusResponse,
    DeclaredClusterStatus,
    DevEnvironment,
    EnableFeatureRequest,
    ErrorResponse,
    FeatureState,
    MpcDeployment,
    ObservedClusterStatus,
    Operation,
    OperationStartedResponse,
    PrerequisiteCheckResult,
    PrerequisiteResult,
    PrerequisiteStatus,
    RepositoryState,
)

__all__ = [
    "IDLE",
    "ClusterState",
    "ClusterStatusResponse",
    "DeclaredClusterStatus",
    "DevEnvironment",
    "EnableFeatureRequest",
    "ErrorResponse",
    "FeatureState",
    "MpcDeployment",
    "ObservedClusterStatus",
    "Operation",
    "OperationStartedResponse",
    "PrerequisiteCheckResult",
    "PrerequisiteResult",
    "PrerequisiteStatus",
    "RepositoryState",
]
