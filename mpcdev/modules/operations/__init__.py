"""
Operations Module - Black Box Interface

Purpose: Single-slot tracking of long-running operations and their pipelines
Interface: OperationTracker.begin(), complete(), current_status(); CommandPipeline.run()
Hidden: Locking, status transitions, command construction

At most one operation runs per environment at a time.
"""

from .pipelines import (
    FEATURE_OPERATIONS,
    PIPELINE_CONFIG_KEYS,
    CommandPipeline,
    build_pipelines,
    source_git_hash,
)
from .tracker import OperationTracker

__all__ = [
    "OperationTracker",
    "CommandPipeline",
    "FEATURE_OPERATIONS",
    "PIPELINE_CONFIG_KEYS",
    "build_pipelines",
    "source_git_hash",
]
