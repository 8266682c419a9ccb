"""
Cluster Module - Black Box Interface

Purpose: Kind cluster lifecycle and state resolution
Interface: ClusterLifecycleManager.create(), destroy(), status()
Hidden: kind/kubectl invocations, output parsing, not-found detection

Can be replaced with another local cluster tool (k3d, minikube) behind the same interface.
"""

from .manager import NOT_FOUND_PATTERNS, ClusterLifecycleManager, ClusterSettings, is_not_found
from .resolver import ClusterStateResolver, parse_cluster_list

__all__ = [
    "ClusterLifecycleManager",
    "ClusterSettings",
    "ClusterStateResolver",
    "NOT_FOUND_PATTERNS",
    "is_not_found",
    "parse_cluster_list",
]
