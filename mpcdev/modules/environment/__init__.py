"""
Environment Module - Black Box Interface

Purpose: Own the development environment aggregate for one session
Interface: get_status(), start_operation(), create_cluster(), destroy_environment()
Hidden: Locking, cluster state reconciliation, operation side effects
"""

from .orchestrator import EnvironmentOrchestrator

__all__ = ["EnvironmentOrchestrator"]
