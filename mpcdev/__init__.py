"""
MPC Dev Environment - Local Development Environment Daemon

A daemon that provisions and supervises a single Kind development cluster
and the long-running operations (rebuild, smoke test, metrics deployment)
performed against it. IDE plugins talk to it over a small HTTP API.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- process: External command execution
- cluster: Cluster state resolution and lifecycle (create/destroy/status)
- operations: Single-slot operation tracking and operation pipelines
- environment: Environment orchestration (composition root)
- api: Shared data models
- config: Configuration loading
"""

__version__ = "1.0.0"
