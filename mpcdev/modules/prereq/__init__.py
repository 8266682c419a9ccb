"""
Prerequisite Module - Black Box Interface

Purpose: Report whether the required developer tools are installed
Interface: PrerequisiteChecker.check_all() -> PrerequisiteCheckResult
Hidden: Version commands, version parsing, Docker/Podman fallback

A missing or outdated tool is reported, never raised.
"""

from .checker import (
    DEFAULT_REQUIREMENTS,
    PODMAN_REQUIREMENT,
    PrerequisiteChecker,
    ToolRequirement,
    extract_version,
    version_at_least,
)

__all__ = [
    "PrerequisiteChecker",
    "ToolRequirement",
    "DEFAULT_REQUIREMENTS",
    "PODMAN_REQUIREMENT",
    "extract_version",
    "version_at_least",
]
