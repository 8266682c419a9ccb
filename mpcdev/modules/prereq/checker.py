"""
Prerequisite checks for the tools the daemon and its pipelines shell out to.

Each tool is asked for its version; the first capture group of the tool's
version pattern is compared against the minimum. Docker is preferred as the
container engine, Podman is accepted in its place.
"""

import asyncio
import dataclasses
import logging
import re
from dataclasses import dataclass
from typing import Optional, Pattern, Sequence, Tuple

from mpcdev.errors import ProcessCanceledError, ProcessSpawnError
from mpcdev.modules.api.models import (
    PrerequisiteCheckResult,
    PrerequisiteResult,
    PrerequisiteStatus,
)
from mpcdev.modules.process import ProcessRunner

logger = logging.getLogger(__name__)

SEMVER = re.compile(r"(\d+\.\d+\.\d+)")
V_SEMVER = re.compile(r"v?(\d+\.\d+\.\d+)")


@dataclass(frozen=True)
class ToolRequirement:
    """A tool, the command printing its version and the minimum version."""

    name: str
    argv: Tuple[str, ...]
    required: str
    version_pattern: Pattern = SEMVER


DEFAULT_REQUIREMENTS: Tuple[ToolRequirement, ...] = (
    ToolRequirement("go", ("go", "version"), "1.24.0", re.compile(r"go(\d+\.\d+(?:\.\d+)?)")),
    ToolRequirement("kind", ("kind", "--version"), "0.26.0"),
    ToolRequirement("kubectl", ("kubectl", "version", "--client"), "1.31.1", V_SEMVER),
    ToolRequirement("docker", ("docker", "--version"), "27.0.1"),
    ToolRequirement("git", ("git", "--version"), "2.46.0"),
    ToolRequirement("helm", ("helm", "version", "--short"), "3.0.0", V_SEMVER),
)

PODMAN_REQUIREMENT = ToolRequirement("podman", ("podman", "--version"), "5.3.1")


def extract_version(output: str, pattern: Pattern) -> Optional[str]:
    match = pattern.search(output)
    return match.group(1) if match else None


def parse_version(version: str) -> Tuple[int, int, int]:
    """Parse major.minor.patch; missing or non-numeric parts count as 0."""
    parts = version.strip().lstrip("v").split(".")
    numbers = []
    for part in (parts + ["0", "0", "0"])[:3]:
        digits = re.match(r"\d+", part)
        numbers.append(int(digits.group()) if digits else 0)
    return tuple(numbers)


def version_at_least(version: str, required: str) -> bool:
    return parse_version(version) >= parse_version(required)


class PrerequisiteChecker:
    """Reports whether the required tools are installed and recent enough."""

    def __init__(
        self,
        runner: ProcessRunner,
        requirements: Sequence[ToolRequirement] = DEFAULT_REQUIREMENTS,
        container_fallback: Optional[ToolRequirement] = PODMAN_REQUIREMENT,
        timeout: float = 10.0,
    ):
        self.runner = runner
        self.requirements = tuple(requirements)
        self.container_fallback = container_fallback
        self.timeout = timeout

    @classmethod
    def with_binaries(cls, runner: ProcessRunner, **binaries: str) -> "PrerequisiteChecker":
        """
        Build a checker that runs configured executables.

        Args:
            binaries: Tool name to executable, e.g. kind="/usr/local/bin/kind"
        """
        requirements = [
            dataclasses.replace(req, argv=(binaries[req.name],) + req.argv[1:])
            if binaries.get(req.name) else req
            for req in DEFAULT_REQUIREMENTS
        ]
        return cls(runner, requirements=requirements)

    async def check_tool(self, requirement: ToolRequirement) -> PrerequisiteResult:
        result = PrerequisiteResult(name=requirement.name, required=requirement.required)

        try:
            output = await self.runner.run(
                list(requirement.argv), timeout=self.timeout, combine_output=True
            )
        except ProcessSpawnError:
            logger.info(f"Prerequisite '{requirement.name}' is not installed")
            return result
        except ProcessCanceledError:
            logger.warning(f"Version check of '{requirement.name}' timed out")
            output = None

        result.installed = True
        version = None
        if output is not None and output.success:
            version = extract_version(output.output, requirement.version_pattern)
        if version is None:
            result.version = "Unknown"
            result.status = PrerequisiteStatus.UNKNOWN
            return result

        result.version = version
        if version_at_least(version, requirement.required):
            result.status = PrerequisiteStatus.OK
        else:
            logger.warning(
                f"Prerequisite '{requirement.name}' {version} is below {requirement.required}"
            )
            result.status = PrerequisiteStatus.OUTDATED
        return result

    async def check_all(self) -> PrerequisiteCheckResult:
        """Check every requirement, accepting Podman when Docker is not usable."""
        results = await asyncio.gather(*(self.check_tool(req) for req in self.requirements))
        check = PrerequisiteCheckResult(prerequisites={r.name: r for r in results})

        for prereq in results:
            if prereq.status == PrerequisiteStatus.OK:
                continue
            check.all_met = False
            if prereq.status == PrerequisiteStatus.MISSING:
                check.errors.append(f"{prereq.name} is not installed")
            elif prereq.status == PrerequisiteStatus.OUTDATED:
                check.errors.append(
                    f"{prereq.name} version {prereq.version} is below minimum requirement "
                    f"{prereq.required}"
                )

        docker = check.prerequisites.get("docker")
        if self.container_fallback and docker and docker.status != PrerequisiteStatus.OK:
            fallback = await self.check_tool(self.container_fallback)
            check.prerequisites[fallback.name] = fallback
            if fallback.status == PrerequisiteStatus.OK:
                check.errors = [e for e in check.errors if "docker" not in e]
                check.all_met = all(
                    p.status == PrerequisiteStatus.OK
                    for name, p in check.prerequisites.items()
                    if name != "docker"
                )
            else:
                check.errors.append("Neither Docker nor Podman is available")

        if check.all_met:
            logger.info("All prerequisites are met")
        else:
            logger.warning(f"Prerequisites not met: {'; '.join(check.errors) or 'unknown versions'}")
        return check
