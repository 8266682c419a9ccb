"""
Tests for cluster state resolution and the cluster lifecycle manager.
"""

import asyncio
import time

import pytest
from conftest import KONFLUX_LISTED, NO_CLUSTERS, PROBE_FAILS, PROBE_OK, CommandResponse

from mpcdev.errors import ClusterCreateFailed, ClusterDestroyFailed
from mpcdev.modules.api import ObservedClusterStatus
from mpcdev.modules.cluster import (
    ClusterLifecycleManager,
    ClusterSettings,
    ClusterStateResolver,
    is_not_found,
    parse_cluster_list,
)
from mpcdev.modules.process import ProcessRunner


class TestParseClusterList:
    def test_parses_names(self):
        assert parse_cluster_list("kind\nkonflux\n") == ["kind", "konflux"]

    def test_ignores_blank_lines_and_whitespace(self):
        assert parse_cluster_list("\n  konflux  \n\n") == ["konflux"]

    def test_empty(self):
        assert parse_cluster_list("") == []


class TestResolver:
    @pytest.fixture
    def resolver(self, command_mocker):
        return ClusterStateResolver(
            command_mocker, "konflux", env={"KIND_EXPERIMENTAL_PROVIDER": "podman"}
        )

    @pytest.mark.asyncio
    async def test_registry_failure_is_error(self, resolver, command_mocker):
        command_mocker.register(
            "get clusters", CommandResponse(stderr="Cannot connect to Podman", exit_code=1)
        )

        assert await resolver.resolve() == ObservedClusterStatus.ERROR
        assert not command_mocker.was_called_with("cluster-info")

    @pytest.mark.asyncio
    async def test_missing_tool_is_error(self, resolver, command_mocker):
        command_mocker.register("get clusters", CommandResponse(spawn_error=True))

        assert await resolver.resolve() == ObservedClusterStatus.ERROR

    @pytest.mark.asyncio
    async def test_empty_registry_is_not_running(self, resolver, command_mocker):
        command_mocker.register("get clusters", NO_CLUSTERS)

        assert await resolver.resolve() == ObservedClusterStatus.NOT_RUNNING

    @pytest.mark.asyncio
    async def test_absent_name_skips_readiness_check(self, resolver, command_mocker):
        command_mocker.register("get clusters", CommandResponse(stdout="other\nkonflux-old\n"))
        command_mocker.register("cluster-info", PROBE_OK)

        assert await resolver.resolve() == ObservedClusterStatus.NOT_RUNNING
        assert not command_mocker.was_called_with("cluster-info")

    @pytest.mark.asyncio
    async def test_readiness_failure_is_initializing(self, resolver, command_mocker):
        command_mocker.register("get clusters", KONFLUX_LISTED)
        command_mocker.register("cluster-info", PROBE_FAILS)

        assert await resolver.resolve() == ObservedClusterStatus.INITIALIZING

    @pytest.mark.asyncio
    async def test_readiness_timeout_is_initializing(self, resolver, command_mocker):
        command_mocker.register("get clusters", KONFLUX_LISTED)
        command_mocker.register("cluster-info", CommandResponse(delay=5))

        assert await resolver.resolve(timeout=0.1) == ObservedClusterStatus.INITIALIZING

    @pytest.mark.asyncio
    async def test_readiness_success_is_running(self, resolver, command_mocker):
        command_mocker.register("get clusters", CommandResponse(stdout="kind\nkonflux\n"))
        command_mocker.register("cluster-info", PROBE_OK)

        assert await resolver.resolve() == ObservedClusterStatus.RUNNING

        probe = command_mocker.get_calls_matching("cluster-info")[0]
        assert probe.argv == ["kubectl", "cluster-info", "--context", "kind-konflux"]

    @pytest.mark.asyncio
    async def test_registry_query_uses_provider_env(self, resolver, command_mocker):
        command_mocker.register("get clusters", NO_CLUSTERS)

        await resolver.resolve()

        call = command_mocker.get_calls_matching("get clusters")[0]
        assert call.argv == ["kind", "get", "clusters"]
        assert call.env == {"KIND_EXPERIMENTAL_PROVIDER": "podman"}


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_success(self, cluster_manager, command_mocker):
        command_mocker.register("create cluster", CommandResponse(stdout="Creating cluster..."))

        await cluster_manager.create()

        call = command_mocker.get_calls_matching("create cluster")[0]
        assert call.argv == ["kind", "create", "cluster", "--name", "konflux"]
        assert call.env == {"KIND_EXPERIMENTAL_PROVIDER": "podman"}
        assert call.combine_output

    @pytest.mark.asyncio
    async def test_create_uses_kind_config(self, command_mocker, cluster_settings, tmp_path):
        kind_config = tmp_path / "kind-config.yaml"
        kind_config.write_text("kind: Cluster\n")
        cluster_settings.kind_config_path = str(kind_config)
        manager = ClusterLifecycleManager(command_mocker, cluster_settings)
        command_mocker.register("create cluster", CommandResponse())

        await manager.create()

        assert command_mocker.calls[0].argv[-2:] == ["--config", str(kind_config)]

    @pytest.mark.asyncio
    async def test_create_failure_carries_output(self, cluster_manager, command_mocker):
        command_mocker.register(
            "create cluster",
            CommandResponse(
                stdout="Creating cluster \"konflux\" ...\n",
                stderr="ERROR: failed to create cluster: node(s) already exist\n",
                exit_code=1,
            ),
        )

        with pytest.raises(ClusterCreateFailed) as exc_info:
            await cluster_manager.create()

        assert "node(s) already exist" in exc_info.value.output
        assert "Creating cluster" in exc_info.value.output
        assert exc_info.value.to_dict()["kind"] == "cluster_create_failed"

    @pytest.mark.asyncio
    async def test_create_with_missing_tool_fails(self, cluster_manager, command_mocker):
        command_mocker.register("create cluster", CommandResponse(spawn_error=True))

        with pytest.raises(ClusterCreateFailed) as exc_info:
            await cluster_manager.create()

        assert "No such file or directory" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_create_timeout_fails(self, cluster_manager, command_mocker):
        command_mocker.register("create cluster", CommandResponse(delay=10))

        with pytest.raises(ClusterCreateFailed):
            await cluster_manager.create(timeout=0.1)

    @pytest.mark.asyncio
    async def test_zero_timeout_is_passed_through(self, cluster_manager, command_mocker):
        command_mocker.register("create cluster", CommandResponse())

        await cluster_manager.create(timeout=0)

        assert command_mocker.calls[0].timeout == 0


class TestDestroy:
    @pytest.mark.asyncio
    async def test_destroy_success(self, cluster_manager, command_mocker):
        command_mocker.register("delete cluster", CommandResponse(stderr="Deleting cluster \"konflux\" ...\n"))

        await cluster_manager.destroy()

        assert command_mocker.calls[0].argv == ["kind", "delete", "cluster", "--name", "konflux"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "stderr",
        [
            "No kind clusters found.\n",
            "ERROR: cluster \"konflux\" not found\n",
            "ERROR: unknown cluster \"konflux\"\n",
            "ERROR: no nodes found for cluster \"konflux\"\n",
        ],
    )
    async def test_destroy_missing_cluster_is_success(self, cluster_manager, command_mocker, stderr):
        command_mocker.register("delete cluster", CommandResponse(stderr=stderr, exit_code=1))

        await cluster_manager.destroy()

    @pytest.mark.asyncio
    async def test_destroy_unrecognized_failure_raises(self, cluster_manager, command_mocker):
        command_mocker.register(
            "delete cluster",
            CommandResponse(stderr="Error: cannot remove container: device or resource busy\n", exit_code=1),
        )

        with pytest.raises(ClusterDestroyFailed) as exc_info:
            await cluster_manager.destroy()

        assert "device or resource busy" in exc_info.value.output

    @pytest.mark.asyncio
    async def test_not_found_in_stdout_is_not_success(self, cluster_manager, command_mocker):
        command_mocker.register(
            "delete cluster",
            CommandResponse(stdout="No kind clusters found.\n", stderr="permission denied\n", exit_code=1),
        )

        with pytest.raises(ClusterDestroyFailed):
            await cluster_manager.destroy()

    @pytest.mark.asyncio
    async def test_zero_timeout_is_passed_through(self, cluster_manager, command_mocker):
        command_mocker.register("delete cluster", CommandResponse())

        await cluster_manager.destroy(timeout=0)

        assert command_mocker.calls[0].timeout == 0


class TestNotFoundPatterns:
    @pytest.mark.parametrize(
        "text",
        [
            "image not found",
            "Error: network podman not found",
            "kubeconfig file not found",
        ],
    )
    def test_unrelated_not_found_messages_do_not_match(self, text):
        assert not is_not_found(text)


class TestStatus:
    @pytest.mark.asyncio
    async def test_status_delegates_to_resolver(self, cluster_manager, command_mocker):
        command_mocker.register("get clusters", KONFLUX_LISTED)
        command_mocker.register("cluster-info", PROBE_OK)

        assert await cluster_manager.status() == ObservedClusterStatus.RUNNING

    @pytest.mark.asyncio
    async def test_status_is_bounded_when_tool_hangs(self, cluster_manager, command_mocker):
        hang = asyncio.Event()
        command_mocker.register("get clusters", CommandResponse(gate=hang))

        start = time.monotonic()
        status = await cluster_manager.status(timeout=0.2)

        assert status == ObservedClusterStatus.ERROR
        assert time.monotonic() - start < 2

    @pytest.mark.asyncio
    async def test_status_is_bounded_when_readiness_check_hangs(self, cluster_manager, command_mocker):
        hang = asyncio.Event()
        command_mocker.register("get clusters", KONFLUX_LISTED)
        command_mocker.register("cluster-info", CommandResponse(gate=hang))

        start = time.monotonic()
        status = await cluster_manager.status(timeout=0.2)

        assert status == ObservedClusterStatus.INITIALIZING
        assert time.monotonic() - start < 2

    @pytest.mark.asyncio
    async def test_readiness_check_gets_remaining_budget(self, cluster_manager, command_mocker):
        command_mocker.register("get clusters", CommandResponse(stdout="konflux\n", delay=0.1))
        command_mocker.register("cluster-info", PROBE_OK)

        await cluster_manager.status(timeout=1.0)

        listing = command_mocker.get_calls_matching("get clusters")[0]
        readiness = command_mocker.get_calls_matching("cluster-info")[0]
        assert listing.timeout == 1.0
        assert readiness.timeout < 0.95

    @pytest.mark.asyncio
    async def test_hung_kubectl_after_listing_is_initializing(self, tmp_path):
        kind = tmp_path / "kind"
        kind.write_text("#!/bin/sh\necho konflux\n")
        kubectl = tmp_path / "kubectl"
        kubectl.write_text("#!/bin/sh\nexec sleep 30\n")
        for script in (kind, kubectl):
            script.chmod(0o755)
        settings = ClusterSettings(
            name="konflux",
            kind_binary=str(kind),
            kubectl_binary=str(kubectl),
            status_timeout=1.0,
        )
        manager = ClusterLifecycleManager(ProcessRunner(), settings)

        start = time.monotonic()
        status = await manager.status()

        assert status == ObservedClusterStatus.INITIALIZING
        assert time.monotonic() - start < 3

    @pytest.mark.asyncio
    async def test_status_sequence_is_monotonic_during_bring_up(self, cluster_manager, command_mocker):
        command_mocker.register("get clusters", [NO_CLUSTERS, KONFLUX_LISTED])
        command_mocker.register("cluster-info", [PROBE_FAILS, PROBE_FAILS, PROBE_OK])

        observed = [await cluster_manager.status() for _ in range(5)]

        assert observed == [
            ObservedClusterStatus.NOT_RUNNING,
            ObservedClusterStatus.INITIALIZING,
            ObservedClusterStatus.INITIALIZING,
            ObservedClusterStatus.RUNNING,
            ObservedClusterStatus.RUNNING,
        ]

    @pytest.mark.asyncio
    async def test_status_is_not_cached(self, cluster_manager, command_mocker):
        command_mocker.register("get clusters", [KONFLUX_LISTED, CommandResponse(exit_code=1), NO_CLUSTERS])
        command_mocker.register("cluster-info", PROBE_OK)

        assert await cluster_manager.status() == ObservedClusterStatus.RUNNING
        assert await cluster_manager.status() == ObservedClusterStatus.ERROR
        assert await cluster_manager.status() == ObservedClusterStatus.NOT_RUNNING


def test_settings_from_config(tmp_path):
    (tmp_path / "kind-config.yaml").write_text("kind: Cluster\n")

    settings = ClusterSettings.from_config(
        dict(
            cluster_name="dev",
            kind_binary="/usr/local/bin/kind",
            kubectl_binary="kubectl",
            kind_provider="podman",
            dev_env_path=str(tmp_path),
            kubeconfig_path="/home/dev/.kube/config",
            status_probe_timeout=3.0,
            cluster_create_timeout=60.0,
            cluster_destroy_timeout=30.0,
        )
    )

    assert settings.name == "dev"
    assert settings.kind_config_path == str(tmp_path / "kind-config.yaml")
    assert settings.tool_env == {"KIND_EXPERIMENTAL_PROVIDER": "podman"}
    assert settings.status_timeout == 3.0
