"""
Config Module - Black Box Interface

Purpose: Application configuration management
Interface: get_config(), ConfigModule.get(), ConfigModule.get_all()
Hidden: Config sources, validation logic, environment parsing

Values come from environment variables, optionally overlaid by a YAML file
named in MPC_DEV_CONFIG_FILE.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from mpcdev.errors import ConfigError

logger = logging.getLogger(__name__)


# Configuration Contract: Required and Optional Keys

REQUIRED_CONFIG_KEYS = {
    "cluster_name": "Name of the Kind cluster managed by this daemon",
    "kind_binary": "Path or name of the kind executable",
    "kubectl_binary": "Path or name of the kubectl executable",
    "dev_env_path": "Path to the mpc_dev_env checkout",
    "kubeconfig_path": "Kubeconfig written by kind for the cluster",
    "host": "API server bind address",
    "port": "API server port",
    "log_level": "Logging level (DEBUG, INFO, WARNING, ERROR)",
    "status_probe_timeout": "Upper bound in seconds for a cluster status check",
    "cluster_create_timeout": "Timeout in seconds for cluster creation",
    "cluster_destroy_timeout": "Timeout in seconds for cluster deletion",
    "operation_timeout": "Timeout in seconds for a long-running operation",
}

OPTIONAL_CONFIG_KEYS = {
    "kind_provider": {
        "description": "KIND_EXPERIMENTAL_PROVIDER passed to kind",
        "default": "podman",
    },
    "mpc_repo_path": {
        "description": "Path to the multi-platform-controller repository",
        "default": None,  # Auto-detected as a sibling of dev_env_path
    },
    "rebuild_command": {
        "description": "Command that rebuilds and redeploys MPC",
        "default": None,
    },
    "smoke_test_command": {
        "description": "Command that runs the smoke tests",
        "default": None,
    },
    "metrics_deploy_command": {
        "description": "Command that deploys the metrics dashboard",
        "default": None,
    },
    "aws_feature_command": {
        "description": "Command that configures AWS provider secrets",
        "default": None,
    },
    "ibm_feature_command": {
        "description": "Command that configures IBM provider secrets",
        "default": None,
    },
    "controller_image": {
        "description": "Controller image reference recorded after a rebuild",
        "default": "localhost/multi-platform-controller:latest",
    },
    "otp_image": {
        "description": "OTP server image reference recorded after a rebuild",
        "default": "localhost/multi-platform-otp:latest",
    },
}

INT_KEYS = {"port"}
FLOAT_KEYS = {
    "status_probe_timeout",
    "cluster_create_timeout",
    "cluster_destroy_timeout",
    "operation_timeout",
}


class ConfigModule:
    """Configuration management module."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        """
        Initialize from environment variables.

        Args:
            environ: Environment mapping (defaults to os.environ)
        """
        self._environ = os.environ if environ is None else environ
        self._config = self._load_from_env()

        config_file = self._environ.get("MPC_DEV_CONFIG_FILE")
        if config_file:
            self._config.update(self._load_file(config_file))

        self._coerce_types()
        self._validate_required_keys()

    def _validate_required_keys(self) -> None:
        """
        Validate that all required configuration keys are present.

        Raises:
            ConfigError: If required keys are missing
        """
        missing_keys = [
            key for key in REQUIRED_CONFIG_KEYS
            if key not in self._config or self._config[key] in (None, "")
        ]

        if missing_keys:
            raise ConfigError(
                f"Missing required configuration keys: {', '.join(missing_keys)}. "
                f"Check environment variables and the configuration file."
            )

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment."""
        env = self._environ
        dev_env_path = env.get("MPC_DEV_ENV_PATH") or os.getcwd()

        mpc_repo_path = env.get("MPC_REPO_PATH")
        if not mpc_repo_path:
            # Auto-detect: multi-platform-controller checked out next to mpc_dev_env
            candidate = Path(dev_env_path).parent / "multi-platform-controller"
            if candidate.is_dir():
                mpc_repo_path = str(candidate)

        return {
            # Cluster settings
            "cluster_name": env.get("MPC_CLUSTER_NAME", "konflux"),
            "kind_binary": env.get("KIND_BINARY", "kind"),
            "kubectl_binary": env.get("KUBECTL_BINARY", "kubectl"),
            "kind_provider": env.get("KIND_EXPERIMENTAL_PROVIDER", "podman"),
            "kubeconfig_path": env.get(
                "KUBECONFIG", str(Path.home() / ".kube" / "config")
            ),
            # Paths
            "dev_env_path": dev_env_path,
            "mpc_repo_path": mpc_repo_path,
            # API settings
            "host": env.get("API_HOST", "localhost"),
            "port": env.get("API_PORT", "8765"),
            "log_level": env.get("LOG_LEVEL", "INFO"),
            # Timeouts (seconds)
            "status_probe_timeout": env.get("STATUS_PROBE_TIMEOUT", "10"),
            "cluster_create_timeout": env.get("CLUSTER_CREATE_TIMEOUT", "600"),
            "cluster_destroy_timeout": env.get("CLUSTER_DESTROY_TIMEOUT", "300"),
            "operation_timeout": env.get("OPERATION_TIMEOUT", "1800"),
            # Operation pipelines
            "rebuild_command": env.get("MPC_REBUILD_COMMAND"),
            "smoke_test_command": env.get("MPC_SMOKE_TEST_COMMAND"),
            "metrics_deploy_command": env.get("MPC_METRICS_DEPLOY_COMMAND"),
            "aws_feature_command": env.get("MPC_AWS_FEATURE_COMMAND"),
            "ibm_feature_command": env.get("MPC_IBM_FEATURE_COMMAND"),
            "controller_image": env.get(
                "MPC_CONTROLLER_IMAGE", OPTIONAL_CONFIG_KEYS["controller_image"]["default"]
            ),
            "otp_image": env.get("MPC_OTP_IMAGE", OPTIONAL_CONFIG_KEYS["otp_image"]["default"]),
        }

    def _load_file(self, path: str) -> Dict[str, Any]:
        """Load overrides from a YAML file."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            raise ConfigError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in configuration file {path}: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file {path} must contain a mapping")

        known = set(REQUIRED_CONFIG_KEYS) | set(OPTIONAL_CONFIG_KEYS)
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys in {path}: {', '.join(unknown)}")

        logger.info(f"Loaded configuration overrides from {path}")
        return data

    def _coerce_types(self) -> None:
        try:
            for key in INT_KEYS:
                self._config[key] = int(self._config[key])
            for key in FLOAT_KEYS:
                self._config[key] = float(self._config[key])
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid numeric configuration value: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        value = self._config.get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        """Set configuration value."""
        self._config[key] = value

    def get_all(self) -> Dict[str, Any]:
        """Get all configuration values."""
        return self._config.copy()

    @staticmethod
    def get_config_schema() -> Dict[str, Any]:
        """
        Get the configuration schema (contract) for this module.

        Returns:
            Dictionary with 'required' and 'optional' key specifications
        """
        return {
            "required": REQUIRED_CONFIG_KEYS.copy(),
            "optional": OPTIONAL_CONFIG_KEYS.copy(),
        }


# Singleton instance
_instance = None


def get_config() -> ConfigModule:
    """Get the configuration module singleton."""
    global _instance
    if _instance is None:
        _instance = ConfigModule()
    return _instance


__all__ = ["get_config", "ConfigModule"]
