"""
Configuration for master clients.

Configuration is read from a YAML file (``MASTER_CLIENT_CONFIG`` or
``config/<environment>.yaml``) and then overridden by environment variables.
``${VAR:-default}`` references inside the YAML are expanded on load.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, NamedTuple

import yaml

from .exceptions import ConfigurationError
from .retry import RetryPolicyFactory, exponential_backoff_retry, time_bounded_retry

DEFAULT_MASTER_RPC_PORT = 19998
DEFAULT_ENVIRONMENT = "development"
ENV_PREFIX = "MASTER_CLIENT"

SELECTION_POLICIES = ("specified", "primary", "rotating")


class MasterAddress(NamedTuple):
    """Network address of one master replica."""

    host: str
    port: int = DEFAULT_MASTER_RPC_PORT

    @classmethod
    def parse(cls, value: str) -> MasterAddress:
        """Parse ``host:port`` (the port is optional)."""
        text = value.strip()
        if not text:
            raise ConfigurationError("Empty master address")
        host, sep, port = text.rpartition(":")
        if not sep:
            return cls(text)
        if not host:
            raise ConfigurationError(f"Invalid master address: {value!r}")
        try:
            return cls(host, int(port))
        except ValueError as exc:
            raise ConfigurationError(f"Invalid port in master address: {value!r}") from exc

    @property
    def target(self) -> str:
        return f"{self.host}:{self.port}"

    def __str__(self) -> str:
        return self.target


@dataclass(frozen=True)
class RetryConfig:
    """Back-off settings applied to every master RPC."""

    max_duration: float = 120.0
    base_sleep: float = 0.05
    max_sleep: float = 3.0
    max_attempts: int | None = None
    jitter: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RetryConfig:
        defaults = cls()
        max_attempts = data.get("max_attempts", defaults.max_attempts)
        return cls(
            max_duration=float(data.get("max_duration", defaults.max_duration)),
            base_sleep=float(data.get("base_sleep", defaults.base_sleep)),
            max_sleep=float(data.get("max_sleep", defaults.max_sleep)),
            max_attempts=int(max_attempts) if max_attempts is not None else None,
            jitter=_as_bool(data.get("jitter", defaults.jitter)),
        )

    def policy_factory(self) -> RetryPolicyFactory:
        """Build the retry policy factory these settings describe."""
        if self.max_duration <= 0 and self.max_attempts is not None:
            return exponential_backoff_retry(self.base_sleep, self.max_sleep, self.max_attempts)
        return time_bounded_retry(
            self.max_duration,
            self.base_sleep,
            self.max_sleep,
            max_attempts=self.max_attempts,
            jitter=self.jitter,
        )


@dataclass(frozen=True)
class ClientConfig:
    """Settings shared by every master client built from one context.

    Instances are immutable; ``apply_environment`` returns an overridden copy.
    """

    master_addresses: tuple[str, ...] = (f"localhost:{DEFAULT_MASTER_RPC_PORT}",)
    selection_policy: str = "primary"
    rpc_timeout: float = 30.0
    connect_timeout: float = 5.0
    version_check: bool = True
    client_name: str = "master-client"
    tls: Mapping[str, Any] = field(default_factory=dict)
    retry: RetryConfig = field(default_factory=RetryConfig)

    def __post_init__(self) -> None:
        object.__setattr__(self, "master_addresses", tuple(self.master_addresses))
        object.__setattr__(self, "tls", MappingProxyType(dict(self.tls)))
        if self.selection_policy not in SELECTION_POLICIES:
            raise ConfigurationError(
                f"Unknown selection policy {self.selection_policy!r}; "
                f"expected one of {', '.join(SELECTION_POLICIES)}"
            )
        if not self.master_addresses:
            raise ConfigurationError("At least one master address is required")

    @property
    def addresses(self) -> list[MasterAddress]:
        return [MasterAddress.parse(address) for address in self.master_addresses]

    @property
    def tls_enabled(self) -> bool:
        return bool(self.tls.get("enabled", False))

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ClientConfig:
        """Create configuration from dictionary."""
        data = data or {}
        defaults = cls()
        masters = data.get("master_addresses", defaults.master_addresses)
        if isinstance(masters, str):
            masters = [item for item in masters.split(",") if item.strip()]
        return cls(
            master_addresses=tuple(masters),
            selection_policy=data.get("selection_policy", defaults.selection_policy),
            rpc_timeout=float(data.get("rpc_timeout", defaults.rpc_timeout)),
            connect_timeout=float(data.get("connect_timeout", defaults.connect_timeout)),
            version_check=_as_bool(data.get("version_check", defaults.version_check)),
            client_name=data.get("client_name", defaults.client_name),
            tls=dict(data.get("tls") or {}),
            retry=RetryConfig.from_dict(data.get("retry") or {}),
        )

    @classmethod
    def from_yaml_file(cls, file_path: str | Path) -> ClientConfig:
        """Load configuration from YAML file."""
        path = Path(file_path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")

        try:
            with path.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Error parsing YAML configuration file {path}: {e}") from e

        section = data.get("master_client", data)
        return cls.from_dict(_expand_env_vars(section))

    def apply_environment(self, prefix: str = ENV_PREFIX) -> ClientConfig:
        """Return a copy with settings overridden from environment variables."""
        changes: dict[str, Any] = {}
        retry_changes: dict[str, Any] = {}
        masters = os.getenv(f"{prefix}_MASTERS")
        if masters:
            changes["master_addresses"] = [item.strip() for item in masters.split(",") if item.strip()]
        if os.getenv(f"{prefix}_SELECTION_POLICY"):
            changes["selection_policy"] = os.environ[f"{prefix}_SELECTION_POLICY"].lower()
        if os.getenv(f"{prefix}_RPC_TIMEOUT"):
            changes["rpc_timeout"] = float(os.environ[f"{prefix}_RPC_TIMEOUT"])
        if os.getenv(f"{prefix}_CLIENT_NAME"):
            changes["client_name"] = os.environ[f"{prefix}_CLIENT_NAME"]
        if os.getenv(f"{prefix}_RETRY_MAX_DURATION"):
            retry_changes["max_duration"] = float(os.environ[f"{prefix}_RETRY_MAX_DURATION"])
        if os.getenv(f"{prefix}_RETRY_MAX_ATTEMPTS"):
            retry_changes["max_attempts"] = int(os.environ[f"{prefix}_RETRY_MAX_ATTEMPTS"])
        if retry_changes:
            changes["retry"] = replace(self.retry, **retry_changes)
        return replace(self, **changes)


def get_environment() -> str:
    """Current environment name from ``MASTER_CLIENT_ENV`` (default development)."""
    return os.environ.get(f"{ENV_PREFIX}_ENV", DEFAULT_ENVIRONMENT).lower()


def get_config_path(environment: str | None = None) -> Path:
    explicit = os.environ.get(f"{ENV_PREFIX}_CONFIG")
    if explicit:
        return Path(explicit)
    return Path.cwd() / "config" / f"{environment or get_environment()}.yaml"


def load_config(environment: str | None = None, use_defaults: bool = True) -> ClientConfig:
    """Load client configuration.

    Priority order:
    1. Environment variables
    2. The YAML file for the environment (if present)
    3. Default configuration (if use_defaults=True)
    """
    path = get_config_path(environment)
    if path.exists():
        config = ClientConfig.from_yaml_file(path)
    elif use_defaults:
        config = ClientConfig()
    else:
        raise ConfigurationError(f"Configuration file not found: {path}")
    return config.apply_environment()


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand ``${VAR_NAME:-default}`` references."""
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    if isinstance(obj, str):
        return _expand_env_var_string(obj)
    return obj


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _expand_env_var_string(value: str) -> str:
    def replace_var(match: re.Match[str]) -> str:
        var_expr = match.group(1)
        if ":-" in var_expr:
            var_name, default_value = var_expr.split(":-", 1)
            return os.environ.get(var_name, default_value)
        return os.environ.get(var_expr, "")

    return _ENV_VAR_PATTERN.sub(replace_var, value)


__all__ = [
    "ClientConfig",
    "DEFAULT_MASTER_RPC_PORT",
    "MasterAddress",
    "RetryConfig",
    "get_environment",
    "load_config",
]
