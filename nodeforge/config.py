"""TOML-based settings.

Loads ~/.nodeforge/defaults.toml (global) and nodeforge.toml (project),
merges them, and builds the provider settings and logging configuration.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, fields
from datetime import timedelta
from pathlib import Path
from typing import Any

from .constants import DEFAULT_CACHE_TTL_MINUTES
from .exceptions import ConfigurationError
from .observability.logging import LogConfig

type RawConfig = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".nodeforge" / "defaults.toml"
PROJECT_CONFIG_NAME = "nodeforge.toml"


@dataclass(frozen=True, slots=True)
class Settings:
    """Process-wide provider settings.

    Attributes:
        region: AWS region for EC2 and SSM clients.
        cluster_name: EKS cluster name.
        cluster_endpoint: API server endpoint for options that leave it unset.
        cluster_ca_bundle: Base64 cluster CA for options that leave it unset.
        cluster_cidr: Service CIDR seed for the shared cell, if known up front.
        kubernetes_version: Cluster version used for default image lookups.
        cache_ttl_minutes: Launch template cache TTL.
        vm_memory_overhead_percent: Share of memory reserved for virtualization.
        reserved_enis: ENIs withheld from pod networking.
        eni_limited_pod_density: Derive max pods from ENI capacity.
    """

    region: str = "us-east-1"
    cluster_name: str = ""
    cluster_endpoint: str = ""
    cluster_ca_bundle: str | None = None
    cluster_cidr: str | None = None
    kubernetes_version: str = "1.29"
    cache_ttl_minutes: int = DEFAULT_CACHE_TTL_MINUTES
    vm_memory_overhead_percent: float = 0.075
    reserved_enis: int = 0
    eni_limited_pod_density: bool = True

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(minutes=self.cache_ttl_minutes)


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        try:
            return tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(str(path), f"is not valid TOML: {e}") from e


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("settings", {})
    merged.setdefault("logging", {})
    return merged


def _build[T](cls: type[T], table: str, raw: RawConfig) -> T:
    known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigurationError(f"[{table}]", f"has unknown keys: {', '.join(unknown)}")
    return cls(**raw)


def load_settings(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> tuple[Settings, LogConfig]:
    """Load settings and logging configuration from TOML files.

    Raises:
        ConfigurationError: If a file is not valid TOML or a table has unknown keys.
    """
    config = load_config(project_dir=project_dir, global_path=global_path)
    return (
        _build(Settings, "settings", config["settings"]),
        _build(LogConfig, "logging", config["logging"]),
    )
