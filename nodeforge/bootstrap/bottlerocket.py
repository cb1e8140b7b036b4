"""Bottlerocket bootstrap: a TOML settings document.

User data is merged at the settings level rather than as an archive: the
user's document is parsed, generated settings are deep-merged over it
(generated values win), and the result is written back as TOML.
"""

from __future__ import annotations

import tomllib
from typing import Any

import tomli_w

from nodeforge.exceptions import UserDataError
from nodeforge.types import BootstrapConfig, LaunchOptions, Taint

from . import flags

type Settings = dict[str, Any]


def _deep_merge(base: Settings, override: Settings) -> Settings:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _node_taints(taints: tuple[Taint, ...]) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = {}
    for t in taints:
        grouped.setdefault(t.key, []).append(f"{t.value}:{t.effect}")
    return grouped


def kubernetes_settings(options: LaunchOptions, config: BootstrapConfig) -> Settings:
    """The generated ``settings.kubernetes`` table."""
    kubelet = config.kubelet
    dns = flags.cluster_dns(options, kubelet)

    fields: Settings = {
        "api-server": options.cluster_endpoint,
        "cluster-certificate": options.ca_bundle,
        "cluster-name": options.cluster_name,
        "cluster-dns-ip": (dns[0] if len(dns) == 1 else dns) or None,
        "max-pods": kubelet.max_pods,
        "system-reserved": dict(kubelet.system_reserved) or None,
        "kube-reserved": dict(kubelet.kube_reserved) or None,
        "eviction-hard": dict(kubelet.eviction_hard) or None,
        "eviction-soft": dict(kubelet.eviction_soft) or None,
        "eviction-soft-grace-period": flags.durations(kubelet.eviction_soft_grace_period) or None,
        "eviction-max-pod-grace-period": kubelet.eviction_max_pod_grace_period,
        "image-gc-high-threshold-percent": (
            str(kubelet.image_gc_high_threshold_percent)
            if kubelet.image_gc_high_threshold_percent is not None
            else None
        ),
        "image-gc-low-threshold-percent": (
            str(kubelet.image_gc_low_threshold_percent)
            if kubelet.image_gc_low_threshold_percent is not None
            else None
        ),
        "cpu-cfs-quota": kubelet.cpu_cfs_quota,
        "node-labels": flags.node_labels(options.labels) or None,
        "node-taints": _node_taints(config.registration_taints) or None,
    }
    return {k: v for k, v in fields.items() if v is not None}


def parse(user_data: str | None, family: str = "Bottlerocket") -> Settings:
    """Parse user TOML.

    Raises:
        UserDataError: If the user data is not valid TOML.
    """
    if not user_data or not user_data.strip():
        return {}
    try:
        return tomllib.loads(user_data)
    except tomllib.TOMLDecodeError as e:
        raise UserDataError(family, f"invalid TOML: {e}") from e


def render(options: LaunchOptions, config: BootstrapConfig) -> str:
    """Render Bottlerocket user data, merging generated settings into the user's."""
    user = parse(config.custom_data, str(config.family))
    generated: Settings = {"settings": {"kubernetes": kubernetes_settings(options, config)}}
    return tomli_w.dumps(_deep_merge(user, generated))
