"""Shared rendering helpers for bootstrap payloads.

Every family renders the same kubelet settings in its own syntax; the
helpers here produce the common pieces (pair lists, thresholds, labels,
taints) and each family composes them.
"""

from __future__ import annotations

import ipaddress
from collections.abc import Mapping, Sequence
from datetime import timedelta

from nodeforge.constants import RESTRICTED_LABEL_DOMAIN
from nodeforge.quantity import format_duration
from nodeforge.types import KubeletConfig, LaunchOptions, Taint

type Flag = str | None
"""A rendered flag, or None when its setting is unset."""


def join_flags(*flags: Flag, sep: str = " ") -> str:
    """Join rendered flags, dropping unset ones."""
    return sep.join(f for f in flags if f)


# =============================================================================
# Maps and Lists
# =============================================================================


def pairs(m: Mapping[str, str], sep: str = "=") -> str:
    """Render a map as comma-joined ``key<sep>value`` pairs, sorted by key.

    Example:
        >>> pairs({"memory": "1Gi", "cpu": "500m"})
        'cpu=500m,memory=1Gi'
    """
    return ",".join(f"{k}{sep}{m[k]}" for k in sorted(m))


def thresholds(m: Mapping[str, str]) -> str:
    """Render eviction thresholds as ``signal<value`` pairs."""
    return pairs(m, sep="<")


def grace_periods(m: Mapping[str, timedelta]) -> str:
    """Render grace periods as ``signal=duration`` pairs."""
    return pairs({k: format_duration(v) for k, v in m.items()})


def durations(m: Mapping[str, timedelta]) -> dict[str, str]:
    return {k: format_duration(m[k]) for k in sorted(m)}


def taints(ts: Sequence[Taint]) -> str:
    """Render taints in registration order."""
    return ",".join(t.render() for t in ts)


# =============================================================================
# Labels
# =============================================================================


def is_restricted_label(key: str) -> bool:
    """Whether a label belongs to the node-restriction domain or a subdomain of it.

    The kubelet is not permitted to set these labels on its own node.
    """
    if "/" not in key:
        return False
    domain = key.split("/", 1)[0]
    return domain == RESTRICTED_LABEL_DOMAIN or domain.endswith("." + RESTRICTED_LABEL_DOMAIN)


def node_labels(labels: Mapping[str, str]) -> dict[str, str]:
    """Labels the kubelet may register, sorted by key."""
    return {k: labels[k] for k in sorted(labels) if not is_restricted_label(k)}


# =============================================================================
# DNS
# =============================================================================


def dns_ip(options: LaunchOptions, kubelet: KubeletConfig) -> str | None:
    """Effective cluster DNS IP: the kubelet override wins over discovery."""
    if kubelet.cluster_dns:
        return kubelet.cluster_dns[0]
    return options.cluster_dns_ip


def cluster_dns(options: LaunchOptions, kubelet: KubeletConfig) -> list[str]:
    if kubelet.cluster_dns:
        return list(kubelet.cluster_dns)
    return [options.cluster_dns_ip] if options.cluster_dns_ip else []


def is_ipv6(address: str | None) -> bool:
    if not address:
        return False
    try:
        return ipaddress.ip_address(address).version == 6
    except ValueError:
        return False


# =============================================================================
# Kubelet Arguments
# =============================================================================


def kubelet_args(
    kubelet: KubeletConfig,
    labels: Mapping[str, str],
    registration_taints: Sequence[Taint],
) -> list[str]:
    """Kubelet command-line arguments for script-based families.

    Only settings that are set produce an argument.
    """
    allowed = node_labels(labels)
    args: list[Flag] = [
        f'--node-labels="{pairs(allowed)}"' if allowed else None,
        f'--register-with-taints="{taints(registration_taints)}"' if registration_taints else None,
        f"--max-pods={kubelet.max_pods}" if kubelet.max_pods is not None else None,
        f"--pods-per-core={kubelet.pods_per_core}" if kubelet.pods_per_core is not None else None,
        f"--system-reserved={pairs(kubelet.system_reserved)}" if kubelet.system_reserved else None,
        f"--kube-reserved={pairs(kubelet.kube_reserved)}" if kubelet.kube_reserved else None,
        f"--eviction-hard={thresholds(kubelet.eviction_hard)}" if kubelet.eviction_hard else None,
        f"--eviction-soft={thresholds(kubelet.eviction_soft)}" if kubelet.eviction_soft else None,
        (
            f"--eviction-soft-grace-period={grace_periods(kubelet.eviction_soft_grace_period)}"
            if kubelet.eviction_soft_grace_period
            else None
        ),
        (
            f"--eviction-max-pod-grace-period={kubelet.eviction_max_pod_grace_period}"
            if kubelet.eviction_max_pod_grace_period is not None
            else None
        ),
        (
            f"--image-gc-high-threshold={kubelet.image_gc_high_threshold_percent}"
            if kubelet.image_gc_high_threshold_percent is not None
            else None
        ),
        (
            f"--image-gc-low-threshold={kubelet.image_gc_low_threshold_percent}"
            if kubelet.image_gc_low_threshold_percent is not None
            else None
        ),
        f"--cpu-cfs-quota={str(kubelet.cpu_cfs_quota).lower()}" if kubelet.cpu_cfs_quota is not None else None,
    ]
    return [a for a in args if a]


def quote(value: str) -> str:
    """Single-quote a value for shell or PowerShell."""
    return "'" + value.replace("'", "'\"'\"'") + "'"
