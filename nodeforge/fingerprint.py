"""Launch template naming.

A launch template name is a stable prefix plus a truncated SHA-256 over an
explicit canonical form of every field that changes what an instance boots
with. Fields that only decorate the instance (tags, labels, the CA bundle,
the node class name) are left out of the canonical form entirely, so
requests that differ only in those share one template.

Mappings are serialized with sorted keys; sequences keep their order, so a
reordered security group list or taint list yields a different name.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from datetime import timedelta
from typing import Any

from .constants import FINGERPRINT_LENGTH, LAUNCH_TEMPLATE_PREFIX
from .types import (
    BlockDeviceMapping,
    BootstrapConfig,
    Family,
    KubeletConfig,
    LaunchOptions,
    MetadataOptions,
    Taint,
)

type Canonical = dict[str, Any]


def _durations(m: Mapping[str, timedelta]) -> dict[str, float]:
    return {k: v.total_seconds() for k, v in m.items()}


def _taint(t: Taint) -> Canonical:
    return {"key": t.key, "value": t.value, "effect": str(t.effect)}


def _block_device(b: BlockDeviceMapping) -> Canonical:
    return {
        "device_name": b.device_name,
        "volume_size_gib": b.volume_size_gib,
        "volume_type": b.volume_type,
        "iops": b.iops,
        "throughput": b.throughput,
        "encrypted": b.encrypted,
        "kms_key_id": b.kms_key_id,
        "delete_on_termination": b.delete_on_termination,
        "snapshot_id": b.snapshot_id,
        "root": b.root,
    }


def _metadata(m: MetadataOptions) -> Canonical:
    return {
        "http_endpoint": m.http_endpoint,
        "http_protocol_ipv6": m.http_protocol_ipv6,
        "http_put_response_hop_limit": m.http_put_response_hop_limit,
        "http_tokens": m.http_tokens,
    }


def canonical_options(options: LaunchOptions) -> Canonical:
    """Canonical form of the name-relevant launch options.

    Excludes ``tags``, ``labels``, ``ca_bundle`` and ``node_class_name``.
    """
    return {
        "cluster_name": options.cluster_name,
        "cluster_endpoint": options.cluster_endpoint,
        "cluster_cidr": options.cluster_cidr,
        "cluster_dns_ip": options.cluster_dns_ip,
        "instance_store_policy": str(options.instance_store_policy),
        "security_groups": list(options.security_groups),
        "associate_public_ip": options.associate_public_ip,
        "instance_profile": options.instance_profile,
        "image_id": options.image_id,
        "block_device_mappings": [_block_device(b) for b in options.block_device_mappings],
        "capacity_type": str(options.capacity_type),
        "detailed_monitoring": options.detailed_monitoring,
        "efa_count": options.efa_count,
        "metadata_options": _metadata(options.metadata_options),
    }


def canonical_kubelet(kubelet: KubeletConfig) -> Canonical:
    return {
        "max_pods": kubelet.max_pods,
        "pods_per_core": kubelet.pods_per_core,
        "system_reserved": dict(kubelet.system_reserved),
        "kube_reserved": dict(kubelet.kube_reserved),
        "eviction_hard": dict(kubelet.eviction_hard),
        "eviction_soft": dict(kubelet.eviction_soft),
        "eviction_soft_grace_period": _durations(kubelet.eviction_soft_grace_period),
        "eviction_max_pod_grace_period": kubelet.eviction_max_pod_grace_period,
        "image_gc_high_threshold_percent": kubelet.image_gc_high_threshold_percent,
        "image_gc_low_threshold_percent": kubelet.image_gc_low_threshold_percent,
        "cpu_cfs_quota": kubelet.cpu_cfs_quota,
        "cluster_dns": list(kubelet.cluster_dns),
    }


def canonical_bootstrap(config: BootstrapConfig) -> Canonical:
    """Canonical form of the bootstrap configuration.

    Custom data is part of the form only for the Custom family, where it
    is the entire payload.
    """
    canonical: Canonical = {
        "family": str(config.family),
        "kubelet": canonical_kubelet(config.kubelet),
        "taints": [_taint(t) for t in config.taints],
        "startup_taints": [_taint(t) for t in config.startup_taints],
    }
    if config.family is Family.CUSTOM:
        canonical["custom_data"] = config.custom_data
    return canonical


def fingerprint(options: LaunchOptions, config: BootstrapConfig) -> str:
    """Return the full hex digest of the canonical form."""
    payload = json.dumps(
        {"options": canonical_options(options), "bootstrap": canonical_bootstrap(config)},
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode()).hexdigest()


def launch_template_name(options: LaunchOptions, config: BootstrapConfig) -> str:
    """Derive the launch template name for a request.

    Example:
        >>> name = launch_template_name(options, config)
        >>> name.startswith("nodeforge.io/")
        True
    """
    return f"{LAUNCH_TEMPLATE_PREFIX}{fingerprint(options, config)[:FINGERPRINT_LENGTH]}"
