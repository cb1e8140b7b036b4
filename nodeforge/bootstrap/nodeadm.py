"""Amazon Linux 2023 bootstrap: declarative NodeConfig documents.

Each NodeConfig is a YAML document carried as its own archive part. The
cluster CIDR is mandatory: without it the node cannot configure its
service network, so rendering fails instead of omitting it.
"""

from __future__ import annotations

from typing import Any

import yaml

from nodeforge.constants import NODE_CONFIG_API_VERSION, NODE_CONFIG_CONTENT_TYPE
from nodeforge.exceptions import ConfigurationError
from nodeforge.types import BootstrapConfig, InstanceStorePolicy, KubeletConfig, LaunchOptions

from . import flags, mime


def kubelet_config(options: LaunchOptions, kubelet: KubeletConfig, config: BootstrapConfig) -> dict[str, Any]:
    """KubeletConfiguration fields, camelCased, only for settings that are set."""
    fields: dict[str, Any] = {
        "clusterDNS": flags.cluster_dns(options, kubelet) or None,
        "maxPods": kubelet.max_pods,
        "podsPerCore": kubelet.pods_per_core,
        "systemReserved": dict(sorted(kubelet.system_reserved.items())) or None,
        "kubeReserved": dict(sorted(kubelet.kube_reserved.items())) or None,
        "evictionHard": dict(sorted(kubelet.eviction_hard.items())) or None,
        "evictionSoft": dict(sorted(kubelet.eviction_soft.items())) or None,
        "evictionSoftGracePeriod": flags.durations(kubelet.eviction_soft_grace_period) or None,
        "evictionMaxPodGracePeriod": kubelet.eviction_max_pod_grace_period,
        "imageGCHighThresholdPercent": kubelet.image_gc_high_threshold_percent,
        "imageGCLowThresholdPercent": kubelet.image_gc_low_threshold_percent,
        "cpuCFSQuota": kubelet.cpu_cfs_quota,
        "registerWithTaints": [
            {"key": t.key, **({"value": t.value} if t.value else {}), "effect": str(t.effect)}
            for t in config.registration_taints
        ] or None,
    }
    return {k: v for k, v in fields.items() if v is not None}


def node_config(options: LaunchOptions, config: BootstrapConfig) -> dict[str, Any]:
    family = str(config.family)
    if options.cluster_cidr is None:
        raise ConfigurationError("cluster_cidr", "is not resolved", family)
    if not options.ca_bundle:
        raise ConfigurationError("ca_bundle", "is required", family)

    kubelet: dict[str, Any] = {}
    if cfg := kubelet_config(options, config.kubelet, config):
        kubelet["config"] = cfg
    if labels := flags.node_labels(options.labels):
        kubelet["flags"] = [f"--node-labels={flags.pairs(labels)}"]

    spec: dict[str, Any] = {
        "cluster": {
            "name": options.cluster_name,
            "apiServerEndpoint": options.cluster_endpoint,
            "certificateAuthority": options.ca_bundle,
            "cidr": options.cluster_cidr,
        },
    }
    if kubelet:
        spec["kubelet"] = kubelet
    if options.instance_store_policy is InstanceStorePolicy.RAID0:
        spec["instance"] = {"localStorage": {"strategy": "RAID0"}}

    return {"apiVersion": NODE_CONFIG_API_VERSION, "kind": "NodeConfig", "spec": spec}


def render(options: LaunchOptions, config: BootstrapConfig) -> str:
    """Render AL2023 user data as an archive of the user's parts plus a NodeConfig."""
    document = yaml.safe_dump(node_config(options, config), sort_keys=False, default_flow_style=False)
    part = mime.Part(NODE_CONFIG_CONTENT_TYPE, document)
    return mime.merge(config.custom_data, [part], family=str(config.family))
