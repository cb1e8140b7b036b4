"""Launch options and bootstrap configuration.

Immutable value types carrying every input that can influence a launch
template: cluster identity and network, image, security groups, storage,
capacity type and the per-family kubelet/bootstrap settings.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from enum import StrEnum

from .storage import BlockDeviceMapping

# =============================================================================
# Enums
# =============================================================================


class Family(StrEnum):
    """Operating system family driving bootstrap generation."""

    AL2 = "AL2"
    AL2023 = "AL2023"
    BOTTLEROCKET = "Bottlerocket"
    WINDOWS2019 = "Windows2019"
    WINDOWS2022 = "Windows2022"
    CUSTOM = "Custom"

    @property
    def is_windows(self) -> bool:
        return self in (Family.WINDOWS2019, Family.WINDOWS2022)


class InstanceStorePolicy(StrEnum):
    NONE = "None"
    RAID0 = "RAID0"


class CapacityType(StrEnum):
    ON_DEMAND = "on-demand"
    SPOT = "spot"


class TaintEffect(StrEnum):
    NO_SCHEDULE = "NoSchedule"
    PREFER_NO_SCHEDULE = "PreferNoSchedule"
    NO_EXECUTE = "NoExecute"


# =============================================================================
# Kubelet / Bootstrap
# =============================================================================


@dataclass(frozen=True, slots=True)
class Taint:
    """Node taint registered by the kubelet at startup."""

    key: str
    effect: TaintEffect
    value: str = ""

    def render(self) -> str:
        """Render as ``key=value:Effect`` (``key:Effect`` when value is empty)."""
        if self.value:
            return f"{self.key}={self.value}:{self.effect}"
        return f"{self.key}:{self.effect}"


@dataclass(frozen=True, slots=True)
class KubeletConfig:
    """Kubelet tuning. Unset fields are never rendered.

    Attributes:
        max_pods: Explicit pod capacity; overrides ENI-limited density.
        pods_per_core: Pod capacity per vCPU, capped by max_pods.
        system_reserved: Resources reserved for OS daemons ("cpu" -> "500m").
        kube_reserved: Resources reserved for Kubernetes daemons.
        eviction_hard: Hard eviction thresholds ("memory.available" -> "5%").
        eviction_soft: Soft eviction thresholds.
        eviction_soft_grace_period: Grace period per soft threshold signal.
        eviction_max_pod_grace_period: Max termination grace period in seconds.
        image_gc_high_threshold_percent: Disk usage that always triggers image GC.
        image_gc_low_threshold_percent: Disk usage image GC never goes below.
        cpu_cfs_quota: Enforce CPU CFS quota for containers with limits.
        cluster_dns: DNS service IPs; overrides the discovered cluster DNS IP.
    """

    max_pods: int | None = None
    pods_per_core: int | None = None
    system_reserved: Mapping[str, str] = field(default_factory=dict)
    kube_reserved: Mapping[str, str] = field(default_factory=dict)
    eviction_hard: Mapping[str, str] = field(default_factory=dict)
    eviction_soft: Mapping[str, str] = field(default_factory=dict)
    eviction_soft_grace_period: Mapping[str, timedelta] = field(default_factory=dict)
    eviction_max_pod_grace_period: int | None = None
    image_gc_high_threshold_percent: int | None = None
    image_gc_low_threshold_percent: int | None = None
    cpu_cfs_quota: bool | None = None
    cluster_dns: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class BootstrapConfig:
    """Family-specific bootstrap inputs.

    ``custom_data`` only reaches the launch template name for the Custom
    family; every other family merges it into the generated payload.
    """

    family: Family
    kubelet: KubeletConfig = field(default_factory=KubeletConfig)
    taints: tuple[Taint, ...] = ()
    startup_taints: tuple[Taint, ...] = ()
    custom_data: str | None = None

    @property
    def registration_taints(self) -> tuple[Taint, ...]:
        return self.taints + self.startup_taints


# =============================================================================
# Launch Options
# =============================================================================


@dataclass(frozen=True, slots=True)
class MetadataOptions:
    """Instance metadata service settings."""

    http_endpoint: str = "enabled"
    http_protocol_ipv6: str = "disabled"
    http_put_response_hop_limit: int = 2
    http_tokens: str = "required"

    def to_api(self) -> dict[str, str | int]:
        return {
            "HttpEndpoint": self.http_endpoint,
            "HttpProtocolIpv6": self.http_protocol_ipv6,
            "HttpPutResponseHopLimit": self.http_put_response_hop_limit,
            "HttpTokens": self.http_tokens,
        }


@dataclass(frozen=True, slots=True)
class LaunchOptions:
    """Every resolved input of a launch template.

    Tags, labels, the CA bundle and the node class name are carried for
    rendering and tagging but do not take part in the template name.

    Attributes:
        cluster_name: EKS cluster name.
        cluster_endpoint: API server endpoint URL.
        cluster_cidr: Service CIDR; required by AL2023.
        ca_bundle: Base64 cluster certificate authority.
        cluster_dns_ip: Discovered DNS service IP.
        instance_store_policy: How instance store volumes are prepared.
        security_groups: Security group ids, order preserved.
        tags: User tags applied to every tagged resource.
        associate_public_ip: Explicit public IP association, None to inherit subnet.
        instance_profile: Resolved instance profile name.
        node_class_name: Owning node class, used for tagging.
        labels: Node labels passed to the kubelet.
        image_id: Selected AMI.
        block_device_mappings: Computed block devices.
        capacity_type: On-demand or spot.
        detailed_monitoring: CloudWatch detailed monitoring.
        efa_count: Number of EFA interfaces to attach.
        metadata_options: Instance metadata service settings.
    """

    cluster_name: str
    cluster_endpoint: str
    cluster_cidr: str | None = None
    ca_bundle: str | None = None
    cluster_dns_ip: str | None = None
    instance_store_policy: InstanceStorePolicy = InstanceStorePolicy.NONE
    security_groups: tuple[str, ...] = ()
    tags: Mapping[str, str] = field(default_factory=dict)
    associate_public_ip: bool | None = None
    instance_profile: str | None = None
    node_class_name: str = ""
    labels: Mapping[str, str] = field(default_factory=dict)
    image_id: str | None = None
    block_device_mappings: tuple[BlockDeviceMapping, ...] = ()
    capacity_type: CapacityType = CapacityType.ON_DEMAND
    detailed_monitoring: bool = False
    efa_count: int = 0
    metadata_options: MetadataOptions = field(default_factory=MetadataOptions)
