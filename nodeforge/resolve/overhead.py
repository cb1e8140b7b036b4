"""Reserved capacity per instance type.

Overhead is what the kubelet holds back from an instance's capacity
before pods can be scheduled on it: kube-reserved, system-reserved and the
memory eviction threshold, plus an optional share of memory lost to the
hypervisor.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Final

from nodeforge.constants import (
    DEFAULT_EVICTION_MEMORY,
    DEFAULT_MAX_PODS,
    KUBE_RESERVED_BASE_MEMORY_MIB,
    POD_MEMORY_OVERHEAD_MIB,
)
from nodeforge.quantity import parse_percentage, to_mib, to_millicores
from nodeforge.types import InstanceType, KubeletConfig

# (start core, end core, share of each millicore in the range in basis points)
_CPU_TIERS: Final[tuple[tuple[int, float, int], ...]] = (
    (0, 1, 600),
    (1, 2, 100),
    (2, 4, 50),
    (4, math.inf, 25),
)


@dataclass(frozen=True, slots=True)
class ResourceOverhead:
    cpu_millicores: int
    memory_mib: int

    @property
    def cpu(self) -> str:
        return f"{self.cpu_millicores}m"

    @property
    def memory(self) -> str:
        return f"{self.memory_mib}Mi"


def eni_limited_pods(instance_type: InstanceType, reserved_enis: int = 0) -> int:
    """Pods that fit the instance's ENI/IP capacity.

    Each usable ENI contributes its IPv4 addresses minus the primary one;
    two host-network pods are always allowed.
    """
    enis = max(instance_type.max_enis - reserved_enis, 0)
    return enis * max(instance_type.ipv4_per_eni - 1, 0) + 2


def max_pods(
    instance_type: InstanceType,
    kubelet: KubeletConfig,
    eni_limited: bool = True,
    reserved_enis: int = 0,
) -> int:
    """Effective pod capacity.

    An explicit max-pods wins; otherwise ENI-limited density or the kubelet
    default applies. Pods-per-core caps the result.
    """
    if kubelet.max_pods is not None:
        pods = kubelet.max_pods
    elif eni_limited and instance_type.max_enis:
        pods = eni_limited_pods(instance_type, reserved_enis)
    else:
        pods = DEFAULT_MAX_PODS

    if kubelet.pods_per_core:
        pods = min(pods, kubelet.pods_per_core * instance_type.vcpus)
    return pods


def kube_reserved_cpu(vcpus: int) -> int:
    """Tiered kube-reserved CPU in millicores."""
    total = 0
    capacity = vcpus * 1000
    for start, end, share in _CPU_TIERS:
        lo, hi = start * 1000, end * 1000
        if capacity <= lo:
            break
        total += int(min(capacity, hi) - lo) * share // 10_000
    return total


def eviction_memory_mib(instance_type: InstanceType, kubelet: KubeletConfig) -> int:
    """Memory held back by the eviction threshold (largest of hard and soft)."""
    values = [
        v for v in (kubelet.eviction_hard.get("memory.available"), kubelet.eviction_soft.get("memory.available"))
        if v is not None
    ] or [DEFAULT_EVICTION_MEMORY]

    def mib(value: str) -> int:
        if (pct := parse_percentage(value)) is not None:
            return math.ceil(instance_type.memory_mib * pct)
        return to_mib(value)

    return max(mib(v) for v in values)


def compute_overhead(
    instance_type: InstanceType,
    kubelet: KubeletConfig,
    eni_limited: bool = True,
    reserved_enis: int = 0,
    vm_memory_overhead_percent: float = 0.0,
) -> ResourceOverhead:
    """Compute reserved CPU and memory for an instance type.

    Args:
        instance_type: Hardware facts.
        kubelet: Kubelet configuration (explicit reservations override defaults).
        eni_limited: Derive pod density from ENI capacity when max-pods is unset.
        reserved_enis: ENIs withheld from pod networking.
        vm_memory_overhead_percent: Share of memory lost to virtualization, 0 to disable.

    Example:
        >>> m5_xlarge = InstanceType("m5.xlarge", vcpus=4, memory_mib=16384, max_enis=4, ipv4_per_eni=15)
        >>> compute_overhead(m5_xlarge, KubeletConfig()).memory
        '993Mi'
    """
    pods = max_pods(instance_type, kubelet, eni_limited, reserved_enis)

    if "memory" in kubelet.kube_reserved:
        kube_memory = to_mib(kubelet.kube_reserved["memory"])
    else:
        kube_memory = POD_MEMORY_OVERHEAD_MIB * pods + KUBE_RESERVED_BASE_MEMORY_MIB

    if "cpu" in kubelet.kube_reserved:
        kube_cpu = to_millicores(kubelet.kube_reserved["cpu"])
    else:
        kube_cpu = kube_reserved_cpu(instance_type.vcpus)

    system_memory = to_mib(kubelet.system_reserved.get("memory", 0))
    system_cpu = to_millicores(kubelet.system_reserved.get("cpu", 0))

    memory = kube_memory + system_memory + eviction_memory_mib(instance_type, kubelet)
    if vm_memory_overhead_percent:
        memory += math.ceil(instance_type.memory_mib * vm_memory_overhead_percent)

    return ResourceOverhead(cpu_millicores=kube_cpu + system_cpu, memory_mib=memory)
