"""Image candidates, compatibility requirements and instance type facts."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from nodeforge.constants import (
    ARCH_LABEL,
    EFA_SUPPORTED_LABEL,
    GPU_COUNT_LABEL,
    INSTANCE_TYPE_LABEL,
)

# EC2 architecture name -> Kubernetes architecture label value
ARCHITECTURES: Mapping[str, str] = {
    "x86_64": "amd64",
    "arm64": "arm64",
}


class Operator(StrEnum):
    IN = "In"
    NOT_IN = "NotIn"
    EXISTS = "Exists"
    DOES_NOT_EXIST = "DoesNotExist"
    GT = "Gt"
    LT = "Lt"


@dataclass(frozen=True, slots=True)
class Requirement:
    """A key/operator/values constraint evaluated against instance type labels."""

    key: str
    operator: Operator
    values: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.operator in (Operator.GT, Operator.LT) and len(self.values) != 1:
            raise ValueError(f"{self.operator} requirement on {self.key} needs exactly one value, got {self.values!r}")

    def matches(self, labels: Mapping[str, str]) -> bool:
        value = labels.get(self.key)
        match self.operator:
            case Operator.IN:
                return value is not None and value in self.values
            case Operator.NOT_IN:
                return value is None or value not in self.values
            case Operator.EXISTS:
                return value is not None
            case Operator.DOES_NOT_EXIST:
                return value is None
            case Operator.GT:
                return value is not None and _as_int(value) > _as_int(self.values[0])
            case Operator.LT:
                return value is not None and _as_int(value) < _as_int(self.values[0])


def _as_int(value: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"Requirement value {value!r} is not an integer") from e


@dataclass(frozen=True, slots=True)
class ImageCandidate:
    """An AMI eligible for selection.

    An image is compatible with an instance type when every one of its
    requirements matches the instance type's labels.
    """

    id: str
    created: datetime
    requirements: tuple[Requirement, ...] = ()
    name: str = ""

    def is_compatible(self, labels: Mapping[str, str]) -> bool:
        return all(r.matches(labels) for r in self.requirements)


@dataclass(frozen=True, slots=True)
class InstanceType:
    """Hardware facts for an EC2 instance type."""

    name: str
    vcpus: int
    memory_mib: int
    architecture: str = "x86_64"
    max_enis: int = 0
    ipv4_per_eni: int = 0
    gpu_count: int = 0
    efa_supported: bool = False

    @property
    def labels(self) -> dict[str, str]:
        """Well-known labels image requirements are evaluated against."""
        return {
            ARCH_LABEL: ARCHITECTURES.get(self.architecture, self.architecture),
            INSTANCE_TYPE_LABEL: self.name,
            GPU_COUNT_LABEL: str(self.gpu_count),
            EFA_SUPPORTED_LABEL: str(self.efa_supported).lower(),
        }
