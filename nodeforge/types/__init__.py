"""Value types shared across nodeforge."""

from .image import ARCHITECTURES, ImageCandidate, InstanceType, Operator, Requirement
from .options import (
    BootstrapConfig,
    CapacityType,
    Family,
    InstanceStorePolicy,
    KubeletConfig,
    LaunchOptions,
    MetadataOptions,
    Taint,
    TaintEffect,
)
from .storage import BlockDeviceMapping, BlockDeviceSpec

__all__ = [
    "ARCHITECTURES",
    "BlockDeviceMapping",
    "BlockDeviceSpec",
    "BootstrapConfig",
    "CapacityType",
    "Family",
    "ImageCandidate",
    "InstanceStorePolicy",
    "InstanceType",
    "KubeletConfig",
    "LaunchOptions",
    "MetadataOptions",
    "Operator",
    "Requirement",
    "Taint",
    "TaintEffect",
]
