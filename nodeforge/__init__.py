"""nodeforge: launch templates and boot payloads for Kubernetes worker nodes on EC2.

Example:
    from nodeforge import LaunchOptions, BootstrapConfig, Family, launch_template_name
    from nodeforge.bootstrap import render

    options = LaunchOptions(cluster_name="prod", cluster_endpoint="https://...")
    config = BootstrapConfig(family=Family.AL2)
    name = launch_template_name(options, config)
    user_data = render(options, config)
"""

from .cache import LaunchConfiguration, LaunchTemplateCache
from .exceptions import (
    ConfigurationError,
    LaunchTemplateError,
    LaunchTemplateNotFoundError,
    NodeForgeError,
    UserDataError,
)
from .fingerprint import launch_template_name
from .state import ClusterCIDR
from .types import (
    BlockDeviceMapping,
    BlockDeviceSpec,
    BootstrapConfig,
    CapacityType,
    Family,
    ImageCandidate,
    InstanceStorePolicy,
    InstanceType,
    KubeletConfig,
    LaunchOptions,
    MetadataOptions,
    Operator,
    Requirement,
    Taint,
    TaintEffect,
)

__version__ = "0.1.0"

__all__ = [
    "BlockDeviceMapping",
    "BlockDeviceSpec",
    "BootstrapConfig",
    "CapacityType",
    "ClusterCIDR",
    "ConfigurationError",
    "Family",
    "ImageCandidate",
    "InstanceStorePolicy",
    "InstanceType",
    "KubeletConfig",
    "LaunchConfiguration",
    "LaunchOptions",
    "LaunchTemplateCache",
    "LaunchTemplateError",
    "LaunchTemplateNotFoundError",
    "MetadataOptions",
    "NodeForgeError",
    "Operator",
    "Requirement",
    "Taint",
    "TaintEffect",
    "UserDataError",
    "launch_template_name",
]
