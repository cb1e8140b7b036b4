"""Centralized constants and enums for nodeforge.

Tag keys, label keys, content types and default sizes live here so the
renderers, the resolver and the AWS layer agree on the same strings.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final

# =============================================================================
# AWS Resource Tags
# =============================================================================


class NodeForgeTag(StrEnum):
    """AWS resource tag keys written by nodeforge."""

    MANAGED_BY = "nodeforge.io/managed-by"
    CLUSTER = "nodeforge.io/cluster"
    NODE_CLASS = "nodeforge.io/node-class"


NAME_TAG: Final = "Name"


# =============================================================================
# Launch Templates
# =============================================================================

LAUNCH_TEMPLATE_PREFIX: Final = "nodeforge.io/"
FINGERPRINT_LENGTH: Final = 32
LATEST_VERSION: Final = "$Latest"
DEFAULT_CACHE_TTL_MINUTES: Final = 5


class ErrorCode(StrEnum):
    """EC2 error codes the launch path reacts to."""

    TEMPLATE_NAME_NOT_FOUND = "InvalidLaunchTemplateName.NotFoundException"
    TEMPLATE_ID_NOT_FOUND = "InvalidLaunchTemplateId.NotFound"
    TEMPLATE_NAME_EXISTS = "InvalidLaunchTemplateName.AlreadyExistsException"
    PARAMETER_NOT_FOUND = "ParameterNotFound"
    THROTTLING = "Throttling"
    REQUEST_LIMIT_EXCEEDED = "RequestLimitExceeded"


STALE_TEMPLATE_CODES: Final = frozenset({
    ErrorCode.TEMPLATE_NAME_NOT_FOUND,
    ErrorCode.TEMPLATE_ID_NOT_FOUND,
})

THROTTLING_CODES: Final = frozenset({
    ErrorCode.THROTTLING,
    ErrorCode.REQUEST_LIMIT_EXCEEDED,
})


# =============================================================================
# Kubernetes Labels
# =============================================================================

ARCH_LABEL: Final = "kubernetes.io/arch"
INSTANCE_TYPE_LABEL: Final = "node.kubernetes.io/instance-type"
GPU_COUNT_LABEL: Final = "nodeforge.io/instance-gpu-count"
EFA_SUPPORTED_LABEL: Final = "nodeforge.io/instance-efa-supported"

RESTRICTED_LABEL_DOMAIN: Final = "node-restriction.kubernetes.io"


# =============================================================================
# Boot Payload
# =============================================================================

MIME_BOUNDARY: Final = "//"
SHELL_CONTENT_TYPE: Final = 'text/x-shellscript; charset="us-ascii"'
NODE_CONFIG_CONTENT_TYPE: Final = "application/node.eks.aws"
CLOUD_CONFIG_CONTENT_TYPE: Final = 'text/cloud-config; charset="us-ascii"'

EKS_BOOTSTRAP_SCRIPT: Final = "/etc/eks/bootstrap.sh"
WINDOWS_BOOTSTRAP_SCRIPT: Final = r"$env:ProgramFiles\Amazon\EKS\Start-EKSBootstrap.ps1"
NODE_CONFIG_API_VERSION: Final = "node.eks.aws/v1alpha1"


# =============================================================================
# Storage
# =============================================================================

DEFAULT_VOLUME_SIZE_GIB: Final = 20
DEFAULT_VOLUME_TYPE: Final = "gp3"
BOTTLEROCKET_CONTROL_VOLUME_GIB: Final = 4
WINDOWS_VOLUME_SIZE_GIB: Final = 50


# =============================================================================
# Overhead
# =============================================================================

POD_MEMORY_OVERHEAD_MIB: Final = 11
KUBE_RESERVED_BASE_MEMORY_MIB: Final = 255
DEFAULT_EVICTION_MEMORY: Final = "100Mi"
DEFAULT_MAX_PODS: Final = 110
