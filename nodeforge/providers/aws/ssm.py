"""Default image lookup via AWS SSM Parameter Store.

When a node class has no explicit image selector, the recommended image
for the cluster version, family and architecture is read from the public
parameters AWS publishes. Results are cached per parameter.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import TYPE_CHECKING

from botocore.exceptions import ClientError
from loguru import logger

from nodeforge.constants import GPU_COUNT_LABEL, ErrorCode
from nodeforge.types import Family, ImageCandidate, Operator, Requirement

from .discovery import describe_images, throttled

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client
    from mypy_boto3_ssm import SSMClient

log = logger.bind(component="ssm")


def parameter_name(family: Family, version: str, arch: str, gpu: bool = False) -> str | None:
    """SSM parameter holding the recommended image id.

    None when the family publishes no such variant: Custom never does, AL2
    has no accelerated arm64 image, and Windows is amd64 only without an
    accelerated image.

    Args:
        family: Operating system family.
        version: Kubernetes minor version (e.g., "1.29").
        arch: Kubernetes architecture ("amd64" or "arm64").
        gpu: Whether the accelerated variant is wanted.
    """
    ec2_arch = "x86_64" if arch == "amd64" else arch
    match family:
        case Family.AL2 if gpu and arch == "arm64":
            return None
        case Family.AL2:
            suffix = "-gpu" if gpu else ("-arm64" if arch == "arm64" else "")
            return f"/aws/service/eks/optimized-ami/{version}/amazon-linux-2{suffix}/recommended/image_id"
        case Family.AL2023:
            variant = "nvidia" if gpu else "standard"
            return f"/aws/service/eks/optimized-ami/{version}/amazon-linux-2023/{ec2_arch}/{variant}/recommended/image_id"
        case Family.BOTTLEROCKET:
            flavor = f"aws-k8s-{version}-nvidia" if gpu else f"aws-k8s-{version}"
            return f"/aws/service/bottlerocket/{flavor}/{ec2_arch}/latest/image_id"
        case Family.WINDOWS2019 | Family.WINDOWS2022 if gpu or arch != "amd64":
            return None
        case Family.WINDOWS2019:
            return f"/aws/service/ami-windows-latest/Windows_Server-2019-English-Core-EKS_Optimized-{version}/image_id"
        case Family.WINDOWS2022:
            return f"/aws/service/ami-windows-latest/Windows_Server-2022-English-Core-EKS_Optimized-{version}/image_id"
        case _:
            return None


class DefaultImageLookup:
    """Resolves recommended image ids from SSM with a per-parameter cache."""

    def __init__(self, ssm: SSMClient) -> None:
        self._ssm = ssm
        self._cache: dict[str, str | None] = {}
        self._lock = threading.Lock()

    @throttled
    def _get_parameter(self, name: str) -> str | None:
        try:
            return self._ssm.get_parameter(Name=name)["Parameter"]["Value"]
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == ErrorCode.PARAMETER_NOT_FOUND:
                log.warning(f"SSM parameter {name} not found")
                return None
            raise

    def get(self, name: str) -> str | None:
        with self._lock:
            if name in self._cache:
                return self._cache[name]
        value = self._get_parameter(name)
        with self._lock:
            self._cache[name] = value
        return value

    def image_ids(
        self,
        family: Family,
        version: str,
        archs: tuple[str, ...] = ("amd64", "arm64"),
        gpu: bool = False,
    ) -> dict[str, str]:
        """Recommended image id per architecture; missing parameters are skipped."""
        ids: dict[str, str] = {}
        for arch in archs:
            name = parameter_name(family, version, arch, gpu)
            if name is None:
                continue
            if (image_id := self.get(name)) is not None:
                ids[arch] = image_id
        log.debug(f"Default {family} images for {version} (gpu={gpu}): {ids}")
        return ids

    def candidates(self, ec2: EC2Client, family: Family, version: str) -> list[ImageCandidate]:
        """Image candidates for the recommended images of a family.

        Creation dates and architectures come from ``describe_images``.
        Where an accelerated image exists for an architecture, it requires
        a GPU and the standard image of that architecture excludes GPUs.
        """
        standard = self.image_ids(family, version)
        accelerated = self.image_ids(family, version, gpu=True)

        extra: dict[str, tuple[Requirement, ...]] = {}
        for image_id in accelerated.values():
            extra[image_id] = (Requirement(GPU_COUNT_LABEL, Operator.GT, ("0",)),)
        for arch, image_id in standard.items():
            extra[image_id] = (Requirement(GPU_COUNT_LABEL, Operator.LT, ("1",)),) if arch in accelerated else ()
        if not extra:
            return []

        return [
            replace(c, requirements=c.requirements + extra[c.id])
            for c in describe_images(ec2, image_ids=list(extra))
            if c.id in extra
        ]
