"""Image and instance type discovery from the EC2 API."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from botocore.exceptions import ClientError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from nodeforge.constants import ARCH_LABEL, THROTTLING_CODES
from nodeforge.types import ARCHITECTURES, ImageCandidate, InstanceType, Operator, Requirement

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client


def is_throttled(error: BaseException) -> bool:
    return (
        isinstance(error, ClientError)
        and error.response.get("Error", {}).get("Code") in THROTTLING_CODES
    )


throttled = retry(
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=0.5, max=8),
    retry=retry_if_exception(is_throttled),
    reraise=True,
)


# =============================================================================
# Images
# =============================================================================


def _creation_date(value: str | None) -> datetime:
    if not value:
        return datetime.min.replace(tzinfo=UTC)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_image(image: dict[str, Any]) -> ImageCandidate:
    """Parse an image from ``describe_images`` into a candidate.

    The image's architecture becomes its compatibility requirement.
    """
    arch = ARCHITECTURES.get(image.get("Architecture", ""), image.get("Architecture", ""))
    return ImageCandidate(
        id=image["ImageId"],
        created=_creation_date(image.get("CreationDate")),
        requirements=(Requirement(ARCH_LABEL, Operator.IN, (arch,)),),
        name=image.get("Name", ""),
    )


@throttled
def describe_images(
    ec2: EC2Client,
    image_ids: Sequence[str] = (),
    filters: Sequence[dict[str, Any]] = (),
    owners: Sequence[str] = (),
) -> list[ImageCandidate]:
    """Describe images, newest first (ties keep API order)."""
    kwargs: dict[str, Any] = {}
    if image_ids:
        kwargs["ImageIds"] = list(image_ids)
    if filters:
        kwargs["Filters"] = list(filters)
    if owners:
        kwargs["Owners"] = list(owners)

    candidates: list[ImageCandidate] = []
    for page in ec2.get_paginator("describe_images").paginate(**kwargs):
        candidates.extend(parse_image(i) for i in page.get("Images", []))
    return sorted(candidates, key=lambda c: c.created, reverse=True)


# =============================================================================
# Instance Types
# =============================================================================


def parse_instance_type(info: dict[str, Any]) -> InstanceType:
    """Parse instance type info from the EC2 API."""
    processor = info.get("ProcessorInfo", {})
    archs = processor.get("SupportedArchitectures", ["x86_64"])
    network = info.get("NetworkInfo", {})
    gpus = info.get("GpuInfo", {}).get("Gpus", [])

    return InstanceType(
        name=info["InstanceType"],
        vcpus=info.get("VCpuInfo", {}).get("DefaultVCpus", 0),
        memory_mib=info.get("MemoryInfo", {}).get("SizeInMiB", 0),
        architecture="arm64" if "arm64" in archs else "x86_64",
        max_enis=network.get("MaximumNetworkInterfaces", 0),
        ipv4_per_eni=network.get("Ipv4AddressesPerInterface", 0),
        gpu_count=sum(g.get("Count", 0) for g in gpus),
        efa_supported=network.get("EfaSupported", False),
    )


@throttled
def describe_instance_types(ec2: EC2Client, names: Iterable[str] = ()) -> list[InstanceType]:
    """Describe instance types (all of them when no names are given)."""
    kwargs: dict[str, Any] = {}
    if names := list(names):
        kwargs["InstanceTypes"] = names

    types: list[InstanceType] = []
    for page in ec2.get_paginator("describe_instance_types").paginate(**kwargs):
        types.extend(parse_instance_type(i) for i in page.get("InstanceTypes", []))
    return sorted(types, key=lambda t: t.name)
