"""Launch template provisioning.

Turns a launch request into EC2 launch templates: images are resolved per
compatibility class, instance types are grouped by effective kubelet
settings, and each group gets a template named by its fingerprint. Names
already in the cache are reused; for the rest every payload is generated
before the first remote call, so a failed render leaves EC2 untouched.
"""

from __future__ import annotations

import base64
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from botocore.exceptions import ClientError
from loguru import logger

from nodeforge import bootstrap
from nodeforge.cache import LaunchConfiguration, LaunchTemplateCache
from nodeforge.config import Settings
from nodeforge.constants import ErrorCode, NodeForgeTag
from nodeforge.exceptions import ConfigurationError, LaunchTemplateError
from nodeforge.fingerprint import launch_template_name
from nodeforge.resolve import (
    ResourceOverhead,
    compute_block_devices,
    compute_overhead,
    max_pods,
    resolve_images,
)
from nodeforge.state import ClusterCIDR
from nodeforge.types import (
    BlockDeviceSpec,
    BootstrapConfig,
    Family,
    ImageCandidate,
    InstanceType,
    KubeletConfig,
    LaunchOptions,
)

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client

    from .ssm import DefaultImageLookup


# =============================================================================
# Types
# =============================================================================


@dataclass(frozen=True, slots=True)
class LaunchRequest:
    """Everything needed to produce the launch templates for one request."""

    options: LaunchOptions
    bootstrap: BootstrapConfig
    instance_types: tuple[InstanceType, ...]
    images: tuple[ImageCandidate, ...]
    block_devices: tuple[BlockDeviceSpec, ...] = ()


@dataclass(frozen=True, slots=True)
class LaunchTemplate:
    """A launch template ready to be referenced by a fleet request."""

    name: str
    template_id: str
    image_id: str
    instance_types: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class _Plan:
    name: str
    options: LaunchOptions
    config: BootstrapConfig
    instance_types: tuple[str, ...]


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "Unknown")


def tag_list(tags: dict[str, str]) -> list[dict[str, str]]:
    return [{"Key": k, "Value": tags[k]} for k in sorted(tags)]


# =============================================================================
# Request Shape
# =============================================================================


def network_interfaces(options: LaunchOptions) -> list[dict[str, Any]]:
    """Explicit network interfaces, empty when security groups suffice.

    Interfaces are only declared when EFA is requested or public IP
    association is set explicitly; otherwise the subnet default applies.
    """
    groups = list(options.security_groups)
    if options.efa_count:
        interfaces = [
            {
                "NetworkCardIndex": i,
                "DeviceIndex": 0 if i == 0 else 1,
                "InterfaceType": "efa",
                "Groups": groups,
            }
            for i in range(options.efa_count)
        ]
        if options.associate_public_ip is not None:
            interfaces[0]["AssociatePublicIpAddress"] = options.associate_public_ip
        return interfaces
    if options.associate_public_ip is not None:
        return [{
            "DeviceIndex": 0,
            "AssociatePublicIpAddress": options.associate_public_ip,
            "Groups": groups,
        }]
    return []


def template_data(options: LaunchOptions, user_data: str) -> dict[str, Any]:
    """Build ``LaunchTemplateData`` for ``create_launch_template``."""
    data: dict[str, Any] = {
        "ImageId": options.image_id,
        "IamInstanceProfile": {"Name": options.instance_profile},
        "UserData": base64.b64encode(user_data.encode()).decode(),
        "BlockDeviceMappings": [b.to_api() for b in options.block_device_mappings],
        "MetadataOptions": options.metadata_options.to_api(),
        "Monitoring": {"Enabled": options.detailed_monitoring},
    }
    if interfaces := network_interfaces(options):
        data["NetworkInterfaces"] = interfaces
    else:
        data["SecurityGroupIds"] = list(options.security_groups)
    return data


# =============================================================================
# Provider
# =============================================================================


class LaunchTemplateProvider:
    """Creates, caches and invalidates launch templates for one cluster.

    Example:
        >>> provider = LaunchTemplateProvider(ec2, LaunchTemplateCache(), ClusterCIDR("10.100.0.0/16"))
        >>> templates = provider.ensure_all(request)
    """

    def __init__(
        self,
        ec2: EC2Client,
        cache: LaunchTemplateCache,
        cluster_cidr: ClusterCIDR,
        settings: Settings | None = None,
        default_images: DefaultImageLookup | None = None,
    ) -> None:
        self.ec2 = ec2
        self.cache = cache
        self.cluster_cidr = cluster_cidr
        self.settings = settings or Settings()
        self.default_images = default_images

    def overhead(self, instance_type: InstanceType, kubelet: KubeletConfig) -> ResourceOverhead:
        """Reserved capacity of an instance type under the configured pod density and VM overhead."""
        return compute_overhead(
            instance_type,
            kubelet,
            eni_limited=self.settings.eni_limited_pod_density,
            reserved_enis=self.settings.reserved_enis,
            vm_memory_overhead_percent=self.settings.vm_memory_overhead_percent,
        )

    # -------------------------------------------------------------------------
    # Planning
    # -------------------------------------------------------------------------

    def _resolve_options(self, options: LaunchOptions, family: Family) -> LaunchOptions:
        if not options.instance_profile:
            raise ConfigurationError("instance_profile", "is not resolved", str(family))
        return replace(
            options,
            cluster_endpoint=options.cluster_endpoint or self.settings.cluster_endpoint,
            ca_bundle=options.ca_bundle or self.settings.cluster_ca_bundle,
            cluster_cidr=options.cluster_cidr if options.cluster_cidr is not None else self.cluster_cidr.load(),
        )

    def _images(self, request: LaunchRequest) -> tuple[ImageCandidate, ...]:
        """Requested images, or the recommended ones when none were selected."""
        if request.images or self.default_images is None:
            return request.images
        family = request.bootstrap.family
        version = self.settings.kubernetes_version
        candidates = tuple(self.default_images.candidates(self.ec2, family, version))
        logger.bind(component="launchtemplate", cluster=request.options.cluster_name).debug(
            f"Using {len(candidates)} recommended {family} images for {version}"
        )
        return candidates

    def _kubelet_groups(
        self,
        config: BootstrapConfig,
        instance_types: Sequence[InstanceType],
    ) -> list[tuple[KubeletConfig, tuple[InstanceType, ...]]]:
        """Split instance types by effective kubelet config.

        With ENI-limited pod density and no explicit max-pods, each distinct
        pod capacity needs its own template.
        """
        kubelet = config.kubelet
        if (
            kubelet.max_pods is not None
            or not self.settings.eni_limited_pod_density
            or config.family is Family.CUSTOM
        ):
            return [(kubelet, tuple(instance_types))]

        groups: dict[int, list[InstanceType]] = {}
        for it in instance_types:
            pods = max_pods(it, kubelet, eni_limited=True, reserved_enis=self.settings.reserved_enis)
            groups.setdefault(pods, []).append(it)
        return [(replace(kubelet, max_pods=pods), tuple(types)) for pods, types in groups.items()]

    def plan(self, request: LaunchRequest) -> list[_Plan]:
        """Compute the named launch configurations a request needs.

        Requests without images fall back to the recommended images. Returns
        an empty list when no image supports any instance type.
        """
        family = request.bootstrap.family
        options = self._resolve_options(request.options, family)
        resolution = resolve_images(self._images(request), request.instance_types)
        if resolution.empty:
            logger.bind(component="launchtemplate", cluster=options.cluster_name).warning(
                f"No image supports any of {len(request.instance_types)} instance types"
            )
            return []

        plans: list[_Plan] = []
        for image, types in resolution.by_image().values():
            for kubelet, group in self._kubelet_groups(request.bootstrap, types):
                config = replace(request.bootstrap, kubelet=kubelet)
                opts = replace(
                    options,
                    image_id=image.id,
                    block_device_mappings=compute_block_devices(request.block_devices, family),
                )
                plans.append(
                    _Plan(
                        name=launch_template_name(opts, config),
                        options=opts,
                        config=config,
                        instance_types=tuple(it.name for it in group),
                    )
                )
        return plans

    # -------------------------------------------------------------------------
    # Remote
    # -------------------------------------------------------------------------

    def _describe(self, name: str) -> dict[str, Any] | None:
        try:
            response = self.ec2.describe_launch_templates(LaunchTemplateNames=[name])
        except ClientError as e:
            if _error_code(e) == ErrorCode.TEMPLATE_NAME_NOT_FOUND:
                return None
            raise LaunchTemplateError(f"Failed to describe launch template {name}: {e}") from e
        templates = response.get("LaunchTemplates", [])
        return templates[0] if templates else None

    def _create(self, plan: _Plan, user_data: str) -> dict[str, Any]:
        options = plan.options
        tags = {
            NodeForgeTag.MANAGED_BY: "nodeforge",
            NodeForgeTag.CLUSTER: options.cluster_name,
        }
        try:
            response = self.ec2.create_launch_template(
                LaunchTemplateName=plan.name,
                LaunchTemplateData=template_data(options, user_data),
                TagSpecifications=[{"ResourceType": "launch-template", "Tags": tag_list(tags)}],
            )
        except ClientError as e:
            if _error_code(e) == ErrorCode.TEMPLATE_NAME_EXISTS and (existing := self._describe(plan.name)):
                return existing
            raise LaunchTemplateError(f"Failed to create launch template {plan.name}: {e}") from e

        logger.bind(component="launchtemplate", cluster=options.cluster_name, template=plan.name).info(
            f"Created launch template for {options.image_id} ({len(plan.instance_types)} instance types)"
        )
        return response["LaunchTemplate"]

    def ensure_all(self, request: LaunchRequest) -> list[LaunchTemplate]:
        """Return launch templates for a request, creating missing ones.

        Raises:
            ConfigurationError: If a required value (instance profile, CIDR) is missing.
            UserDataError: If custom data cannot be merged.
            LaunchTemplateError: If EC2 rejects a template.
        """
        plans = self.plan(request)

        cached: dict[str, LaunchConfiguration] = {}
        pending: list[tuple[_Plan, str]] = []
        for p in plans:
            hit, entry = self.cache.get(p.name)
            if hit and entry is not None:
                cached[p.name] = entry
            elif p.name not in {q.name for q, _ in pending}:
                pending.append((p, bootstrap.render(p.options, p.config)))

        for p, user_data in pending:
            remote = self._describe(p.name) or self._create(p, user_data)
            cached[p.name] = self.cache.put(
                p.name,
                LaunchConfiguration(
                    name=p.name,
                    template_id=remote["LaunchTemplateId"],
                    image_id=p.options.image_id or "",
                    block_device_mappings=p.options.block_device_mappings,
                    user_data=user_data,
                    created_at=remote.get("CreateTime") or datetime.now(UTC),
                ),
            )

        return [
            LaunchTemplate(
                name=p.name,
                template_id=cached[p.name].template_id,
                image_id=cached[p.name].image_id,
                instance_types=p.instance_types,
            )
            for p in plans
        ]

    def confirm(self, names: Iterable[str]) -> None:
        """Re-arm cache entries the remote API just accepted."""
        for name in names:
            self.cache.touch(name)

    def invalidate(self, names: Iterable[str]) -> None:
        for name in names:
            self.cache.invalidate(name)

    def delete_all(self) -> int:
        """Delete every launch template tagged for this cluster. Returns the count."""
        cluster = self.settings.cluster_name
        paginator = self.ec2.get_paginator("describe_launch_templates")
        deleted = 0
        for page in paginator.paginate(
            Filters=[{"Name": f"tag:{NodeForgeTag.CLUSTER}", "Values": [cluster]}]
        ):
            for lt in page.get("LaunchTemplates", []):
                try:
                    self.ec2.delete_launch_template(LaunchTemplateId=lt["LaunchTemplateId"])
                except ClientError as e:
                    raise LaunchTemplateError(
                        f"Failed to delete launch template {lt.get('LaunchTemplateName')}: {e}"
                    ) from e
                deleted += 1
        self.cache.clear()
        logger.bind(component="launchtemplate", cluster=cluster).info(f"Deleted {deleted} launch templates")
        return deleted
