"""EC2 Fleet submission with stale launch template recovery.

If the fleet request references a cached launch template that no longer
exists, the cached entries are invalidated, the templates regenerated and
the request resubmitted exactly once. A second stale failure is fatal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

from botocore.exceptions import ClientError
from loguru import logger

from nodeforge.constants import LATEST_VERSION, NAME_TAG, STALE_TEMPLATE_CODES, NodeForgeTag
from nodeforge.exceptions import LaunchTemplateError, LaunchTemplateNotFoundError
from nodeforge.types import CapacityType, LaunchOptions

from .launchtemplate import LaunchRequest, LaunchTemplate, LaunchTemplateProvider, tag_list

if TYPE_CHECKING:
    from mypy_boto3_ec2 import EC2Client

MAX_SUBMISSIONS: Final = 2

log = logger.bind(component="fleet")


@dataclass(frozen=True, slots=True)
class FleetRequest:
    launch: LaunchRequest
    subnet_ids: tuple[str, ...] = ()
    count: int = 1
    spot_allocation_strategy: str = "price-capacity-optimized"


@dataclass(frozen=True, slots=True)
class FleetResult:
    """Instances launched and the templates they were launched from.

    An empty result with no templates means no image supports any of the
    requested instance types.
    """

    instance_ids: tuple[str, ...] = ()
    templates: tuple[LaunchTemplate, ...] = ()
    errors: tuple[dict[str, Any], ...] = ()


# =============================================================================
# Request Shape
# =============================================================================


def instance_tags(options: LaunchOptions) -> dict[str, str]:
    """Tags for launched resources; user tags override the defaults, including Name."""
    defaults = {
        NodeForgeTag.MANAGED_BY: "nodeforge",
        NodeForgeTag.CLUSTER: options.cluster_name,
        NodeForgeTag.NODE_CLASS: options.node_class_name,
        NAME_TAG: f"{options.node_class_name}/{options.cluster_name}",
    }
    return {**{str(k): v for k, v in defaults.items()}, **options.tags}


def fleet_input(request: FleetRequest, templates: tuple[LaunchTemplate, ...]) -> dict[str, Any]:
    """Build ``create_fleet`` arguments."""
    options = request.launch.options
    spot = options.capacity_type is CapacityType.SPOT
    tags = tag_list(instance_tags(options))
    resource_types = ["instance", "volume"] + (["spot-instances-request"] if spot else [])

    configs = []
    for t in templates:
        overrides = [
            {"InstanceType": it, "SubnetId": subnet}
            for it in t.instance_types
            for subnet in request.subnet_ids
        ] or [{"InstanceType": it} for it in t.instance_types]
        configs.append({
            "LaunchTemplateSpecification": {"LaunchTemplateName": t.name, "Version": LATEST_VERSION},
            "Overrides": overrides,
        })

    return {
        "Type": "instant",
        "LaunchTemplateConfigs": configs,
        "TargetCapacitySpecification": {
            "TotalTargetCapacity": request.count,
            "DefaultTargetCapacityType": str(options.capacity_type),
        },
        "SpotOptions": {"AllocationStrategy": request.spot_allocation_strategy},
        "OnDemandOptions": {"AllocationStrategy": "lowest-price"},
        "TagSpecifications": [{"ResourceType": rt, "Tags": tags} for rt in resource_types],
    }


def _stale_names(errors: list[dict[str, Any]], templates: tuple[LaunchTemplate, ...]) -> set[str]:
    """Names of templates a fleet response reports as unknown."""
    names: set[str] = set()
    for e in errors:
        if e.get("ErrorCode") not in STALE_TEMPLATE_CODES:
            continue
        spec = e.get("LaunchTemplateAndOverrides", {}).get("LaunchTemplateSpecification", {})
        if name := spec.get("LaunchTemplateName"):
            names.add(name)
        elif template_id := spec.get("LaunchTemplateId"):
            names.update(t.name for t in templates if t.template_id == template_id)
        else:
            names.update(t.name for t in templates)
    return names


# =============================================================================
# Submission
# =============================================================================


def _submit(ec2: EC2Client, request: FleetRequest, templates: tuple[LaunchTemplate, ...]) -> dict[str, Any]:
    try:
        return ec2.create_fleet(**fleet_input(request, templates))
    except ClientError as e:
        code = e.response.get("Error", {}).get("Code")
        if code in STALE_TEMPLATE_CODES:
            return {"Instances": [], "Errors": [{"ErrorCode": code, "ErrorMessage": str(e)}]}
        raise LaunchTemplateError(f"Fleet request failed: {e}") from e


def launch_fleet(ec2: EC2Client, provider: LaunchTemplateProvider, request: FleetRequest) -> FleetResult:
    """Launch instances for a request.

    Raises:
        LaunchTemplateNotFoundError: If templates are still unknown after one regeneration.
        LaunchTemplateError: If the fleet launched nothing for any other reason.
    """
    attempt = 1
    while True:
        templates = tuple(provider.ensure_all(request.launch))
        if not templates:
            return FleetResult()

        response = _submit(ec2, request, templates)
        errors = response.get("Errors", [])
        instance_ids = tuple(
            iid for fleet_instances in response.get("Instances", []) for iid in fleet_instances.get("InstanceIds", [])
        )

        stale = _stale_names(errors, templates)
        if stale and instance_ids:
            # Partial launch: keep what launched, drop the vanished templates.
            provider.invalidate(stale)
        elif stale:
            if attempt == MAX_SUBMISSIONS:
                raise LaunchTemplateNotFoundError(sorted(stale))
            log.warning(f"Launch templates no longer exist, regenerating: {', '.join(sorted(stale))}")
            provider.invalidate(stale)
            attempt += 1
            continue

        if errors and not instance_ids:
            error_msgs = [f"{e.get('ErrorCode', 'Unknown')}: {e.get('ErrorMessage', '')}" for e in errors]
            raise LaunchTemplateError(f"Fleet launch failed: {'; '.join(error_msgs)}")

        provider.confirm(t.name for t in templates)
        log.info(f"Launched {len(instance_ids)}/{request.count} instances from {len(templates)} templates")
        return FleetResult(instance_ids=instance_ids, templates=templates, errors=tuple(errors))
