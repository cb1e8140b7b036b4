from __future__ import annotations

import itertools
from datetime import UTC, datetime
from typing import Any

import pytest
from botocore.exceptions import ClientError

from nodeforge import (
    BootstrapConfig,
    ClusterCIDR,
    Family,
    ImageCandidate,
    InstanceType,
    KubeletConfig,
    LaunchOptions,
    LaunchTemplateCache,
    Operator,
    Requirement,
)
from nodeforge.config import Settings
from nodeforge.constants import ARCH_LABEL
from nodeforge.providers.aws.launchtemplate import LaunchRequest, LaunchTemplateProvider


def client_error(code: str, operation: str, message: str = "") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


class FakePaginator:
    def __init__(self, pages: list[dict[str, Any]]) -> None:
        self.pages = pages
        self.calls: list[dict[str, Any]] = []

    def paginate(self, **kwargs: Any) -> list[dict[str, Any]]:
        self.calls.append(kwargs)
        return self.pages


class FakeEC2:
    """In-memory EC2 recording every launch template and fleet call.

    ``create_fleet`` reports unknown templates the way EC2 does: as an
    ``InvalidLaunchTemplateName.NotFoundException`` entry in ``Errors``.
    """

    def __init__(self) -> None:
        self.templates: dict[str, dict[str, Any]] = {}
        self.create_template_calls: list[dict[str, Any]] = []
        self.create_fleet_calls: list[dict[str, Any]] = []
        self.describe_template_calls: list[list[str]] = []
        self.deleted: list[str] = []
        self.images: list[dict[str, Any]] = []
        self.instance_types: list[dict[str, Any]] = []
        self.paginators: dict[str, FakePaginator] = {}
        self.reject_all_templates = False
        self._ids = itertools.count(1)

    # Launch templates

    def describe_launch_templates(self, LaunchTemplateNames: list[str]) -> dict[str, Any]:
        self.describe_template_calls.append(LaunchTemplateNames)
        found = [self.templates[n] for n in LaunchTemplateNames if n in self.templates]
        if not found:
            raise client_error("InvalidLaunchTemplateName.NotFoundException", "DescribeLaunchTemplates")
        return {"LaunchTemplates": found}

    def create_launch_template(self, **kwargs: Any) -> dict[str, Any]:
        self.create_template_calls.append(kwargs)
        name = kwargs["LaunchTemplateName"]
        if name in self.templates:
            raise client_error("InvalidLaunchTemplateName.AlreadyExistsException", "CreateLaunchTemplate")
        tags = [t for spec in kwargs.get("TagSpecifications", []) for t in spec["Tags"]]
        template = {
            "LaunchTemplateId": f"lt-{next(self._ids):017d}",
            "LaunchTemplateName": name,
            "Tags": tags,
            "CreateTime": datetime(2024, 1, 1, tzinfo=UTC),
        }
        self.templates[name] = template
        return {"LaunchTemplate": template}

    def delete_launch_template(self, LaunchTemplateId: str) -> dict[str, Any]:
        for name, t in list(self.templates.items()):
            if t["LaunchTemplateId"] == LaunchTemplateId:
                del self.templates[name]
        self.deleted.append(LaunchTemplateId)
        return {}

    @property
    def last_template_data(self) -> dict[str, Any]:
        return self.create_template_calls[-1]["LaunchTemplateData"]

    # Fleets

    def create_fleet(self, **kwargs: Any) -> dict[str, Any]:
        self.create_fleet_calls.append(kwargs)
        errors = []
        for config in kwargs["LaunchTemplateConfigs"]:
            spec = config["LaunchTemplateSpecification"]
            if self.reject_all_templates or spec["LaunchTemplateName"] not in self.templates:
                errors.append({
                    "ErrorCode": "InvalidLaunchTemplateName.NotFoundException",
                    "ErrorMessage": "The specified launch template does not exist",
                    "LaunchTemplateAndOverrides": {"LaunchTemplateSpecification": spec},
                })
        if errors:
            return {"Instances": [], "Errors": errors}
        count = kwargs["TargetCapacitySpecification"]["TotalTargetCapacity"]
        ids = [f"i-{next(self._ids):017x}" for _ in range(count)]
        return {"Instances": [{"InstanceIds": ids}], "Errors": []}

    # Pagination

    def get_paginator(self, operation: str) -> FakePaginator:
        if operation == "describe_launch_templates":
            pages = [{"LaunchTemplates": list(self.templates.values())}]
        elif operation == "describe_images":
            pages = [{"Images": self.images}]
        elif operation == "describe_instance_types":
            pages = [{"InstanceTypes": self.instance_types}]
        else:
            raise NotImplementedError(operation)
        paginator = FakePaginator(pages)
        self.paginators[operation] = paginator
        return paginator


class FakeSSM:
    def __init__(self, parameters: dict[str, str] | None = None) -> None:
        self.parameters = parameters or {}
        self.calls: list[str] = []
        self.failures: list[ClientError] = []

    def get_parameter(self, Name: str) -> dict[str, Any]:
        self.calls.append(Name)
        if self.failures:
            raise self.failures.pop(0)
        if Name not in self.parameters:
            raise client_error("ParameterNotFound", "GetParameter")
        return {"Parameter": {"Name": Name, "Value": self.parameters[Name]}}


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def options() -> LaunchOptions:
    return LaunchOptions(
        cluster_name="test-cluster",
        cluster_endpoint="https://test-cluster",
        cluster_cidr="10.100.0.0/16",
        ca_bundle="Y2EtYnVuZGxlCg==",
        cluster_dns_ip="10.0.100.10",
        security_groups=("sg-test1", "sg-test2"),
        tags={"team": "platform"},
        instance_profile="test-instance-profile",
        node_class_name="default",
        labels={"nodeforge.io/nodepool": "default", "nodeforge.io/capacity-type": "on-demand"},
    )


@pytest.fixture
def al2() -> BootstrapConfig:
    return BootstrapConfig(family=Family.AL2, kubelet=KubeletConfig(max_pods=110))


@pytest.fixture
def m5_xlarge() -> InstanceType:
    return InstanceType("m5.xlarge", vcpus=4, memory_mib=16384, max_enis=4, ipv4_per_eni=15)


@pytest.fixture
def m6g_large() -> InstanceType:
    return InstanceType(
        "m6g.large", vcpus=2, memory_mib=8192, architecture="arm64", max_enis=3, ipv4_per_eni=10
    )


def image(image_id: str, arch: str, created: str) -> ImageCandidate:
    return ImageCandidate(
        id=image_id,
        created=datetime.fromisoformat(created),
        requirements=(Requirement(ARCH_LABEL, Operator.IN, (arch,)),),
    )


@pytest.fixture
def images() -> tuple[ImageCandidate, ...]:
    return (
        image("ami-amd64", "amd64", "2024-01-01T00:00:00+00:00"),
        image("ami-arm64", "arm64", "2024-01-01T00:00:00+00:00"),
    )


@pytest.fixture
def ec2() -> FakeEC2:
    return FakeEC2()


@pytest.fixture
def ssm() -> FakeSSM:
    return FakeSSM()


@pytest.fixture
def cache() -> LaunchTemplateCache:
    return LaunchTemplateCache()


@pytest.fixture
def provider(ec2: FakeEC2, cache: LaunchTemplateCache) -> LaunchTemplateProvider:
    return LaunchTemplateProvider(
        ec2,  # type: ignore[arg-type]
        cache,
        ClusterCIDR("10.100.0.0/16"),
        Settings(cluster_name="test-cluster", cluster_endpoint="https://test-cluster"),
    )


@pytest.fixture
def request_for(options, al2, m5_xlarge, images):
    def build(**overrides: Any) -> LaunchRequest:
        fields: dict[str, Any] = {
            "options": options,
            "bootstrap": al2,
            "instance_types": (m5_xlarge,),
            "images": images,
        }
        fields.update(overrides)
        return LaunchRequest(**fields)

    return build
