from __future__ import annotations

import pytest
from conftest import client_error

from nodeforge.constants import ARCH_LABEL
from nodeforge.providers.aws.discovery import (
    describe_images,
    describe_instance_types,
    is_throttled,
    parse_image,
    parse_instance_type,
)

pytestmark = [pytest.mark.xdist_group("unit")]


M5_XLARGE = {
    "InstanceType": "m5.xlarge",
    "VCpuInfo": {"DefaultVCpus": 4},
    "MemoryInfo": {"SizeInMiB": 16384},
    "ProcessorInfo": {"SupportedArchitectures": ["i386", "x86_64"]},
    "NetworkInfo": {"MaximumNetworkInterfaces": 4, "Ipv4AddressesPerInterface": 15, "EfaSupported": False},
}

P4D = {
    "InstanceType": "p4d.24xlarge",
    "VCpuInfo": {"DefaultVCpus": 96},
    "MemoryInfo": {"SizeInMiB": 1179648},
    "ProcessorInfo": {"SupportedArchitectures": ["x86_64"]},
    "NetworkInfo": {"MaximumNetworkInterfaces": 60, "Ipv4AddressesPerInterface": 50, "EfaSupported": True},
    "GpuInfo": {"Gpus": [{"Name": "A100", "Count": 8}]},
}


class TestImages:
    def test_parse_image(self):
        candidate = parse_image({
            "ImageId": "ami-1",
            "Architecture": "arm64",
            "CreationDate": "2024-03-01T12:00:00.000Z",
            "Name": "amazon-eks-node",
        })
        assert candidate.id == "ami-1"
        assert candidate.created.year == 2024
        assert candidate.is_compatible({ARCH_LABEL: "arm64"})
        assert not candidate.is_compatible({ARCH_LABEL: "amd64"})

    def test_x86_maps_to_amd64(self):
        candidate = parse_image({"ImageId": "ami-1", "Architecture": "x86_64"})
        assert candidate.is_compatible({ARCH_LABEL: "amd64"})

    def test_newest_first(self, ec2):
        ec2.images = [
            {"ImageId": "ami-old", "Architecture": "x86_64", "CreationDate": "2023-01-01T00:00:00.000Z"},
            {"ImageId": "ami-new", "Architecture": "x86_64", "CreationDate": "2024-01-01T00:00:00.000Z"},
        ]
        assert [c.id for c in describe_images(ec2, owners=["amazon"])] == ["ami-new", "ami-old"]
        assert ec2.paginators["describe_images"].calls == [{"Owners": ["amazon"]}]


class TestInstanceTypes:
    def test_parse(self):
        it = parse_instance_type(M5_XLARGE)
        assert (it.name, it.vcpus, it.memory_mib, it.architecture) == ("m5.xlarge", 4, 16384, "x86_64")
        assert (it.max_enis, it.ipv4_per_eni, it.gpu_count, it.efa_supported) == (4, 15, 0, False)

    def test_parse_gpu(self):
        it = parse_instance_type(P4D)
        assert it.gpu_count == 8
        assert it.efa_supported

    def test_describe_sorted(self, ec2):
        ec2.instance_types = [P4D, M5_XLARGE]
        types = describe_instance_types(ec2, ["p4d.24xlarge", "m5.xlarge"])
        assert [t.name for t in types] == ["m5.xlarge", "p4d.24xlarge"]
        assert ec2.paginators["describe_instance_types"].calls == [
            {"InstanceTypes": ["p4d.24xlarge", "m5.xlarge"]}
        ]


class TestThrottling:
    @pytest.mark.parametrize(
        ("code", "throttled"),
        [("Throttling", True), ("RequestLimitExceeded", True), ("UnauthorizedOperation", False)],
    )
    def test_is_throttled(self, code, throttled):
        assert is_throttled(client_error(code, "DescribeImages")) is throttled

    def test_other_exceptions(self):
        assert not is_throttled(ValueError("boom"))
