from __future__ import annotations

import pytest

from nodeforge import BlockDeviceMapping, BlockDeviceSpec, ConfigurationError, Family
from nodeforge.resolve import compute_block_devices, default_block_devices
from nodeforge.resolve.storage import root_volume

pytestmark = [pytest.mark.xdist_group("unit")]


class TestRounding:
    @pytest.mark.parametrize(
        ("size", "gib"),
        [
            ("4G", 4),
            ("2G", 2),
            ("200G", 187),
            ("200Gi", 200),
            ("40Gi", 40),
            ("1Ti", 1024),
            (4_000_000_000, 4),
            (200_000_000_000, 187),
            (21474836480, 20),
            (1, 1),
        ],
    )
    def test_sizes_round_up_to_gib(self, size, gib):
        (mapping,) = compute_block_devices([BlockDeviceSpec("/dev/xvda", volume_size=size)], Family.AL2)
        assert mapping.volume_size_gib == gib

    def test_unset_size_stays_unset(self):
        (mapping,) = compute_block_devices([BlockDeviceSpec("/dev/xvda", volume_type="gp2")], Family.AL2)
        assert mapping.volume_size_gib is None
        assert mapping.to_api() == {"DeviceName": "/dev/xvda", "Ebs": {"VolumeType": "gp2"}}


class TestDefaults:
    def test_amazon_linux(self):
        for family in (Family.AL2, Family.AL2023):
            assert default_block_devices(family) == (
                BlockDeviceMapping(
                    "/dev/xvda", 20, "gp3", encrypted=True, delete_on_termination=True, root=True
                ),
            )

    def test_bottlerocket(self):
        control, data = default_block_devices(Family.BOTTLEROCKET)
        assert (control.device_name, control.volume_size_gib, control.root) == ("/dev/xvda", 4, True)
        assert (data.device_name, data.volume_size_gib, data.root) == ("/dev/xvdb", 20, False)

    def test_windows(self):
        (root,) = default_block_devices(Family.WINDOWS2022)
        assert (root.device_name, root.volume_size_gib) == ("/dev/sda1", 50)

    def test_custom_has_none(self):
        assert default_block_devices(Family.CUSTOM) == ()

    def test_empty_request_uses_defaults(self):
        assert compute_block_devices([], Family.AL2) == default_block_devices(Family.AL2)


class TestRoot:
    def test_first_device_is_root_by_default(self):
        mappings = compute_block_devices(
            [BlockDeviceSpec("/dev/xvda", "20Gi"), BlockDeviceSpec("/dev/xvdb", "100Gi")], Family.AL2
        )
        assert root_volume(mappings).device_name == "/dev/xvda"

    def test_marked_root(self):
        mappings = compute_block_devices(
            [BlockDeviceSpec("/dev/xvda", "20Gi"), BlockDeviceSpec("/dev/xvdb", "100Gi", root_volume=True)],
            Family.AL2,
        )
        assert root_volume(mappings).device_name == "/dev/xvdb"
        assert [m.root for m in mappings] == [False, True]

    def test_two_roots_rejected(self):
        specs = [
            BlockDeviceSpec("/dev/xvda", "20Gi", root_volume=True),
            BlockDeviceSpec("/dev/xvdb", "20Gi", root_volume=True),
        ]
        with pytest.raises(ConfigurationError, match="more than one root volume"):
            compute_block_devices(specs, Family.AL2)

    def test_minimum_root_size_wins_when_larger(self):
        (mapping,) = compute_block_devices([BlockDeviceSpec("/dev/xvda", "10Gi")], Family.AL2, minimum_root_gib=30)
        assert mapping.volume_size_gib == 30

    def test_requested_size_wins_when_larger(self):
        (mapping,) = compute_block_devices([BlockDeviceSpec("/dev/xvda", "50Gi")], Family.AL2, minimum_root_gib=30)
        assert mapping.volume_size_gib == 50

    def test_minimum_only_applies_to_root(self):
        _, data = compute_block_devices([], Family.BOTTLEROCKET, minimum_root_gib=30)
        assert data.volume_size_gib == 20


class TestToApi:
    def test_full_mapping(self):
        mapping = BlockDeviceMapping(
            "/dev/xvda", 20, "io2", iops=3000, encrypted=True, kms_key_id="key", delete_on_termination=True
        )
        assert mapping.to_api() == {
            "DeviceName": "/dev/xvda",
            "Ebs": {
                "VolumeSize": 20,
                "VolumeType": "io2",
                "Iops": 3000,
                "Encrypted": True,
                "KmsKeyId": "key",
                "DeleteOnTermination": True,
            },
        }
