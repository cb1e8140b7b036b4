"""Block device types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from nodeforge.quantity import Quantity


@dataclass(frozen=True, slots=True)
class BlockDeviceSpec:
    """Requested block device, sizes as Kubernetes quantities or byte counts."""

    device_name: str
    volume_size: Quantity | None = None
    volume_type: str | None = None
    iops: int | None = None
    throughput: int | None = None
    encrypted: bool | None = None
    kms_key_id: str | None = None
    delete_on_termination: bool | None = None
    snapshot_id: str | None = None
    root_volume: bool = False


@dataclass(frozen=True, slots=True)
class BlockDeviceMapping:
    """Concrete block device written into a launch template."""

    device_name: str
    volume_size_gib: int | None = None
    volume_type: str | None = None
    iops: int | None = None
    throughput: int | None = None
    encrypted: bool | None = None
    kms_key_id: str | None = None
    delete_on_termination: bool | None = None
    snapshot_id: str | None = None
    root: bool = False

    def to_api(self) -> dict[str, Any]:
        """Serialize to an EC2 ``BlockDeviceMappings`` entry, omitting unset fields."""
        ebs = {
            "VolumeSize": self.volume_size_gib,
            "VolumeType": self.volume_type,
            "Iops": self.iops,
            "Throughput": self.throughput,
            "Encrypted": self.encrypted,
            "KmsKeyId": self.kms_key_id,
            "DeleteOnTermination": self.delete_on_termination,
            "SnapshotId": self.snapshot_id,
        }
        return {
            "DeviceName": self.device_name,
            "Ebs": {k: v for k, v in ebs.items() if v is not None},
        }
