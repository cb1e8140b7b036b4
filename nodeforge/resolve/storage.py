"""Block device mappings per operating system family."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import replace

from nodeforge.constants import (
    BOTTLEROCKET_CONTROL_VOLUME_GIB,
    DEFAULT_VOLUME_SIZE_GIB,
    DEFAULT_VOLUME_TYPE,
    WINDOWS_VOLUME_SIZE_GIB,
)
from nodeforge.exceptions import ConfigurationError
from nodeforge.quantity import to_gib
from nodeforge.types import BlockDeviceMapping, BlockDeviceSpec, Family


def _volume(device_name: str, size_gib: int, root: bool = False) -> BlockDeviceMapping:
    return BlockDeviceMapping(
        device_name=device_name,
        volume_size_gib=size_gib,
        volume_type=DEFAULT_VOLUME_TYPE,
        encrypted=True,
        delete_on_termination=True,
        root=root,
    )


def default_block_devices(family: Family) -> tuple[BlockDeviceMapping, ...]:
    """Default mappings when none are requested."""
    match family:
        case Family.AL2 | Family.AL2023:
            return (_volume("/dev/xvda", DEFAULT_VOLUME_SIZE_GIB, root=True),)
        case Family.BOTTLEROCKET:
            return (
                _volume("/dev/xvda", BOTTLEROCKET_CONTROL_VOLUME_GIB, root=True),
                _volume("/dev/xvdb", DEFAULT_VOLUME_SIZE_GIB),
            )
        case Family.WINDOWS2019 | Family.WINDOWS2022:
            return (_volume("/dev/sda1", WINDOWS_VOLUME_SIZE_GIB, root=True),)
        case _:
            return ()


def _root_index(specs: Sequence[BlockDeviceSpec]) -> int:
    roots = [i for i, s in enumerate(specs) if s.root_volume]
    if len(roots) > 1:
        names = ", ".join(specs[i].device_name for i in roots)
        raise ConfigurationError("block_device_mappings", f"mark more than one root volume ({names})")
    return roots[0] if roots else 0


def compute_block_devices(
    specs: Sequence[BlockDeviceSpec],
    family: Family,
    minimum_root_gib: int | None = None,
) -> tuple[BlockDeviceMapping, ...]:
    """Compute block device mappings.

    Requested sizes are rounded up to whole GiB. The root volume is the one
    marked as such, else the first device. When ``minimum_root_gib`` is
    given the root volume is at least that large.

    Args:
        specs: Requested devices; empty to use family defaults.
        family: Operating system family.
        minimum_root_gib: Minimum root size (e.g., the image's snapshot size).

    Raises:
        ConfigurationError: If more than one device is marked as root.
    """
    if not specs:
        mappings = default_block_devices(family)
    else:
        root = _root_index(specs)
        mappings = tuple(
            BlockDeviceMapping(
                device_name=s.device_name,
                volume_size_gib=to_gib(s.volume_size) if s.volume_size is not None else None,
                volume_type=s.volume_type,
                iops=s.iops,
                throughput=s.throughput,
                encrypted=s.encrypted,
                kms_key_id=s.kms_key_id,
                delete_on_termination=s.delete_on_termination,
                snapshot_id=s.snapshot_id,
                root=i == root,
            )
            for i, s in enumerate(specs)
        )

    if minimum_root_gib is None:
        return mappings

    return tuple(
        _at_least(m, minimum_root_gib) if m.root else m
        for m in mappings
    )


def _at_least(mapping: BlockDeviceMapping, size_gib: int) -> BlockDeviceMapping:
    if mapping.volume_size_gib is not None and mapping.volume_size_gib >= size_gib:
        return mapping
    return replace(mapping, volume_size_gib=size_gib)


def root_volume(mappings: Sequence[BlockDeviceMapping]) -> BlockDeviceMapping | None:
    return next((m for m in mappings if m.root), None)
