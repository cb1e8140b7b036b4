"""Image, storage and overhead resolution."""

from .images import CompatibilityClass, ImageResolution, ImageSelection, resolve_images
from .overhead import ResourceOverhead, compute_overhead, eni_limited_pods, max_pods
from .storage import compute_block_devices, default_block_devices

__all__ = [
    "CompatibilityClass",
    "ImageResolution",
    "ImageSelection",
    "ResourceOverhead",
    "compute_block_devices",
    "compute_overhead",
    "default_block_devices",
    "eni_limited_pods",
    "max_pods",
    "resolve_images",
]
