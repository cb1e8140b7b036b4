"""Image selection across instance type compatibility classes.

Instance types are partitioned by which candidate images they can run (the
compatibility class). Each class gets the newest compatible image; among
images created at the same instant the first-listed candidate wins.
Instance types no candidate supports are reported back as unschedulable.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from loguru import logger

from nodeforge.types import ImageCandidate, InstanceType

type CompatibilityClass = frozenset[int]
"""Positions (in the candidate list) of the images an instance type satisfies."""


@dataclass(frozen=True, slots=True)
class ImageSelection:
    image: ImageCandidate
    instance_types: tuple[InstanceType, ...]


@dataclass(frozen=True, slots=True)
class ImageResolution:
    """Outcome of resolving images for a set of instance types.

    An empty resolution is a value, not an error: the caller decides
    whether "no viable configuration" makes the request unschedulable.
    """

    selections: Mapping[CompatibilityClass, ImageSelection] = field(default_factory=dict)
    unschedulable: tuple[str, ...] = ()

    @property
    def empty(self) -> bool:
        return not self.selections

    def by_image(self) -> dict[str, tuple[ImageCandidate, tuple[InstanceType, ...]]]:
        """Group instance types by selected image id, preserving first-seen order."""
        grouped: dict[str, tuple[ImageCandidate, tuple[InstanceType, ...]]] = {}
        for selection in self.selections.values():
            image, types = grouped.get(selection.image.id, (selection.image, ()))
            grouped[selection.image.id] = (image, types + selection.instance_types)
        return grouped


def newest(candidates: Sequence[ImageCandidate], positions: CompatibilityClass) -> ImageCandidate:
    """Newest candidate among positions; earlier positions win ties."""
    return candidates[max(sorted(positions), key=lambda i: candidates[i].created)]


def compatibility_class(candidates: Sequence[ImageCandidate], instance_type: InstanceType) -> CompatibilityClass:
    labels = instance_type.labels
    return frozenset(i for i, c in enumerate(candidates) if c.is_compatible(labels))


def resolve_images(
    candidates: Sequence[ImageCandidate],
    instance_types: Sequence[InstanceType],
) -> ImageResolution:
    """Pick one image per compatibility class.

    Args:
        candidates: Images in preference order (used to break ties).
        instance_types: Instance types under consideration.

    Returns:
        Selections keyed by compatibility class, plus the names of
        instance types no candidate supports.
    """
    if not candidates:
        return ImageResolution(unschedulable=tuple(it.name for it in instance_types))

    classes: dict[CompatibilityClass, list[InstanceType]] = {}
    unschedulable: list[str] = []
    for it in instance_types:
        cls = compatibility_class(candidates, it)
        if not cls:
            unschedulable.append(it.name)
            continue
        classes.setdefault(cls, []).append(it)

    selections = {
        cls: ImageSelection(image=newest(candidates, cls), instance_types=tuple(types))
        for cls, types in classes.items()
    }

    if unschedulable:
        logger.bind(component="images").debug(
            f"No compatible image for instance types: {', '.join(unschedulable)}"
        )
    return ImageResolution(selections=selections, unschedulable=tuple(unschedulable))
