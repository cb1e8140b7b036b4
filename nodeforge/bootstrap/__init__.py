"""Boot payload generation per operating system family.

Every family exposes ``render(options, config) -> str`` and shares the
helpers in :mod:`nodeforge.bootstrap.flags`. :func:`render` dispatches on
the configured family.

Example:
    >>> from nodeforge.bootstrap import render
    >>> user_data = render(options, BootstrapConfig(family=Family.AL2))
"""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger

from nodeforge.types import BootstrapConfig, Family, LaunchOptions

from . import bottlerocket, custom, eks, mime, nodeadm, windows
from .mime import Part

type Renderer = Callable[[LaunchOptions, BootstrapConfig], str]


def renderer_for(family: Family) -> Renderer:
    """Return the renderer implementing a family."""
    match family:
        case Family.AL2:
            return eks.render
        case Family.AL2023:
            return nodeadm.render
        case Family.BOTTLEROCKET:
            return bottlerocket.render
        case Family.WINDOWS2019 | Family.WINDOWS2022:
            return windows.render
        case Family.CUSTOM:
            return custom.render
        case _:
            raise ValueError(f"Unknown family: {family!r}")


def render(options: LaunchOptions, config: BootstrapConfig) -> str:
    """Render the boot payload for a request.

    Raises:
        ConfigurationError: If a value the family requires is missing.
        UserDataError: If the custom data cannot be parsed.
    """
    payload = renderer_for(config.family)(options, config)
    logger.bind(component="bootstrap", family=str(config.family)).debug(
        f"Rendered {len(payload)} bytes of user data"
    )
    return payload


__all__ = [
    "Part",
    "Renderer",
    "mime",
    "render",
    "renderer_for",
]
