"""Custom family: the user's data is the whole payload."""

from __future__ import annotations

from nodeforge.types import BootstrapConfig, LaunchOptions


def render(options: LaunchOptions, config: BootstrapConfig) -> str:
    return config.custom_data or ""
