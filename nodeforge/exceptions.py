"""Custom exception hierarchy for nodeforge.

All nodeforge-specific exceptions inherit from NodeForgeError, enabling
callers to catch every failure of a provisioning attempt with a single
except clause.
"""

from __future__ import annotations

from collections.abc import Sequence


class NodeForgeError(Exception):
    """Base exception for all nodeforge errors."""


class ConfigurationError(NodeForgeError):
    """Raised when a launch configuration cannot be generated from its inputs."""

    def __init__(self, field: str, reason: str, family: str | None = None) -> None:
        self.field = field
        self.reason = reason
        self.family = family
        where = f" for {family}" if family else ""
        super().__init__(f"Cannot generate configuration{where}: {field} {reason}")


class UserDataError(NodeForgeError):
    """Raised when user-supplied custom data cannot be parsed."""

    def __init__(self, family: str, reason: str) -> None:
        self.family = family
        self.reason = reason
        super().__init__(f"Invalid custom data for {family}: {reason}")


class LaunchTemplateError(NodeForgeError):
    """Raised when the EC2 API rejects a launch template or fleet request."""


class LaunchTemplateNotFoundError(LaunchTemplateError):
    """Raised when cached launch templates are still unknown after regeneration."""

    def __init__(self, names: Sequence[str]) -> None:
        self.names = tuple(names)
        super().__init__(
            f"Launch templates not found after regeneration: {', '.join(self.names)}"
        )
