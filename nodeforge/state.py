"""Shared cluster network state.

The cluster service CIDR is discovered by a background refresh and read by
every render. It is held in an explicit cell: one writer stores the latest
value, any number of readers load it, and "not yet resolved" is a value
readers must handle rather than a default.
"""

from __future__ import annotations

import threading

from loguru import logger

from .exceptions import ConfigurationError


class ClusterCIDR:
    """Single-writer, multi-reader cell holding the cluster service CIDR."""

    def __init__(self, value: str | None = None) -> None:
        self._value = value
        self._lock = threading.Lock()

    def store(self, value: str | None) -> None:
        with self._lock:
            previous, self._value = self._value, value
        if previous != value:
            logger.bind(component="state").info(f"Cluster CIDR changed: {previous} -> {value}")

    def load(self) -> str | None:
        """Return the latest committed CIDR, or None when not yet resolved."""
        with self._lock:
            return self._value

    def require(self, family: str | None = None) -> str:
        """Return the CIDR or raise when it has not been resolved."""
        value = self.load()
        if value is None:
            raise ConfigurationError("cluster_cidr", "is not resolved", family)
        return value

    @property
    def resolved(self) -> bool:
        return self.load() is not None
