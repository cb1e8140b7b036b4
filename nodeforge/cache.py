"""In-memory launch template cache with time-to-live.

Entries are keyed by launch template name and shared by every provisioning
attempt in the process. The cache never mutates an entry in place: a stale
entry is invalidated and the caller regenerates it.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta

from loguru import logger

from .constants import DEFAULT_CACHE_TTL_MINUTES
from .types import BlockDeviceMapping

log = logger.bind(component="cache")

type Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class LaunchConfiguration:
    """A launch template confirmed to exist in EC2."""

    name: str
    template_id: str
    image_id: str
    block_device_mappings: tuple[BlockDeviceMapping, ...]
    user_data: str
    created_at: datetime
    expires_at: datetime | None = None


class LaunchTemplateCache:
    """Thread-safe TTL cache of launch configurations.

    Concurrent identical requests are not de-duplicated: both compute the
    same name and may both create the template. Creation is idempotent on
    the name, and a vanished template is caught by the stale-template retry.

    Example:
        >>> cache = LaunchTemplateCache(ttl=timedelta(minutes=5))
        >>> cache.put(entry.name, entry)
        >>> hit, cached = cache.get(entry.name)
    """

    def __init__(
        self,
        ttl: timedelta = timedelta(minutes=DEFAULT_CACHE_TTL_MINUTES),
        clock: Clock = _utcnow,
    ) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, LaunchConfiguration] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> tuple[bool, LaunchConfiguration | None]:
        """Get an entry.

        Returns:
            Tuple of (hit, entry). Expired entries are evicted and reported
            as a miss.
        """
        with self._lock:
            entry = self._entries.get(name)
            if entry is None:
                return False, None
            if entry.expires_at is not None and self._clock() >= entry.expires_at:
                del self._entries[name]
                log.debug(f"Expired launch template {name}")
                return False, None
            return True, entry

    def put(self, name: str, entry: LaunchConfiguration, ttl: timedelta | None = None) -> LaunchConfiguration:
        """Store an entry, arming its expiry. Returns the stored entry."""
        stored = replace(entry, expires_at=self._clock() + (ttl or self.ttl))
        with self._lock:
            self._entries[name] = stored
        return stored

    def touch(self, name: str) -> bool:
        """Re-arm the expiry of an entry after the remote API confirmed it."""
        with self._lock:
            entry = self._entries.get(name)
            if entry is None:
                return False
            self._entries[name] = replace(entry, expires_at=self._clock() + self.ttl)
            return True

    def invalidate(self, name: str) -> bool:
        """Remove an entry. Returns True when an entry was present."""
        with self._lock:
            removed = self._entries.pop(name, None) is not None
        if removed:
            log.debug(f"Invalidated launch template {name}")
        return removed

    def force_expire(self, name: str) -> bool:
        """Mark an entry as already expired without removing it.

        Intended for tests that simulate a stale cache.
        """
        with self._lock:
            entry = self._entries.get(name)
            if entry is None:
                return False
            self._entries[name] = replace(entry, expires_at=self._clock())
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def names(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name)[0]
