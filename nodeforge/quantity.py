"""Kubernetes quantity and Go duration helpers.

Volume sizes, reserved resources and eviction thresholds arrive as
Kubernetes quantity strings ("20Gi", "4G", "500m"); grace periods are
rendered the way the kubelet prints them ("1m30s").
"""

from __future__ import annotations

import math
import re
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Final

_SUFFIXES: Final[dict[str, Decimal]] = {
    "": Decimal(1),
    "m": Decimal("0.001"),
    "k": Decimal(10) ** 3,
    "M": Decimal(10) ** 6,
    "G": Decimal(10) ** 9,
    "T": Decimal(10) ** 12,
    "P": Decimal(10) ** 15,
    "E": Decimal(10) ** 18,
    "Ki": Decimal(1024),
    "Mi": Decimal(1024) ** 2,
    "Gi": Decimal(1024) ** 3,
    "Ti": Decimal(1024) ** 4,
    "Pi": Decimal(1024) ** 5,
    "Ei": Decimal(1024) ** 6,
}

_QUANTITY_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^\s*([+-]?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)\s*(Ki|Mi|Gi|Ti|Pi|Ei|m|k|M|G|T|P|E)?\s*$"
)

MIB: Final = 1024**2
GIB: Final = 1024**3

type Quantity = str | int


def parse_quantity(quantity: Quantity) -> Decimal:
    """Parse a Kubernetes quantity into base units.

    Args:
        quantity: Quantity string (e.g., "20Gi", "4G", "500m") or a plain
            integer already in base units.

    Returns:
        Value in base units (bytes for storage, cores for CPU).

    Raises:
        ValueError: If the quantity format is invalid.

    Examples:
        >>> parse_quantity("1Ki")
        Decimal('1024')
        >>> parse_quantity("500m")
        Decimal('0.500')
    """
    if isinstance(quantity, int):
        return Decimal(quantity)

    match = _QUANTITY_PATTERN.match(quantity)
    if not match:
        raise ValueError(
            f"Invalid quantity: {quantity!r}. "
            "Expected format: NUMBER[SUFFIX] (e.g., '20Gi', '4G', '500m')"
        )

    try:
        value = Decimal(match.group(1))
    except InvalidOperation as e:
        raise ValueError(f"Invalid quantity: {quantity!r}") from e

    return value * _SUFFIXES[match.group(2) or ""]


def to_gib(quantity: Quantity) -> int:
    """Convert a storage quantity to whole gibibytes, rounding up.

    Examples:
        >>> to_gib("4G")
        4
        >>> to_gib("200G")
        187
        >>> to_gib("200Gi")
        200
    """
    return math.ceil(parse_quantity(quantity) / GIB)


def to_mib(quantity: Quantity) -> int:
    """Convert a memory quantity to whole mebibytes, rounding up."""
    return math.ceil(parse_quantity(quantity) / MIB)


def to_millicores(quantity: Quantity) -> int:
    """Convert a CPU quantity to millicores, rounding up."""
    return math.ceil(parse_quantity(quantity) * 1000)


def parse_percentage(value: str) -> float | None:
    """Return the fraction for a percentage string ("10%" -> 0.1), else None."""
    value = value.strip()
    if not value.endswith("%"):
        return None
    try:
        return float(value[:-1]) / 100
    except ValueError as e:
        raise ValueError(f"Invalid percentage: {value!r}") from e


def format_duration(duration: timedelta) -> str:
    """Render a duration the way Go's time.Duration prints it.

    Examples:
        >>> format_duration(timedelta(minutes=1))
        '1m0s'
        >>> format_duration(timedelta(hours=1, seconds=5))
        '1h0m5s'
        >>> format_duration(timedelta(milliseconds=500))
        '500ms'
    """
    total_us = duration // timedelta(microseconds=1)
    if total_us == 0:
        return "0s"

    sign = "-" if total_us < 0 else ""
    total_us = abs(total_us)

    if total_us < 1_000_000:
        if total_us % 1000 == 0:
            return f"{sign}{total_us // 1000}ms"
        return f"{sign}{total_us}µs"

    hours, rem = divmod(total_us, 3_600_000_000)
    minutes, rem = divmod(rem, 60_000_000)
    seconds, micros = divmod(rem, 1_000_000)

    secs = str(seconds)
    if micros:
        secs += "." + f"{micros:06d}".rstrip("0")

    if hours:
        return f"{sign}{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{sign}{minutes}m{secs}s"
    return f"{sign}{secs}s"
