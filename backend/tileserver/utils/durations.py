"""Parsing of human-readable duration strings such as ``30s`` or ``1h30m``.

A duration is a sequence of decimal numbers, each with an optional
fraction and a mandatory unit suffix: ``ns``, ``us`` (or ``µs``), ``ms``,
``s``, ``m`` or ``h``. A leading ``+`` is allowed, and ``"0"`` on its own is
also accepted. Negative durations are rejected.
"""

from __future__ import annotations

import datetime
import decimal
import re

_UNITS_MICROSECONDS = {
    "ns": decimal.Decimal("0.001"),
    "us": decimal.Decimal(1),
    "µs": decimal.Decimal(1),
    "μs": decimal.Decimal(1),
    "ms": decimal.Decimal(1000),
    "s": decimal.Decimal(1_000_000),
    "m": decimal.Decimal(60_000_000),
    "h": decimal.Decimal(3_600_000_000),
}

_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> datetime.timedelta:
    """Parse a duration string into a timedelta.

    Args:
        text: Duration such as ``"30s"``, ``"5m"``, ``"1.5h"`` or ``"1h30m"``.

    Returns:
        The parsed duration, truncated to microsecond precision.

    Raises:
        ValueError: If ``text`` is not a valid duration.

    Example:
        >>> parse_duration("1m30s")
        datetime.timedelta(seconds=90)
    """
    if not text:
        raise ValueError("invalid duration: empty string")
    body = text.removeprefix("+")
    if body == "0":
        return datetime.timedelta()
    if not body:
        raise ValueError(f"invalid duration: {text!r}")

    total = decimal.Decimal(0)
    pos = 0
    while pos < len(body):
        match = _COMPONENT.match(body, pos)
        if match is None:
            raise ValueError(f"invalid duration: {text!r}")
        number, unit = match.groups()
        total += decimal.Decimal(number) * _UNITS_MICROSECONDS[unit]
        pos = match.end()
    return datetime.timedelta(microseconds=int(total))
