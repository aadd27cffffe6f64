"""Parsing and formatting of duration strings such as ``1m30s`` or ``250ms``."""

from __future__ import annotations

import re

_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,  # U+00B5 micro sign
    "μs": 1e-6,  # U+03BC greek mu
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

# ASCII digits only; float() would otherwise accept other Unicode digits.
_COMPONENT = re.compile(r"([0-9]+\.?[0-9]*|\.[0-9]+)(ns|us|µs|μs|ms|s|m|h)")

# Largest duration representable as signed 64-bit nanoseconds (about 2562047h).
MAX_SECONDS = 9_223_372_036.854775807


class DurationError(ValueError):
    """Raised when a duration string cannot be parsed."""


def parse_duration(text: str) -> float:
    """Parse a duration string into seconds.

    A duration is an optionally signed sequence of decimal numbers, each with
    a unit suffix, e.g. ``300ms``, ``-1.5h`` or ``2h45m``. The bare string
    ``0`` is accepted without a unit. Negative values are returned as-is.
    """

    remainder = text
    sign = 1.0
    if remainder[:1] in ("-", "+"):
        if remainder[0] == "-":
            sign = -1.0
        remainder = remainder[1:]

    if remainder == "0":
        return 0.0
    if not remainder:
        raise DurationError(f'invalid duration "{text}"')

    total = 0.0
    pos = 0
    while pos < len(remainder):
        match = _COMPONENT.match(remainder, pos)
        if match is None:
            raise DurationError(f'invalid duration "{text}"')
        total += float(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()
    if total > MAX_SECONDS:
        raise DurationError(f'invalid duration "{text}"')
    return sign * total


def _trim(value: float) -> str:
    rendered = f"{value:.9f}".rstrip("0").rstrip(".")
    return rendered or "0"


def format_duration(seconds: float) -> str:
    """Render seconds in the notation accepted by :func:`parse_duration`."""

    nanos = round(abs(seconds) * 1e9)
    sign = "-" if seconds < 0 and nanos else ""
    if nanos == 0:
        return "0s"
    if nanos < 1_000:
        return f"{sign}{nanos}ns"
    if nanos < 1_000_000:
        return f"{sign}{_trim(nanos / 1e3)}µs"
    if nanos < 1_000_000_000:
        return f"{sign}{_trim(nanos / 1e6)}ms"

    hours, nanos = divmod(nanos, 3_600_000_000_000)
    minutes, nanos = divmod(nanos, 60_000_000_000)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if hours or minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{_trim(nanos / 1e9)}s")
    return sign + "".join(parts)
