"""Shared text formatting helpers for packbench.

Durations are rendered the way the benchmarked tool's own flag parser
reads them (``4h``, ``1h30m``, ``1.5s``, ``250ms``), so the same helper
serves both the ``--timeout`` argument and the comparison report.
"""

from __future__ import annotations

import math

KIB = 1024
MIB = 1024 * 1024

_US_PER_S = 1_000_000
_US_PER_M = 60 * _US_PER_S
_US_PER_H = 60 * _US_PER_M


def to_mib(n_bytes: int | float) -> float:
    """Convert a byte count to mebibytes."""
    return n_bytes / MIB


def _trim(value: float) -> str:
    return f"{value:.6f}".rstrip("0").rstrip(".")


def format_duration(seconds: float) -> str:
    """Format seconds as a compact duration string.

    Zero components are omitted: ``14400`` gives ``'4h'``, ``5400`` gives
    ``'1h30m'``, ``90.5`` gives ``'1m30.5s'``.  Sub-second values use
    ``ms`` or ``µs``.  Resolution is one microsecond.

    Raises:
        ValueError: If *seconds* is negative or not finite.
    """
    if not math.isfinite(seconds) or seconds < 0:
        raise ValueError(f"Cannot format duration: {seconds!r}")

    total_us = round(seconds * _US_PER_S)
    if total_us == 0:
        return "0s"
    if total_us < 1000:
        return f"{total_us}µs"
    if total_us < _US_PER_S:
        return f"{_trim(total_us / 1000)}ms"

    hours, rem = divmod(total_us, _US_PER_H)
    minutes, rem = divmod(rem, _US_PER_M)
    parts: list[str] = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if rem:
        parts.append(f"{_trim(rem / _US_PER_S)}s")
    return "".join(parts)


def format_mib(n_bytes: int | float) -> str:
    """Format a byte count as MiB with six fractional digits."""
    return f"{to_mib(n_bytes):.6f}"


def format_percentage(value: float, precision: int = 2) -> str:
    """Format a percentage delta with an explicit sign.

    Infinite and NaN deltas (zero reference values) render as ``+inf``,
    ``-inf`` and ``nan``.
    """
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "+inf" if value > 0 else "-inf"
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.{precision}f}%"
