#!/usr/bin/env python3
"""
SER timestamp conversion.

SER files store one unsigned 64-bit tick count per frame: 100 ns units
elapsed since 0001-01-01T00:00:00 UTC (the .NET DateTime epoch). Python
datetimes carry microseconds only, so the sub-microsecond part of a tick is
exposed separately through tick_residual_ns() and ticks_to_unix_ns().
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

SER_EPOCH = datetime(1, 1, 1, tzinfo=timezone.utc)
UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

TICKS_PER_MICROSECOND = 10
NANOSECONDS_PER_TICK = 100

# Ticks between the SER epoch and the Unix epoch
_UNIX_EPOCH_TICKS = (UNIX_EPOCH - SER_EPOCH) // timedelta(microseconds=1) * TICKS_PER_MICROSECOND


def ticks_to_datetime(ticks: int) -> datetime:
    """Convert SER ticks to an aware UTC datetime, truncated to microseconds."""
    return SER_EPOCH + timedelta(microseconds=ticks // TICKS_PER_MICROSECOND)


def tick_residual_ns(ticks: int, legacy: bool = False) -> int:
    """Nanoseconds below the microsecond boundary.

    With ``legacy=True`` the residual is ``(ticks % 100) * 10``, which is what
    older releases added to the microsecond term. It does not correspond to
    the tick unit and can reach 990 ns; it is kept only for comparing against
    timestamps produced by those releases.
    """
    if legacy:
        return (ticks % 100) * 10
    return (ticks % TICKS_PER_MICROSECOND) * NANOSECONDS_PER_TICK


def ticks_to_unix_ns(ticks: int, legacy: bool = False) -> int:
    """Integer nanoseconds since 1970-01-01 UTC (negative before the Unix epoch)."""
    micros = ticks // TICKS_PER_MICROSECOND - _UNIX_EPOCH_TICKS // TICKS_PER_MICROSECOND
    return micros * 1000 + tick_residual_ns(ticks, legacy=legacy)


def datetime_to_ticks(timestamp: datetime) -> int:
    """Inverse of ticks_to_datetime at microsecond precision."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return (timestamp - SER_EPOCH) // timedelta(microseconds=1) * TICKS_PER_MICROSECOND
