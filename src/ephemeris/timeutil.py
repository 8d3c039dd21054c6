"""Time and angle utilities.

Julian Day conversion, Greenwich Mean Sidereal Time and angle
normalization. Everything here is a pure function of its arguments.

References:
    - Vallado, D. (2013). Fundamentals of Astrodynamics and Applications,
      Algorithm 15 (GMST, IAU-82).
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

from .constants import (
    DAYS_PER_CENTURY,
    DEGREES_PER_CIRCLE,
    JD_J2000,
    JD_UNIX_EPOCH,
    SOLAR_DAY,
    TWO_PI,
)

_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Return ``dt`` as an aware UTC datetime. Naive input is taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def julian_day(dt: datetime) -> float:
    """Julian Day of a UTC datetime."""
    seconds = (to_utc(dt) - _UNIX_EPOCH).total_seconds()
    return JD_UNIX_EPOCH + seconds / SOLAR_DAY


def datetime_from_julian_day(jd: float) -> datetime:
    """Aware UTC datetime for a Julian Day."""
    return _UNIX_EPOCH + timedelta(days=jd - JD_UNIX_EPOCH)


def julian_day_from_epoch(year: int, day_of_year: float) -> float:
    """Julian Day of a TLE epoch.

    Args:
        year: Full 4-digit year.
        day_of_year: Fractional day of year (1.0 = midnight Jan 1).
    """
    jan1 = datetime(year, 1, 1, tzinfo=timezone.utc)
    return julian_day(jan1) + day_of_year - 1.0


def gmst(jd: float) -> float:
    """Greenwich Mean Sidereal Time in radians, in ``[0, 2π)``.

    IAU-82 expression evaluated in seconds of time, then converted at
    240 s per degree.
    """
    t = (jd - JD_J2000) / DAYS_PER_CENTURY
    seconds = (
        67310.54841
        + (876600.0 * 3600.0 + 8640184.812866) * t
        + 0.093104 * t**2
        - 6.2e-6 * t**3
    )
    theta = math.radians((seconds % SOLAR_DAY) / 240.0)
    return theta % TWO_PI


def normalize_degrees(angle: float) -> float:
    """Wrap an angle to ``[0, 360)``."""
    wrapped = angle % DEGREES_PER_CIRCLE
    # -1e-17 % 360 rounds up to exactly 360.0
    return 0.0 if wrapped == DEGREES_PER_CIRCLE else wrapped


def wrap_longitude(angle: float) -> float:
    """Wrap a longitude to ``[-180, 180)``."""
    return normalize_degrees(angle + 180.0) - 180.0
