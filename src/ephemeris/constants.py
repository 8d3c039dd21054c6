"""Physical and numerical constants shared across the package.

All Earth constants are WGS-84 so that the gravitational parameter and the
ellipsoid used for geodetic conversion stay consistent with each other.
"""

import math

# ── Earth (WGS-84) ──

MU_EARTH = 398600.4418
"""Earth gravitational parameter (km³/s²)."""

R_EARTH = 6378.137
"""Earth equatorial radius (km)."""

FLATTENING = 1.0 / 298.257223563
"""Ellipsoid flattening."""

E2_EARTH = FLATTENING * (2.0 - FLATTENING)
"""First eccentricity squared of the ellipsoid."""

R_POLAR = R_EARTH * (1.0 - FLATTENING)
"""Earth polar radius (km)."""

OMEGA_EARTH = 7.292115146706979e-5
"""Earth sidereal rotation rate (rad/s)."""

# ── Time ──

SOLAR_DAY = 86400.0
"""Seconds in a solar day."""

JD_UNIX_EPOCH = 2440587.5
"""Julian Day of 1970-01-01T00:00:00 UTC."""

JD_J2000 = 2451545.0
"""Julian Day of the J2000.0 epoch."""

DAYS_PER_CENTURY = 36525.0
"""Days per Julian century."""

# ── Angles ──

TWO_PI = 2.0 * math.pi
"""2π constant."""

DEGREES_PER_CIRCLE = 360.0

# ── Solver defaults ──

KEPLER_TOLERANCE = 1e-5
"""Default Newton-Raphson step tolerance (radians)."""

KEPLER_MAX_ITERATIONS = 500
"""Default Newton-Raphson iteration ceiling."""

MIN_RANGE_KM = 1e-9
"""Ranges below this are treated as degenerate geometry."""

FIDELITY_HORIZON_DAYS = 10.0
"""Two-body propagation is not trusted beyond this distance from epoch."""
