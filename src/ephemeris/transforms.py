"""Coordinate transformations used in satellite tracking.

Frames:
    - Perifocal (PQW): orbital plane, x towards perigee.
    - ECI: Earth-centered inertial, x towards the vernal equinox.
    - ECEF: Earth-centered, Earth-fixed (rotates with the Earth).
    - Geodetic: latitude, longitude, height over the WGS-84 ellipsoid.
    - ENU: East-North-Up tangent plane at an observer.
    - Horizontal: azimuth (clockwise from north), elevation, range.

Vectors are length-3 NumPy arrays in kilometres (km/s for velocities).
Angles are degrees unless the argument name says otherwise. Every function
is pure; the only partial one is ``enu_to_horizontal``, which rejects a
near-zero range.

References:
    - Vallado, D. (2013). Fundamentals of Astrodynamics and Applications,
      sections 3.4 to 3.7.
    - Montenbruck, O. & Gill, E. (2000). Satellite Orbits, section 5.4.
"""

from __future__ import annotations

import math
from typing import Sequence, Union

import numpy as np

from .constants import E2_EARTH, MIN_RANGE_KM, OMEGA_EARTH, R_EARTH
from .errors import DegenerateGeometryError
from .timeutil import normalize_degrees, wrap_longitude

VectorLike = Union[np.ndarray, Sequence[float]]

REFRACTION_THRESHOLD_DEG = 15.0
"""Default elevation above which refraction is not applied (degrees)."""


def _vec(v: VectorLike) -> np.ndarray:
    return np.asarray(v, dtype=float).reshape(3)


# ── Elementary rotations ──


def rotation_x(angle_rad: float) -> np.ndarray:
    """Active rotation matrix about the x axis."""
    c, s = math.cos(angle_rad), math.sin(angle_rad)
    return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]])


def rotation_z(angle_rad: float) -> np.ndarray:
    """Active rotation matrix about the z axis."""
    c, s = math.cos(angle_rad), math.sin(angle_rad)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


# ── Orbital plane to inertial ──


def perifocal_to_eci(
    vector: VectorLike,
    arg_perigee: float,
    inclination: float,
    raan: float,
) -> np.ndarray:
    """Rotate a perifocal vector into ECI.

    Applied in sequence: argument of perigee about the orbit normal,
    inclination about the line of nodes, then RAAN about the polar axis.
    """
    matrix = (
        rotation_z(math.radians(raan))
        @ rotation_x(math.radians(inclination))
        @ rotation_z(math.radians(arg_perigee))
    )
    return matrix @ _vec(vector)


# ── Inertial <-> Earth-fixed ──


def eci_to_ecef(r_eci: VectorLike, gmst_rad: float) -> np.ndarray:
    """Rotate an ECI position into ECEF by ``-GMST`` about the z axis."""
    return rotation_z(-gmst_rad) @ _vec(r_eci)


def ecef_to_eci(r_ecef: VectorLike, gmst_rad: float) -> np.ndarray:
    """Inverse of ``eci_to_ecef``."""
    return rotation_z(gmst_rad) @ _vec(r_ecef)


def eci_velocity_to_ecef(
    r_eci: VectorLike,
    v_eci: VectorLike,
    gmst_rad: float,
) -> np.ndarray:
    """ECEF velocity: rotated ECI velocity minus ``ω_earth × r_ecef``."""
    r_ecef = eci_to_ecef(r_eci, gmst_rad)
    v_rot = eci_to_ecef(v_eci, gmst_rad)
    omega = np.array([0.0, 0.0, OMEGA_EARTH])
    return v_rot - np.cross(omega, r_ecef)


# ── Geodetic <-> Earth-fixed ──


def geodetic_to_ecef(latitude: float, longitude: float, altitude_m: float = 0.0) -> np.ndarray:
    """WGS-84 geodetic coordinates to an ECEF position (km).

    ``N = a / sqrt(1 - e² sin² φ)``, then
    ``X = (N + h) cos φ cos λ``, ``Y = (N + h) cos φ sin λ``,
    ``Z = (N (1 - e²) + h) sin φ``.
    """
    lat = math.radians(latitude)
    lon = math.radians(longitude)
    h = altitude_m / 1000.0

    sin_lat = math.sin(lat)
    n = R_EARTH / math.sqrt(1.0 - E2_EARTH * sin_lat * sin_lat)

    return np.array([
        (n + h) * math.cos(lat) * math.cos(lon),
        (n + h) * math.cos(lat) * math.sin(lon),
        (n * (1.0 - E2_EARTH) + h) * sin_lat,
    ])


def ecef_to_geodetic(
    r_ecef: VectorLike,
    tolerance: float = 1e-12,
    max_iterations: int = 10,
) -> tuple[float, float, float]:
    """ECEF position to WGS-84 geodetic ``(latitude, longitude, altitude_km)``.

    Latitude is found by fixed-point iteration on the prime-vertical
    radius, which converges in a handful of steps for any point outside
    the Earth's core. Longitude is wrapped to ``[-180, 180)``.
    """
    x, y, z = _vec(r_ecef)
    p = math.hypot(x, y)
    longitude = wrap_longitude(math.degrees(math.atan2(y, x)))

    lat = math.atan2(z, p * (1.0 - E2_EARTH))
    for _ in range(max_iterations):
        sin_lat = math.sin(lat)
        n = R_EARTH / math.sqrt(1.0 - E2_EARTH * sin_lat * sin_lat)
        new_lat = math.atan2(z + E2_EARTH * n * sin_lat, p)
        done = abs(new_lat - lat) < tolerance
        lat = new_lat
        if done:
            break

    sin_lat = math.sin(lat)
    altitude = (
        p * math.cos(lat)
        + z * sin_lat
        - R_EARTH * math.sqrt(1.0 - E2_EARTH * sin_lat * sin_lat)
    )
    return math.degrees(lat), longitude, altitude


# ── Earth-fixed <-> local horizon ──


def _enu_matrix(latitude: float, longitude: float) -> np.ndarray:
    lat = math.radians(latitude)
    lon = math.radians(longitude)
    sin_lat, cos_lat = math.sin(lat), math.cos(lat)
    sin_lon, cos_lon = math.sin(lon), math.cos(lon)
    return np.array([
        [-sin_lon, cos_lon, 0.0],
        [-sin_lat * cos_lon, -sin_lat * sin_lon, cos_lat],
        [cos_lat * cos_lon, cos_lat * sin_lon, sin_lat],
    ])


def ecef_to_enu(
    r_ecef: VectorLike,
    observer_ecef: VectorLike,
    latitude: float,
    longitude: float,
) -> np.ndarray:
    """Position relative to an observer, expressed in the observer's ENU frame."""
    return _enu_matrix(latitude, longitude) @ (_vec(r_ecef) - _vec(observer_ecef))


def enu_to_ecef(
    enu: VectorLike,
    observer_ecef: VectorLike,
    latitude: float,
    longitude: float,
) -> np.ndarray:
    """Inverse of ``ecef_to_enu``."""
    return _vec(observer_ecef) + _enu_matrix(latitude, longitude).T @ _vec(enu)


def enu_to_horizontal(enu: VectorLike) -> tuple[float, float, float]:
    """ENU vector to ``(azimuth, elevation, range_km)``.

    Azimuth is ``atan2(east, north)`` in ``[0, 360)``, elevation is
    ``asin(up / range)`` in ``[-90, 90]``.

    Raises:
        DegenerateGeometryError: If the range is (nearly) zero.
    """
    east, north, up = _vec(enu)
    rng = math.sqrt(east * east + north * north + up * up)
    if not rng >= MIN_RANGE_KM:
        raise DegenerateGeometryError(rng)

    ratio = min(1.0, max(-1.0, up / rng))
    elevation = math.degrees(math.asin(ratio))
    azimuth = normalize_degrees(math.degrees(math.atan2(east, north)))
    return azimuth, elevation, rng


def horizontal_to_enu(azimuth: float, elevation: float, range_km: float) -> np.ndarray:
    """Inverse of ``enu_to_horizontal``."""
    az = math.radians(azimuth)
    el = math.radians(elevation)
    horizontal = range_km * math.cos(el)
    return np.array([
        horizontal * math.sin(az),
        horizontal * math.cos(az),
        range_km * math.sin(el),
    ])


# ── Atmospheric refraction ──


def apply_refraction(
    elevation: float,
    threshold: float = REFRACTION_THRESHOLD_DEG,
) -> float:
    """Apparent elevation after atmospheric refraction (Bennett's formula).

    ``R = cot(h + 7.31 / (h + 4.4))`` arc-minutes, with ``h`` the true
    elevation in degrees, for standard conditions (10 °C, 1010 mbar).
    Only elevations in ``(-1, threshold)`` are corrected: above the
    threshold the correction is negligible, below -1° it is unreliable.
    """
    if elevation <= -1.0 or elevation >= threshold:
        return elevation

    h = elevation + 7.31 / (elevation + 4.4)
    refraction_arcmin = 1.0 / math.tan(math.radians(h))
    return min(90.0, elevation + refraction_arcmin / 60.0)
