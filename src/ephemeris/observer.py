"""Ground observers and topocentric (observer-relative) views."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Optional

import numpy as np

from .timeutil import gmst, julian_day
from .transforms import (
    REFRACTION_THRESHOLD_DEG,
    apply_refraction,
    ecef_to_enu,
    eci_to_ecef,
    eci_velocity_to_ecef,
    enu_to_horizontal,
    geodetic_to_ecef,
)

if TYPE_CHECKING:
    from .orbit import Orbitable


@dataclass(frozen=True)
class Observer:
    """A fixed location on the WGS-84 ellipsoid.

    Attributes:
        latitude: Geodetic latitude (degrees, -90 to 90, north positive).
        longitude: Longitude (degrees, east positive; -180 to 360 accepted).
        altitude_m: Height above the ellipsoid (metres).
        name: Optional label.
    """
    latitude: float
    longitude: float
    altitude_m: float = 0.0
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude must be in [-90, 90], got {self.latitude}")
        if not -180.0 <= self.longitude < 360.0:
            raise ValueError(f"Longitude must be in [-180, 360), got {self.longitude}")
        if not math.isfinite(self.altitude_m):
            raise ValueError(f"Altitude must be finite, got {self.altitude_m}")

    @property
    def ecef(self) -> np.ndarray:
        """Observer position in ECEF (km)."""
        return geodetic_to_ecef(self.latitude, self.longitude, self.altitude_m)


@dataclass(frozen=True)
class Topocentric:
    """Direction and distance to a target as seen from an observer.

    Attributes:
        azimuth: Degrees clockwise from north, in ``[0, 360)``.
        elevation: Degrees above the horizon, in ``[-90, 90]``.
        range_km: Slant range (km).
        range_rate_km_s: Range rate (km/s), positive when receding.
    """
    azimuth: float
    elevation: float
    range_km: float
    range_rate_km_s: float

    def to_dict(self) -> dict:
        return {
            "azimuth_deg": self.azimuth,
            "elevation_deg": self.elevation,
            "range_km": self.range_km,
            "range_rate_km_s": self.range_rate_km_s,
        }


def look_angles(
    orbit: Orbitable,
    observer: Observer,
    when: datetime,
    refraction: bool = False,
    refraction_threshold: float = REFRACTION_THRESHOLD_DEG,
) -> Topocentric:
    """Topocentric view of ``orbit`` from ``observer`` at ``when``.

    The ECI state is rotated into ECEF (velocity includes the Earth's
    rotation), differenced with the observer and projected onto the
    observer's ENU frame. Range rate is the relative velocity along the
    line of sight.

    Raises:
        ConvergenceError: If the orbit's anomaly solve did not converge.
        DegenerateGeometryError: If observer and target coincide.
    """
    jd = julian_day(when)
    theta = gmst(jd)
    r_eci, v_eci = orbit.eci_state_at(when)

    r_ecef = eci_to_ecef(r_eci, theta)
    v_ecef = eci_velocity_to_ecef(r_eci, v_eci, theta)
    observer_ecef = observer.ecef

    enu = ecef_to_enu(r_ecef, observer_ecef, observer.latitude, observer.longitude)
    azimuth, elevation, range_km = enu_to_horizontal(enu)
    range_rate = float(np.dot(r_ecef - observer_ecef, v_ecef)) / range_km

    if refraction:
        elevation = apply_refraction(elevation, refraction_threshold)

    return Topocentric(
        azimuth=azimuth,
        elevation=elevation,
        range_km=range_km,
        range_rate_km_s=range_rate,
    )
