"""Two-body Keplerian orbit model.

Builds an immutable ``Orbit`` from a parsed ``TLE`` and propagates it to an
arbitrary UTC time: mean anomaly advances linearly from the epoch, Kepler's
equation is solved for the eccentric anomaly by Newton-Raphson, and the
position is rotated from the orbital plane into inertial, Earth-fixed and
geodetic coordinates.

This is deliberately not SGP4. There is no drag, no J2, no third-body or
radiation-pressure perturbation, so positions drift away from reality as
the query time moves away from the element epoch; expect usable results
for roughly one to ten days (``FIDELITY_HORIZON_DAYS``).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

import numpy as np

from .constants import (
    FIDELITY_HORIZON_DAYS,
    KEPLER_MAX_ITERATIONS,
    KEPLER_TOLERANCE,
    MU_EARTH,
    R_EARTH,
    SOLAR_DAY,
    TWO_PI,
)
from .errors import ConvergenceError, OrbitError, SingularityError
from .timeutil import datetime_from_julian_day, gmst, julian_day, normalize_degrees
from .transforms import ecef_to_geodetic, eci_to_ecef, perifocal_to_eci

if TYPE_CHECKING:
    from .observer import Observer, Topocentric
    from .tle_parser import TLE

logger = logging.getLogger(__name__)


# ── Result types ──


@dataclass(frozen=True)
class KeplerSolution:
    """Outcome of the bounded Newton-Raphson solve of Kepler's equation.

    Attributes:
        value: Eccentric anomaly (radians, in ``[0, 2π)`` for normalized input).
        converged: Whether the last Newton step was below the tolerance.
        iterations: Newton steps taken.
        residual: ``|E - e·sin(E) - M|`` at ``value`` (radians).
    """
    value: float
    converged: bool
    iterations: int
    residual: float


@dataclass(frozen=True)
class AnomalySet:
    """Mean, eccentric and true anomaly at one instant (degrees, 0 to 360).

    ``converged``, ``iterations`` and ``residual`` come from the Kepler
    solve. When ``converged`` is False the eccentric and true anomalies
    did not meet the solver tolerance and must not be trusted.
    """
    mean: float
    eccentric: float
    true: float
    converged: bool = True
    iterations: int = 0
    residual: float = 0.0


@dataclass(frozen=True)
class GeodeticPosition:
    """Sub-satellite point and height over the WGS-84 ellipsoid.

    Attributes:
        latitude: Geodetic latitude (degrees, -90 to 90).
        longitude: Longitude (degrees, -180 to 180).
        altitude: Height above the ellipsoid (km).
    """
    latitude: float
    longitude: float
    altitude: float


@runtime_checkable
class Orbitable(Protocol):
    """Anything that exposes Keplerian elements and can be propagated.

    ``Orbit`` satisfies this structurally; alternate element sources can
    implement it without inheriting from anything.
    """

    @property
    def semi_major_axis(self) -> float: ...

    @property
    def eccentricity(self) -> float: ...

    @property
    def inclination(self) -> float: ...

    @property
    def raan(self) -> float: ...

    @property
    def arg_perigee(self) -> float: ...

    @property
    def mean_anomaly(self) -> float: ...

    def anomalies_at(self, when: datetime) -> AnomalySet: ...

    def eci_state_at(self, when: datetime) -> tuple[np.ndarray, np.ndarray]: ...

    def position_at(self, when: datetime) -> GeodeticPosition: ...


# ── Kepler's equation ──


def semi_major_axis_from_mean_motion(mean_motion: float) -> float:
    """Semi-major axis (km) from mean motion (rev/day) by Kepler's third law.

    ``a = (μ / n²)^(1/3)`` with ``n`` in rad/s.

    Raises:
        OrbitError: If the mean motion is not positive.
    """
    if not mean_motion > 0.0:
        raise OrbitError(f"Mean motion must be positive, got {mean_motion} rev/day")
    n_rad_s = mean_motion * TWO_PI / SOLAR_DAY
    return (MU_EARTH / n_rad_s**2) ** (1.0 / 3.0)


def solve_kepler(
    mean_anomaly: float,
    eccentricity: float,
    tolerance: float = KEPLER_TOLERANCE,
    max_iterations: int = KEPLER_MAX_ITERATIONS,
) -> KeplerSolution:
    """Solve ``M = E - e·sin(E)`` for the eccentric anomaly ``E``.

    Newton-Raphson from ``E₀ = M`` (or ``E₀ = π`` when ``e > 0.8``, where
    starting from ``M`` converges poorly), stopping when the step drops
    below ``tolerance`` or after ``max_iterations`` steps. Hitting the
    ceiling is not an error here; it is reported through
    ``KeplerSolution.converged``.

    Args:
        mean_anomaly: Mean anomaly (radians). Wrapped to ``[0, 2π)``.
        eccentricity: Orbital eccentricity, ``0 <= e < 1``.
        tolerance: Step size (radians) below which the solve has converged.
        max_iterations: Hard ceiling on Newton steps.

    Raises:
        SingularityError: If ``e >= 1``.
        OrbitError: If ``e < 0``.
    """
    if eccentricity >= 1.0:
        raise SingularityError(eccentricity)
    if eccentricity < 0.0:
        raise OrbitError(f"Eccentricity must be non-negative, got {eccentricity}")

    m = mean_anomaly % TWO_PI
    if eccentricity == 0.0:
        return KeplerSolution(value=m, converged=True, iterations=0, residual=0.0)

    e = eccentricity
    ecc_anomaly = m if e <= 0.8 else math.pi
    converged = False
    iterations = 0

    while iterations < max_iterations:
        step = (ecc_anomaly - e * math.sin(ecc_anomaly) - m) / (1.0 - e * math.cos(ecc_anomaly))
        ecc_anomaly -= step
        iterations += 1
        if abs(step) < tolerance:
            converged = True
            break

    residual = abs(ecc_anomaly - e * math.sin(ecc_anomaly) - m)
    if not converged:
        logger.debug(
            "Kepler solve hit %d iterations (e=%.6f, M=%.6f rad, residual=%.3e)",
            iterations, e, m, residual,
        )
    return KeplerSolution(
        value=ecc_anomaly,
        converged=converged,
        iterations=iterations,
        residual=residual,
    )


def true_anomaly_from_eccentric(eccentric_anomaly: float, eccentricity: float) -> float:
    """True anomaly (radians) from eccentric anomaly (radians).

    ``ν = atan2(√(1 − e²)·sin E, cos E − e)``, which keeps the correct
    quadrant for every ``E``.

    Raises:
        SingularityError: If ``e >= 1``.
    """
    if eccentricity >= 1.0:
        raise SingularityError(eccentricity)
    e = eccentricity
    return math.atan2(
        math.sqrt(1.0 - e * e) * math.sin(eccentric_anomaly),
        math.cos(eccentric_anomaly) - e,
    )


# ── Orbit model ──


@dataclass(frozen=True)
class Orbit:
    """Immutable two-body orbit derived from one element set.

    Attributes:
        semi_major_axis: Semi-major axis (km).
        eccentricity: Orbital eccentricity.
        inclination: Inclination (degrees).
        raan: Right ascension of ascending node (degrees).
        arg_perigee: Argument of perigee (degrees).
        mean_anomaly: Mean anomaly at epoch (degrees).
        mean_motion: Mean motion (rev/day).
        epoch_jd: Element epoch as a Julian Day.
        name: Object name, for labelling only.
        norad_id: Catalog number, for labelling only.
        tolerance: Kepler solver tolerance (radians).
        max_iterations: Kepler solver iteration ceiling.

    Example:
        >>> orbit = Orbit.from_tle(TLE.from_text(text, reference_year=2025))
        >>> orbit.position_at(datetime(2025, 3, 1, tzinfo=timezone.utc))
    """
    semi_major_axis: float
    eccentricity: float
    inclination: float
    raan: float
    arg_perigee: float
    mean_anomaly: float
    mean_motion: float
    epoch_jd: float
    name: Optional[str] = None
    norad_id: Optional[int] = None
    tolerance: float = KEPLER_TOLERANCE
    max_iterations: int = KEPLER_MAX_ITERATIONS

    def __post_init__(self) -> None:
        if self.eccentricity >= 1.0:
            raise SingularityError(self.eccentricity)
        if not 0.0 <= self.eccentricity:
            raise OrbitError(f"Eccentricity must be non-negative, got {self.eccentricity}")
        if not self.mean_motion > 0.0:
            raise OrbitError(f"Mean motion must be positive, got {self.mean_motion} rev/day")
        if not self.semi_major_axis > R_EARTH:
            raise OrbitError(
                f"Semi-major axis {self.semi_major_axis:.1f} km is inside the Earth "
                f"(equatorial radius {R_EARTH} km)"
            )

    @classmethod
    def from_tle(
        cls,
        tle: TLE,
        tolerance: float = KEPLER_TOLERANCE,
        max_iterations: int = KEPLER_MAX_ITERATIONS,
    ) -> Orbit:
        """Build an orbit from a parsed TLE.

        Every value needed later is copied out here; the TLE itself is
        not retained.

        Raises:
            OrbitError: If the mean motion is not positive or the derived
                semi-major axis is below the Earth's equatorial radius.
        """
        return cls(
            semi_major_axis=semi_major_axis_from_mean_motion(tle.mean_motion),
            eccentricity=tle.eccentricity,
            inclination=tle.inclination,
            raan=tle.raan,
            arg_perigee=tle.arg_perigee,
            mean_anomaly=tle.mean_anomaly,
            mean_motion=tle.mean_motion,
            epoch_jd=tle.epoch_jd,
            name=tle.name,
            norad_id=tle.norad_id,
            tolerance=tolerance,
            max_iterations=max_iterations,
        )

    # ── Derived quantities ──

    @property
    def epoch(self) -> datetime:
        """Element epoch as an aware UTC datetime."""
        return datetime_from_julian_day(self.epoch_jd)

    @property
    def period(self) -> float:
        """Orbital period (seconds)."""
        return SOLAR_DAY / self.mean_motion

    @property
    def perigee_altitude(self) -> float:
        """Perigee height above the equatorial radius (km)."""
        return self.semi_major_axis * (1.0 - self.eccentricity) - R_EARTH

    @property
    def apogee_altitude(self) -> float:
        """Apogee height above the equatorial radius (km)."""
        return self.semi_major_axis * (1.0 + self.eccentricity) - R_EARTH

    def days_from_epoch(self, when: datetime) -> float:
        """Signed days between the element epoch and ``when``."""
        return julian_day(when) - self.epoch_jd

    def within_fidelity(self, when: datetime, horizon_days: float = FIDELITY_HORIZON_DAYS) -> bool:
        """Whether ``when`` is close enough to epoch for two-body propagation."""
        return abs(self.days_from_epoch(when)) <= horizon_days

    # ── Propagation ──

    def mean_anomaly_at(self, when: datetime) -> float:
        """Mean anomaly (degrees, 0 to 360) at ``when``."""
        return self._mean_anomaly_at_jd(julian_day(when))

    def anomalies_at(self, when: datetime) -> AnomalySet:
        """Mean, eccentric and true anomaly at ``when``.

        A Kepler solve that did not converge is reported in the result
        (``converged=False``) rather than raised.
        """
        return self._anomalies_at_jd(julian_day(when))

    def eci_state_at(self, when: datetime) -> tuple[np.ndarray, np.ndarray]:
        """ECI position (km) and velocity (km/s) at ``when``.

        Raises:
            ConvergenceError: If the anomaly solve did not converge.
        """
        return self._eci_state_at_jd(julian_day(when))

    def position_at(self, when: datetime) -> GeodeticPosition:
        """Geodetic sub-satellite point and altitude at ``when``.

        Raises:
            ConvergenceError: If the anomaly solve did not converge.
        """
        jd = julian_day(when)
        r_eci, _ = self._eci_state_at_jd(jd)
        r_ecef = eci_to_ecef(r_eci, gmst(jd))
        latitude, longitude, altitude = ecef_to_geodetic(r_ecef)
        return GeodeticPosition(latitude=latitude, longitude=longitude, altitude=altitude)

    def topocentric(
        self,
        when: datetime,
        observer: Observer,
        refraction: bool = False,
    ) -> Topocentric:
        """Azimuth, elevation, range and range rate as seen by ``observer``."""
        from .observer import look_angles

        return look_angles(self, observer, when, refraction=refraction)

    # ── Internals ──

    def _mean_anomaly_at_jd(self, jd: float) -> float:
        revolutions = self.mean_motion * (jd - self.epoch_jd)
        return normalize_degrees(self.mean_anomaly + revolutions * 360.0)

    def _anomalies_at_jd(self, jd: float) -> AnomalySet:
        mean = self._mean_anomaly_at_jd(jd)
        solution = solve_kepler(
            math.radians(mean),
            self.eccentricity,
            tolerance=self.tolerance,
            max_iterations=self.max_iterations,
        )
        if self.eccentricity == 0.0:
            eccentric = mean
        else:
            eccentric = normalize_degrees(math.degrees(solution.value))
        true = normalize_degrees(
            math.degrees(true_anomaly_from_eccentric(solution.value, self.eccentricity))
        )
        return AnomalySet(
            mean=mean,
            eccentric=eccentric,
            true=true,
            converged=solution.converged,
            iterations=solution.iterations,
            residual=solution.residual,
        )

    def _eci_state_at_jd(self, jd: float) -> tuple[np.ndarray, np.ndarray]:
        anomalies = self._anomalies_at_jd(jd)
        if not anomalies.converged:
            raise ConvergenceError(anomalies.iterations, anomalies.residual, self.tolerance)

        a = self.semi_major_axis
        e = self.eccentricity
        ecc_anomaly = math.radians(anomalies.eccentric)
        nu = math.radians(anomalies.true)

        radius = a * (1.0 - e * math.cos(ecc_anomaly))
        r_pqw = np.array([radius * math.cos(nu), radius * math.sin(nu), 0.0])

        speed_scale = math.sqrt(MU_EARTH / (a * (1.0 - e * e)))
        v_pqw = np.array([-speed_scale * math.sin(nu), speed_scale * (e + math.cos(nu)), 0.0])

        r_eci = perifocal_to_eci(r_pqw, self.arg_perigee, self.inclination, self.raan)
        v_eci = perifocal_to_eci(v_pqw, self.arg_perigee, self.inclination, self.raan)
        return r_eci, v_eci
