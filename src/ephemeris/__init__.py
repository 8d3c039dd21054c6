"""Ephemeris — satellite positions and pass predictions from Two-Line Elements.

Parses NORAD TLEs, propagates them with a two-body Keplerian model and
answers where an object is and when it is visible from the ground. There is
no drag or perturbation modelling: predictions are good for a few days
around the element epoch and degrade beyond that.

Modules:
    constants:  WGS-84 and physical constants.
    errors:     Exception hierarchy.
    timeutil:   Julian Day, sidereal time and angle normalization.
    tle_parser: Parse and validate TLE sets.
    orbit:      Keplerian orbit model and Kepler's-equation solver.
    transforms: Frame conversions (perifocal, ECI, ECEF, geodetic, ENU).
    observer:   Ground observers and look angles.
    passes:     AOS / culmination / LOS pass prediction.
    tracking:   Ground tracks and sky tracks.
    celestrak:  CelesTrak client with caching, and TLE file loading.
    viz:        Ground-track, sky-track and pass-timeline plots.
    cli:        Command-line interface.

Example:
    >>> from datetime import datetime, timedelta, timezone
    >>> from ephemeris.tle_parser import TLE
    >>> from ephemeris.orbit import Orbit
    >>> from ephemeris.observer import Observer
    >>> from ephemeris.passes import PassPredictor
    >>>
    >>> orbit = Orbit.from_tle(TLE.from_text(text, reference_year=2025))
    >>> london = Observer(latitude=51.48, longitude=0.0)
    >>> start = datetime.now(timezone.utc)
    >>> for window in PassPredictor().predict(orbit, london, start, start + timedelta(days=1)):
    ...     print(window.summary())
"""

__version__ = "0.1.0"
