import matplotlib

matplotlib.use("Agg")

import pytest
from datetime import timedelta

from ephemeris.observer import Observer
from ephemeris.orbit import Orbit
from ephemeris.tle_parser import TLE

ISS_NAME = "ISS (ZARYA)"
ISS_LINE1 = "1 25544U 98067A   20097.82871450  .00000874  00000-0  24271-4 0  9992"
ISS_LINE2 = "2 25544  51.6465 341.5807 0003880  94.4223  26.1197 15.48685836220958"

NOAA_NAME = "NOAA 16"
NOAA_LINE1 = "1 26536U 00055A   20116.52380576 -.00000007  00000-0  19116-4 0  9998"
NOAA_LINE2 = "2 26536  98.7361 186.8634 0009660 233.4374 126.5910 14.13250159306768"

REFERENCE_YEAR = 2025


@pytest.fixture
def iss_tle() -> TLE:
    return TLE.parse(ISS_LINE1, ISS_LINE2, name=ISS_NAME, reference_year=REFERENCE_YEAR)


@pytest.fixture
def iss_orbit(iss_tle) -> Orbit:
    return Orbit.from_tle(iss_tle)


@pytest.fixture
def overhead(iss_orbit):
    """An instant half an hour after epoch and an observer right under the ISS then."""
    t0 = iss_orbit.epoch + timedelta(minutes=30)
    sub = iss_orbit.position_at(t0)
    return t0, Observer(latitude=sub.latitude, longitude=sub.longitude)


@pytest.fixture
def catalog_text() -> str:
    return (
        f"{ISS_NAME}\n{ISS_LINE1}\n{ISS_LINE2}\n"
        f"{NOAA_LINE1}\n{NOAA_LINE2}\n"
    )
