#!/usr/bin/env python3
"""
Unit tests for the ephemeris core: TLE parsing, time utilities, the orbit
model and the coordinate transforms.
"""
import pytest
import math
import dataclasses
from datetime import datetime, timedelta, timezone

import numpy as np

from ephemeris.constants import R_EARTH, R_POLAR
from ephemeris.errors import (
    ConvergenceError,
    DegenerateGeometryError,
    EphemerisError,
    OrbitError,
    SingularityError,
    TLEChecksumError,
    TLEFieldError,
    TLEFormatError,
    TLEParseError,
)
from ephemeris.orbit import (
    Orbit,
    Orbitable,
    semi_major_axis_from_mean_motion,
    solve_kepler,
    true_anomaly_from_eccentric,
)
from ephemeris.timeutil import (
    datetime_from_julian_day,
    gmst,
    julian_day,
    julian_day_from_epoch,
    normalize_degrees,
    wrap_longitude,
)
from ephemeris.tle_parser import TLE, compute_checksum, resolve_epoch_year
from ephemeris import transforms


ISS_LINE1 = "1 25544U 98067A   20097.82871450  .00000874  00000-0  24271-4 0  9992"
ISS_LINE2 = "2 25544  51.6465 341.5807 0003880  94.4223  26.1197 15.48685836220958"
NOAA_LINE1 = "1 26536U 00055A   20116.52380576 -.00000007  00000-0  19116-4 0  9998"
NOAA_LINE2 = "2 26536  98.7361 186.8634 0009660 233.4374 126.5910 14.13250159306768"

REF = 2025


def _with_checksum(line: str) -> str:
    """Re-stamp column 69 after editing a line."""
    return line[:68] + str(compute_checksum(line))


def _edit(line: str, start: int, text: str) -> str:
    """Overwrite ``line`` at 0-based ``start`` with ``text`` and fix the checksum."""
    return _with_checksum(line[:start] + text + line[start + len(text):])


# TLE PARSER TESTS
class TestTLEParser:
    def test_parse_iss(self):
        tle = TLE.parse(ISS_LINE1, ISS_LINE2, reference_year=REF)
        assert tle.norad_id == 25544
        assert tle.classification == "U"
        assert tle.intl_designator == "98067A"
        assert tle.epoch_year == 2020
        assert abs(tle.epoch_day - 97.82871450) < 1e-9
        assert abs(tle.mean_motion_dot - 0.00000874) < 1e-12
        assert tle.mean_motion_ddot == 0.0
        assert abs(tle.bstar - 0.24271e-4) < 1e-12
        assert tle.ephemeris_type == 0
        assert tle.element_set_number == 999
        assert abs(tle.inclination - 51.6465) < 1e-9
        assert abs(tle.raan - 341.5807) < 1e-9
        assert abs(tle.eccentricity - 0.000388) < 1e-12
        assert abs(tle.arg_perigee - 94.4223) < 1e-9
        assert abs(tle.mean_anomaly - 26.1197) < 1e-9
        assert abs(tle.mean_motion - 15.48685836) < 1e-9
        assert tle.rev_number == 22095

    def test_parse_negative_mean_motion_dot(self):
        tle = TLE.parse(NOAA_LINE1, NOAA_LINE2, reference_year=REF)
        assert tle.norad_id == 26536
        assert abs(tle.mean_motion_dot + 0.00000007) < 1e-14
        assert abs(tle.bstar - 0.19116e-4) < 1e-12
        assert abs(tle.inclination - 98.7361) < 1e-9

    def test_negative_implied_decimal(self):
        line1 = _edit(ISS_LINE1, 53, "-11606-4")
        tle = TLE.parse(line1, ISS_LINE2, reference_year=REF)
        assert tle.bstar == pytest.approx(-0.11606e-4)

    def test_epoch_datetime(self):
        tle = TLE.parse(ISS_LINE1, ISS_LINE2, reference_year=REF)
        # Day 97 of leap year 2020 is April 6
        assert tle.epoch_dt.year == 2020
        assert tle.epoch_dt.month == 4
        assert tle.epoch_dt.day == 6
        assert tle.epoch_dt.hour == 19
        assert tle.epoch_dt.minute == 53
        assert tle.epoch_dt.tzinfo is not None

    def test_period_iss(self):
        tle = TLE.parse(ISS_LINE1, ISS_LINE2, reference_year=REF)
        assert tle.period == pytest.approx(86400.0 / 15.48685836)

    def test_from_text(self):
        tle = TLE.from_text(f"ISS (ZARYA)\n{ISS_LINE1}\n{ISS_LINE2}\n", reference_year=REF)
        assert tle.name == "ISS (ZARYA)"
        assert tle.norad_id == 25544

    def test_from_text_crlf(self):
        tle = TLE.from_text(f"ISS (ZARYA)\r\n{ISS_LINE1}\r\n{ISS_LINE2}\r\n", reference_year=REF)
        assert tle.name == "ISS (ZARYA)"

    def test_from_text_wrong_line_count(self):
        with pytest.raises(TLEFormatError, match="expected 3 lines but got 2"):
            TLE.from_text(f"{ISS_LINE1}\n{ISS_LINE2}", reference_year=REF)

    def test_name_prefix_stripped(self):
        tle = TLE.parse(ISS_LINE1, ISS_LINE2, name="0 ISS (ZARYA)", reference_year=REF)
        assert tle.name == "ISS (ZARYA)"

    def test_invalid_line1_start(self):
        with pytest.raises(TLEFormatError, match="must start with '1'"):
            TLE.parse("3" + ISS_LINE1[1:], ISS_LINE2, reference_year=REF)

    def test_short_line(self):
        with pytest.raises(TLEFormatError, match="too short") as exc_info:
            TLE.parse(ISS_LINE1, ISS_LINE2[:60], reference_year=REF)
        assert exc_info.value.line == 2

    def test_norad_id_mismatch(self):
        line2 = _edit(ISS_LINE2, 2, "25545")
        with pytest.raises(TLEFormatError, match="mismatch"):
            TLE.parse(ISS_LINE1, line2, reference_year=REF)

    def test_non_numeric_field(self):
        line2 = _edit(ISS_LINE2, 8, " 51.6x65")
        with pytest.raises(TLEFieldError) as exc_info:
            TLE.parse(ISS_LINE1, line2, reference_year=REF)
        assert exc_info.value.field == "inclination"
        assert exc_info.value.line == 2
        assert exc_info.value.value == "51.6x65"

    def test_non_numeric_eccentricity(self):
        line2 = _edit(ISS_LINE2, 26, "00038a0")
        with pytest.raises(TLEFieldError, match="eccentricity"):
            TLE.parse(ISS_LINE1, line2, reference_year=REF)

    def test_inclination_out_of_range(self):
        line2 = _edit(ISS_LINE2, 8, "181.0000")
        with pytest.raises(TLEFieldError, match="inclination"):
            TLE.parse(ISS_LINE1, line2, reference_year=REF)

    def test_parse_errors_are_value_errors(self):
        assert issubclass(TLEChecksumError, TLEParseError)
        with pytest.raises(ValueError):
            TLE.parse(ISS_LINE1, ISS_LINE2[:60], reference_year=REF)

    def test_parse_batch(self):
        text = (
            f"ISS (ZARYA)\n{ISS_LINE1}\n{ISS_LINE2}\n"
            f"{NOAA_LINE1}\n{NOAA_LINE2}\n"
        )
        tles = TLE.parse_batch(text, reference_year=REF)
        assert [t.norad_id for t in tles] == [25544, 26536]
        assert tles[0].name == "ISS (ZARYA)"
        assert tles[1].name is None

    def test_parse_batch_raises_on_invalid(self):
        bad = ISS_LINE1[:68] + "3"
        text = f"ISS (ZARYA)\n{bad}\n{ISS_LINE2}\nNOAA 16\n{NOAA_LINE1}\n{NOAA_LINE2}\n"
        with pytest.raises(TLEChecksumError):
            TLE.parse_batch(text, reference_year=REF)

    def test_parse_batch_skip_invalid(self):
        bad = ISS_LINE1[:68] + "3"
        text = f"ISS (ZARYA)\n{bad}\n{ISS_LINE2}\nNOAA 16\n{NOAA_LINE1}\n{NOAA_LINE2}\n"
        tles = TLE.parse_batch(text, reference_year=REF, skip_invalid=True)
        assert len(tles) == 1
        assert tles[0].name == "NOAA 16"

    def test_to_dict(self):
        d = TLE.parse(ISS_LINE1, ISS_LINE2, reference_year=REF).to_dict()
        assert d["norad_id"] == 25544
        assert d["epoch"].year == 2020
        assert "mean_motion_rev_day" in d
        assert "period_s" in d

    def test_direct_construction_validates(self):
        tle = TLE.parse(ISS_LINE1, ISS_LINE2, reference_year=REF)
        with pytest.raises(TLEFieldError, match="eccentricity"):
            dataclasses.replace(tle, eccentricity=1.0)
        with pytest.raises(TLEFieldError, match="raan"):
            dataclasses.replace(tle, raan=360.0)

    def test_immutable(self):
        tle = TLE.parse(ISS_LINE1, ISS_LINE2, reference_year=REF)
        with pytest.raises(dataclasses.FrozenInstanceError):
            tle.inclination = 0.0

    def test_slotted(self):
        tle = TLE.parse(ISS_LINE1, ISS_LINE2, reference_year=REF)
        assert "inclination" in TLE.__slots__
        assert not hasattr(tle, "__dict__")


class TestChecksum:
    def test_known_lines(self):
        assert compute_checksum(ISS_LINE1) == 2
        assert compute_checksum(ISS_LINE2) == 8
        assert compute_checksum(NOAA_LINE1) == 8

    def test_minus_counts_one(self):
        assert compute_checksum("-" * 68 + "0") == 8
        assert compute_checksum("+" * 68 + "0") == 0

    def test_wrong_check_digit(self):
        line1 = ISS_LINE1[:68] + "3"
        with pytest.raises(TLEChecksumError) as exc_info:
            TLE.parse(line1, ISS_LINE2, reference_year=REF)
        err = exc_info.value
        assert err.line == 1
        assert err.expected == 3
        assert err.computed == 2

    @pytest.mark.parametrize("col", [2, 9, 21, 30, 40, 52, 60, 67])
    def test_single_digit_mutation_detected(self, col):
        old = ISS_LINE2[col]
        assert old.isdigit()
        new = str((int(old) + 1) % 10)
        line2 = ISS_LINE2[:col] + new + ISS_LINE2[col + 1:]
        with pytest.raises(TLEChecksumError) as exc_info:
            TLE.parse(ISS_LINE1, line2, reference_year=REF)
        assert exc_info.value.line == 2

    def test_non_digit_check_column(self):
        with pytest.raises(TLEFormatError, match="not a digit"):
            TLE.parse(ISS_LINE1[:68] + "X", ISS_LINE2, reference_year=REF)

    def test_superscript_check_column(self):
        with pytest.raises(TLEFormatError, match="not a digit"):
            TLE.parse(ISS_LINE1[:68] + "²", ISS_LINE2, reference_year=REF)

    def test_non_ascii_digits_count_zero(self):
        # '²' replaces a 9 in the designator
        line1 = ISS_LINE1[:9] + "²" + ISS_LINE1[10:]
        assert compute_checksum(line1) == 3
        with pytest.raises(TLEChecksumError):
            TLE.parse(line1, ISS_LINE2, reference_year=REF)

    @pytest.mark.parametrize("line_num, col, char, field", [
        (1, 20, "٠", "epoch_day"),      # Arabic-Indic zero
        (1, 3, "٥", "norad_id"),        # Arabic-Indic five
        (2, 26, "²", "eccentricity"),
        (2, 53, "٥", "mean_motion"),
    ])
    def test_non_ascii_digit_in_field(self, line_num, col, char, field):
        line1, line2 = ISS_LINE1, ISS_LINE2
        if line_num == 1:
            line1 = _edit(line1, col, char)
        else:
            line2 = _edit(line2, col, char)
        with pytest.raises(TLEFieldError) as exc_info:
            TLE.parse(line1, line2, reference_year=REF)
        assert exc_info.value.field == field
        assert exc_info.value.line == line_num

    def test_batch_skips_non_ascii_record(self):
        bad = _edit(ISS_LINE1, 20, "٠")
        text = f"BAD\n{bad}\n{ISS_LINE2}\n{NOAA_LINE1}\n{NOAA_LINE2}\n"
        tles = TLE.parse_batch(text, reference_year=REF, skip_invalid=True)
        assert [t.norad_id for t in tles] == [26536]
        with pytest.raises(TLEParseError):
            TLE.parse_batch(text, reference_year=REF)


class TestEpochYear:
    @pytest.mark.parametrize("yy, ref, expected", [
        (20, 2025, 2020),
        (57, 2025, 2057),
        (75, 2025, 2075),
        (76, 2025, 1976),
        (99, 2025, 1999),
        (98, 2001, 1998),
        (0, 2080, 2100),
        (49, 1999, 1949),
    ])
    def test_window(self, yy, ref, expected):
        assert resolve_epoch_year(yy, ref) == expected

    @pytest.mark.parametrize("yy", range(0, 100, 7))
    @pytest.mark.parametrize("ref", [1960, 1999, 2000, 2025, 2057])
    def test_within_fifty_years(self, yy, ref):
        year = resolve_epoch_year(yy, ref)
        assert year % 100 == yy
        assert abs(year - ref) <= 50

    def test_reference_year_changes_result(self):
        early = TLE.parse(ISS_LINE1, ISS_LINE2, reference_year=1980)
        assert early.epoch_year == 2020
        late = TLE.parse(ISS_LINE1, ISS_LINE2, reference_year=2090)
        assert late.epoch_year == 2120


# TIME UTILITY TESTS
class TestTimeUtils:
    def test_j2000(self):
        assert julian_day(datetime(2000, 1, 1, 12, tzinfo=timezone.utc)) == pytest.approx(2451545.0)

    def test_naive_is_utc(self):
        naive = datetime(2021, 6, 1, 3, 30)
        aware = naive.replace(tzinfo=timezone.utc)
        assert julian_day(naive) == julian_day(aware)

    def test_aware_converted(self):
        plus2 = timezone(timedelta(hours=2))
        assert julian_day(datetime(2021, 6, 1, 5, 30, tzinfo=plus2)) == pytest.approx(
            julian_day(datetime(2021, 6, 1, 3, 30, tzinfo=timezone.utc))
        )

    def test_julian_day_round_trip(self):
        dt = datetime(2024, 2, 29, 23, 59, 59, tzinfo=timezone.utc)
        back = datetime_from_julian_day(julian_day(dt))
        assert abs((back - dt).total_seconds()) < 1e-3

    def test_epoch_day_one_is_midnight_jan1(self):
        assert julian_day_from_epoch(2020, 1.0) == pytest.approx(
            julian_day(datetime(2020, 1, 1, tzinfo=timezone.utc))
        )
        assert julian_day_from_epoch(2020, 1.5) == pytest.approx(
            julian_day(datetime(2020, 1, 1, 12, tzinfo=timezone.utc))
        )

    def test_gmst_at_j2000(self):
        # 280.46061837° at 2000-01-01 12:00 UT
        assert math.degrees(gmst(2451545.0)) == pytest.approx(280.46061837, abs=1e-6)

    def test_gmst_advances_one_sidereal_day(self):
        jd = 2459000.5
        sidereal_day = 86164.0905 / 86400.0
        delta = (gmst(jd + sidereal_day) - gmst(jd)) % (2 * math.pi)
        assert min(delta, 2 * math.pi - delta) < 1e-5

    @pytest.mark.parametrize("jd", [2440000.5, 2451545.0, 2458945.3, 2470000.9])
    def test_gmst_range(self, jd):
        assert 0.0 <= gmst(jd) < 2 * math.pi

    @pytest.mark.parametrize("angle, expected", [
        (0.0, 0.0), (370.0, 10.0), (-10.0, 350.0), (720.0, 0.0), (-1e-17, 0.0),
    ])
    def test_normalize_degrees(self, angle, expected):
        result = normalize_degrees(angle)
        assert 0.0 <= result < 360.0
        assert result == pytest.approx(expected)

    @pytest.mark.parametrize("angle, expected", [
        (0.0, 0.0), (190.0, -170.0), (180.0, -180.0), (-180.0, -180.0), (359.0, -1.0),
    ])
    def test_wrap_longitude(self, angle, expected):
        assert wrap_longitude(angle) == pytest.approx(expected)


# ORBIT MODEL TESTS
class TestKepler:
    def test_geo_semi_major_axis(self):
        assert semi_major_axis_from_mean_motion(1.00271173) == pytest.approx(42164.9, abs=1.0)

    def test_iss_semi_major_axis(self):
        assert semi_major_axis_from_mean_motion(15.48685836) == pytest.approx(6798.7, abs=1.0)

    def test_non_positive_mean_motion(self):
        with pytest.raises(OrbitError):
            semi_major_axis_from_mean_motion(0.0)

    @pytest.mark.parametrize("e", [0.0, 0.0001, 0.1, 0.5, 0.8, 0.81, 0.9, 0.95, 0.99])
    @pytest.mark.parametrize("m", [0.0, 0.01, 1.0, math.pi - 0.01, math.pi, 4.0, 2 * math.pi - 0.01])
    def test_converges(self, e, m):
        sol = solve_kepler(m, e)
        assert sol.converged
        assert sol.iterations < 50
        assert sol.residual < 1e-5
        assert abs(sol.value - e * math.sin(sol.value) - m) < 1e-5

    def test_circular_shortcut(self):
        sol = solve_kepler(1.234, 0.0)
        assert sol.value == 1.234
        assert sol.iterations == 0
        assert sol.converged

    def test_non_convergence_reported(self):
        sol = solve_kepler(0.2, 0.9, tolerance=1e-15, max_iterations=1)
        assert not sol.converged
        assert sol.iterations == 1
        assert sol.residual > 0.0

    def test_singularity(self):
        with pytest.raises(SingularityError, match="singularity"):
            solve_kepler(1.0, 1.0)
        with pytest.raises(SingularityError):
            true_anomaly_from_eccentric(1.0, 1.2)

    def test_negative_eccentricity(self):
        with pytest.raises(OrbitError):
            solve_kepler(1.0, -0.1)

    def test_true_anomaly_quadrants(self):
        assert true_anomaly_from_eccentric(0.0, 0.5) == pytest.approx(0.0)
        assert true_anomaly_from_eccentric(math.pi, 0.5) == pytest.approx(math.pi)
        # True anomaly leads eccentric anomaly on the way out from perigee
        assert true_anomaly_from_eccentric(1.0, 0.5) > 1.0
        assert true_anomaly_from_eccentric(-1.0, 0.5) < -1.0

    def test_true_anomaly_circular(self):
        assert true_anomaly_from_eccentric(2.5, 0.0) == pytest.approx(2.5)


def _orbit(**overrides) -> Orbit:
    params = dict(
        semi_major_axis=semi_major_axis_from_mean_motion(15.5),
        eccentricity=0.001,
        inclination=51.6,
        raan=100.0,
        arg_perigee=45.0,
        mean_anomaly=10.0,
        mean_motion=15.5,
        epoch_jd=julian_day(datetime(2024, 1, 1, tzinfo=timezone.utc)),
    )
    params.update(overrides)
    return Orbit(**params)


class TestOrbit:
    def test_from_tle(self, iss_tle):
        orbit = Orbit.from_tle(iss_tle)
        assert orbit.semi_major_axis == pytest.approx(6798.7, abs=1.0)
        assert orbit.eccentricity == iss_tle.eccentricity
        assert orbit.inclination == iss_tle.inclination
        assert orbit.norad_id == 25544
        assert orbit.name == "ISS (ZARYA)"
        assert orbit.epoch_jd == iss_tle.epoch_jd
        assert orbit.period == pytest.approx(iss_tle.period)

    def test_does_not_keep_tle(self, iss_orbit):
        assert not any(isinstance(v, TLE) for v in vars(iss_orbit).values())

    def test_satisfies_protocol(self, iss_orbit):
        assert isinstance(iss_orbit, Orbitable)

    def test_sub_earth_orbit_rejected(self, iss_tle):
        with pytest.raises(OrbitError, match="inside the Earth"):
            Orbit.from_tle(dataclasses.replace(iss_tle, mean_motion=20.0))

    def test_direct_construction_validates(self):
        with pytest.raises(SingularityError):
            _orbit(eccentricity=1.0)
        with pytest.raises(OrbitError):
            _orbit(semi_major_axis=R_EARTH - 1.0)

    def test_mean_anomaly_at_epoch(self):
        orbit = _orbit()
        assert orbit.mean_anomaly_at(orbit.epoch) == pytest.approx(10.0, abs=1e-6)

    def test_mean_anomaly_advances(self):
        orbit = _orbit()
        quarter = orbit.epoch + timedelta(seconds=orbit.period / 4.0)
        assert orbit.mean_anomaly_at(quarter) == pytest.approx(100.0, abs=1e-4)
        full = orbit.epoch + timedelta(seconds=orbit.period)
        assert orbit.mean_anomaly_at(full) == pytest.approx(10.0, abs=1e-4)

    def test_circular_anomalies_coincide(self):
        orbit = _orbit(eccentricity=0.0)
        a = orbit.anomalies_at(orbit.epoch + timedelta(minutes=17))
        assert a.eccentric == a.mean
        assert a.true == pytest.approx(a.mean, abs=1e-9)
        assert a.iterations == 0

    def test_anomalies_ordering(self):
        orbit = _orbit(eccentricity=0.3, semi_major_axis=20000.0, mean_motion=2.0)
        a = orbit.anomalies_at(orbit.epoch)
        # On the way out from perigee: M < E < ν
        assert a.mean < a.eccentric < a.true
        assert a.converged

    def test_non_convergence_raises_for_geometry(self):
        orbit = _orbit(eccentricity=0.9, semi_major_axis=42164.0, mean_motion=1.0,
                       max_iterations=1, tolerance=1e-15)
        anomalies = orbit.anomalies_at(orbit.epoch)
        assert not anomalies.converged
        with pytest.raises(ConvergenceError) as exc_info:
            orbit.position_at(orbit.epoch)
        assert exc_info.value.iterations == 1
        assert isinstance(exc_info.value, ArithmeticError)
        assert isinstance(exc_info.value, EphemerisError)

    def test_eci_state_vis_viva(self, iss_orbit):
        from ephemeris.constants import MU_EARTH

        r, v = iss_orbit.eci_state_at(iss_orbit.epoch + timedelta(hours=3))
        rn = np.linalg.norm(r)
        a = iss_orbit.semi_major_axis
        e = iss_orbit.eccentricity
        assert a * (1 - e) - 1e-6 <= rn <= a * (1 + e) + 1e-6
        assert np.dot(v, v) == pytest.approx(MU_EARTH * (2.0 / rn - 1.0 / a), rel=1e-9)

    def test_angular_momentum_along_orbit_normal(self, iss_orbit):
        r, v = iss_orbit.eci_state_at(iss_orbit.epoch)
        h = np.cross(r, v)
        inclination = math.degrees(math.acos(h[2] / np.linalg.norm(h)))
        assert inclination == pytest.approx(iss_orbit.inclination, abs=1e-9)

    def test_position_at_iss(self, iss_orbit):
        pos = iss_orbit.position_at(iss_orbit.epoch + timedelta(hours=2))
        assert abs(pos.latitude) <= 52.0
        assert -180.0 <= pos.longitude < 180.0
        assert 390.0 < pos.altitude < 450.0

    def test_position_at_idempotent(self, iss_orbit):
        t = datetime(2020, 4, 7, 3, 14, 15, tzinfo=timezone.utc)
        assert iss_orbit.position_at(t) == iss_orbit.position_at(t)

    def test_altitudes(self, iss_orbit):
        assert iss_orbit.perigee_altitude < iss_orbit.apogee_altitude
        assert 400.0 < iss_orbit.perigee_altitude < 430.0

    def test_fidelity_horizon(self, iss_orbit):
        assert iss_orbit.within_fidelity(iss_orbit.epoch + timedelta(days=5))
        assert not iss_orbit.within_fidelity(iss_orbit.epoch + timedelta(days=11))
        assert not iss_orbit.within_fidelity(iss_orbit.epoch - timedelta(days=11))
        assert iss_orbit.days_from_epoch(iss_orbit.epoch + timedelta(days=2)) == pytest.approx(2.0)


# COORDINATE TRANSFORM TESTS
class TestTransforms:
    def test_geodetic_to_ecef_equator(self):
        r = transforms.geodetic_to_ecef(0.0, 0.0, 0.0)
        assert np.allclose(r, [R_EARTH, 0.0, 0.0])

    def test_geodetic_to_ecef_pole(self):
        r = transforms.geodetic_to_ecef(90.0, 0.0, 0.0)
        assert r[2] == pytest.approx(R_POLAR, abs=1e-6)
        assert abs(r[0]) < 1e-9

    def test_altitude_in_metres(self):
        r = transforms.geodetic_to_ecef(0.0, 90.0, 1000.0)
        assert r[1] == pytest.approx(R_EARTH + 1.0)

    @pytest.mark.parametrize("lat, lon, alt_km", [
        (0.0, 0.0, 0.0),
        (51.48, -0.0015, 0.05),
        (-33.9, 151.2, 0.0),
        (89.9, 45.0, 400.0),
        (-60.0, -120.0, 35786.0),
        (10.0, 179.9, 20200.0),
    ])
    def test_geodetic_round_trip(self, lat, lon, alt_km):
        r = transforms.geodetic_to_ecef(lat, lon, alt_km * 1000.0)
        lat2, lon2, alt2 = transforms.ecef_to_geodetic(r)
        assert lat2 == pytest.approx(lat, abs=1e-7)
        assert lon2 == pytest.approx(lon, abs=1e-7)
        assert alt2 == pytest.approx(alt_km, abs=1e-6)

    def test_eci_ecef_round_trip(self):
        r = np.array([1234.0, -5678.0, 910.0])
        back = transforms.ecef_to_eci(transforms.eci_to_ecef(r, 1.1), 1.1)
        assert np.allclose(back, r)

    def test_eci_to_ecef_rotation_sense(self):
        r = transforms.eci_to_ecef([1.0, 0.0, 0.0], math.pi / 2)
        assert np.allclose(r, [0.0, -1.0, 0.0])

    def test_geostationary_is_fixed_in_ecef(self):
        from ephemeris.constants import OMEGA_EARTH

        a = 42164.0
        v = transforms.eci_velocity_to_ecef([a, 0.0, 0.0], [0.0, OMEGA_EARTH * a, 0.0], 0.0)
        assert np.linalg.norm(v) < 1e-9

    def test_perifocal_identity(self):
        assert np.allclose(transforms.perifocal_to_eci([1.0, 2.0, 3.0], 0.0, 0.0, 0.0), [1.0, 2.0, 3.0])

    def test_perifocal_polar(self):
        # Inclination 90°: in-plane y axis points to the pole
        assert np.allclose(transforms.perifocal_to_eci([0.0, 1.0, 0.0], 0.0, 90.0, 0.0), [0.0, 0.0, 1.0])

    def test_enu_zenith(self):
        obs = transforms.geodetic_to_ecef(0.0, 0.0)
        enu = transforms.ecef_to_enu(obs + np.array([100.0, 0.0, 0.0]), obs, 0.0, 0.0)
        assert np.allclose(enu, [0.0, 0.0, 100.0])

    def test_enu_round_trip(self):
        obs = transforms.geodetic_to_ecef(45.0, 10.0)
        target = np.array([7000.0, 1000.0, 5000.0])
        enu = transforms.ecef_to_enu(target, obs, 45.0, 10.0)
        assert np.allclose(transforms.enu_to_ecef(enu, obs, 45.0, 10.0), target)

    @pytest.mark.parametrize("enu, az, el", [
        ((0.0, 1.0, 0.0), 0.0, 0.0),
        ((1.0, 0.0, 0.0), 90.0, 0.0),
        ((0.0, -1.0, 0.0), 180.0, 0.0),
        ((-1.0, 0.0, 0.0), 270.0, 0.0),
        ((0.0, 0.0, 1.0), 0.0, 90.0),
        ((0.0, 0.0, -5.0), 0.0, -90.0),
        ((1.0, 1.0, math.sqrt(2.0)), 45.0, 45.0),
    ])
    def test_horizontal(self, enu, az, el):
        azimuth, elevation, rng = transforms.enu_to_horizontal(enu)
        assert azimuth == pytest.approx(az, abs=1e-9)
        assert elevation == pytest.approx(el, abs=1e-9)
        assert rng == pytest.approx(np.linalg.norm(enu))

    def test_horizontal_round_trip(self):
        enu = transforms.horizontal_to_enu(123.0, 34.0, 1500.0)
        az, el, rng = transforms.enu_to_horizontal(enu)
        assert (az, el, rng) == pytest.approx((123.0, 34.0, 1500.0))

    @pytest.mark.parametrize("enu", [(0.0, 0.0, 0.0), (1e-12, 0.0, 0.0)])
    def test_degenerate_range(self, enu):
        with pytest.raises(DegenerateGeometryError):
            transforms.enu_to_horizontal(enu)

    def test_no_nan_over_wide_inputs(self):
        rng = np.random.default_rng(42)
        for _ in range(500):
            direction = rng.normal(size=3)
            scale = 10.0 ** rng.uniform(-6, 6)
            az, el, r = transforms.enu_to_horizontal(direction * scale)
            assert not any(math.isnan(x) for x in (az, el, r))
            assert 0.0 <= az < 360.0
            assert -90.0 <= el <= 90.0

    def test_refraction_above_threshold_unchanged(self):
        assert transforms.apply_refraction(20.0) == 20.0
        assert transforms.apply_refraction(15.0) == 15.0
        assert transforms.apply_refraction(-1.0) == -1.0
        assert transforms.apply_refraction(-30.0) == -30.0

    def test_refraction_at_horizon(self):
        # Bennett: about 34.5 arcmin at the true horizon
        assert transforms.apply_refraction(0.0) == pytest.approx(0.5747, abs=0.005)

    @pytest.mark.parametrize("el", [-0.9, -0.5, 0.0, 1.0, 5.0, 10.0, 14.9])
    def test_refraction_raises_apparent_elevation(self, el):
        refracted = transforms.apply_refraction(el)
        assert el < refracted <= 90.0

    def test_refraction_custom_threshold(self):
        assert transforms.apply_refraction(20.0, threshold=30.0) > 20.0
