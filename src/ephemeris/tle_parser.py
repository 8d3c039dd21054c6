"""TLE parsing and validation.

Parses standard NORAD Two-Line Element sets into immutable ``TLE`` records.
Parsing is atomic: either every field is extracted and validated, or a
``TLEParseError`` subclass is raised and nothing is produced.

References:
    - Kelso, T.S. "CelesTrak TLE Format Documentation"
      https://celestrak.org/columns/v04n03/
    - Vallado, D. (2013). Fundamentals of Astrodynamics and Applications.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .constants import SOLAR_DAY
from .errors import TLEChecksumError, TLEFieldError, TLEFormatError, TLEParseError
from .timeutil import datetime_from_julian_day, julian_day_from_epoch, normalize_degrees

logger = logging.getLogger(__name__)

LINE_LENGTH = 69
"""Minimum length of a TLE data line, checksum column included."""

YEAR_WINDOW = 50
"""Half-width (years) of the window used to resolve 2-digit epoch years."""

_DECIMAL_RE = re.compile(r"^[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)$")
_INTEGER_RE = re.compile(r"^[+-]?[0-9]+$")
_IMPLIED_RE = re.compile(r"^([+-]?)([0-9]{1,8})([+-][0-9])?$")
_DIGITS = frozenset("0123456789")

# Column slices (0-based, end exclusive) for each data line.
_LINE1_FIELDS = {
    "norad_id": (2, 7),
    "classification": (7, 8),
    "intl_designator": (9, 17),
    "epoch_year": (18, 20),
    "epoch_day": (20, 32),
    "mean_motion_dot": (33, 43),
    "mean_motion_ddot": (44, 52),
    "bstar": (53, 61),
    "ephemeris_type": (62, 63),
    "element_set_number": (64, 68),
}

_LINE2_FIELDS = {
    "norad_id": (2, 7),
    "inclination": (8, 16),
    "raan": (17, 25),
    "eccentricity": (26, 33),
    "arg_perigee": (34, 42),
    "mean_anomaly": (43, 51),
    "mean_motion": (52, 63),
    "rev_number": (63, 68),
}


@dataclass(frozen=True, slots=True)
class TLE:
    """A validated Two-Line Element set.

    Attributes:
        name: Object name from line 0 (if present).
        norad_id: NORAD catalog number.
        classification: Security classification (U/C/S).
        intl_designator: International designator (launch year/number/piece).
        epoch_year: Full 4-digit epoch year.
        epoch_day: Fractional day of year at epoch (1.0 = midnight Jan 1).
        mean_motion_dot: First derivative of mean motion / 2 (rev/day²).
        mean_motion_ddot: Second derivative of mean motion / 6 (rev/day³).
        bstar: B* drag term (1/Earth radii).
        ephemeris_type: Ephemeris type (normally 0).
        element_set_number: Element set number.
        inclination: Orbital inclination (degrees, 0 to 180).
        raan: Right ascension of ascending node (degrees, 0 to 360).
        eccentricity: Orbital eccentricity (dimensionless, 0 to 1).
        arg_perigee: Argument of perigee (degrees, 0 to 360).
        mean_anomaly: Mean anomaly (degrees, 0 to 360).
        mean_motion: Mean motion (revolutions per day).
        rev_number: Revolution number at epoch.

    The drag-related fields are carried for completeness only; the
    two-body orbit model does not use them.
    """

    name: Optional[str]
    norad_id: int
    classification: str
    intl_designator: str

    epoch_year: int
    epoch_day: float

    mean_motion_dot: float
    mean_motion_ddot: float
    bstar: float
    ephemeris_type: int
    element_set_number: int

    inclination: float
    raan: float
    eccentricity: float
    arg_perigee: float
    mean_anomaly: float
    mean_motion: float
    rev_number: int

    def __post_init__(self) -> None:
        if not 0.0 <= self.eccentricity < 1.0:
            raise TLEFieldError(
                "eccentricity", 2, str(self.eccentricity), "must be in [0, 1)"
            )
        if not 0.0 <= self.inclination <= 180.0:
            raise TLEFieldError(
                "inclination", 2, str(self.inclination), "must be in [0, 180]"
            )
        for field_name in ("raan", "arg_perigee", "mean_anomaly"):
            value = getattr(self, field_name)
            if not 0.0 <= value < 360.0:
                raise TLEFieldError(field_name, 2, str(value), "must be in [0, 360)")

    # ── Derived quantities ──

    @property
    def epoch_jd(self) -> float:
        """Epoch as a Julian Day."""
        return julian_day_from_epoch(self.epoch_year, self.epoch_day)

    @property
    def epoch_dt(self) -> datetime:
        """Epoch as an aware UTC datetime."""
        return datetime_from_julian_day(self.epoch_jd)

    @property
    def period(self) -> float:
        """Orbital period (seconds)."""
        return SOLAR_DAY / self.mean_motion

    # ── Parsing ──

    @staticmethod
    def parse(
        line1: str,
        line2: str,
        name: Optional[str] = None,
        *,
        reference_year: int,
    ) -> TLE:
        """Parse a TLE from its two data lines.

        Args:
            line1: TLE line 1 (at least 69 characters, starts with '1').
            line2: TLE line 2 (at least 69 characters, starts with '2').
            name: Optional object name (from line 0).
            reference_year: Year around which the 2-digit epoch year is
                resolved (see ``resolve_epoch_year``).

        Returns:
            The parsed element set.

        Raises:
            TLEFormatError: Short line, wrong line number or catalog mismatch.
            TLEChecksumError: A data line fails its modulo-10 checksum.
            TLEFieldError: A field is non-numeric or out of range.
        """
        l1 = line1.rstrip()
        l2 = line2.rstrip()

        for num, line in ((1, l1), (2, l2)):
            if len(line) < LINE_LENGTH:
                raise TLEFormatError(
                    f"Line {num} is too short: expected at least {LINE_LENGTH} "
                    f"characters, got {len(line)}",
                    line=num,
                )
            if line[0] != str(num):
                raise TLEFormatError(
                    f"Line {num} must start with '{num}', got '{line[0]}'",
                    line=num,
                )

        verify_checksum(l1, 1)
        verify_checksum(l2, 2)

        # ── Line 1 ──
        norad_id = _parse_int(l1, 1, "norad_id")
        classification = _field(l1, 1, "classification").strip() or "U"
        intl_designator = _field(l1, 1, "intl_designator").strip()

        epoch_year = resolve_epoch_year(_parse_int(l1, 1, "epoch_year"), reference_year)
        epoch_day = _parse_float(l1, 1, "epoch_day")
        if not 1.0 <= epoch_day < 367.0:
            raise TLEFieldError(
                "epoch_day", 1, _field(l1, 1, "epoch_day").strip(), "must be in [1, 367)"
            )

        mean_motion_dot = _parse_float(l1, 1, "mean_motion_dot")
        mean_motion_ddot = _parse_implied_decimal(l1, 1, "mean_motion_ddot")
        bstar = _parse_implied_decimal(l1, 1, "bstar")
        ephemeris_type = _parse_int(l1, 1, "ephemeris_type", default=0)
        element_set_number = _parse_int(l1, 1, "element_set_number", default=0)

        # ── Line 2 ──
        norad_id_2 = _parse_int(l2, 2, "norad_id")
        if norad_id != norad_id_2:
            raise TLEFormatError(
                f"NORAD ID mismatch: {norad_id} vs {norad_id_2}",
                field="norad_id",
                line=2,
            )

        inclination = _parse_float(l2, 2, "inclination")
        if not 0.0 <= inclination <= 180.0:
            raise TLEFieldError(
                "inclination", 2, _field(l2, 2, "inclination").strip(), "must be in [0, 180]"
            )

        raw_ecc = _field(l2, 2, "eccentricity").strip()
        if not raw_ecc or not set(raw_ecc) <= _DIGITS:
            raise TLEFieldError("eccentricity", 2, raw_ecc)
        eccentricity = float(f"0.{raw_ecc}")

        mean_motion = _parse_float(l2, 2, "mean_motion")
        if mean_motion <= 0.0:
            raise TLEFieldError(
                "mean_motion", 2, _field(l2, 2, "mean_motion").strip(), "must be positive"
            )

        return TLE(
            name=_clean_name(name),
            norad_id=norad_id,
            classification=classification,
            intl_designator=intl_designator,
            epoch_year=epoch_year,
            epoch_day=epoch_day,
            mean_motion_dot=mean_motion_dot,
            mean_motion_ddot=mean_motion_ddot,
            bstar=bstar,
            ephemeris_type=ephemeris_type,
            element_set_number=element_set_number,
            inclination=inclination,
            raan=normalize_degrees(_parse_float(l2, 2, "raan")),
            eccentricity=eccentricity,
            arg_perigee=normalize_degrees(_parse_float(l2, 2, "arg_perigee")),
            mean_anomaly=normalize_degrees(_parse_float(l2, 2, "mean_anomaly")),
            mean_motion=mean_motion,
            rev_number=_parse_int(l2, 2, "rev_number", default=0),
        )

    @staticmethod
    def from_text(text: str, reference_year: int) -> TLE:
        """Parse a 3-line block: name line followed by the two data lines.

        Raises:
            TLEFormatError: If the block does not have exactly 3 lines.
        """
        lines = text.strip("\r\n").splitlines()
        if len(lines) != 3:
            raise TLEFormatError(
                f"Invalid TLE: expected 3 lines but got {len(lines)}"
            )
        return TLE.parse(lines[1], lines[2], name=lines[0], reference_year=reference_year)

    @staticmethod
    def parse_batch(
        text: str,
        reference_year: int,
        skip_invalid: bool = False,
    ) -> list[TLE]:
        """Parse a catalogue containing 2-line or 3-line format TLEs.

        Automatically detects whether each TLE has a name line (line 0)
        or is a bare 2-line element set.

        Args:
            text: String containing one or more TLEs separated by newlines.
            reference_year: Passed through to ``TLE.parse``.
            skip_invalid: Drop (and log) records that fail to parse instead
                of raising.

        Returns:
            Parsed TLE objects, in the order they appear.
        """
        lines = [line.rstrip() for line in text.strip().splitlines() if line.strip()]
        tles: list[TLE] = []
        i = 0

        while i < len(lines):
            if (
                lines[i].startswith("1 ")
                and i + 1 < len(lines)
                and lines[i + 1].startswith("2 ")
            ):
                record = (lines[i], lines[i + 1], None)
                i += 2
            elif (
                i + 2 < len(lines)
                and lines[i + 1].startswith("1 ")
                and lines[i + 2].startswith("2 ")
            ):
                record = (lines[i + 1], lines[i + 2], lines[i])
                i += 3
            else:
                logger.debug("Skipping unpaired catalogue line %d: %r", i, lines[i])
                i += 1
                continue

            try:
                tles.append(TLE.parse(*record[:2], name=record[2], reference_year=reference_year))
            except TLEParseError as exc:
                if not skip_invalid:
                    raise
                logger.warning("Skipping invalid TLE %r: %s", record[2] or record[0][2:7], exc)

        return tles

    def to_dict(self) -> dict:
        """Convert to a flat dictionary suitable for DataFrame construction."""
        return {
            "norad_id": self.norad_id,
            "name": self.name,
            "epoch": self.epoch_dt,
            "epoch_year": self.epoch_year,
            "epoch_day": self.epoch_day,
            "period_s": self.period,
            "inclination_deg": self.inclination,
            "raan_deg": self.raan,
            "eccentricity": self.eccentricity,
            "arg_perigee_deg": self.arg_perigee,
            "mean_anomaly_deg": self.mean_anomaly,
            "mean_motion_rev_day": self.mean_motion,
            "mean_motion_dot": self.mean_motion_dot,
            "bstar": self.bstar,
            "rev_number": self.rev_number,
        }


# ── Public helpers ──


def resolve_epoch_year(two_digit_year: int, reference_year: int) -> int:
    """Resolve a 2-digit TLE year to the 4-digit year nearest ``reference_year``.

    The result is the year within ``reference_year ± 50`` that is congruent
    to ``two_digit_year`` modulo 100. With a 2025 reference: 20 → 2020,
    57 → 2057, 99 → 1999.
    """
    if not 0 <= two_digit_year <= 99:
        raise TLEFieldError("epoch_year", 1, str(two_digit_year), "must be in [0, 99]")

    year = (reference_year // 100) * 100 + two_digit_year
    if year > reference_year + YEAR_WINDOW:
        year -= 100
    elif year < reference_year - YEAR_WINDOW:
        year += 100
    return year


def compute_checksum(line: str) -> int:
    """Modulo-10 checksum of the first 68 columns of a TLE line.

    Digits count their value, ``-`` counts 1, everything else 0.
    """
    total = 0
    for ch in line[: LINE_LENGTH - 1]:
        if ch in _DIGITS:
            total += int(ch)
        elif ch == "-":
            total += 1
    return total % 10


def verify_checksum(line: str, line_num: int) -> None:
    """Verify a TLE line's modulo-10 checksum.

    Args:
        line: Full TLE line (at least 69 characters).
        line_num: Line number (1 or 2) for error reporting.

    Raises:
        TLEFormatError: If the line is short or column 69 is not a digit.
        TLEChecksumError: If the checksum does not match.
    """
    if len(line) < LINE_LENGTH:
        raise TLEFormatError(
            f"Line {line_num} is too short for checksum validation",
            field="checksum",
            line=line_num,
        )
    check_char = line[LINE_LENGTH - 1]
    if check_char not in _DIGITS:
        raise TLEFormatError(
            f"Line {line_num} checksum character '{check_char}' is not a digit",
            field="checksum",
            line=line_num,
        )

    expected = int(check_char)
    computed = compute_checksum(line)
    if computed != expected:
        raise TLEChecksumError(line_num, expected, computed)


# ── Private helpers ──


def _field(line: str, line_num: int, name: str) -> str:
    """Extract a fixed-width field, failing descriptively if it is out of range."""
    start, end = (_LINE1_FIELDS if line_num == 1 else _LINE2_FIELDS)[name]
    if len(line) < end:
        raise TLEFormatError(
            f"Field '{name}' (columns {start + 1}-{end}) is out of range on "
            f"line {line_num} of length {len(line)}",
            field=name,
            line=line_num,
        )
    return line[start:end]


def _parse_float(line: str, line_num: int, name: str) -> float:
    raw = _field(line, line_num, name).strip()
    if not _DECIMAL_RE.match(raw):
        raise TLEFieldError(name, line_num, raw)
    return float(raw)


def _parse_int(line: str, line_num: int, name: str, default: Optional[int] = None) -> int:
    raw = _field(line, line_num, name).strip()
    if not raw and default is not None:
        return default
    if not _INTEGER_RE.match(raw):
        raise TLEFieldError(name, line_num, raw)
    return int(raw)


def _parse_implied_decimal(line: str, line_num: int, name: str) -> float:
    """Parse TLE implied-decimal notation into a float.

    The TLE format encodes some fields as ``±NNNNN±N`` where the mantissa
    has an implied leading ``0.`` and the final ``±N`` is a base-10
    exponent. For example, ``16538-4`` becomes ``0.16538e-4`` and
    ``-11606-4`` becomes ``-0.11606e-4``.
    """
    raw = _field(line, line_num, name).strip()
    if not raw:
        return 0.0

    match = _IMPLIED_RE.match(raw.replace(" ", ""))
    if match is None:
        raise TLEFieldError(name, line_num, raw)

    sign, digits, exponent = match.groups()
    return float(f"{sign}0.{digits}e{exponent or '+0'}")


def _clean_name(name: Optional[str]) -> Optional[str]:
    """Strip the optional ``0 `` prefix used by 3LE catalogues."""
    if name is None:
        return None
    name = name.strip()
    if name.startswith("0 "):
        name = name[2:].strip()
    return name or None
