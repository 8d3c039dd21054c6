"""Exception hierarchy.

Parse errors derive from ``ValueError`` and calculation errors from
``ArithmeticError``, so callers that only know the built-ins still catch
them. Every exception carries the context needed to diagnose it as
attributes as well as in its message.
"""

from __future__ import annotations

from typing import Optional


class EphemerisError(Exception):
    """Base class for all errors raised by this package."""


# ── Parsing ──


class TLEParseError(EphemerisError, ValueError):
    """A TLE could not be parsed. No partial element set is ever produced.

    Attributes:
        field: Name of the offending field, if one is known.
        line: TLE line number (0, 1 or 2), if one is known.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        line: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.field = field
        self.line = line


class TLEFormatError(TLEParseError):
    """Wrong line count, short line or unexpected layout."""


class TLEFieldError(TLEParseError):
    """A field is non-numeric or outside its valid range."""

    def __init__(self, field: str, line: int, value: str, reason: str = "") -> None:
        detail = reason or "is not a valid number"
        super().__init__(
            f"Invalid value in field '{field}' on line {line}: '{value}' {detail}",
            field=field,
            line=line,
        )
        self.value = value


class TLEChecksumError(TLEParseError):
    """The modulo-10 checksum of a data line does not match."""

    def __init__(self, line: int, expected: int, computed: int) -> None:
        super().__init__(
            f"Checksum mismatch on line {line}: expected {expected}, computed {computed}",
            field="checksum",
            line=line,
        )
        self.expected = expected
        self.computed = computed


# ── Calculation ──


class CalculationError(EphemerisError, ArithmeticError):
    """An orbital or geometric calculation could not be carried out."""


class OrbitError(CalculationError):
    """Element values that cannot describe a bound Earth orbit."""


class SingularityError(CalculationError):
    """Eccentricity >= 1: parabolic and hyperbolic orbits are unsupported."""

    def __init__(self, eccentricity: float) -> None:
        super().__init__(
            f"Reached singularity: eccentricity {eccentricity} must be below 1.0"
        )
        self.eccentricity = eccentricity


class ConvergenceError(CalculationError):
    """Kepler's equation was not solved to tolerance within the iteration limit."""

    def __init__(self, iterations: int, residual: float, tolerance: float) -> None:
        super().__init__(
            f"Kepler solver did not converge after {iterations} iterations "
            f"(residual {residual:.3e}, tolerance {tolerance:.1e})"
        )
        self.iterations = iterations
        self.residual = residual
        self.tolerance = tolerance


class DegenerateGeometryError(CalculationError):
    """Observer and target coincide, so direction angles are undefined."""

    def __init__(self, range_km: float) -> None:
        super().__init__(
            f"Degenerate geometry: range {range_km:.3e} km is too small "
            f"to define azimuth and elevation"
        )
        self.range_km = range_km
