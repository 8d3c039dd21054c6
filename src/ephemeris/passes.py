"""Pass prediction: acquisition, culmination and loss of signal.

Finds the windows during which an orbiting object is above a minimum
elevation for a ground observer.

Search:
    1. Sample elevation at ``start + k·step`` up to and including ``end``.
    2. Each upward crossing of the threshold brackets an AOS, each downward
       crossing a LOS.
    3. Refine every crossing by bisection to ``time_tolerance_s``.
    4. Locate the maximum between AOS and LOS by golden-section search.

Known limitations:
    - Elevation is assumed unimodal within one AOS/LOS window (a single
      rise-then-set transit). A window with several local maxima reports
      only one of them.
    - A pass that rises and sets entirely between two samples is missed;
      choose ``step_s`` well below the shortest pass of interest.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional, Union

import pandas as pd

from .observer import Observer, Topocentric, look_angles
from .orbit import Orbitable
from .timeutil import to_utc

logger = logging.getLogger(__name__)

_INV_PHI = (math.sqrt(5.0) - 1.0) / 2.0


# ── Configuration ──

@dataclass
class PassSearchConfig:
    """Parameters of a pass search.

    Attributes:
        min_elevation: Elevation threshold defining AOS/LOS (degrees).
        step_s: Sampling step of the coarse scan (seconds).
        time_tolerance_s: Precision of AOS, LOS and maximum times (seconds).
        include_partial: Emit passes already in progress at the window
            start or still in progress at its end, flagged as such. When
            False they are dropped. The maximum of a flagged window may
            coincide with its truncated AOS or LOS.
        refraction: Use refracted (apparent) elevation.
        max_samples: Upper bound on coarse samples, as a guard against
            runaway searches.
    """
    min_elevation: float = 10.0
    step_s: float = 60.0
    time_tolerance_s: float = 1.0
    include_partial: bool = False
    refraction: bool = False
    max_samples: int = 200_000

    @classmethod
    def for_leo(cls) -> PassSearchConfig:
        """Low Earth orbit: passes of a few minutes."""
        return cls(min_elevation=10.0, step_s=30.0, time_tolerance_s=0.5)

    @classmethod
    def for_meo(cls) -> PassSearchConfig:
        """Medium Earth orbit (GNSS-like): passes of several hours."""
        return cls(min_elevation=10.0, step_s=300.0, time_tolerance_s=5.0)

    @classmethod
    def for_geo(cls) -> PassSearchConfig:
        """Geosynchronous: visibility rarely changes, keep partial windows."""
        return cls(
            min_elevation=5.0,
            step_s=900.0,
            time_tolerance_s=10.0,
            include_partial=True,
        )


# ── Pass window ──

@dataclass(frozen=True)
class PassPoint:
    """One instant of a pass with the look angles at that instant."""
    time: datetime
    azimuth: float
    elevation: float


@dataclass(frozen=True)
class PassWindow:
    """A single pass of an object over an observer.

    Attributes:
        aos: Acquisition of signal (rise through the threshold).
        max: Maximum elevation.
        los: Loss of signal (set through the threshold).
        starts_in_progress: The object was already above the threshold at
            the search start; ``aos`` is the search start, not a rise.
        ends_in_progress: The object was still above the threshold at the
            search end; ``los`` is the search end, not a set.
        name: Object name, for labelling.
        norad_id: Catalog number, for labelling.

    A complete pass satisfies ``aos.time < max.time < los.time``. A partial
    window only covers the part of the pass inside the search window, so
    ``max`` is the highest point within it: for an object already setting
    at the search start ``max.time == aos.time``, and for one still rising
    at the search end ``max.time == los.time``.
    """
    aos: PassPoint
    max: PassPoint
    los: PassPoint
    starts_in_progress: bool = False
    ends_in_progress: bool = False
    name: Optional[str] = None
    norad_id: Optional[int] = None

    @property
    def duration(self) -> float:
        """Seconds between AOS and LOS."""
        return (self.los.time - self.aos.time).total_seconds()

    @property
    def is_partial(self) -> bool:
        return self.starts_in_progress or self.ends_in_progress

    def to_dict(self) -> dict:
        """Serialize to a flat dictionary for DataFrame construction."""
        return {
            "norad_id": self.norad_id,
            "name": self.name,
            "aos_time": self.aos.time,
            "aos_azimuth_deg": round(self.aos.azimuth, 2),
            "max_time": self.max.time,
            "max_elevation_deg": round(self.max.elevation, 2),
            "max_azimuth_deg": round(self.max.azimuth, 2),
            "los_time": self.los.time,
            "los_azimuth_deg": round(self.los.azimuth, 2),
            "duration_s": round(self.duration, 1),
            "partial": self.is_partial,
        }

    def summary(self) -> str:
        """Return a one-line human-readable summary of the pass."""
        flag = " (partial)" if self.is_partial else ""
        return (
            f"[{self.aos.time:%Y-%m-%d %H:%M:%S}] "
            f"{self.name or 'UNKNOWN'} — "
            f"AOS az {self.aos.azimuth:.0f}°, "
            f"max {self.max.elevation:.1f}° at {self.max.time:%H:%M:%S}, "
            f"LOS az {self.los.azimuth:.0f}° "
            f"({self.duration / 60.0:.1f} min){flag}"
        )


# ── Search engine ──

class PassPredictor:
    """Bracket-and-refine pass search.

    Args:
        config: Search parameters. Defaults to ``PassSearchConfig()``.

    Example:
        >>> predictor = PassPredictor(PassSearchConfig.for_leo())
        >>> for window in predictor.predict(orbit, observer, start, end):
        ...     print(window.summary())
    """
    def __init__(self, config: Optional[PassSearchConfig] = None) -> None:
        self.config = config or PassSearchConfig()

    def predict(
        self,
        orbit: Orbitable,
        observer: Observer,
        start: datetime,
        end: datetime,
    ) -> list[PassWindow]:
        """Find every pass between ``start`` and ``end``.

        Returns:
            Passes in chronological order; empty when there are none.

        Raises:
            ValueError: If the window or the step is invalid, or the scan
                would need more than ``max_samples`` samples.
            ConvergenceError: If propagation fails at a sample time.
        """
        cfg = self.config
        start = to_utc(start)
        end = to_utc(end)
        if end < start:
            raise ValueError(f"Search end {end} is before start {start}")
        if not cfg.step_s > 0.0:
            raise ValueError(f"Step must be positive, got {cfg.step_s} s")
        if not cfg.time_tolerance_s > 0.0:
            raise ValueError(f"Time tolerance must be positive, got {cfg.time_tolerance_s} s")

        span = (end - start).total_seconds()
        n_steps = math.ceil(span / cfg.step_s)
        if n_steps + 1 > cfg.max_samples:
            raise ValueError(
                f"Search needs {n_steps + 1} samples, above the limit of {cfg.max_samples}; "
                f"increase step_s or shorten the window"
            )

        def look(offset: float) -> Topocentric:
            return look_angles(
                orbit, observer, start + timedelta(seconds=offset), refraction=cfg.refraction
            )

        def above(offset: float) -> float:
            return look(offset).elevation - cfg.min_elevation

        offsets = [min(k * cfg.step_s, span) for k in range(n_steps + 1)]
        windows: list[PassWindow] = []

        prev_s = offsets[0]
        prev_v = above(prev_s)
        aos_s: Optional[float] = None
        starts_in_progress = False
        best: tuple[float, float] = (prev_s, prev_v)

        if prev_v >= 0.0 and cfg.include_partial:
            aos_s = prev_s
            starts_in_progress = True

        for s in offsets[1:]:
            v = above(s)

            if prev_v < 0.0 <= v:
                aos_s = self._refine_crossing(above, below=prev_s, over=s)
                starts_in_progress = False
                best = (s, v)
            elif prev_v >= 0.0 > v:
                if aos_s is not None:
                    los_s = self._refine_crossing(above, below=s, over=prev_s)
                    windows.append(self._build_window(
                        orbit, start, look, aos_s, los_s, best,
                        starts_in_progress=starts_in_progress,
                        ends_in_progress=False,
                    ))
                aos_s = None
                starts_in_progress = False
            elif v >= 0.0 and v > best[1]:
                best = (s, v)

            prev_s, prev_v = s, v

        # Still above the threshold when the window closes
        if aos_s is not None and prev_v >= 0.0 and cfg.include_partial:
            windows.append(self._build_window(
                orbit, start, look, aos_s, span, best,
                starts_in_progress=starts_in_progress,
                ends_in_progress=True,
            ))

        logger.debug(
            "Found %d passes for %s between %s and %s",
            len(windows), getattr(orbit, "name", None) or "object", start, end,
        )
        return windows

    def _refine_crossing(
        self,
        f: Callable[[float], float],
        below: float,
        over: float,
    ) -> float:
        """Bisect a threshold crossing between ``below`` (f < 0) and ``over`` (f >= 0).

        Returns the final below-threshold bound, so the elevation at the
        returned time never exceeds the threshold.
        """
        while abs(over - below) > self.config.time_tolerance_s:
            mid = 0.5 * (below + over)
            if f(mid) >= 0.0:
                over = mid
            else:
                below = mid
        return below

    def _golden_max(
        self,
        f: Callable[[float], float],
        a: float,
        b: float,
    ) -> tuple[float, float]:
        """Golden-section search for the maximum of a unimodal ``f`` on ``[a, b]``."""
        c = b - _INV_PHI * (b - a)
        d = a + _INV_PHI * (b - a)
        fc, fd = f(c), f(d)
        while b - a > self.config.time_tolerance_s:
            if fc > fd:
                b, d, fd = d, c, fc
                c = b - _INV_PHI * (b - a)
                fc = f(c)
            else:
                a, c, fc = c, d, fd
                d = a + _INV_PHI * (b - a)
                fd = f(d)
        x = 0.5 * (a + b)
        return x, f(x)

    def _build_window(
        self,
        orbit: Orbitable,
        start: datetime,
        look: Callable[[float], Topocentric],
        aos_s: float,
        los_s: float,
        best: tuple[float, float],
        starts_in_progress: bool,
        ends_in_progress: bool,
    ) -> PassWindow:
        """Assemble a PassWindow, locating the culmination between AOS and LOS.

        ``best`` is the highest coarse sample as ``(offset, elevation - threshold)``;
        it wins over the golden-section result when it is higher, which keeps
        the reported maximum at or above the threshold.
        """
        threshold = self.config.min_elevation
        max_s, max_v = self._golden_max(lambda s: look(s).elevation - threshold, aos_s, los_s)
        best_s, best_v = best
        if best_v > max_v:
            max_s = best_s

        def point(offset: float) -> PassPoint:
            topo = look(offset)
            return PassPoint(
                time=start + timedelta(seconds=offset),
                azimuth=topo.azimuth,
                elevation=topo.elevation,
            )

        return PassWindow(
            aos=point(aos_s),
            max=point(max_s),
            los=point(los_s),
            starts_in_progress=starts_in_progress,
            ends_in_progress=ends_in_progress,
            name=getattr(orbit, "name", None),
            norad_id=getattr(orbit, "norad_id", None),
        )


# ── Batch utilities ──

def predict_passes_batch(
    orbits: Union[dict, Iterable[Orbitable]],
    observer: Observer,
    start: datetime,
    end: datetime,
    config: Optional[PassSearchConfig] = None,
) -> pd.DataFrame:
    """Predict passes for many objects over one observer.

    Args:
        orbits: Orbits to search, either an iterable or a dict whose values
            are orbits (e.g. keyed by NORAD ID).
        observer: Ground location.
        start: Start of the search window.
        end: End of the search window.
        config: Search parameters shared by every object.

    Returns:
        DataFrame with one row per pass, sorted by AOS time.
    """
    predictor = PassPredictor(config)
    items = orbits.values() if isinstance(orbits, dict) else orbits

    rows = []
    for orbit in items:
        for window in predictor.predict(orbit, observer, start, end):
            rows.append(window.to_dict())

    if not rows:
        return pd.DataFrame()

    return pd.DataFrame(rows).sort_values("aos_time").reset_index(drop=True)
