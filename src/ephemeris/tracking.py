"""Ground tracks and sky tracks.

A ground track is the sequence of sub-satellite points over a time span; a
sky track is the sequence of look angles seen by one observer. Both sample
``[start, end]`` at a fixed step with both endpoints included, so a 600 s
span at a 60 s step yields 11 points.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta

import pandas as pd

from .observer import Observer, look_angles
from .orbit import Orbitable
from .timeutil import to_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroundTrackPoint:
    """Sub-satellite point at one instant (altitude in km)."""
    time: datetime
    latitude: float
    longitude: float
    altitude: float

    def to_dict(self) -> dict:
        return {
            "time": self.time,
            "latitude_deg": self.latitude,
            "longitude_deg": self.longitude,
            "altitude_km": self.altitude,
        }


@dataclass(frozen=True)
class SkyTrackPoint:
    """Look angles from an observer at one instant."""
    time: datetime
    azimuth: float
    elevation: float
    range_km: float

    def to_dict(self) -> dict:
        return {
            "time": self.time,
            "azimuth_deg": self.azimuth,
            "elevation_deg": self.elevation,
            "range_km": self.range_km,
        }


def time_steps(start: datetime, end: datetime, step_s: float) -> list[datetime]:
    """UTC sample times from ``start`` to ``end`` inclusive.

    ``end`` is appended when the span is not a whole number of steps.

    Raises:
        ValueError: If ``step_s`` is not positive or ``end`` precedes ``start``.
    """
    if not step_s > 0.0:
        raise ValueError(f"Step must be positive, got {step_s} s")
    start = to_utc(start)
    end = to_utc(end)
    if end < start:
        raise ValueError(f"End {end} is before start {start}")

    span = (end - start).total_seconds()
    n_full = math.floor(span / step_s + 1e-9)
    times = [start + timedelta(seconds=k * step_s) for k in range(n_full + 1)]
    if times[-1] < end:
        times.append(end)
    return times


def ground_track(
    orbit: Orbitable,
    start: datetime,
    end: datetime,
    step_s: float = 60.0,
) -> list[GroundTrackPoint]:
    """Sub-satellite points of ``orbit`` between ``start`` and ``end``.

    Raises:
        ValueError: On an invalid window or step.
        ConvergenceError: If propagation fails at a sample time.
    """
    points = []
    for t in time_steps(start, end, step_s):
        pos = orbit.position_at(t)
        points.append(GroundTrackPoint(
            time=t,
            latitude=pos.latitude,
            longitude=pos.longitude,
            altitude=pos.altitude,
        ))
    logger.debug("Ground track: %d points at %.0f s", len(points), step_s)
    return points


def sky_track(
    orbit: Orbitable,
    observer: Observer,
    start: datetime,
    end: datetime,
    step_s: float = 10.0,
    refraction: bool = False,
) -> list[SkyTrackPoint]:
    """Look angles of ``orbit`` from ``observer`` between ``start`` and ``end``.

    Points below the horizon are kept; filter on ``elevation`` to keep only
    the visible part.
    """
    points = []
    for t in time_steps(start, end, step_s):
        topo = look_angles(orbit, observer, t, refraction=refraction)
        points.append(SkyTrackPoint(
            time=t,
            azimuth=topo.azimuth,
            elevation=topo.elevation,
            range_km=topo.range_km,
        ))
    logger.debug("Sky track: %d points at %.0f s", len(points), step_s)
    return points


def ground_track_frame(
    orbit: Orbitable,
    start: datetime,
    end: datetime,
    step_s: float = 60.0,
) -> pd.DataFrame:
    """Ground track as a DataFrame (one row per sample)."""
    rows = [p.to_dict() for p in ground_track(orbit, start, end, step_s)]
    df = pd.DataFrame(rows)
    df["norad_id"] = getattr(orbit, "norad_id", None)
    return df


def sky_track_frame(
    orbit: Orbitable,
    observer: Observer,
    start: datetime,
    end: datetime,
    step_s: float = 10.0,
    refraction: bool = False,
    visible_only: bool = False,
    min_elevation: float = 0.0,
) -> pd.DataFrame:
    """Sky track as a DataFrame.

    Args:
        visible_only: Drop rows with elevation below ``min_elevation``.
    """
    rows = [
        p.to_dict()
        for p in sky_track(orbit, observer, start, end, step_s, refraction)
    ]
    df = pd.DataFrame(rows)
    if visible_only:
        df = df[df["elevation_deg"] >= min_elevation].reset_index(drop=True)
    return df
