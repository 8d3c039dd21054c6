"""Plots for ground tracks, sky tracks and pass schedules.

Figures are returned for interactive use (Jupyter) and optionally saved as
PNGs. ``generate_report`` bundles them with a Markdown summary.
"""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import matplotlib.dates as mdates


plt.rcParams.update({
    "figure.facecolor": "white",
    "axes.facecolor": "#fafafa",
    "axes.grid": True,
    "grid.alpha": 0.3,
    "font.family": "sans-serif",
    "font.size": 10,
})

TRACK_COLOR = "#2c3e50"
PASS_COLORS = {
    "complete": "#2980b9",
    "partial": "#95a5a6",
}


def _split_at_antimeridian(longitudes: np.ndarray, latitudes: np.ndarray) -> list[tuple]:
    """Cut a track into segments wherever longitude jumps by more than 180°."""
    if len(longitudes) == 0:
        return []
    breaks = np.where(np.abs(np.diff(longitudes)) > 180.0)[0] + 1
    return list(zip(np.split(longitudes, breaks), np.split(latitudes, breaks)))


def plot_ground_track(
    track_df: pd.DataFrame,
    observer=None,
    title: Optional[str] = None,
    save_path: Optional[Union[str, Path]] = None,
    figsize: tuple = (14, 7),
) -> plt.Figure:
    """Plot a ground track on an equirectangular latitude/longitude grid.

    Args:
        track_df: DataFrame from ``ground_track_frame()``.
        observer: Optional ``Observer`` to mark on the map.
        title: Plot title.
        save_path: Path to save figure (optional).

    Returns:
        matplotlib Figure
    """
    fig, ax = plt.subplots(figsize=figsize)

    lons = track_df["longitude_deg"].to_numpy(dtype=float)
    lats = track_df["latitude_deg"].to_numpy(dtype=float)
    for seg_lon, seg_lat in _split_at_antimeridian(lons, lats):
        ax.plot(seg_lon, seg_lat, linewidth=1.0, color=TRACK_COLOR)

    if len(lons):
        ax.scatter(lons[0], lats[0], color="#27ae60", s=30, zorder=3, label="Start")
        ax.scatter(lons[-1], lats[-1], color="#c0392b", s=30, zorder=3, label="End")

    if observer is not None:
        obs_lon = ((observer.longitude + 180.0) % 360.0) - 180.0
        ax.scatter(obs_lon, observer.latitude, marker="^", color="#f39c12", s=60,
                   zorder=4, label=observer.name or "Observer")

    ax.set_xlim(-180, 180)
    ax.set_ylim(-90, 90)
    ax.set_xticks(range(-180, 181, 30))
    ax.set_yticks(range(-90, 91, 30))
    ax.set_xlabel("Longitude (°)")
    ax.set_ylabel("Latitude (°)")
    ax.set_aspect("equal")
    ax.legend(loc="lower left", fontsize=8)

    norad = track_df["norad_id"].iloc[0] if "norad_id" in track_df and len(track_df) else None
    ax.set_title(title or f"NORAD {norad} — Ground Track")

    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig


def plot_sky_track(
    sky_df: pd.DataFrame,
    min_elevation: float = 0.0,
    title: str = "Sky Track",
    save_path: Optional[Union[str, Path]] = None,
    figsize: tuple = (7, 7),
) -> plt.Figure:
    """Polar sky plot: north up, azimuth clockwise, zenith at the centre.

    Only points at or above ``min_elevation`` are drawn.
    """
    fig = plt.figure(figsize=figsize)
    ax = fig.add_subplot(projection="polar")
    ax.set_theta_zero_location("N")
    ax.set_theta_direction(-1)

    visible = sky_df[sky_df["elevation_deg"] >= min_elevation]
    if visible.empty:
        ax.text(0.5, 0.5, "Not visible", transform=ax.transAxes,
                ha="center", va="center", fontsize=14, color="#95a5a6")
    else:
        theta = np.radians(visible["azimuth_deg"].to_numpy(dtype=float))
        r = 90.0 - visible["elevation_deg"].to_numpy(dtype=float)
        ax.plot(theta, r, linewidth=1.2, color=TRACK_COLOR)
        ax.scatter(theta[0], r[0], color="#27ae60", s=30, zorder=3)
        ax.scatter(theta[-1], r[-1], color="#c0392b", s=30, zorder=3)

    ax.set_rlim(0, 90)
    ax.set_rticks([0, 30, 60, 90])
    ax.set_yticklabels(["90°", "60°", "30°", "0°"])
    ax.set_title(title)

    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig


def plot_pass_timeline(
    pass_df: pd.DataFrame,
    title: str = "Pass Timeline",
    save_path: Optional[Union[str, Path]] = None,
    figsize: tuple = (14, 5),
) -> plt.Figure:
    """Horizontal bars from AOS to LOS, one row per object.

    Bar labels show the maximum elevation; partial passes are greyed.
    """
    fig, ax = plt.subplots(figsize=figsize)

    if pass_df.empty:
        ax.text(0.5, 0.5, "No passes predicted", transform=ax.transAxes,
                ha="center", va="center", fontsize=14, color="#95a5a6")
        return fig

    labels = pass_df["name"].fillna(pass_df["norad_id"].astype(str))
    rows = {label: i for i, label in enumerate(dict.fromkeys(labels))}

    for label, (_, p) in zip(labels, pass_df.iterrows()):
        aos = mdates.date2num(pd.Timestamp(p["aos_time"]).to_pydatetime())
        los = mdates.date2num(pd.Timestamp(p["los_time"]).to_pydatetime())
        color = PASS_COLORS["partial" if p.get("partial", False) else "complete"]
        ax.barh(rows[label], los - aos, left=aos, height=0.5, color=color, alpha=0.8)
        ax.text(aos + (los - aos) / 2, rows[label], f"{p['max_elevation_deg']:.0f}°",
                ha="center", va="center", fontsize=7, color="white")

    ax.set_yticks(list(rows.values()))
    ax.set_yticklabels(list(rows.keys()))
    ax.set_xlabel("Time (UTC)")
    ax.set_title(title)
    ax.xaxis_date()
    ax.xaxis.set_major_formatter(mdates.DateFormatter("%m-%d %H:%M"))
    fig.autofmt_xdate(rotation=30)

    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig


def generate_report(
    pass_df: pd.DataFrame,
    track_dfs: Optional[dict[int, pd.DataFrame]] = None,
    output_dir: Union[str, Path] = "data/reports",
    observer_name: str = "Observer",
) -> Path:
    """Write a pass report (Markdown summary and PNG plots).

    Returns the output directory path.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    n_passes = len(pass_df)
    n_objects = pass_df["norad_id"].nunique() if n_passes else 0

    summary = (
        f"# Pass Report\n"
        f"## {observer_name}\n\n"
        f"- **Passes predicted:** {n_passes}\n"
        f"- **Objects:** {n_objects}\n"
        f"- **Report generated:** {datetime.now():%Y-%m-%d %H:%M}\n\n"
    )

    if n_passes:
        best = pass_df.loc[pass_df["max_elevation_deg"].idxmax()]
        summary += (
            "### Highest pass\n"
            f"- {best['name'] or best['norad_id']}: {best['max_elevation_deg']:.1f}° "
            f"at {pd.Timestamp(best['max_time']):%Y-%m-%d %H:%M:%S} UTC\n"
        )

    (output_dir / "report.md").write_text(summary, encoding="utf-8")

    if n_passes:
        plot_pass_timeline(
            pass_df,
            title=f"{observer_name} — Pass Timeline",
            save_path=output_dir / "timeline.png",
        )

    for norad_id, track_df in (track_dfs or {}).items():
        plot_ground_track(track_df, save_path=output_dir / f"groundtrack_{norad_id}.png")

    plt.close("all")
    return output_dir
