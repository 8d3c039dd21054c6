#!/usr/bin/env python3
"""Ephemeris command-line interface.

Usage::

    ephemeris position --file data/stations.tle --name "ISS (ZARYA)"
    ephemeris look --norad-id 25544 --lat 51.48 --lon 0.0
    ephemeris passes --norad-id 25544 --lat 51.48 --lon 0.0 --hours 48
    ephemeris groundtrack --file data/stations.tle --minutes 93 --plot iss.png

Times are UTC. ``--time`` defaults to now.
"""
from __future__ import annotations

import sys
import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional

import click
import requests
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from .celestrak import CelesTrakClient, load_tle_file
from .errors import EphemerisError
from .observer import Observer
from .orbit import Orbit
from .passes import PassPredictor, PassSearchConfig
from .timeutil import to_utc
from .tracking import ground_track_frame

console = Console()

TIME_FORMATS = ["%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%d"]


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """Ephemeris — satellite positions and pass predictions from TLEs."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s — %(message)s")


def _element_options(f):
    """Options selecting the element set, shared by every command."""
    options = [
        click.option("--file", "-f", "filepath", type=click.Path(exists=True),
                     help="TLE file path (2-line or 3-line format)"),
        click.option("--norad-id", "-n", type=int,
                     help="NORAD catalog ID (selects from --file, else fetched from CelesTrak)"),
        click.option("--name", help="Object name to select from --file"),
        click.option("--reference-year", type=int,
                     help="Year used to resolve 2-digit epoch years (default: current year)"),
        click.option("--time", "-t", "when", type=click.DateTime(formats=TIME_FORMATS),
                     help="UTC time (default: now)"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def _observer_options(f):
    options = [
        click.option("--lat", type=click.FloatRange(-90, 90), required=True,
                     help="Observer latitude (deg, north positive)"),
        click.option("--lon", type=float, required=True,
                     help="Observer longitude (deg, east positive)"),
        click.option("--alt", type=float, default=0.0, show_default=True,
                     help="Observer altitude (m)"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


# ── Commands ──


@main.command()
@_element_options
def position(filepath, norad_id, name, reference_year, when):
    """Show the sub-satellite point of an object."""
    with _errors_to_exit():
        orbit = _load_orbit(filepath, norad_id, name, reference_year)
        when = _resolve_time(when)
        _warn_fidelity(orbit, when)

        pos = orbit.position_at(when)
        anomalies = orbit.anomalies_at(when)

    console.print(
        Panel(
            f"[bold]{orbit.name or 'UNKNOWN'}[/bold] (NORAD {orbit.norad_id})\n"
            f"Time: {when:%Y-%m-%d %H:%M:%S} UTC\n"
            f"Latitude: {pos.latitude:+.4f}°\n"
            f"Longitude: {pos.longitude:+.4f}°\n"
            f"Altitude: {pos.altitude:.1f} km\n"
            f"Mean / true anomaly: {anomalies.mean:.2f}° / {anomalies.true:.2f}°\n"
            f"Period: {orbit.period / 60.0:.1f} min",
            title="Position",
            box=box.ROUNDED,
        )
    )


@main.command()
@_element_options
@_observer_options
@click.option("--refraction", is_flag=True, help="Apply atmospheric refraction")
def look(filepath, norad_id, name, reference_year, when, lat, lon, alt, refraction):
    """Show azimuth, elevation and range from a ground observer."""
    with _errors_to_exit():
        orbit = _load_orbit(filepath, norad_id, name, reference_year)
        observer = _make_observer(lat, lon, alt)
        when = _resolve_time(when)
        _warn_fidelity(orbit, when)

        topo = orbit.topocentric(when, observer, refraction=refraction)

    status = "[green]above horizon[/green]" if topo.elevation > 0 else "[red]below horizon[/red]"
    console.print(
        Panel(
            f"[bold]{orbit.name or 'UNKNOWN'}[/bold] (NORAD {orbit.norad_id})\n"
            f"Observer: {lat:+.4f}°, {lon:+.4f}°, {alt:.0f} m\n"
            f"Time: {when:%Y-%m-%d %H:%M:%S} UTC\n"
            f"Azimuth: {topo.azimuth:.2f}°\n"
            f"Elevation: {topo.elevation:+.2f}° ({status})\n"
            f"Range: {topo.range_km:.1f} km\n"
            f"Range rate: {topo.range_rate_km_s:+.3f} km/s",
            title="Look Angles",
            box=box.ROUNDED,
        )
    )


@main.command()
@_element_options
@_observer_options
@click.option("--hours", default=24.0, show_default=True, help="Search window length")
@click.option("--preset", "-p", default="leo", show_default=True,
              type=click.Choice(["leo", "meo", "geo"]),
              help="Search parameter preset")
@click.option("--min-elevation", "-e", type=float, help="Override the preset's elevation threshold (deg)")
@click.option("--partial", is_flag=True, help="Include passes cut by the window edges")
@click.option("--refraction", is_flag=True, help="Use refracted elevation")
@click.option("--output", "-o", type=click.Path(), help="Save passes to CSV")
@click.option("--report-dir", type=click.Path(), help="Generate report with plots")
def passes(
    filepath, norad_id, name, reference_year, when, lat, lon, alt,
    hours: float,
    preset: str,
    min_elevation: Optional[float],
    partial: bool,
    refraction: bool,
    output: Optional[str],
    report_dir: Optional[str],
):
    """Predict passes over a ground observer."""
    config = _get_config(preset)
    if min_elevation is not None:
        config.min_elevation = min_elevation
    config.include_partial = config.include_partial or partial
    config.refraction = refraction

    with _errors_to_exit():
        orbit = _load_orbit(filepath, norad_id, name, reference_year)
        observer = _make_observer(lat, lon, alt)
        start = _resolve_time(when)
        end = start + timedelta(hours=hours)
        _warn_fidelity(orbit, end)

        try:
            windows = PassPredictor(config).predict(orbit, observer, start, end)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--hours") from e

    console.print(
        Panel(
            f"[bold]{orbit.name or 'UNKNOWN'}[/bold] (NORAD {orbit.norad_id})\n"
            f"Window: {start:%Y-%m-%d %H:%M} → {end:%Y-%m-%d %H:%M} UTC\n"
            f"Threshold: {config.min_elevation:.1f}°\n"
            f"Passes found: [bold green]{len(windows)}[/bold green]",
            title="Pass Prediction",
            box=box.ROUNDED,
        )
    )

    if windows:
        _display_pass_table(windows)

    if output or report_dir:
        import pandas as pd

        df = pd.DataFrame([w.to_dict() for w in windows])
        if output:
            df.to_csv(output, index=False)
            console.print(f"\nResults saved to {output}")
        if report_dir:
            from .viz import generate_report
            path = generate_report(df, output_dir=report_dir, observer_name=f"{lat:+.2f}, {lon:+.2f}")
            console.print(f"Report generated in {path}")


@main.command()
@_element_options
@click.option("--minutes", "-m", default=90.0, show_default=True, help="Track length")
@click.option("--step", "-s", default=60.0, show_default=True, help="Sample step (s)")
@click.option("--output", "-o", type=click.Path(), help="Save track to CSV")
@click.option("--plot", type=click.Path(), help="Save a ground-track plot (PNG)")
def groundtrack(filepath, norad_id, name, reference_year, when, minutes, step, output, plot):
    """Sample the ground track of an object."""
    with _errors_to_exit():
        orbit = _load_orbit(filepath, norad_id, name, reference_year)
        start = _resolve_time(when)
        end = start + timedelta(minutes=minutes)
        _warn_fidelity(orbit, end)

        try:
            df = ground_track_frame(orbit, start, end, step)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--step") from e

    table = Table(title=f"{orbit.name or 'UNKNOWN'} — Ground Track", box=box.SIMPLE_HEAVY)
    table.add_column("Time (UTC)", style="cyan")
    table.add_column("Lat (°)", justify="right")
    table.add_column("Lon (°)", justify="right")
    table.add_column("Alt (km)", justify="right")
    for _, row in df.head(50).iterrows():
        table.add_row(
            f"{row['time']:%Y-%m-%d %H:%M:%S}",
            f"{row['latitude_deg']:+.3f}",
            f"{row['longitude_deg']:+.3f}",
            f"{row['altitude_km']:.1f}",
        )
    if len(df) > 50:
        console.print(f"(showing 50 of {len(df)} points)")
    console.print(table)

    if output:
        df.to_csv(output, index=False)
        console.print(f"\nTrack saved to {output}")

    if plot:
        from .viz import plot_ground_track
        plot_ground_track(df, save_path=plot)
        console.print(f"Plot saved to {plot}")


# ── Helpers ──


@contextmanager
def _errors_to_exit():
    """Turn library and network errors into a red message and exit status 1."""
    try:
        yield
    except EphemerisError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    except requests.RequestException as e:
        console.print(f"[red]Network error: {e}[/red]")
        sys.exit(1)


def _get_config(preset: str) -> PassSearchConfig:
    presets = {
        "leo": PassSearchConfig.for_leo(),
        "meo": PassSearchConfig.for_meo(),
        "geo": PassSearchConfig.for_geo(),
    }
    return presets[preset]


def _resolve_time(when: Optional[datetime]) -> datetime:
    if when is None:
        return datetime.now(timezone.utc)
    return to_utc(when)


def _make_observer(lat: float, lon: float, alt: float) -> Observer:
    try:
        return Observer(latitude=lat, longitude=lon, altitude_m=alt)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def _load_orbit(
    filepath: Optional[str],
    norad_id: Optional[int],
    name: Optional[str],
    reference_year: Optional[int],
) -> Orbit:
    """Resolve the element-set options to a single orbit."""
    reference_year = reference_year or datetime.now(timezone.utc).year

    if filepath:
        tles = load_tle_file(filepath, reference_year, skip_invalid=True)
        if norad_id is not None:
            tles = [t for t in tles if t.norad_id == norad_id]
        if name:
            tles = [t for t in tles if t.name and name.lower() in t.name.lower()]
        if not tles:
            console.print(f"[red]Error: no matching TLE in {filepath}[/red]")
            sys.exit(1)
        if len(tles) > 1:
            console.print(f"[yellow]{len(tles)} TLEs match, using the first ({tles[0].name})[/yellow]")
        tle = tles[0]
    elif norad_id is not None:
        console.print(f"Fetching current TLE for NORAD {norad_id}...")
        tle = CelesTrakClient(reference_year).get_latest_tle(norad_id)
        if tle is None:
            console.print(f"[red]Error: CelesTrak has no TLE for NORAD {norad_id}[/red]")
            sys.exit(1)
    else:
        console.print("[red]Error: provide --norad-id or --file[/red]")
        sys.exit(1)

    return Orbit.from_tle(tle)


def _warn_fidelity(orbit: Orbit, when: datetime):
    """Warn when ``when`` is far enough from epoch for two-body errors to dominate."""
    if not orbit.within_fidelity(when):
        days = orbit.days_from_epoch(when)
        console.print(
            f"[yellow]Warning: {abs(days):.1f} days from the element epoch "
            f"({orbit.epoch:%Y-%m-%d}); two-body predictions are unreliable "
            f"beyond a few days. Use a fresher TLE.[/yellow]"
        )


def _display_pass_table(windows):
    """Display pass windows as a rich table."""
    table = Table(title="Passes", box=box.SIMPLE_HEAVY, show_lines=True)
    table.add_column("AOS (UTC)", style="cyan")
    table.add_column("AOS Az", justify="right")
    table.add_column("Max El", justify="right", style="bold")
    table.add_column("Max (UTC)", style="cyan")
    table.add_column("LOS (UTC)", style="cyan")
    table.add_column("LOS Az", justify="right")
    table.add_column("Duration", justify="right")

    for w in windows:
        aos = f"{w.aos.time:%Y-%m-%d %H:%M:%S}"
        los = f"{w.los.time:%H:%M:%S}"
        if w.starts_in_progress:
            aos = f"[yellow]{aos}*[/yellow]"
        if w.ends_in_progress:
            los = f"[yellow]{los}*[/yellow]"
        table.add_row(
            aos,
            f"{w.aos.azimuth:.0f}°",
            f"{w.max.elevation:.1f}°",
            f"{w.max.time:%H:%M:%S}",
            los,
            f"{w.los.azimuth:.0f}°",
            f"{w.duration / 60.0:.1f} min",
        )

    console.print(table)
    if any(w.is_partial for w in windows):
        console.print("* in progress at the window edge")


if __name__ == "__main__":
    main()
