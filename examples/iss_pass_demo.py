"""
Example: ISS passes over Greenwich from an embedded element set.

Runs offline. The TLE below dates from April 2020, so the prediction window
is placed right after its epoch; two-body propagation is only trustworthy
for a few days either side.
"""

import sys
sys.path.insert(0, "src")

from datetime import timedelta
from pathlib import Path
from ephemeris.tle_parser import TLE
from ephemeris.orbit import Orbit
from ephemeris.observer import Observer
from ephemeris.passes import PassPredictor, PassSearchConfig
from ephemeris.tracking import ground_track_frame, sky_track_frame

ISS_TLE = """\
ISS (ZARYA)
1 25544U 98067A   20097.82871450  .00000874  00000-0  24271-4 0  9992
2 25544  51.6465 341.5807 0003880  94.4223  26.1197 15.48685836220958
"""


def main():
    print("=" * 65)
    print("  Ephemeris — ISS Pass Prediction Demo")
    print("=" * 65)

    tle = TLE.from_text(ISS_TLE, reference_year=2025)
    orbit = Orbit.from_tle(tle)
    greenwich = Observer(latitude=51.4769, longitude=-0.0005, altitude_m=46.0, name="Greenwich")

    print(f"\n{orbit.name} (NORAD {orbit.norad_id})")
    print(f"  Epoch:   {orbit.epoch:%Y-%m-%d %H:%M:%S} UTC")
    print(f"  Period:  {orbit.period / 60.0:.1f} min")
    print(f"  Perigee: {orbit.perigee_altitude:.0f} km   Apogee: {orbit.apogee_altitude:.0f} km")

    start = orbit.epoch
    end = start + timedelta(days=2)

    # ── Passes above 10° ──
    windows = PassPredictor(PassSearchConfig.for_leo()).predict(orbit, greenwich, start, end)
    print(f"\nPasses over {greenwich.name} in the next 48 h: {len(windows)}")
    print("-" * 65)
    for w in windows:
        print(f"  {w.summary()}")

    if not windows:
        return

    # ── Sky track of the highest pass ──
    best = max(windows, key=lambda w: w.max.elevation)
    sky = sky_track_frame(orbit, greenwich, best.aos.time, best.los.time, step_s=30)
    print(f"\nHighest pass ({best.max.elevation:.1f}°), 30 s samples:")
    print(sky[["time", "azimuth_deg", "elevation_deg", "range_km"]].to_string(index=False))

    # ── One orbit of ground track ──
    track = ground_track_frame(orbit, best.max.time, best.max.time + timedelta(seconds=orbit.period))
    print(f"\nGround track: {len(track)} points, "
          f"latitude {track['latitude_deg'].min():+.1f}° to {track['latitude_deg'].max():+.1f}°")

    # ── Plots ──
    import matplotlib
    matplotlib.use("Agg")  # Non-interactive backend
    from ephemeris.viz import plot_ground_track, plot_sky_track

    out_dir = Path("data/reports")
    out_dir.mkdir(parents=True, exist_ok=True)
    plot_ground_track(track, observer=greenwich, save_path=out_dir / "iss_groundtrack.png")
    plot_sky_track(sky, min_elevation=10.0, save_path=out_dir / "iss_skytrack.png")
    print(f"\nPlots saved to {out_dir}/")


if __name__ == "__main__":
    main()
