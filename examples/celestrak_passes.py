#!/usr/bin/env python3
"""
Ephemeris Example: Tonight's space-station passes from live CelesTrak data.

Needs network access but no account. Responses are cached for a day under
data/cache (override with EPHEMERIS_CACHE_DIR).
"""
import sys
sys.path.insert(0, "src")

from datetime import datetime, timedelta, timezone
from ephemeris.celestrak import CelesTrakClient
from ephemeris.observer import Observer
from ephemeris.orbit import Orbit
from ephemeris.passes import PassSearchConfig, predict_passes_batch
from ephemeris.tracking import ground_track_frame
from ephemeris.viz import generate_report

STATIONS = {
    25544: "ISS (ZARYA)",
    48274: "CSS (TIANHE)",
}


def main():
    print("=" * 65)
    print("  Ephemeris — Space Station Passes")
    print("=" * 65)

    now = datetime.now(timezone.utc)
    observer = Observer(latitude=48.8566, longitude=2.3522, altitude_m=35.0, name="Paris")

    client = CelesTrakClient(reference_year=now.year)

    print(f"\nFetching current TLEs for {len(STATIONS)} stations from CelesTrak...")
    tles = client.get_many(STATIONS)
    orbits = {norad_id: Orbit.from_tle(tle) for norad_id, tle in tles.items()}
    print(f"Fetched {len(orbits)} element sets")

    end = now + timedelta(hours=24)
    config = PassSearchConfig.for_leo()
    df = predict_passes_batch(orbits, observer, now, end, config)

    print(f"\nPasses over {observer.name} above {config.min_elevation:.0f}° in the next 24 h: {len(df)}")

    if not df.empty:
        print(f"\n{'AOS (UTC)':20s} {'OBJECT':15s} {'MAX EL':>7} {'DURATION':>9}")
        print("-" * 55)
        for _, row in df.iterrows():
            print(
                f"{row['aos_time']:%Y-%m-%d %H:%M:%S}  "
                f"{row['name'][:15]:15s} "
                f"{row['max_elevation_deg']:6.1f}° "
                f"{row['duration_s'] / 60.0:7.1f} min"
            )

        tracks = {
            norad_id: ground_track_frame(orbit, now, now + timedelta(seconds=orbit.period))
            for norad_id, orbit in orbits.items()
        }
        report_dir = generate_report(df, tracks, output_dir="data/reports/stations", observer_name=observer.name)
        print(f"\nReport generated in {report_dir}")


if __name__ == "__main__":
    main()
