"""CelesTrak client and local catalogue loading.

Fetches current element sets from CelesTrak's public GP endpoint, which
needs no account. Responses are cached on disk and requests are spaced out
so that repeated runs do not hammer the service.

The cache directory defaults to ``data/cache`` and can be moved with::

    export EPHEMERIS_CACHE_DIR="/var/tmp/ephemeris"

Element sets fetched here are only as good as their epoch: two-body
propagation degrades within days, so refetch rather than reuse old data.
"""

from __future__ import annotations

import os
import re
import time
import logging
from pathlib import Path
from typing import Iterable, Optional, Union

import requests

from .errors import TLEParseError
from .tle_parser import TLE

logger = logging.getLogger(__name__)

GP_URL = "https://celestrak.org/NORAD/elements/gp.php"

CACHE_MAX_AGE_HOURS = 24.0
MIN_REQUEST_INTERVAL = 1.0  # seconds between requests

_CACHE_KEY_RE = re.compile(r"[^A-Za-z0-9_.-]+")


class CelesTrakClient:
    """Client for the CelesTrak GP element-set API.

    Args:
        reference_year: Year used to resolve 2-digit epoch years.
        cache_dir: Response cache directory. Defaults to
            ``$EPHEMERIS_CACHE_DIR`` or ``data/cache``.
        session: Optional pre-configured ``requests.Session``.
        timeout: Request timeout (seconds).
        min_interval: Minimum delay between two network requests (seconds).
    """

    def __init__(
        self,
        reference_year: int,
        cache_dir: Optional[Union[str, Path]] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        min_interval: float = MIN_REQUEST_INTERVAL,
    ):
        self.reference_year = reference_year
        self.cache_dir = Path(cache_dir or os.environ.get("EPHEMERIS_CACHE_DIR", "data/cache"))
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.session = session or requests.Session()
        self.timeout = timeout
        self.min_interval = min_interval
        self._last_request_time = 0.0

    def _rate_limit(self):
        elapsed = time.time() - self._last_request_time
        if elapsed < self.min_interval:
            time.sleep(self.min_interval - elapsed)
        self._last_request_time = time.time()

    def _query(self, params: dict, use_cache: bool = True) -> str:
        """Fetch TLE text for ``params``, with optional disk caching."""
        key = "_".join(f"{k}-{v}" for k, v in sorted(params.items()))
        cache_file = self.cache_dir / f"{_CACHE_KEY_RE.sub('_', key)[:200]}.tle"

        if use_cache and cache_file.exists():
            age_hours = (time.time() - cache_file.stat().st_mtime) / 3600
            if age_hours < CACHE_MAX_AGE_HOURS:
                logger.debug("Cache hit: %s", cache_file.name)
                return cache_file.read_text(encoding="utf-8")

        self._rate_limit()
        query = {**params, "FORMAT": "TLE"}
        logger.info("Querying CelesTrak: %s", query)

        resp = self.session.get(GP_URL, params=query, timeout=self.timeout)
        resp.raise_for_status()

        if use_cache:
            cache_file.write_text(resp.text, encoding="utf-8")

        return resp.text

    def _parse(self, raw: str, skip_invalid: bool = False) -> list[TLE]:
        # CelesTrak answers unknown objects with a plain-text notice, not a 404
        if "No GP data found" in raw or not raw.strip():
            return []
        return TLE.parse_batch(raw, reference_year=self.reference_year, skip_invalid=skip_invalid)

    def get_latest_tle(self, norad_id: int, use_cache: bool = True) -> Optional[TLE]:
        """Fetch the current element set for one catalog number.

        Returns:
            The TLE, or None when CelesTrak has no data for ``norad_id``.

        Raises:
            requests.RequestException: On network or HTTP failure.
            TLEParseError: If the response does not parse.
        """
        tles = self._parse(self._query({"CATNR": norad_id}, use_cache=use_cache))
        if not tles:
            logger.warning("No TLE found for NORAD %d", norad_id)
            return None
        return tles[0]

    def get_group(self, group: str, use_cache: bool = True) -> list[TLE]:
        """Fetch every element set in a CelesTrak group (e.g. ``stations``).

        Records that fail to parse are skipped and logged.
        """
        raw = self._query({"GROUP": group}, use_cache=use_cache)
        tles = self._parse(raw, skip_invalid=True)
        if not tles:
            logger.warning("CelesTrak group %r is empty", group)
        return tles

    def get_many(self, norad_ids: Iterable[int], use_cache: bool = True) -> dict[int, TLE]:
        """Fetch the current element set for several objects.

        Failures are logged per object and do not abort the batch.

        Returns:
            Dict mapping NORAD ID to TLE, for the objects that succeeded.
        """
        from tqdm import tqdm

        results = {}
        for norad_id in tqdm(list(norad_ids), desc="Fetching TLEs"):
            try:
                tle = self.get_latest_tle(norad_id, use_cache=use_cache)
            except (requests.RequestException, TLEParseError) as e:
                logger.warning("Failed to fetch NORAD %d: %s", norad_id, e)
                continue
            if tle is not None:
                results[norad_id] = tle

        return results


def load_tle_file(
    filepath: Union[str, Path],
    reference_year: int,
    skip_invalid: bool = False,
) -> list[TLE]:
    """Load TLEs from a local file (2-line or 3-line format)."""
    text = Path(filepath).read_text(encoding="utf-8")
    return TLE.parse_batch(text, reference_year=reference_year, skip_invalid=skip_invalid)
