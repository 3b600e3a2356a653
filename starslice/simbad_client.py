"""
Query Simbad for HIP stars and cache the answers in SQLite.

Two ways in:

- ``SimbadTextClient`` asks the ``sim-id`` endpoint for one object at a time
  and reads the plain-text (ASCII) answer. The resolver uses it through the
  rate-limited queue for the few stars local data cannot answer.
- ``query_simbad_and_cache`` uses astroquery's batch interface to fill the
  cache ahead of time (see fetch-simbad-cache.py). A batch counts as one
  Simbad query.
"""

import logging
import re
import time
from pathlib import Path

import requests
from astropy.table import Table

from .angles import dec_dms_to_degrees, parse_dec, parse_ra, ra_hms_to_degrees
from .constants import (
    SIMBAD_BATCH_DELAY_SEC,
    SIMBAD_HTTP_TIMEOUT_SECONDS,
    SIMBAD_URL,
    SIMBAD_USER_AGENT,
)
from .errors import RemoteLookupError, RemoteLookupTimeout
from .sqlite_helper import (
    get_simbad_from_cache,
    init_database,
    put_simbad_in_cache,
    put_simbad_miss,
)

logger = logging.getLogger(__name__)

# "Parallaxes (mas):  33.62 [0.35] A 2007A&A..." and older "Parallax : 33.62 mas"
_PARALLAX_RE = re.compile(r"Parallax(?:es)?\s*(?:\(mas\))?\s*:\s*([+-]?\d+(?:\.\d+)?)\s*(?:mas)?", re.I)
_PARALLAX_MAS_RE = re.compile(r"Parallax\s*:\s*([+-]?\d+(?:\.\d+)?)\s*mas", re.I)
_RA_RE = re.compile(r"RA\(ICRS\)\s*:\s*(\d+)\s+(\d+)\s+(\d+(?:\.\d+)?)", re.I)
_DEC_RE = re.compile(r"Dec\(ICRS\)\s*:\s*([+-]?)(\d+)\s+(\d+)\s+(\d+(?:\.\d+)?)", re.I)
# Newer ASCII layout puts both on one line: "Coordinates(ICRS,ep=J2000,eq=2000): 00 08 23.26  +29 05 25.5"
_COORD_RE = re.compile(
    r"Coordinates\(ICRS[^)]*\)\s*:\s*(\d+)\s+(\d+)\s+(\d+(?:\.\d+)?)\s+([+-])(\d+)\s+(\d+)\s+(\d+(?:\.\d+)?)",
    re.I,
)


def hip_identifier(hip: int) -> str:
    return f"HIP {int(hip)}"


def parse_simbad_ascii(text: str) -> dict | None:
    """Pull parallax and ICRS position out of a Simbad ASCII answer.

    Returns a dict with ``parallax_mas``, ``ra_deg``, ``dec_deg`` (any may be
    None), or None when neither a parallax nor a position is found. A
    missing line is "not found", never an error.
    """
    if not text:
        return None

    parallax_mas = None
    m = _PARALLAX_MAS_RE.search(text) or _PARALLAX_RE.search(text)
    if m:
        parallax_mas = float(m.group(1))

    ra_deg = dec_deg = None
    ra_m = _RA_RE.search(text)
    dec_m = _DEC_RE.search(text)
    if ra_m and dec_m:
        ra_deg = ra_hms_to_degrees(int(ra_m.group(1)), int(ra_m.group(2)), float(ra_m.group(3)))
        dec_deg = dec_dms_to_degrees(
            int(dec_m.group(2)),
            int(dec_m.group(3)),
            float(dec_m.group(4)),
            negative=dec_m.group(1) == "-",
        )
    else:
        c = _COORD_RE.search(text)
        if c:
            ra_deg = ra_hms_to_degrees(int(c.group(1)), int(c.group(2)), float(c.group(3)))
            dec_deg = dec_dms_to_degrees(
                int(c.group(5)),
                int(c.group(6)),
                float(c.group(7)),
                negative=c.group(4) == "-",
            )

    if parallax_mas is None and ra_deg is None:
        return None
    return {"parallax_mas": parallax_mas, "ra_deg": ra_deg, "dec_deg": dec_deg}


class SimbadTextClient:
    """One-object-at-a-time client for Simbad's ``sim-id`` ASCII output."""

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        url: str = SIMBAD_URL,
        timeout: float = SIMBAD_HTTP_TIMEOUT_SECONDS,
    ):
        self.session = session or requests.Session()
        self.url = url
        self.timeout = timeout

    def fetch_text(self, hip: int) -> str:
        params = {"output.format": "ASCII", "Ident": hip_identifier(hip)}
        headers = {"User-Agent": SIMBAD_USER_AGENT}
        try:
            response = self.session.get(self.url, params=params, headers=headers, timeout=self.timeout)
        except requests.Timeout as e:
            raise RemoteLookupTimeout(f"Simbad timed out for {hip_identifier(hip)}") from e
        response.raise_for_status()
        return response.text

    def lookup(self, hip: int) -> dict | None:
        """Return {hip, parallax_mas, ra_deg, dec_deg} or None if not found.

        Raises:
            RemoteLookupTimeout: the request exceeded ``timeout``.
            RemoteLookupError: any other HTTP or connection failure.
        """
        try:
            text = self.fetch_text(hip)
        except RemoteLookupTimeout:
            raise
        except requests.RequestException as e:
            raise RemoteLookupError(f"Simbad lookup failed for {hip_identifier(hip)}: {e}") from e

        parsed = parse_simbad_ascii(text)
        if parsed is None:
            logger.info("Simbad has no parallax or position for %s", hip_identifier(hip))
            return None
        parsed["hip"] = int(hip)
        return parsed

    __call__ = lookup


class CachedSimbadLookup:
    """Consult the SQLite cache before calling the wrapped lookup.

    Hits and definite misses are written back; timeouts and other
    RemoteLookupErrors are not, so the next run tries again. The database
    file is created on the first write.
    """

    def __init__(self, lookup, cache_db: Path):
        self.lookup = lookup
        self.cache_db = Path(cache_db)

    def __call__(self, hip: int) -> dict | None:
        cached = get_simbad_from_cache(self.cache_db, hip)
        if cached is False:
            return None
        if cached is not None:
            return cached

        entry = self.lookup(hip)
        if entry is None:
            put_simbad_miss(self.cache_db, hip)
            return None
        put_simbad_in_cache(self.cache_db, [dict(entry, hip=int(hip))])
        return entry

    def is_cached(self, hip: int) -> bool:
        return get_simbad_from_cache(self.cache_db, hip) is not None


def _row_to_dict(table: Table, row) -> dict | None:
    """Convert one row of an astroquery Simbad result to our cache dict.

    Handles both uppercase and lowercase column names, and RA/Dec given either
    in degrees (astroquery >= 0.4.8) or as sexagesimal strings (older).
    """
    def _get_val(val):
        if val is None:
            return None
        if hasattr(val, "value"):
            val = val.value
        if hasattr(val, "mask") and bool(val.mask):
            return None
        if isinstance(val, float) and (val != val or val == float("inf")):
            return None
        return val

    def col_raw(*names: str):
        for name in names:
            for key in table.colnames:
                if key.upper() == name.upper():
                    return _get_val(row[key])
        return None

    def col(*names: str):
        val = col_raw(*names)
        if val is None:
            return None
        try:
            return float(val)
        except (TypeError, ValueError):
            return None

    main_id = col_raw("MAIN_ID")
    if main_id is None or not str(main_id).strip():
        return None

    ra_raw = col_raw("RA")
    dec_raw = col_raw("DEC")
    if ra_raw is None or dec_raw is None:
        return None
    try:
        if isinstance(ra_raw, str):
            ra = parse_ra(ra_raw, "hour")
            dec = parse_dec(dec_raw)
        else:
            ra = float(ra_raw)
            dec = float(dec_raw)
    except ValueError:
        return None

    return {
        "main_id": str(main_id).strip(),
        "ra_deg": ra,
        "dec_deg": dec,
        "parallax_mas": col("PLX_VALUE", "PLX", "PARALLAX"),
        "vmag": col("V", "FLUX_V", "VMAG"),
        "user_specified_id": col_raw("USER_SPECIFIED_ID"),
    }


def query_simbad_and_cache(
    cache_db: Path,
    hips: list[int],
    *,
    delay_sec: float = SIMBAD_BATCH_DELAY_SEC,
) -> list[dict]:
    """
    Query Simbad for the given HIP numbers in one batch, insert results into
    the cache, and return the cached dicts for each resolved star.
    """
    from astroquery.simbad import Simbad

    if not hips:
        return []

    init_database(cache_db).close()
    Simbad.add_votable_fields("plx", "V")

    identifiers = [hip_identifier(h) for h in hips]
    try:
        result = Simbad.query_objects(identifiers)
    except Exception as e:
        raise RuntimeError(f"Simbad query failed: {e}") from e

    if delay_sec > 0:
        time.sleep(delay_sec)

    if result is None or len(result) == 0:
        return []

    parsed = [_row_to_dict(result, row) for row in result]
    by_identifier = {
        str(d["user_specified_id"]).strip().upper(): d
        for d in parsed
        if d and d.get("user_specified_id")
    }

    rows = []
    for i, hip in enumerate(hips):
        d = by_identifier.get(hip_identifier(hip).upper())
        # Older astroquery drops the requested id; only trust positions when
        # the answer lines up one-to-one with the request.
        if d is None and not by_identifier and len(parsed) == len(hips):
            d = parsed[i]
        if d:
            rows.append({k: v for k, v in d.items() if k != "user_specified_id"} | {"hip": int(hip)})

    if rows:
        put_simbad_in_cache(cache_db, rows)
    return rows
