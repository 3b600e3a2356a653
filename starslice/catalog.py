"""Local HIP catalog with an explicit load / invalidate lifecycle."""

import json
import logging
from pathlib import Path

from .star_data import get_bright_stars, get_field_stars

logger = logging.getLogger(__name__)


class LocalCatalog:
    """HIP number -> {ra_deg, dec_deg, parallax_mas?, distance_pc?, apparent_mag?}.

    Owned by the caller and passed to the resolver. Nothing is read until the
    first ``get`` (or an explicit ``load``); ``invalidate`` drops the table so
    the next access reloads it.
    """

    def __init__(self, extra_path: Path | None = None, *, include_builtin: bool = True):
        self.extra_path = Path(extra_path) if extra_path is not None else None
        self.include_builtin = include_builtin
        self._entries: dict[int, dict] | None = None

    @property
    def loaded(self) -> bool:
        return self._entries is not None

    def load(self) -> "LocalCatalog":
        entries: dict[int, dict] = {}
        if self.include_builtin:
            for row in get_bright_stars() + get_field_stars():
                entries[int(row["hip"])] = dict(row)
        if self.extra_path is not None:
            for hip, row in _read_catalog_json(self.extra_path).items():
                entries[hip] = row
        self._entries = entries
        logger.debug("Local catalog loaded with %d entries", len(entries))
        return self

    def invalidate(self) -> None:
        self._entries = None

    def get(self, hip: int) -> dict | None:
        if self._entries is None:
            self.load()
        return self._entries.get(int(hip))

    def lookup_position(self, hip: int):
        """Return (ra_deg, dec_deg) or None."""
        entry = self.get(hip)
        if entry is None or entry.get("ra_deg") is None or entry.get("dec_deg") is None:
            return None
        return entry["ra_deg"], entry["dec_deg"]

    def __contains__(self, hip) -> bool:
        return self.get(hip) is not None

    def __len__(self) -> int:
        if self._entries is None:
            self.load()
        return len(self._entries)


def _read_catalog_json(path: Path) -> dict[int, dict]:
    """Read a ``{"677": {"ra": .., "dec": .., "parallax": ..}}`` file.

    ``ra``/``dec`` are degrees, ``parallax`` is mas, ``distancePc`` parsecs.
    Entries that lack both a position and a distance are skipped.
    """
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)

    entries: dict[int, dict] = {}
    for key, value in raw.items():
        try:
            hip = int(key)
        except (TypeError, ValueError):
            logger.warning("Ignoring catalog key %r in %s", key, path)
            continue
        entry = {
            "hip": hip,
            "ra_deg": _opt_float(value.get("ra", value.get("ra_deg"))),
            "dec_deg": _opt_float(value.get("dec", value.get("dec_deg"))),
            "parallax_mas": _opt_float(value.get("parallax", value.get("parallax_mas"))),
            "distance_pc": _opt_float(value.get("distancePc", value.get("distance_pc"))),
            "apparent_mag": _opt_float(value.get("mag", value.get("apparent_mag"))),
        }
        has_position = entry["ra_deg"] is not None and entry["dec_deg"] is not None
        if not has_position and entry["parallax_mas"] is None and entry["distance_pc"] is None:
            continue
        entries[hip] = entry
    return entries


def _opt_float(value):
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
