"""Manual pixel overrides for stars the projection places badly."""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class CalibrationOverride:
    """Label -> explicit (x, y) pixel, in image pixel space (0, 0 top-left).

    An entry here beats both a pixel pair from the import and the computed
    projection. Lookups never mutate; ``set``/``remove``/``invalidate`` do and
    must not run while a batch is being placed.
    """

    def __init__(self, entries: dict | None = None):
        self._entries: dict[str, tuple[float, float]] = {}
        for label, xy in (entries or {}).items():
            self.set(label, *_as_xy(xy))

    def get(self, label: str):
        """Return (x, y) for ``label`` or None."""
        return self._entries.get(label)

    def set(self, label: str, x: float, y: float) -> None:
        if not label:
            raise ValueError("calibration label must not be empty")
        self._entries[label] = (float(x), float(y))

    def remove(self, label: str) -> bool:
        return self._entries.pop(label, None) is not None

    def invalidate(self) -> None:
        """Drop every override."""
        self._entries.clear()

    def has_calibrations(self) -> bool:
        return bool(self._entries)

    def labels(self) -> list[str]:
        return sorted(self._entries)

    def as_dict(self) -> dict[str, dict[str, float]]:
        return {label: {"x": x, "y": y} for label, (x, y) in self._entries.items()}

    def load(self, path: Path) -> "CalibrationOverride":
        """Replace the current entries with the ones in a JSON file.

        File format: ``{"Alpheratz": {"x": 1977, "y": 1287}, ...}``.
        """
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        entries = {}
        for label, xy in raw.items():
            try:
                entries[str(label)] = _as_xy(xy)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Ignoring calibration entry %r in %s: %s", label, path, e)
        self._entries = entries
        logger.info("Loaded %d pixel calibration(s) from %s", len(entries), path)
        return self

    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.as_dict(), f, indent=2)

    def __contains__(self, label) -> bool:
        return label in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries.items())


def _as_xy(xy) -> tuple[float, float]:
    if isinstance(xy, dict):
        return float(xy["x"]), float(xy["y"])
    x, y = xy
    return float(x), float(y)
