"""
Placement pipeline: star list + frame -> placement records for the viewer.

Pixel precedence per star (first match wins):

1. a calibration override for the star's label
2. an explicit pixel pair from the import
3. the gnomonic projection of its RA/Dec

Distances always go through ``ParallaxDistanceResolver``, calibrated stars
included, since the viewer shows them. Per-star failures are collected as
diagnostics; only a batch with no survivors is an error.
"""

import json
import logging
import threading
from pathlib import Path

from .calibration import CalibrationOverride
from .catalog import LocalCatalog
from .constants import OUTPUT_FILENAME
from .distance import ParallaxDistanceResolver
from .errors import EmptyBatchError, NotResolvable, PlacementError
from .lookup_queue import make_queue_factory
from .models import (
    CelestialObject,
    Diagnostic,
    ImageInfo,
    PlacementBatch,
    PlacementConfig,
    PlacementResult,
)
from .projection import ProjectionFrame, project_to_pixel
from .simbad_client import CachedSimbadLookup, SimbadTextClient
from .volume import scale_batch

logger = logging.getLogger(__name__)

# Remote lookup failure reason -> (diagnostic kind, message)
_REMOTE_FAILURES = {
    "timeout": ("RemoteLookupTimeout", "remote catalog timed out; treated as not found"),
    "unavailable": ("RemoteLookupError", "remote catalog unreachable; treated as not found"),
    "cancelled": ("RemoteLookupCancelled", "batch cancelled before the remote lookup ran"),
}


def build_remote_lookup(config: PlacementConfig, session=None):
    """Simbad text client, behind the SQLite cache when one is configured."""
    client = SimbadTextClient(session, timeout=config.remote_timeout_sec)
    if config.cache_db is not None:
        return CachedSimbadLookup(client, config.cache_db)
    return client


class PlacementPipeline:
    """Resolve, place and scale a batch of stars.

    Args:
        catalog: LocalCatalog; a fresh built-in one when omitted.
        calibration: CalibrationOverride; empty when omitted.
        remote: ``hip -> dict | None``; built from ``config`` when omitted
            and ``config.use_remote`` is set.
        config: PlacementConfig.
        sleep: injected pause for the lookup queue (tests).
        progress: show a progress bar during remote lookups.
        cancel_event: threading.Event that stops remote lookups once set;
            see ``cancel()``.
    """

    def __init__(
        self,
        catalog: LocalCatalog | None = None,
        calibration: CalibrationOverride | None = None,
        remote=None,
        config: PlacementConfig | None = None,
        *,
        sleep=None,
        progress: bool = False,
        cancel_event: threading.Event | None = None,
    ):
        self.config = config or PlacementConfig()
        self._cancel = cancel_event if cancel_event is not None else threading.Event()
        self.catalog = catalog if catalog is not None else LocalCatalog()
        self.calibration = calibration if calibration is not None else CalibrationOverride()
        if remote is None and self.config.use_remote:
            remote = build_remote_lookup(self.config)
        if not self.config.use_remote:
            remote = None
        self.resolver = ParallaxDistanceResolver(
            catalog=self.catalog,
            remote=remote,
            queue_factory=make_queue_factory(
                delay_sec=self.config.remote_delay_sec,
                sleep=sleep,
                progress=progress,
                cancel_event=self._cancel,
            ),
        )

    def cancel(self) -> None:
        """Stop issuing remote requests, from any thread.

        A running ``place()`` keeps what was already looked up and reports
        the remaining lookups as RemoteLookupCancelled. The pipeline stays
        cancelled: later batches resolve from local data only.
        """
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def pixel_for(self, obj: CelestialObject, frame: ProjectionFrame | None, remote_entry=None):
        """Return (x, y, source) following the pixel precedence.

        Raises:
            NotResolvable: no override, no explicit pixel and no position.
            ProjectionSingularity, OutOfBounds: from the projection.
        """
        calibrated = self.calibration.get(obj.name)
        if calibrated is not None:
            return calibrated[0], calibrated[1], "calibration"
        if obj.has_explicit_pixel:
            return obj.pixel_x, obj.pixel_y, "explicit"

        ra, dec = self.resolver.position_for(obj, remote_entry)
        if ra is None:
            raise NotResolvable(f"no RA/Dec for {obj.name} (HIP {obj.hip})")
        if frame is None:
            raise NotResolvable(f"{obj.name} needs projecting but no image center was given")
        x, y = project_to_pixel(ra, dec, frame)
        return x, y, "projection"

    def _needs_position(self, obj: CelestialObject) -> bool:
        return self.calibration.get(obj.name) is None and not obj.has_explicit_pixel

    def place(self, objects, frame: ProjectionFrame | None, image: ImageInfo) -> PlacementBatch:
        """Place every object; see the module docstring for the rules.

        Raises:
            EmptyBatchError: no object survived.
        """
        objects = list(objects)
        diagnostics: list[Diagnostic] = []

        remote_entries = self.resolver.fetch_remote(objects, need_position=self._needs_position)
        labels: dict[int, str] = {}
        for obj in objects:
            labels.setdefault(obj.hip, obj.name)
        for hip, reason in self.resolver.remote_failures.items():
            if reason in _REMOTE_FAILURES:
                kind, message = _REMOTE_FAILURES[reason]
                diagnostics.append(Diagnostic(hip, labels.get(hip, f"HIP {hip}"), kind, message))

        survivors = []
        for obj in objects:
            remote_entry = remote_entries.get(obj.hip)
            try:
                distance = self.resolver.resolve_one(obj, remote_entry)
                x, y, source = self.pixel_for(obj, frame, remote_entry)
            except PlacementError as e:
                logger.warning("Dropping %s: %s", obj.name, e)
                diagnostics.append(Diagnostic(obj.hip, obj.name, type(e).__name__, str(e)))
                continue
            ra, dec = self.resolver.position_for(obj, remote_entry)
            magnitude = self.resolver.magnitude_for(obj, remote_entry)
            survivors.append((obj, distance, x, y, source, ra, dec, magnitude))

        if not survivors:
            raise EmptyBatchError(
                f"none of the {len(objects)} star(s) could be placed", diagnostics
            )

        volume_depth = self.config.volume_depth or float(image.width)
        params, order, scaled = scale_batch([s[1].distance_ly for s in survivors], volume_depth)

        placements = []
        for i in order:
            obj, distance, x, y, source, ra, dec, magnitude = survivors[i]
            placements.append(
                PlacementResult(
                    hip=obj.hip,
                    label=obj.name,
                    pixel_x=float(x),
                    pixel_y=float(y),
                    scaled_distance=scaled[i],
                    distance=distance,
                    magnitude=magnitude,
                    ra_deg=ra,
                    dec_deg=dec,
                    pixel_source=source,
                )
            )

        logger.info(
            "Placed %d of %d star(s); depth %.2f - %.2f ly",
            len(placements),
            len(objects),
            params.front_offset_ly,
            params.max_distance_ly,
        )
        return PlacementBatch(
            placements=tuple(placements),
            scaling=params,
            image=image,
            diagnostics=tuple(diagnostics),
        )


def batch_to_dict(batch: PlacementBatch) -> dict:
    """The ``stars.json`` structure the viewer loads."""
    image = batch.image
    out = {
        "image": {
            "width": image.width,
            "height": image.height,
            "aspectRatio": image.width / image.height,
            "filename": image.filename,
        },
        "volume": {
            "width": image.width,
            "height": image.height,
            "depth": batch.scaling.volume_depth,
        },
        "scaling": {
            "frontOffsetLy": batch.scaling.front_offset_ly,
            "maxDistanceLy": batch.scaling.max_distance_ly,
            "distanceRangeLy": batch.scaling.distance_range_ly,
        },
        "stars": [
            {
                "hip": p.hip,
                "name": p.label,
                "ra": p.ra_deg,
                "dec": p.dec_deg,
                "pixelX": p.pixel_x,
                "pixelY": p.pixel_y,
                "magnitude": p.magnitude,
                "distanceLy": p.distance.distance_ly,
                "distancePc": p.distance.distance_pc,
                "scaledDistance": p.scaled_distance,
            }
            for p in batch.placements
        ],
    }
    if image.back_filename:
        out["backImage"] = {"filename": image.back_filename}
    return out


def write_placements(batch: PlacementBatch, output_dir: Path, filename: str = OUTPUT_FILENAME) -> Path:
    """Write ``stars.json`` into ``output_dir`` and return its path."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / filename
    with open(path, "w", encoding="utf-8") as f:
        json.dump(batch_to_dict(batch), f, indent=2)
    return path
