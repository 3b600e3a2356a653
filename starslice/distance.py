"""
Distance resolution: parallax or supplied distance to a DistanceRecord.

``resolve_distance`` is the pure conversion. ``ParallaxDistanceResolver``
walks the fallback chain for a whole batch:

1. calibration override (placement only; distance still resolved below)
2. the object's own distance / parallax fields
3. the local static catalog
4. the remote catalog, through the rate-limited queue
5. give up: the object is reported and dropped
"""

import logging

from .constants import LY_PER_PC, MAS_PER_ARCSEC
from .errors import NotResolvable
from .models import CelestialObject, DistanceRecord

logger = logging.getLogger(__name__)


def resolve_distance(
    parallax_mas: float | None = None,
    distance_pc: float | None = None,
    *,
    source: str = "local",
) -> DistanceRecord:
    """Build a DistanceRecord from parallax (preferred) or a direct distance.

    Raises:
        NotResolvable: when neither a positive parallax nor a positive
            distance is given.
    """
    if parallax_mas is not None and parallax_mas > 0:
        parallax_arcsec = parallax_mas / MAS_PER_ARCSEC
        pc = 1.0 / parallax_arcsec
        return DistanceRecord(
            distance_pc=pc,
            distance_ly=pc * LY_PER_PC,
            parallax_arcsec=parallax_arcsec,
            source=source,
        )
    if distance_pc is not None and distance_pc > 0:
        return DistanceRecord(
            distance_pc=distance_pc,
            distance_ly=distance_pc * LY_PER_PC,
            parallax_arcsec=1.0 / distance_pc,
            source=source,
        )
    raise NotResolvable("no positive parallax or distance")


class ParallaxDistanceResolver:
    """Resolve distances and sky positions for a batch of objects.

    Args:
        catalog: LocalCatalog (or anything with ``get(hip) -> dict | None``).
        remote: callable ``hip -> dict | None`` used through the lookup
            queue, or None to stay offline.
        queue_factory: builds the queue that throttles remote calls; see
            ``lookup_queue.RateLimitedLookupQueue``.
    """

    def __init__(self, catalog=None, remote=None, queue_factory=None):
        self.catalog = catalog
        self.remote = remote
        self.queue_factory = queue_factory
        self.remote_failures: dict[int, str] = {}

    def resolve_one(self, obj: CelestialObject, remote_entry: dict | None = None) -> DistanceRecord:
        """Walk steps 2-4 for a single object. Step 4 uses ``remote_entry``."""
        try:
            return resolve_distance(obj.parallax_mas, obj.distance_pc, source="local")
        except NotResolvable:
            pass

        entry = self.catalog.get(obj.hip) if self.catalog is not None else None
        if entry is not None:
            try:
                return resolve_distance(
                    entry.get("parallax_mas"), entry.get("distance_pc"), source="catalog"
                )
            except NotResolvable:
                pass

        if remote_entry is not None:
            return resolve_distance(
                remote_entry.get("parallax_mas"), remote_entry.get("distance_pc"), source="remote"
            )

        raise NotResolvable(f"no distance data for {obj.name} (HIP {obj.hip})")

    def position_for(self, obj: CelestialObject, remote_entry: dict | None = None):
        """Return (ra_deg, dec_deg) for an object, or (None, None).

        Same order as distances: the object's own fields, the local catalog,
        then the remote answer.
        """
        if obj.ra_deg is not None and obj.dec_deg is not None:
            return obj.ra_deg, obj.dec_deg
        entry = self.catalog.get(obj.hip) if self.catalog is not None else None
        if entry is not None and entry.get("ra_deg") is not None:
            return entry["ra_deg"], entry["dec_deg"]
        if remote_entry is not None and remote_entry.get("ra_deg") is not None:
            return remote_entry["ra_deg"], remote_entry["dec_deg"]
        return None, None

    def magnitude_for(self, obj: CelestialObject, remote_entry: dict | None = None) -> float | None:
        if obj.magnitude is not None:
            return obj.magnitude
        entry = self.catalog.get(obj.hip) if self.catalog is not None else None
        if entry is not None and entry.get("apparent_mag") is not None:
            return entry["apparent_mag"]
        if remote_entry is not None:
            return remote_entry.get("vmag")
        return None

    def needs_remote(self, obj: CelestialObject, *, need_position: bool = True) -> bool:
        """True if local data cannot supply the distance (or the position)."""
        try:
            self.resolve_one(obj)
        except NotResolvable:
            return True
        if need_position:
            ra, _ = self.position_for(obj)
            return ra is None
        return False

    def fetch_remote(self, objects, *, need_position=lambda obj: True) -> dict[int, dict]:
        """Look up every object the local data cannot fully answer.

        Requests go out one at a time, in input order, through the queue.
        Returns HIP -> remote entry for the hits; every other outcome (see
        ``LookupOutcome.failures``) is recorded in ``remote_failures``.
        """
        self.remote_failures = {}
        if self.remote is None:
            return {}

        pending: list[int] = []
        for obj in objects:
            if obj.hip in pending:
                continue
            if self.needs_remote(obj, need_position=need_position(obj)):
                pending.append(obj.hip)
        if not pending:
            return {}

        logger.info("Looking up %d star(s) in the remote catalog", len(pending))
        queue = self.queue_factory(self.remote) if self.queue_factory else None
        if queue is None:
            raise ValueError("a queue_factory is required for remote lookups")
        outcome = queue.run(pending)
        self.remote_failures = dict(outcome.failures)
        return dict(outcome.results)

    def resolve_batch(self, objects, remote_entries: dict[int, dict] | None = None):
        """Resolve every object; return ({hip: DistanceRecord}, {hip: error})."""
        remote_entries = remote_entries or {}
        resolved: dict[int, DistanceRecord] = {}
        failed: dict[int, NotResolvable] = {}
        for obj in objects:
            try:
                resolved[obj.hip] = self.resolve_one(obj, remote_entries.get(obj.hip))
            except NotResolvable as e:
                logger.warning("Skipping %s: %s", obj.name, e)
                failed[obj.hip] = e
        return resolved, failed
