"""Data model definitions: explicit boundaries between ingest, compute, and output."""

from dataclasses import dataclass, field
from pathlib import Path

from .constants import (
    CACHE_DB,
    DEFAULT_MARGIN_FRACTION,
    SIMBAD_HTTP_TIMEOUT_SECONDS,
    SIMBAD_QUERY_DELAY_SEC,
)


@dataclass(frozen=True)
class CelestialObject:
    """One star as read from the import. Positions are always degrees."""

    hip: int  # Hipparcos catalogue number
    label: str = ""  # Display label ("Alpheratz", "A", ...); "HIP <n>" when empty
    ra_deg: float | None = None  # Right ascension (degrees)
    dec_deg: float | None = None  # Declination (degrees)
    magnitude: float | None = None  # Apparent magnitude
    parallax_mas: float | None = None  # Parallax (milliarcseconds)
    distance_pc: float | None = None  # Directly supplied distance (parsecs)
    pixel_x: float | None = None  # Explicit pixel X from the import
    pixel_y: float | None = None  # Explicit pixel Y from the import

    @property
    def name(self) -> str:
        return self.label or f"HIP {self.hip}"

    @property
    def has_explicit_pixel(self) -> bool:
        return self.pixel_x is not None and self.pixel_y is not None


@dataclass(frozen=True)
class DistanceRecord:
    """Resolved distance. ly and parallax are derived from pc."""

    distance_pc: float
    distance_ly: float
    parallax_arcsec: float
    source: str = "local"  # "local", "catalog" or "remote"


@dataclass(frozen=True)
class ScalingParameters:
    """Linear mapping of light-years onto the volume's depth axis."""

    front_offset_ly: float
    max_distance_ly: float
    distance_range_ly: float
    volume_depth: float

    @property
    def scale(self) -> float:
        """Volume units per light-year."""
        return self.volume_depth / self.distance_range_ly


@dataclass(frozen=True)
class PlacementResult:
    """Final placement for one star, consumed by the renderer."""

    hip: int
    label: str
    pixel_x: float
    pixel_y: float
    scaled_distance: float  # In [0, 1]; 0 is the front plane
    distance: DistanceRecord
    magnitude: float | None = None
    ra_deg: float | None = None
    dec_deg: float | None = None
    pixel_source: str = "projection"  # "calibration", "explicit" or "projection"


@dataclass(frozen=True)
class Diagnostic:
    """A per-object failure reported back to the caller."""

    hip: int | None
    label: str
    kind: str  # Error class name ("NotResolvable", "OutOfBounds", ...)
    message: str


@dataclass(frozen=True)
class PlacementConfig:
    """Per-run settings. Defaults come from constants.py."""

    volume_depth: float | None = None  # None: match the image width
    margin_fraction: float = DEFAULT_MARGIN_FRACTION
    use_remote: bool = True
    remote_delay_sec: float = SIMBAD_QUERY_DELAY_SEC
    remote_timeout_sec: float = SIMBAD_HTTP_TIMEOUT_SECONDS
    cache_db: Path | None = CACHE_DB


@dataclass(frozen=True)
class ImageInfo:
    """Image metadata carried through to the output. Never opened here."""

    width: int
    height: int
    filename: str = "starfield.jpg"
    back_filename: str | None = None


@dataclass(frozen=True)
class PlacementBatch:
    """Everything the renderer needs for one image."""

    placements: tuple[PlacementResult, ...]  # Nearest first
    scaling: ScalingParameters
    image: ImageInfo
    diagnostics: tuple[Diagnostic, ...] = field(default=())

    @property
    def is_partial(self) -> bool:
        return bool(self.diagnostics)
