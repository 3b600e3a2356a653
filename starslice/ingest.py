"""
Tabular import of star lists.

Every input format is normalized once, here, onto the canonical field names
of ``CelestialObject``; nothing downstream probes for column aliases.

CSV layout: one row per star. The first row may also carry the frame
metadata (image file names, image center, scale or field of view, image
size). Rows that cannot be read are skipped with a diagnostic.
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from astropy.io import ascii
from astropy.table import Table

from .angles import dec_dms_to_degrees, normalize_ra_unit, parse_dec, parse_ra, ra_hms_to_degrees
from .constants import DEFAULT_FOV_HEIGHT_DEG, DEFAULT_FOV_WIDTH_DEG, DEFAULT_MARGIN_FRACTION
from .errors import IngestError
from .models import CelestialObject, Diagnostic
from .projection import ProjectionFrame, average_scale

logger = logging.getLogger(__name__)

# Canonical field -> accepted column names (matched case-insensitively).
COLUMN_ALIASES = {
    "hip": ["hip", "hip_number", "hipparcos", "identifier", "id"],
    "label": ["label", "name", "star", "star_label"],
    "distance_pc": ["distance_pc", "distance (pc)", "distancepc", "dist_pc", "distance"],
    "parallax_mas": ["parallax_mas", "parallax", "plx", "parallax (mas)"],
    "magnitude": ["magnitude", "mag", "vmag", "apparent_mag"],
    "pixel_x": ["pixel_x", "pixelx", "x"],
    "pixel_y": ["pixel_y", "pixely", "y"],
    "ra": ["ra", "ra_deg", "ra (deg)", "ra_hours", "right_ascension"],
    "dec": ["dec", "dec_deg", "dec (deg)", "declination"],
    "ra_unit": ["ra_unit", "ra unit", "ra_units"],
    # Frame metadata, read from the first row only
    "image": ["image", "image_file", "front_image", "image_filename"],
    "back_image": ["back_image", "back_image_file", "back_image_filename"],
    "image_width": ["image_width", "width"],
    "image_height": ["image_height", "height"],
    "center_ra_h": ["center_ra_h", "center_ra_hours", "image_center_ra_hours"],
    "center_ra_m": ["center_ra_m", "center_ra_minutes", "image_center_ra_minutes"],
    "center_ra_s": ["center_ra_s", "center_ra_seconds", "image_center_ra_seconds"],
    "center_dec_sign": ["center_dec_sign", "image_center_dec_sign"],
    "center_dec_d": ["center_dec_d", "center_dec_degrees", "image_center_dec_degrees"],
    "center_dec_m": ["center_dec_m", "center_dec_minutes", "image_center_dec_minutes"],
    "center_dec_s": ["center_dec_s", "center_dec_seconds", "image_center_dec_seconds"],
    "scale": ["scale", "scale_arcsec_per_px", "arcsec_per_pixel"],
    "fov_width_deg": ["fov_width_deg", "fov_width", "fov_deg"],
    "fov_height_deg": ["fov_height_deg", "fov_height"],
}

_HIP_RE = re.compile(r"(\d+)")


@dataclass(frozen=True)
class FrameMetadata:
    """Frame information from the first row. Any field may be missing."""

    image: str | None = None
    back_image: str | None = None
    image_width: int | None = None
    image_height: int | None = None
    center_ra_deg: float | None = None
    center_dec_deg: float | None = None
    scale_arcsec_per_px: float | None = None
    fov_width_deg: float | None = None
    fov_height_deg: float | None = None

    @property
    def has_center(self) -> bool:
        return self.center_ra_deg is not None and self.center_dec_deg is not None


@dataclass(frozen=True)
class ImportResult:
    objects: tuple[CelestialObject, ...]
    frame: FrameMetadata
    diagnostics: tuple[Diagnostic, ...] = ()


class RowError(ValueError):
    """A single row cannot be turned into a CelestialObject."""


def resolve_columns(colnames) -> dict[str, str]:
    """Map canonical field names onto the columns present in a table."""
    lookup = {str(name).strip().lower(): name for name in colnames}
    resolved = {}
    for field_name, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in lookup:
                resolved[field_name] = lookup[alias]
                break
    return resolved


def normalize_record(record: dict, ra_unit: str | None = None) -> tuple[CelestialObject, list[str]]:
    """Turn one canonical-keyed record into a CelestialObject.

    Returns the object and a list of warnings (fields that were dropped).

    Raises:
        RowError: the HIP number or a numeric field is unreadable.
    """
    warnings: list[str] = []

    hip = parse_hip(record.get("hip"))
    if hip is None:
        raise RowError(f"missing or unreadable HIP number {record.get('hip')!r}")

    label = str(record.get("label") or "").strip()
    distance_pc = _number(record, "distance_pc")
    parallax_mas = _number(record, "parallax_mas")
    magnitude = _number(record, "magnitude")
    pixel_x = _number(record, "pixel_x")
    pixel_y = _number(record, "pixel_y")
    if (pixel_x is None) != (pixel_y is None):
        warnings.append("only one of pixel X/Y given; ignoring both")
        pixel_x = pixel_y = None

    ra_deg = dec_deg = None
    ra_raw = record.get("ra")
    dec_raw = record.get("dec")
    if ra_raw is not None and dec_raw is not None:
        unit = record.get("ra_unit") or ra_unit
        if unit is None and not (isinstance(ra_raw, str) and not _looks_numeric(ra_raw)):
            warnings.append("RA given without a unit tag (deg or hour); position ignored")
        else:
            try:
                ra_deg = parse_ra(ra_raw, unit or "hour")
                dec_deg = parse_dec(dec_raw)
            except ValueError as e:
                warnings.append(f"unreadable RA/Dec ({e}); position ignored")
                ra_deg = dec_deg = None

    obj = CelestialObject(
        hip=hip,
        label=label,
        ra_deg=ra_deg,
        dec_deg=dec_deg,
        magnitude=magnitude,
        parallax_mas=parallax_mas,
        distance_pc=distance_pc,
        pixel_x=pixel_x,
        pixel_y=pixel_y,
    )
    return obj, warnings


def parse_hip(value) -> int | None:
    """Read "HIP 677", "677" or 677 as 677."""
    if value is None:
        return None
    if isinstance(value, (int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        return int(value) if float(value).is_integer() else None
    m = _HIP_RE.search(str(value))
    return int(m.group(1)) if m else None


def read_frame_metadata(record: dict) -> FrameMetadata:
    """Frame metadata from the (canonical-keyed) first row."""
    center_ra = center_dec = None
    if record.get("center_ra_h") is not None:
        center_ra = ra_hms_to_degrees(
            _float(record.get("center_ra_h")),
            _float(record.get("center_ra_m")),
            _float(record.get("center_ra_s")),
        )
    if record.get("center_dec_d") is not None:
        sign = str(record.get("center_dec_sign") or "+").strip()
        degrees = _float(record.get("center_dec_d"))
        center_dec = dec_dms_to_degrees(
            degrees,
            _float(record.get("center_dec_m")),
            _float(record.get("center_dec_s")),
            negative=sign.startswith("-"),
        )

    return FrameMetadata(
        image=_text(record.get("image")),
        back_image=_text(record.get("back_image")),
        image_width=_int(record.get("image_width")),
        image_height=_int(record.get("image_height")),
        center_ra_deg=center_ra,
        center_dec_deg=center_dec,
        scale_arcsec_per_px=_opt(record.get("scale")),
        fov_width_deg=_opt(record.get("fov_width_deg")),
        fov_height_deg=_opt(record.get("fov_height_deg")),
    )


def frame_from_metadata(
    meta: FrameMetadata,
    width: int | None = None,
    height: int | None = None,
    margin_fraction: float = DEFAULT_MARGIN_FRACTION,
) -> ProjectionFrame:
    """Build the projection frame; explicit ``width``/``height`` win over the file.

    Scale priority: explicit scale, then field of view (averaged across
    both axes when both are given), then the default field of view.

    Raises:
        IngestError: no image center, or no image size.
    """
    if not meta.has_center:
        raise IngestError("the first row has no image center (center_ra_* / center_dec_*)")
    width = width or meta.image_width
    height = height or meta.image_height
    if not width or not height:
        raise IngestError("image width/height unknown; pass them explicitly")

    if meta.scale_arcsec_per_px:
        scale = meta.scale_arcsec_per_px
    else:
        fov_w = meta.fov_width_deg
        fov_h = meta.fov_height_deg
        if fov_w is None and fov_h is None:
            fov_w, fov_h = DEFAULT_FOV_WIDTH_DEG, DEFAULT_FOV_HEIGHT_DEG
            logger.info("No scale or field of view given; assuming %.3f x %.3f deg", fov_w, fov_h)
        if fov_w is not None and fov_h is not None:
            scale = average_scale(fov_w, width, fov_h, height)
        elif fov_w is not None:
            scale = fov_w * 3600.0 / width
        else:
            scale = fov_h * 3600.0 / height

    return ProjectionFrame(
        center_ra_deg=meta.center_ra_deg,
        center_dec_deg=meta.center_dec_deg,
        scale_arcsec_per_px=scale,
        width=int(width),
        height=int(height),
        margin_fraction=margin_fraction,
    )


def read_csv(path: Path, ra_unit: str | None = None) -> ImportResult:
    """Read a star CSV into an ImportResult."""
    if ra_unit is not None:
        ra_unit = normalize_ra_unit(ra_unit)
    try:
        # Every column is read as text; _number decides what is malformed.
        table = Table.read(
            str(path),
            format="ascii.csv",
            fast_reader=False,
            converters={"*": [ascii.convert_numpy(str)]},
        )
    except (OSError, ValueError) as e:
        raise IngestError(f"cannot read {path}: {e}") from e

    columns = resolve_columns(table.colnames)
    if "hip" not in columns:
        raise IngestError(f"{path} has no HIP column (tried {COLUMN_ALIASES['hip']})")

    records = []
    for row in table:
        records.append({field_name: _cell(row[col]) for field_name, col in columns.items()})
    return _build_result(records, ra_unit)


def read_records(records, ra_unit: str | None = None) -> ImportResult:
    """Normalize already-parsed dict rows (any alias spelling)."""
    if ra_unit is not None:
        ra_unit = normalize_ra_unit(ra_unit)
    canonical = []
    for raw in records:
        columns = resolve_columns(raw.keys())
        canonical.append({field_name: _cell(raw[col]) for field_name, col in columns.items()})
    return _build_result(canonical, ra_unit)


def read_json(path: Path, ra_unit: str | None = None) -> ImportResult:
    """Read a JSON export: a list of star objects or ``{"stars": [...]}``."""
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise IngestError(f"cannot read {path}: {e}") from e
    if isinstance(data, dict):
        data = data.get("stars") or data.get("objects") or []
    if not isinstance(data, list):
        raise IngestError(f"{path} holds no list of stars")
    return read_records([d for d in data if isinstance(d, dict)], ra_unit)


_TEXT_HIP_RE = re.compile(r"HIP\s*(\d+)", re.I)
_TEXT_COORD_RE = re.compile(r"RA:\s*([\d:.\s]+?)\s+Dec:\s*([+-]?[\d:.\s]+)", re.I)


def read_text(path: Path) -> ImportResult:
    """Read annotation text: any line with "HIP nnn", optionally followed by
    "RA: hh:mm:ss Dec: +dd:mm:ss" (RA always sexagesimal hours).
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise IngestError(f"cannot read {path}: {e}") from e

    records = []
    for line in text.splitlines():
        m = _TEXT_HIP_RE.search(line)
        if not m:
            continue
        record = {"hip": m.group(1)}
        c = _TEXT_COORD_RE.search(line)
        if c:
            record.update({"ra": c.group(1).strip(), "dec": c.group(2).strip(), "ra_unit": "hour"})
        records.append(record)
    return _build_result(records, None)


def read_any(path: Path, ra_unit: str | None = None) -> ImportResult:
    """Pick a reader by file extension (.csv, .json, anything else as text)."""
    suffix = Path(path).suffix.lower()
    if suffix == ".csv":
        return read_csv(path, ra_unit)
    if suffix == ".json":
        return read_json(path, ra_unit)
    return read_text(path)


def _build_result(records, ra_unit) -> ImportResult:
    objects = []
    diagnostics = []
    try:
        frame = read_frame_metadata(records[0]) if records else FrameMetadata()
    except (TypeError, ValueError) as e:
        raise IngestError(f"unreadable frame metadata in the first row: {e}") from e

    for line_no, record in enumerate(records, start=1):
        try:
            obj, warnings = normalize_record(record, ra_unit)
        except (RowError, ValueError) as e:
            logger.warning("Skipping row %d: %s", line_no, e)
            diagnostics.append(Diagnostic(None, f"row {line_no}", "MalformedRow", str(e)))
            continue
        for message in warnings:
            logger.warning("Row %d (%s): %s", line_no, obj.name, message)
            diagnostics.append(Diagnostic(obj.hip, obj.name, "IngestWarning", message))
        objects.append(obj)

    logger.info("Read %d star(s), skipped %d row(s)", len(objects), len(records) - len(objects))
    return ImportResult(objects=tuple(objects), frame=frame, diagnostics=tuple(diagnostics))


def _cell(value):
    """Plain Python value for a table cell; masked and blank cells become None."""
    if value is None or value is np.ma.masked or np.ma.is_masked(value):
        return None
    if isinstance(value, (str, np.str_, bytes)):
        text = value.decode() if isinstance(value, bytes) else str(value)
        text = text.strip()
        return text or None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and value != value:
        return None
    return value


def _number(record: dict, key: str) -> float | None:
    value = record.get(key)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise RowError(f"{key} is not a number: {value!r}") from None


def _looks_numeric(text: str) -> bool:
    try:
        float(text)
    except ValueError:
        return False
    return True


def _float(value) -> float:
    return float(value) if value is not None else 0.0


def _opt(value) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _int(value) -> int | None:
    v = _opt(value)
    return int(v) if v is not None else None


def _text(value) -> str | None:
    return str(value).strip() if value is not None and str(value).strip() else None
