"""
Gnomonic (tangent-plane) projection of RA/Dec onto image pixels.

Conventions
-----------
- RA/Dec are ICRS degrees.
- Pixel (0, 0) is the top-left corner of the image; X grows to the right,
  Y grows downward. RA grows to the left (east), Dec grows upward.
- The frame center maps to (width / 2, height / 2).
- Points up to ``margin_fraction * max(width, height)`` outside the frame
  are clamped onto its edge; anything farther raises OutOfBounds.
"""

import math
from dataclasses import dataclass

import numpy as np
from astropy.wcs import WCS

from .angles import dec_dms_to_degrees, ra_hms_to_degrees
from .constants import (
    ARCSEC_PER_RADIAN,
    DEFAULT_FOCAL_LENGTH_MM,
    DEFAULT_MARGIN_FRACTION,
    DEFAULT_SENSOR_WIDTH_MM,
    PROJECTION_SINGULARITY_EPS,
)
from .errors import OutOfBounds, ProjectionSingularity


@dataclass(frozen=True)
class ProjectionFrame:
    """Where the image points and how big its pixels are on the sky."""

    center_ra_deg: float
    center_dec_deg: float
    scale_arcsec_per_px: float
    width: int
    height: int
    margin_fraction: float = DEFAULT_MARGIN_FRACTION

    def __post_init__(self):
        if self.scale_arcsec_per_px <= 0:
            raise ValueError("scale_arcsec_per_px must be > 0")
        if self.width <= 0 or self.height <= 0:
            raise ValueError("image width and height must be > 0")
        if self.margin_fraction < 0:
            raise ValueError("margin_fraction must be >= 0")

    @property
    def margin_px(self) -> float:
        return max(self.width, self.height) * self.margin_fraction

    @classmethod
    def from_field_of_view(
        cls,
        center_ra_deg: float,
        center_dec_deg: float,
        width: int,
        height: int,
        fov_width_deg: float,
        fov_height_deg: float | None = None,
        margin_fraction: float = DEFAULT_MARGIN_FRACTION,
    ) -> "ProjectionFrame":
        """Build a frame whose scale is derived from the field of view."""
        if fov_height_deg is None:
            scale = scale_from_fov(fov_width_deg, width)
        else:
            scale = average_scale(fov_width_deg, width, fov_height_deg, height)
        return cls(center_ra_deg, center_dec_deg, scale, width, height, margin_fraction)

    @classmethod
    def from_sexagesimal(
        cls,
        ra_hms: tuple,
        dec_dms: tuple,
        scale_arcsec_per_px: float,
        width: int,
        height: int,
        margin_fraction: float = DEFAULT_MARGIN_FRACTION,
    ) -> "ProjectionFrame":
        """Build a frame from (h, m, s) and (sign, d, m, s) center tuples.

        ``sign`` is +1 or -1 (or "+" / "-").
        """
        sign, d, m, s = dec_dms
        negative = sign in (-1, "-") or (isinstance(sign, (int, float)) and sign < 0)
        return cls(
            ra_hms_to_degrees(*ra_hms),
            dec_dms_to_degrees(d, m, s, negative=negative),
            scale_arcsec_per_px,
            width,
            height,
            margin_fraction,
        )

    def to_wcs(self) -> WCS:
        """Equivalent astropy TAN WCS (0-based pixels, Y down)."""
        w = WCS(naxis=2)
        w.wcs.ctype = ["RA---TAN", "DEC--TAN"]
        w.wcs.crval = [self.center_ra_deg, self.center_dec_deg]
        # FITS CRPIX is 1-based; the frame center sits at width/2, height/2
        w.wcs.crpix = [self.width / 2.0 + 1.0, self.height / 2.0 + 1.0]
        s = self.scale_arcsec_per_px / 3600.0
        w.wcs.cd = np.array([[-s, 0.0], [0.0, -s]])
        w.pixel_shape = (self.width, self.height)
        return w


def normalize_ra_difference(ra_diff_deg: float) -> float:
    """Wrap an RA difference into (-180, 180]."""
    wrapped = (ra_diff_deg + 180.0) % 360.0 - 180.0
    if wrapped == -180.0:
        return 180.0
    return wrapped


def tangent_plane_offsets(ra_deg: float, dec_deg: float, center_ra_deg: float, center_dec_deg: float):
    """Standard coordinates (x, y) in radians; x is positive toward the west.

    Raises:
        ProjectionSingularity: the point is 90° or more from the center, where
            the tangent plane has no image of it.
    """
    ra_diff = np.radians(normalize_ra_difference(ra_deg - center_ra_deg))
    dec = np.radians(dec_deg)
    center_dec = np.radians(center_dec_deg)

    cos_dec = np.cos(dec)
    sin_dec = np.sin(dec)
    cos_c = np.cos(center_dec)
    sin_c = np.sin(center_dec)

    a = cos_dec * np.cos(ra_diff)
    denominator = sin_c * sin_dec + cos_c * a
    # Also rejects the far hemisphere (denominator < 0).
    if denominator < PROJECTION_SINGULARITY_EPS:
        raise ProjectionSingularity(
            f"RA={ra_deg:.6f}, Dec={dec_deg:.6f} is not on the tangent plane "
            f"centered at RA={center_ra_deg:.6f}, Dec={center_dec_deg:.6f}"
        )

    x_rad = -(cos_dec * np.sin(ra_diff)) / denominator
    y_rad = (cos_c * sin_dec - sin_c * a) / denominator
    return float(x_rad), float(y_rad)


def raw_pixel(ra_deg: float, dec_deg: float, frame: ProjectionFrame):
    """Unclamped pixel position of RA/Dec in ``frame``."""
    x_rad, y_rad = tangent_plane_offsets(ra_deg, dec_deg, frame.center_ra_deg, frame.center_dec_deg)
    x_arcsec = x_rad * ARCSEC_PER_RADIAN
    y_arcsec = y_rad * ARCSEC_PER_RADIAN
    x_pixel = frame.width / 2.0 + x_arcsec / frame.scale_arcsec_per_px
    y_pixel = frame.height / 2.0 - y_arcsec / frame.scale_arcsec_per_px
    return x_pixel, y_pixel


def clamp_to_frame(x_pixel: float, y_pixel: float, frame: ProjectionFrame):
    """Clamp a pixel into the frame, or reject it if it is beyond the margin.

    Raises:
        OutOfBounds: the point lies outside ``[-margin, dim + margin]``.
    """
    margin = frame.margin_px
    if (
        x_pixel < -margin
        or x_pixel > frame.width + margin
        or y_pixel < -margin
        or y_pixel > frame.height + margin
    ):
        raise OutOfBounds(
            f"pixel ({x_pixel:.1f}, {y_pixel:.1f}) is more than {margin:.0f} px "
            f"outside the {frame.width}x{frame.height} frame",
            x_pixel,
            y_pixel,
        )
    return (
        min(max(x_pixel, 0.0), float(frame.width)),
        min(max(y_pixel, 0.0), float(frame.height)),
    )


def project_to_pixel(ra_deg: float, dec_deg: float, frame: ProjectionFrame):
    """Project RA/Dec (degrees) to a clamped (x, y) pixel in ``frame``.

    Raises:
        ProjectionSingularity: no tangent-plane image for this point.
        OutOfBounds: the point is beyond the frame's margin.
    """
    x_pixel, y_pixel = raw_pixel(ra_deg, dec_deg, frame)
    return clamp_to_frame(x_pixel, y_pixel, frame)


def project_many(ra_deg, dec_deg, frame: ProjectionFrame):
    """Vectorized raw projection.

    Returns (x, y, valid): unclamped pixel arrays and a mask that is False
    where the point is off the tangent plane or beyond the margin. Invalid
    entries hold NaN.
    """
    ra = np.atleast_1d(np.asarray(ra_deg, dtype=float))
    dec_arr = np.atleast_1d(np.asarray(dec_deg, dtype=float))

    ra_diff = np.mod(ra - frame.center_ra_deg + 180.0, 360.0) - 180.0
    ra_diff = np.where(ra_diff == -180.0, 180.0, ra_diff)
    ra_diff = np.radians(ra_diff)
    dec = np.radians(dec_arr)
    center_dec = np.radians(frame.center_dec_deg)

    a = np.cos(dec) * np.cos(ra_diff)
    denominator = np.sin(center_dec) * np.sin(dec) + np.cos(center_dec) * a
    on_plane = denominator >= PROJECTION_SINGULARITY_EPS
    safe = np.where(on_plane, denominator, 1.0)

    x_rad = -(np.cos(dec) * np.sin(ra_diff)) / safe
    y_rad = (np.cos(center_dec) * np.sin(dec) - np.sin(center_dec) * a) / safe

    x = frame.width / 2.0 + x_rad * ARCSEC_PER_RADIAN / frame.scale_arcsec_per_px
    y = frame.height / 2.0 - y_rad * ARCSEC_PER_RADIAN / frame.scale_arcsec_per_px

    margin = frame.margin_px
    in_margin = (x >= -margin) & (x <= frame.width + margin) & (y >= -margin) & (y <= frame.height + margin)
    valid = on_plane & in_margin
    x = np.where(valid, x, np.nan)
    y = np.where(valid, y, np.nan)
    return x, y, valid


def scale_from_fov(fov_deg: float, pixels: int) -> float:
    """Plate scale in arcsec/pixel from a field of view along one axis."""
    if pixels <= 0:
        raise ValueError("pixels must be > 0")
    return fov_deg * 3600.0 / pixels


def average_scale(fov_width_deg: float, width: int, fov_height_deg: float, height: int) -> float:
    """Isotropic scale: the mean of the two per-axis scales.

    Good enough for small, near-square fields.
    """
    return (scale_from_fov(fov_width_deg, width) + scale_from_fov(fov_height_deg, height)) / 2.0


def estimate_fov(focal_length_mm: float = DEFAULT_FOCAL_LENGTH_MM, sensor_width_mm: float = DEFAULT_SENSOR_WIDTH_MM) -> float:
    """Field of view in degrees: 2 * atan(sensor / (2 * focal))."""
    return math.degrees(2.0 * math.atan(sensor_width_mm / (2.0 * focal_length_mm)))


def pixel_to_normalized(pixel_x: float, pixel_y: float, width: int, height: int):
    """Map image pixels onto [-1, 1] with Y pointing up."""
    return pixel_x / width * 2.0 - 1.0, 1.0 - pixel_y / height * 2.0

