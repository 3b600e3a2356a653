"""
Compare projected positions against calibrated ones.

Used to check a frame's center/scale before trusting the projection for
stars that have no calibration entry.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .calibration import CalibrationOverride
from .constants import ARCSEC_PER_RADIAN
from .errors import ProjectionSingularity
from .projection import ProjectionFrame, project_many, tangent_plane_offsets

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Residual:
    label: str
    calibrated_x: float
    calibrated_y: float
    projected_x: float
    projected_y: float

    @property
    def dx(self) -> float:
        return self.projected_x - self.calibrated_x

    @property
    def dy(self) -> float:
        return self.projected_y - self.calibrated_y

    @property
    def distance_px(self) -> float:
        return float(np.hypot(self.dx, self.dy))


def _own_position(obj):
    return obj.ra_deg, obj.dec_deg


def _calibrated_with_position(objects, calibration: CalibrationOverride, position_for=None):
    """Yield (obj, (ra, dec), (x, y)) for calibrated stars whose position is known.

    ``position_for(obj) -> (ra, dec)`` defaults to the object's own fields;
    pass ``ParallaxDistanceResolver.position_for`` to fall back on the catalog.
    """
    position_for = position_for or _own_position
    for obj in objects:
        xy = calibration.get(obj.name)
        if xy is None:
            continue
        ra, dec = position_for(obj)
        if ra is None or dec is None:
            continue
        yield obj, (ra, dec), xy


def calibration_residuals(
    objects, calibration: CalibrationOverride, frame: ProjectionFrame, position_for=None
) -> list[Residual]:
    """Projected minus calibrated pixel for every calibrated star with a position.

    Stars that fall off the tangent plane or beyond the margin are skipped.
    """
    pairs = list(_calibrated_with_position(objects, calibration, position_for))
    if not pairs:
        return []
    ra = [pos[0] for _, pos, _ in pairs]
    dec = [pos[1] for _, pos, _ in pairs]
    x, y, valid = project_many(ra, dec, frame)

    residuals = []
    for (obj, _, (cx, cy)), px, py, ok in zip(pairs, x, y, valid):
        if not ok:
            logger.debug("Skipping %s: not projectable in this frame", obj.name)
            continue
        residuals.append(Residual(obj.name, cx, cy, float(px), float(py)))
    return residuals


def fit_scale(objects, calibration: CalibrationOverride, frame: ProjectionFrame, position_for=None) -> float | None:
    """Least-squares plate scale (arcsec/px) that best maps the calibrated
    stars' tangent-plane offsets onto their calibrated pixels.

    The frame's center is kept fixed. Returns None when no calibrated star
    is usable or every calibrated pixel sits exactly on the center.
    """
    sky = []
    pix = []
    for _, (ra, dec), (cx, cy) in _calibrated_with_position(objects, calibration, position_for):
        try:
            x_rad, y_rad = tangent_plane_offsets(ra, dec, frame.center_ra_deg, frame.center_dec_deg)
        except ProjectionSingularity:
            continue
        sky.extend([x_rad * ARCSEC_PER_RADIAN, y_rad * ARCSEC_PER_RADIAN])
        pix.extend([cx - frame.width / 2.0, frame.height / 2.0 - cy])

    if not sky:
        return None
    sky = np.asarray(sky)
    pix = np.asarray(pix)
    denom = float(np.dot(sky, pix))
    if denom == 0.0:
        return None
    # pix ~ sky / scale
    scale = float(np.dot(sky, sky)) / denom
    return scale if scale > 0 else None


def rms_residual(residuals) -> float:
    if not residuals:
        return 0.0
    d = np.array([r.distance_px for r in residuals])
    return float(np.sqrt(np.mean(d**2)))


def plot_residuals(residuals, frame: ProjectionFrame, out_path: Path, *, title: str | None = None) -> Path:
    """Arrow plot of calibrated -> projected pixels, saved as an image."""
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    fig, ax = plt.subplots(figsize=(10, 10 * frame.height / frame.width))
    ax.set_xlim(0, frame.width)
    ax.set_ylim(frame.height, 0)
    ax.set_aspect("equal")
    ax.set_facecolor("black")

    for r in residuals:
        ax.plot(r.calibrated_x, r.calibrated_y, "o", color="cyan", markersize=5)
        ax.plot(r.projected_x, r.projected_y, "x", color="orange", markersize=6)
        ax.annotate(
            "",
            xy=(r.projected_x, r.projected_y),
            xytext=(r.calibrated_x, r.calibrated_y),
            arrowprops=dict(arrowstyle="->", color="white", lw=0.8),
        )
        ax.text(r.calibrated_x + 8, r.calibrated_y - 8, r.label, color="white", fontsize=8)

    ax.set_title(title or f"Projection residuals (RMS {rms_residual(residuals):.1f} px)")
    ax.set_xlabel("x (px)")
    ax.set_ylabel("y (px)")

    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, dpi=100, bbox_inches="tight")
    plt.close(fig)
    return out_path
