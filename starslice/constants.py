from pathlib import Path

"""
Shared constants for star placement.

Centralising these here makes it easier to tweak behaviour without
digging through the pipeline code.
"""

# Cache and output locations
CACHE_DB: Path = Path("simbad_cache/simbad_cache.db")
OUTPUT_DIR: Path = Path("web/assets")
OUTPUT_FILENAME: str = "stars.json"

# Unit conversions. LY_PER_PC is the rounded value the viewer also uses.
LY_PER_PC: float = 3.26156
ARCSEC_PER_RADIAN: float = 206265.0
MAS_PER_ARCSEC: float = 1000.0

# Gnomonic projection
PROJECTION_SINGULARITY_EPS: float = 1e-10
DEFAULT_MARGIN_FRACTION: float = 0.2  # Stars up to 20% outside the frame are clamped, not rejected

# Field of view used when a row gives neither a scale nor a FOV.
# 3d 54' 14.7" x 2d 36' 9.8"
DEFAULT_FOV_WIDTH_DEG: float = 3.904
DEFAULT_FOV_HEIGHT_DEG: float = 2.603

# Optics defaults for estimate_fov()
DEFAULT_FOCAL_LENGTH_MM: float = 529.39
DEFAULT_SENSOR_WIDTH_MM: float = 23.04

# Image size used when the caller cannot read the image itself
DEFAULT_IMAGE_WIDTH: int = 1920
DEFAULT_IMAGE_HEIGHT: int = 1080

# Volume
FRONT_OFFSET_ROUNDING_LY: float = 10.0  # Front plane snaps down to a multiple of this

# Simbad text endpoint. At most a few queries per second are allowed.
SIMBAD_URL: str = "http://simbad.u-strasbg.fr/simbad/sim-id"
SIMBAD_QUERY_DELAY_SEC: float = 0.5
SIMBAD_HTTP_TIMEOUT_SECONDS: float = 10.0
SIMBAD_USER_AGENT: str = "StarSlice/1.0 (python-requests)"

# astroquery batch prefetch
SIMBAD_BATCH_SIZE: int = 50
SIMBAD_BATCH_DELAY_SEC: float = 0.2

# Logging
LOG_FORMAT: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
