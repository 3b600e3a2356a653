"""Sexagesimal and unit helpers for RA/Dec.

RA strings are only ever interpreted with an explicit unit: the caller says
whether a bare number is hours or degrees. Nothing here guesses from the
magnitude of the value.
"""

from astropy import units as u
from astropy.coordinates import Angle

RA_UNITS = ("deg", "hour")


def ra_hms_to_degrees(hours: float, minutes: float = 0.0, seconds: float = 0.0) -> float:
    """RA from hours/minutes/seconds to degrees: (H + M/60 + S/3600) * 15."""
    return (hours + minutes / 60.0 + seconds / 3600.0) * 15.0


def dec_dms_to_degrees(
    degrees: float,
    arcminutes: float = 0.0,
    arcseconds: float = 0.0,
    negative: bool = False,
) -> float:
    """Dec from sign/degrees/arcminutes/arcseconds to degrees.

    The sign is passed separately so that "-00 30 00" keeps its sign.
    """
    sign = -1.0 if negative or degrees < 0 else 1.0
    return sign * (abs(degrees) + arcminutes / 60.0 + arcseconds / 3600.0)


def normalize_ra_unit(unit: str) -> str:
    """Map user spellings of an RA unit onto "deg" or "hour"."""
    key = (unit or "").strip().lower()
    if key in ("deg", "degree", "degrees", "d"):
        return "deg"
    if key in ("hour", "hours", "h", "hr", "hms", "hourangle"):
        return "hour"
    raise ValueError(f"Unknown RA unit {unit!r}; expected one of {RA_UNITS}")


def parse_ra(value, unit: str) -> float:
    """Parse an RA value (number or sexagesimal string) into degrees.

    Sexagesimal strings ("00 08 23.26", "0h08m23.26s", "00:08:23.26") are read
    as hours. Plain numbers use ``unit``.
    """
    unit = normalize_ra_unit(unit)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("empty RA")
        if _is_sexagesimal(text):
            return float(Angle(text, unit=u.hourangle).degree) % 360.0
        value = float(text)
    value = float(value)
    degrees = value * 15.0 if unit == "hour" else value
    if not 0.0 <= degrees < 360.0:
        raise ValueError(f"RA {value} {unit} outside [0, 360) degrees")
    return degrees


def parse_dec(value) -> float:
    """Parse a Dec value (number or sexagesimal string) into degrees."""
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("empty Dec")
        if _is_sexagesimal(text):
            degrees = float(Angle(text, unit=u.deg).degree)
        else:
            degrees = float(text)
    else:
        degrees = float(value)
    if not -90.0 <= degrees <= 90.0:
        raise ValueError(f"Dec {degrees} outside [-90, 90]")
    return degrees


def _is_sexagesimal(text: str) -> bool:
    body = text.lstrip("+-").strip()
    return any(sep in body for sep in (" ", ":", "h", "d", "m", "°", "'"))
