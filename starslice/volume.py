"""
Linear depth mapping of light-year distances into the rendering volume.

The front plane is the nearest distance rounded down to a multiple of 10 ly;
the back plane is the farthest star. Everything in between maps linearly to
[0, 1].
"""

import math

import numpy as np

from .constants import FRONT_OFFSET_ROUNDING_LY
from .models import ScalingParameters


def compute_scaling(distances_ly, volume_depth: float) -> ScalingParameters:
    """ScalingParameters for a whole batch of distances (ly).

    Non-positive or missing distances are ignored. An empty batch, or one
    where every star sits on the front plane, falls back to a range of
    ``volume_depth`` with the front plane at 0.
    """
    if volume_depth <= 0:
        raise ValueError("volume_depth must be > 0")

    valid = [float(d) for d in distances_ly if d is not None and d > 0]
    if not valid:
        return ScalingParameters(
            front_offset_ly=0.0,
            max_distance_ly=float(volume_depth),
            distance_range_ly=float(volume_depth),
            volume_depth=float(volume_depth),
        )

    min_distance = min(valid)
    max_distance = max(valid)
    front_offset = math.floor(min_distance / FRONT_OFFSET_ROUNDING_LY) * FRONT_OFFSET_ROUNDING_LY
    distance_range = max_distance - front_offset
    if distance_range <= 0:
        front_offset = 0.0
        distance_range = float(volume_depth)

    return ScalingParameters(
        front_offset_ly=float(front_offset),
        max_distance_ly=max_distance,
        distance_range_ly=float(distance_range),
        volume_depth=float(volume_depth),
    )


def scaled_distance(distance_ly: float, params: ScalingParameters) -> float:
    """Normalized depth in [0, 1]; 0 is the front plane."""
    value = (distance_ly - params.front_offset_ly) / params.distance_range_ly
    return float(np.clip(value, 0.0, 1.0))


def scale_batch(distances_ly, volume_depth: float):
    """Scale a batch at once.

    Returns (params, order, scaled): ``order`` lists input indices nearest
    first and ``scaled`` holds the normalized depth per input index.
    """
    distances = np.asarray(list(distances_ly), dtype=float)
    params = compute_scaling(distances.tolist(), volume_depth)
    if distances.size == 0:
        return params, [], []
    scaled = np.clip((distances - params.front_offset_ly) / params.distance_range_ly, 0.0, 1.0)
    order = np.argsort(distances, kind="stable")
    return params, order.tolist(), scaled.tolist()


def depth_in_volume(scaled: float, volume_depth: float, depth_scale: float = 1.0) -> float:
    """Z offset in volume units for a normalized depth."""
    return scaled * volume_depth * depth_scale


def nearest(placements, n: int):
    """The ``n`` nearest placements, nearest first."""
    ordered = sorted(placements, key=lambda p: p.distance.distance_ly)
    return ordered[: max(n, 0)]


def brightest(placements, n: int):
    """The ``n`` brightest placements (lowest magnitude first).

    Stars without a magnitude sort last.
    """
    ordered = sorted(
        placements,
        key=lambda p: (p.magnitude is None, p.magnitude if p.magnitude is not None else 0.0),
    )
    return ordered[: max(n, 0)]
