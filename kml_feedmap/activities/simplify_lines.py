"""Coordinate simplification activity: three nested levels of detail.

Each path is projected into a local planar frame centred on its first
point (equirectangular: ``x = R·Δlon·cos(lat0)``, ``y = R·Δlat``), so all
tolerances are in metres.  Simplification of one level runs:

1. **Pre-filter**: drop points within ``min_skip_m`` of the last kept
   point.  The first and last point always survive.
2. **Ramer-Douglas-Peucker**: iterative, with an explicit stack of
   ``(start, end)`` ranges; an interior point is kept only if its distance
   to the chord of its range exceeds the tolerance.
3. **Density cap**: stride downsampling when a level still has more
   than ``max_points`` points.

``fine`` is built from the original path, ``mid`` from ``fine`` and
``coarse`` from ``mid``, so point counts never grow from fine to coarse
and every level shares the pre-filtered path's endpoints.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from kml_feedmap.core.constants import (
    DEFAULT_LOD_COARSE_M,
    DEFAULT_LOD_FINE_M,
    DEFAULT_LOD_MID_M,
    DEFAULT_MAX_POINTS_PER_GEOM,
    DEFAULT_MIN_SKIP_M,
    EARTH_RADIUS_M,
)
from kml_feedmap.models.document import GeometryLOD

if TYPE_CHECKING:
    from collections.abc import Sequence

    from kml_feedmap.models.placemark import Coordinate

PlanarPoint = tuple[float, float]


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------


def project(coords: Sequence[Coordinate], origin: Coordinate | None = None) -> list[PlanarPoint]:
    """Project ``(lat, lon)`` pairs to metres around *origin* (default: first point)."""
    if not coords:
        return []
    lat0, lon0 = origin if origin is not None else coords[0]
    cos_lat0 = math.cos(math.radians(lat0))
    return [
        (
            EARTH_RADIUS_M * math.radians(lon - lon0) * cos_lat0,
            EARTH_RADIUS_M * math.radians(lat - lat0),
        )
        for lat, lon in coords
    ]


def segment_distance_sq(p: PlanarPoint, a: PlanarPoint, b: PlanarPoint) -> float:
    """Squared distance from *p* to the segment ``a-b``."""
    vx, vy = b[0] - a[0], b[1] - a[1]
    wx, wy = p[0] - a[0], p[1] - a[1]
    c1 = vx * wx + vy * wy
    if c1 <= 0:
        return wx * wx + wy * wy
    c2 = vx * vx + vy * vy
    if c2 <= c1:
        dx, dy = p[0] - b[0], p[1] - b[1]
        return dx * dx + dy * dy
    t = c1 / c2
    dx = p[0] - (a[0] + t * vx)
    dy = p[1] - (a[1] + t * vy)
    return dx * dx + dy * dy


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


def prefilter(
    coords: Sequence[Coordinate], min_skip_m: float = DEFAULT_MIN_SKIP_M
) -> list[Coordinate]:
    """Drop near-duplicate points, always keeping the first and last.

    A point is kept when its planar distance to the last kept point
    exceeds *min_skip_m*.  If the final point lands within *min_skip_m*
    of the last kept interior point, it takes that point's place.
    """
    if len(coords) <= 2:
        return list(coords)

    xy = project(coords)
    skip_sq = min_skip_m * min_skip_m
    kept = [coords[0]]
    last_xy = xy[0]
    for coord, point in zip(coords[1:-1], xy[1:-1], strict=True):
        dx, dy = point[0] - last_xy[0], point[1] - last_xy[1]
        if dx * dx + dy * dy > skip_sq:
            kept.append(coord)
            last_xy = point

    dx, dy = xy[-1][0] - last_xy[0], xy[-1][1] - last_xy[1]
    if len(kept) > 1 and dx * dx + dy * dy <= skip_sq:
        kept[-1] = coords[-1]
    else:
        kept.append(coords[-1])
    return kept


def rdp_keep_indices(points: Sequence[PlanarPoint], tolerance_m: float) -> list[int]:
    """Indices kept by Ramer-Douglas-Peucker at *tolerance_m*.

    Uses an explicit work stack so that long paths cannot exhaust the
    interpreter's recursion limit.
    """
    n = len(points)
    if n <= 2:
        return list(range(n))

    tol_sq = tolerance_m * tolerance_m
    keep = [False] * n
    keep[0] = keep[-1] = True
    stack = [(0, n - 1)]
    while stack:
        i, j = stack.pop()
        max_d2 = -1.0
        idx = -1
        for k in range(i + 1, j):
            d2 = segment_distance_sq(points[k], points[i], points[j])
            if d2 > max_d2:
                max_d2, idx = d2, k
        if idx != -1 and max_d2 > tol_sq:
            keep[idx] = True
            stack.append((i, idx))
            stack.append((idx, j))
    return [k for k in range(n) if keep[k]]


def cap_density(
    coords: Sequence[Coordinate], max_points: int = DEFAULT_MAX_POINTS_PER_GEOM
) -> list[Coordinate]:
    """Stride-downsample to at most *max_points*, keeping first and last."""
    n = len(coords)
    if n <= max_points:
        return list(coords)
    step = math.ceil((n - 1) / (max_points - 1))
    slim = list(coords[::step])
    if (n - 1) % step:
        slim.append(coords[-1])
    return slim


def simplify_path(
    coords: Sequence[Coordinate],
    tolerance_m: float,
    *,
    min_skip_m: float = DEFAULT_MIN_SKIP_M,
    max_points: int = DEFAULT_MAX_POINTS_PER_GEOM,
) -> list[Coordinate]:
    """Simplify one path at *tolerance_m* (pre-filter, RDP, density cap)."""
    filtered = prefilter(coords, min_skip_m)
    if len(filtered) <= 2:
        return filtered
    kept = [filtered[k] for k in rdp_keep_indices(project(filtered), tolerance_m)]
    return cap_density(kept, max_points)


def build_lods(
    coords: Sequence[Coordinate],
    tolerances: tuple[float, float, float] = (
        DEFAULT_LOD_FINE_M,
        DEFAULT_LOD_MID_M,
        DEFAULT_LOD_COARSE_M,
    ),
    *,
    min_skip_m: float = DEFAULT_MIN_SKIP_M,
    max_points: int = DEFAULT_MAX_POINTS_PER_GEOM,
) -> GeometryLOD:
    """Build the nested ``fine → mid → coarse`` levels of detail.

    Args:
        coords: Original ``(lat, lon)`` path.
        tolerances: ``(fine, mid, coarse)`` tolerances in metres, ascending.
        min_skip_m: Pre-filter spacing in metres.
        max_points: Per-level point cap.

    Returns:
        A ``GeometryLOD`` where each level is simplified from the previous one.
    """
    fine_m, mid_m, coarse_m = tolerances
    fine = simplify_path(coords, fine_m, min_skip_m=min_skip_m, max_points=max_points)
    mid = simplify_path(fine, mid_m, min_skip_m=min_skip_m, max_points=max_points)
    coarse = simplify_path(mid, coarse_m, min_skip_m=min_skip_m, max_points=max_points)
    return GeometryLOD(coarse=tuple(coarse), mid=tuple(mid), fine=tuple(fine))
