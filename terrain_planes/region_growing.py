"""Grow a convex polygon inside a (possibly holed) 2D shape."""

from __future__ import annotations

import logging
import math

import numpy as np
from shapely.geometry import Point, Polygon

_log = logging.getLogger(__name__)

_INITIAL_RADIUS_FACTOR = 0.999
_MAX_ITER = 1000


def _as_shape(shape) -> Polygon:
    return shape if isinstance(shape, Polygon) else Polygon(shape)


def is_convex(polygon) -> bool:
    """True if the closed vertex sequence forms a convex polygon."""
    pts = [tuple(map(float, p)) for p in polygon]
    deduped = [p for k, p in enumerate(pts) if k == 0 or p != pts[k - 1]]
    while len(deduped) > 1 and deduped[0] == deduped[-1]:
        deduped.pop()
    if len(deduped) < 3:
        return True
    arr = np.asarray(deduped)
    edges = np.roll(arr, -1, axis=0) - arr
    nxt = np.roll(edges, -1, axis=0)
    cross = edges[:, 0] * nxt[:, 1] - edges[:, 1] * nxt[:, 0]
    dot = (edges * nxt).sum(axis=1)
    eps = 1e-12
    if (cross > eps).any() and (cross < -eps).any():
        return False
    turning = float(np.arctan2(cross, dot).sum())
    return abs(abs(turning) - 2.0 * math.pi) < 1e-6


def is_inside(point, shape) -> bool:
    """True if the point lies in the shape or on its boundary."""
    return _as_shape(shape).covers(Point(float(point[0]), float(point[1])))


def create_regular_polygon(center, radius, number_of_vertices) -> np.ndarray:
    """Counter-clockwise regular polygon as an (n, 2) array."""
    if number_of_vertices <= 2:
        raise ValueError("a polygon needs more than two vertices")
    phi = np.arange(number_of_vertices) * (2.0 * math.pi / number_of_vertices)
    return np.column_stack(
        [radius * np.cos(phi) + center[0], radius * np.sin(phi) + center[1]]
    )


def update_mean(mean, old_value, updated_value, n) -> np.ndarray:
    """Mean of n values after one of them changed from old to updated."""
    return np.asarray(mean, float) + (np.asarray(updated_value, float) - np.asarray(old_value, float)) / n


def _edges(shape: Polygon) -> tuple[np.ndarray, np.ndarray]:
    rings = [np.asarray(shape.exterior.coords)] + [np.asarray(h.coords) for h in shape.interiors]
    starts = np.concatenate([r[:-1] for r in rings])
    ends = np.concatenate([r[1:] for r in rings])
    return starts, ends


def _orient(a, b, c):
    return (b[..., 0] - a[..., 0]) * (c[..., 1] - a[..., 1]) - (b[..., 1] - a[..., 1]) * (c[..., 0] - a[..., 0])


def _segment_hits(a, b, starts, ends) -> np.ndarray:
    o1 = np.sign(_orient(a, b, starts))
    o2 = np.sign(_orient(a, b, ends))
    o3 = np.sign(_orient(starts, ends, a))
    o4 = np.sign(_orient(starts, ends, b))
    crossing = (o1 * o2 <= 0) & (o3 * o4 <= 0)
    collinear = (o1 == 0) & (o2 == 0)
    overlap = np.ones_like(crossing)
    for axis in (0, 1):
        lo = np.minimum(starts[:, axis], ends[:, axis])
        hi = np.maximum(starts[:, axis], ends[:, axis])
        overlap &= (max(a[axis], b[axis]) >= lo) & (min(a[axis], b[axis]) <= hi)
    return crossing & (~collinear | overlap)


def _squared_distance_to_segments(p, starts, ends) -> np.ndarray:
    d = ends - starts
    length2 = (d * d).sum(axis=1)
    t = np.where(length2 > 0, ((p - starts) * d).sum(axis=1) / np.where(length2 > 0, length2, 1.0), 0.0)
    closest = starts + np.clip(t, 0.0, 1.0)[:, None] * d
    diff = closest - p
    return (diff * diff).sum(axis=1)


def _remains_convex(polygon: np.ndarray, i: int, point: np.ndarray) -> bool:
    n = len(polygon)
    sub = [polygon[(i + 2) % n], polygon[(i + 1) % n], point, polygon[(i - 1) % n], polygon[(i - 2) % n]]
    return is_convex(sub)


def _in_circle(p, circle) -> bool:
    c, r2 = circle
    d = p - c
    return float(d @ d) <= r2


def _try_move(polygon, i, candidate, sphere, starts, ends):
    if not _remains_convex(polygon, i, candidate):
        return False, sphere
    n = len(polygon)
    neighbours = (polygon[(i + 1) % n], polygon[(i - 1) % n])
    if all(_in_circle(p, sphere) for p in (neighbours[0], candidate, neighbours[1])):
        return True, sphere
    if any(_segment_hits(nb, candidate, starts, ends).any() for nb in neighbours):
        return False, sphere
    min_dist2 = float(_squared_distance_to_segments(candidate, starts, ends).min())
    return True, (candidate.copy(), min_dist2)


def grow_convex_polygon_inside_shape(parent_shape, center, number_of_vertices, growth_factor) -> np.ndarray:
    """Grow a regular polygon around ``center`` while it stays convex and inside the shape."""
    shape = _as_shape(parent_shape)
    start_center = tuple(center)
    center = np.asarray(center, dtype=float)
    radius = _INITIAL_RADIUS_FACTOR * shape.boundary.distance(Point(*center))
    polygon = create_regular_polygon(center, radius, number_of_vertices)
    if radius == 0.0:
        _log.warning("Zero initial radius. Provide a point with a non-zero offset to the boundary.")
        return polygon

    starts, ends = _edges(shape)
    blocked = [False] * number_of_vertices
    spheres = [(center.copy(), radius * radius)] * number_of_vertices
    n_blocked = 0
    iteration = 0
    while n_blocked < number_of_vertices and iteration < _MAX_ITER:
        for i in range(number_of_vertices):
            if blocked[i]:
                continue
            candidate = center + growth_factor * (polygon[i] - center)
            movable, spheres[i] = _try_move(polygon, i, candidate, spheres[i], starts, ends)
            if movable:
                center = update_mean(center, polygon[i], candidate, number_of_vertices)
                polygon[i] = candidate
            else:
                blocked[i] = True
                n_blocked += 1
        iteration += 1

    if iteration == _MAX_ITER:
        _log.error(
            "max iteration in region growing: vertices=%d growth=%s center=%s shape=%s",
            number_of_vertices, growth_factor, start_center, shape.wkt,
        )
    return polygon