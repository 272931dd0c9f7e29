"""Projection of 3D positions onto the closest planar region."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

import numpy as np
from shapely.geometry import LineString, Point, Polygon

from .planar_region import PlanarRegion, position_in_world_from_plane
from .region_growing import is_inside


@dataclass
class RegionSortingInfo:
    """A region with the query expressed in its frame and a distance lower bound."""

    region: PlanarRegion
    position_in_terrain_frame: tuple
    bounding_box_square_distance: float


@dataclass
class PlanarTerrainProjection:
    """The best projection found onto a set of planar regions."""

    region: Optional[PlanarRegion] = None
    position_in_terrain_frame: tuple = (0.0, 0.0)
    position_in_world: np.ndarray = field(default_factory=lambda: np.zeros(3))
    cost: float = math.inf


def _as_polygon(shape) -> Polygon:
    return shape if isinstance(shape, Polygon) else Polygon(shape)


def _distance_cost(query: np.ndarray, terrain_point: np.ndarray) -> float:
    diff = query - terrain_point
    return float(diff @ diff)


def _interval_square_distance(value: float, low: float, high: float) -> float:
    if value < low:
        return (low - value) ** 2
    if value < high:
        return 0.0
    return (high - value) ** 2


def _squared_distance_to_bounding_box(point, bbox) -> float:
    xmin, ymin, xmax, ymax = bbox
    return _interval_square_distance(point[0], xmin, xmax) + _interval_square_distance(point[1], ymin, ymax)


def _closest_point_on_ring(point, ring) -> tuple[float, float]:
    line = LineString(ring.coords)
    closest = line.interpolate(line.project(Point(point)))
    return float(closest.x), float(closest.y)


def _squared_distance(a, b) -> float:
    return (a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2


def project_to_planar_region(query, planar_region: PlanarRegion) -> tuple[float, float]:
    """Closest point of the region's insets to a point given in the plane frame."""
    insets = [_as_polygon(inset) for inset in planar_region.boundary_with_inset.insets]
    if not insets:
        raise ValueError("planar region has no insets to project onto")
    query = (float(query[0]), float(query[1]))

    containing = next((inset for inset in insets if is_inside(query, Polygon(inset.exterior))), None)
    if containing is None:
        best, best_dist = query, math.inf
        for inset in insets:
            candidate = _closest_point_on_ring(query, inset.exterior)
            dist = _squared_distance(candidate, query)
            if dist < best_dist:
                best, best_dist = candidate, dist
        return best

    for hole in containing.interiors:
        if is_inside(query, Polygon(hole)):
            return _closest_point_on_ring(query, hole)
    return query


def sort_with_bounding_boxes(position_in_world, planar_regions: Sequence[PlanarRegion]) -> list[RegionSortingInfo]:
    """Regions ordered by a lower bound on their squared distance to the position."""
    position = np.asarray(position_in_world, dtype=float)
    infos = []
    for region in planar_regions:
        local = region.transform_plane_to_world.inverse().apply(position)
        xy = (float(local[0]), float(local[1]))
        distance = _squared_distance_to_bounding_box(xy, region.bbox2d) + float(local[2]) ** 2
        infos.append(RegionSortingInfo(region, xy, distance))
    return sorted(infos, key=lambda info: info.bounding_box_square_distance)


def best_planar_region_at_position(
    position_in_world,
    planar_regions: Sequence[PlanarRegion],
    penalty_function: Callable[[np.ndarray], float],
) -> PlanarTerrainProjection:
    """Projection with the lowest squared distance plus penalty over all regions."""
    position = np.asarray(position_in_world, dtype=float)
    projection = PlanarTerrainProjection()
    for info in sort_with_bounding_boxes(position, planar_regions):
        if info.bounding_box_square_distance > projection.cost:
            continue
        in_plane = project_to_planar_region(info.position_in_terrain_frame, info.region)
        in_world = position_in_world_from_plane(in_plane, info.region.transform_plane_to_world)
        cost = _distance_cost(position, in_world) + penalty_function(in_world)
        if cost < projection.cost:
            projection = PlanarTerrainProjection(info.region, in_plane, in_world, cost)
    return projection