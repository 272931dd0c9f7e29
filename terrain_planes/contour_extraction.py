"""Extraction of planar region outlines from a labelled plane segmentation."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from scipy import ndimage
from shapely.geometry import Polygon

from .planar_region import (
    BoundaryWithInset,
    PlanarRegion,
    project_to_plane_along_gravity,
    transform_local_to_global,
)
from .region_growing import is_inside
from .upsampling import SegmentedPlanesMap, upsample_map

# Clockwise on screen (rows grow downwards): E, SE, S, SW, W, NW, N, NE.
_DIRECTIONS = ((0, 1), (1, 1), (1, 0), (1, -1), (0, -1), (-1, -1), (-1, 0), (-1, 1))
_EAST, _WEST = 0, 4


@dataclass
class ContourExtractionParameters:
    """Safety margin, in upsampled pixels, eroded away from every region."""

    margin_size: int = 1


def _cross_kernel(size: int) -> np.ndarray:
    kernel = np.zeros((size, size), dtype=bool)
    kernel[size // 2, :] = True
    kernel[:, size // 2] = True
    return kernel


def _ellipse_kernel(size: int) -> np.ndarray:
    kernel = np.zeros((size, size), dtype=bool)
    r = c = size // 2
    inv_r2 = 1.0 / (r * r) if r else 0.0
    for i in range(size):
        dy = i - r
        if abs(dy) <= r:
            dx = int(round(c * math.sqrt((r * r - dy * dy) * inv_r2)))
            kernel[i, max(c - dx, 0):min(c + dx + 1, size)] = True
    return kernel


def _erode(binary: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    """Binary erosion with replicated borders."""
    if binary.size == 0:
        return binary.copy()
    ry, rx = kernel.shape[0] // 2, kernel.shape[1] // 2
    padded = np.pad(binary, ((ry, ry), (rx, rx)), mode="edge")
    eroded = ndimage.binary_erosion(padded, structure=kernel)
    return eroded[ry:ry + binary.shape[0], rx:rx + binary.shape[1]]


def _trace_border(fg: np.ndarray, start: tuple[int, int], back_dir: int) -> list[tuple[int, int]]:
    """Follow the border of the foreground from ``start``, keeping the background at ``back_dir`` aside."""

    def next_direction(row, col, from_dir):
        for k in range(1, 9):
            d = (from_dir + k) % 8
            dr, dc = _DIRECTIONS[d]
            if fg[row + dr, col + dc]:
                return d
        return None

    d = next_direction(*start, back_dir)
    if d is None:
        return [start]
    first = (start[0] + _DIRECTIONS[d][0], start[1] + _DIRECTIONS[d][1])
    contour = [start]
    current = first
    for _ in range(4 * fg.size + 8):
        d = next_direction(*current, (d + 4) % 8)
        following = (current[0] + _DIRECTIONS[d][0], current[1] + _DIRECTIONS[d][1])
        if current == start and following == first:
            break
        contour.append(current)
        current = following
    return contour


def _approx_simple(points: list[tuple[int, int]]) -> list[tuple[int, int]]:
    """Drop points in the middle of straight horizontal, vertical or diagonal runs."""
    n = len(points)
    if n < 3:
        return points
    kept = []
    for k, point in enumerate(points):
        prev, nxt = points[k - 1], points[(k + 1) % n]
        incoming = (point[0] - prev[0], point[1] - prev[1])
        outgoing = (nxt[0] - point[0], nxt[1] - point[1])
        if incoming != outgoing:
            kept.append(point)
    return kept


def _ring(contour: list[tuple[int, int]]):
    """Padded (row, col) contour to (x, y) pixel coordinates, or None if degenerate."""
    points = [(float(c - 1), float(r - 1)) for r, c in _approx_simple(contour)]
    if len(set(points)) < 3 or Polygon(points).area == 0.0:
        return None
    return points


def _first_pixels(labels: np.ndarray) -> dict[int, tuple[int, int]]:
    values, first = np.unique(labels.ravel(), return_index=True)
    cols = labels.shape[1]
    return {int(v): (int(i) // cols, int(i) % cols) for v, i in zip(values, first)}


def extract_polygons_from_binary_image(binary_image) -> list[Polygon]:
    """Outer borders of the 8-connected foreground components, with their holes.

    Coordinates are pixel centres with x along columns and y along rows.
    Borders without area are left out.
    """
    fg = np.pad(np.asarray(binary_image) != 0, 1)
    labels, count = ndimage.label(fg, structure=np.ones((3, 3), dtype=bool))
    if count == 0:
        return []
    background, _ = ndimage.label(~fg)
    outside = int(background[0, 0])

    holes: dict[int, list] = {}
    for hole_label, (row, col) in sorted(_first_pixels(background).items()):
        if hole_label in (0, outside):
            continue
        owner = int(labels[row, col - 1])
        holes.setdefault(owner, []).append(_trace_border(fg, (row, col - 1), _EAST))

    polygons = []
    for component, (row, col) in sorted(_first_pixels(labels).items()):
        if component == 0:
            continue
        contour = _trace_border(fg, (row, col), _WEST)
        if len(contour) <= 1:
            continue
        exterior = _ring(contour)
        if exterior is None:
            continue
        interiors = [ring for ring in map(_ring, holes.get(component, [])) if ring is not None]
        polygons.append(Polygon(exterior, interiors))
    return polygons


def extract_boundary_and_inset(binary_image, erosion_kernel) -> list[BoundaryWithInset]:
    """Boundaries of the image regions, each with the insets left after one erosion."""
    binary = np.asarray(binary_image) != 0
    if binary.size == 0:
        return []
    boundaries = extract_polygons_from_binary_image(binary)

    eroded = _erode(binary, np.asarray(erosion_kernel, dtype=bool))
    eroded[0, :] = False
    eroded[-1, :] = False
    eroded[:, 0] = False
    eroded[:, -1] = False
    insets = extract_polygons_from_binary_image(eroded)

    result = []
    for boundary in boundaries:
        assigned = [inset for inset in insets if is_inside(inset.exterior.coords[0], boundary)]
        if assigned:
            result.append(BoundaryWithInset(boundary, assigned))
    return result


def pixel_to_world_frame(pixel_point, resolution, map_offset) -> tuple[float, float]:
    """World XY of a pixel point; pixel x and y are swapped relative to the map axes."""
    return (
        float(map_offset[0]) - resolution * float(pixel_point[1]),
        float(map_offset[1]) - resolution * float(pixel_point[0]),
    )


def _map_shape(shape: Polygon, fn) -> Polygon:
    return Polygon(
        [fn(p) for p in shape.exterior.coords[:-1]],
        [[fn(p) for p in hole.coords[:-1]] for hole in shape.interiors],
    )


class ContourExtraction:
    """Turns a segmented planes map into planar regions in their plane frames."""

    def __init__(self, parameters: ContourExtractionParameters | None = None):
        self.parameters = parameters or ContourExtractionParameters()
        self._inset_kernel = _cross_kernel(3)
        self._margin_kernel = _ellipse_kernel(2 * (1 + self.parameters.margin_size) + 1)

    def extract_planar_regions(self, segmented_planes_map: SegmentedPlanesMap) -> list[PlanarRegion]:
        """Planar regions for every labelled plane of the map."""
        upsampled = upsample_map(segmented_planes_map)
        regions = []
        for label, plane in upsampled.label_plane_parameters:
            mask = upsampled.labeled_image == label
            pieces = extract_boundary_and_inset(_erode(mask, self._margin_kernel), self._inset_kernel)
            if not pieces:
                # Without the margin; one erosion still removes the growth from upsampling.
                pieces = extract_boundary_and_inset(_erode(mask, self._inset_kernel), self._inset_kernel)

            transform = transform_local_to_global(plane)

            def to_plane(point, transform=transform):
                world = pixel_to_world_frame(point, upsampled.resolution, upsampled.map_origin)
                return project_to_plane_along_gravity(world, transform)

            for piece in pieces:
                boundary = _map_shape(piece.boundary, to_plane)
                insets = [_map_shape(inset, to_plane) for inset in piece.insets]
                regions.append(
                    PlanarRegion(BoundaryWithInset(boundary, insets), transform, boundary.exterior.bounds)
                )
        return regions