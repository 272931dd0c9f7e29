"""Drawing of polygons and circles onto RGB images, and shape scaling."""

from __future__ import annotations

import random

import numpy as np
from PIL import Image, ImageDraw
from shapely.geometry import Polygon


def random_color(rng=None) -> tuple[int, int, int]:
    """A random RGB colour."""
    rng = rng or random
    return tuple(rng.randrange(256) for _ in range(3))


def to_pixel_points(polygon) -> list[tuple[int, int]]:
    """Vertices truncated to integer pixel coordinates."""
    return [(int(p[0]), int(p[1])) for p in polygon]


def _paint(image: np.ndarray, painter) -> None:
    canvas = Image.fromarray(image)
    painter(ImageDraw.Draw(canvas))
    image[...] = np.asarray(canvas)


def draw_circle(image, point, radius, color=None) -> None:
    """Draw a circle outline in place."""
    color = tuple(color) if color is not None else random_color()
    x, y = int(point[0]), int(point[1])
    r = int(radius)
    _paint(image, lambda d: d.ellipse([x - r, y - r, x + r, y + r], outline=color))


def draw_polygon(image, polygon, color=None) -> None:
    """Draw a closed polygon outline in place."""
    color = tuple(color) if color is not None else random_color()
    points = to_pixel_points(polygon)
    if points:
        _paint(image, lambda d: d.line(points + [points[0]], fill=color))


def draw_shape(image, shape, color=None) -> None:
    """Draw the outer boundary and all holes of a shape in one colour."""
    color = tuple(color) if color is not None else random_color()
    shape = shape if isinstance(shape, Polygon) else Polygon(shape)
    draw_polygon(image, list(shape.exterior.coords)[:-1], color)
    for hole in shape.interiors:
        draw_polygon(image, list(hole.coords)[:-1], color)


def scale_polygon(polygon, scale) -> list[tuple[float, float]]:
    return [(scale * float(p[0]), scale * float(p[1])) for p in polygon]


def scale_shape(shape, scale) -> Polygon:
    """Scale a shape, holes included, about the origin."""
    shape = shape if isinstance(shape, Polygon) else Polygon(shape)
    return Polygon(
        scale_polygon(list(shape.exterior.coords)[:-1], scale),
        [scale_polygon(list(h.coords)[:-1], scale) for h in shape.interiors],
    )