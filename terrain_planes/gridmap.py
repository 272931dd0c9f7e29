"""A small multi-layer grid map and loading one from an image."""

from __future__ import annotations

import math

import numpy as np
from PIL import Image


class GridMap:
    """Layers of equal-shaped float grids centred at ``position``.

    Cell (0, 0) holds the largest x and y; rows run along -x, columns along -y.
    """

    def __init__(self, length, resolution, position=(0.0, 0.0), frame_id=""):
        self.resolution = float(resolution)
        rows = int(round(float(length[0]) / self.resolution))
        cols = int(round(float(length[1]) / self.resolution))
        self.size = (rows, cols)
        self.length = (rows * self.resolution, cols * self.resolution)
        self.position = np.asarray(position, dtype=float).reshape(2)
        self.frame_id = frame_id
        self.layers: dict[str, np.ndarray] = {}

    def add(self, name, data=None) -> None:
        """Add or replace a layer; without data the layer is filled with NaN."""
        if data is None:
            self.layers[name] = np.full(self.size, np.nan, dtype=np.float32)
            return
        array = np.array(data, dtype=np.float32)
        if array.shape != self.size:
            raise ValueError(f"layer shape {array.shape} does not match map size {self.size}")
        self.layers[name] = array

    def get(self, name) -> np.ndarray:
        """Return the data of a layer."""
        try:
            return self.layers[name]
        except KeyError:
            raise KeyError(f"no layer named {name!r}") from None

    def exists(self, name) -> bool:
        return name in self.layers

    def position_of_index(self, row, col) -> np.ndarray:
        """Centre of the cell at (row, col)."""
        corner = self.position + np.array(self.length) / 2.0
        return corner - self.resolution * (np.array([row, col], dtype=float) + 0.5)

    def index_of_position(self, x, y) -> tuple[int, int]:
        """Cell containing the position; ValueError if outside the map."""
        corner = self.position + np.array(self.length) / 2.0
        row = math.floor((corner[0] - x) / self.resolution)
        col = math.floor((corner[1] - y) / self.resolution)
        if not (0 <= row < self.size[0] and 0 <= col < self.size[1]):
            raise ValueError(f"position ({x}, {y}) is outside the map")
        return row, col

    def submap(self, position, length) -> "GridMap":
        """The part of the map covering a rectangle, clipped to the map."""
        position = np.asarray(position, dtype=float)
        self.index_of_position(*position)
        half_map = np.array(self.length) / 2.0
        eps = 1e-9 * self.resolution
        low = self.position - half_map + eps
        high = self.position + half_map - eps
        top_left = np.clip(position + np.asarray(length, float) / 2.0, low, high)
        bottom_right = np.clip(position - np.asarray(length, float) / 2.0, low, high)
        r0, c0 = self.index_of_position(*top_left)
        r1, c1 = self.index_of_position(*bottom_right)
        centre = (self.position_of_index(r0, c0) + self.position_of_index(r1, c1)) / 2.0
        rows, cols = r1 - r0 + 1, c1 - c0 + 1
        out = GridMap((rows * self.resolution, cols * self.resolution), self.resolution, centre, self.frame_id)
        for name, data in self.layers.items():
            out.layers[name] = data[r0:r1 + 1, c0:c1 + 1].copy()
        return out


def load_gridmap_from_image(file_path, elevation_layer, frame_id, resolution, scale) -> GridMap:
    """Load a grayscale image as an elevation layer ranging from 0 to ``scale``."""
    try:
        with Image.open(file_path) as img:
            pixels = np.asarray(img.convert("L"), dtype=np.float64)
    except OSError as exc:
        raise OSError(f"Could not open or find the image: {file_path}") from exc
    rows, cols = pixels.shape
    grid = GridMap((rows * resolution, cols * resolution), resolution, (0.0, 0.0), frame_id)
    grid.add(elevation_layer, float(scale) * pixels / 255.0)
    return grid