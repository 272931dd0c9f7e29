"""Upsampling of labelled images by a factor of three."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

import numpy as np


@dataclass
class SegmentedPlanesMap:
    """A labelled image with the plane parameters of each label."""

    labeled_image: np.ndarray = field(default_factory=lambda: np.zeros((0, 0), dtype=np.int32))
    label_plane_parameters: list = field(default_factory=list)
    resolution: float = 0.0
    map_origin: np.ndarray = field(default_factory=lambda: np.zeros(2))
    highest_label: int = -1


def _repeats(n: int) -> list[int]:
    return [2] + [3] * (n - 2) + [2]


def upsample_image(image) -> np.ndarray:
    """Repeat inner cells 3x and border cells 2x along each axis."""
    image = np.asarray(image)
    rows, cols = image.shape[:2]
    if rows < 2 or cols < 2:
        raise ValueError("image must be at least 2x2")
    return np.repeat(np.repeat(image, _repeats(rows), axis=0), _repeats(cols), axis=1)


def upsample_map(map_in: SegmentedPlanesMap) -> SegmentedPlanesMap:
    """Upsampled copy of the map with a third of the resolution."""
    return replace(
        map_in,
        label_plane_parameters=list(map_in.label_plane_parameters),
        labeled_image=upsample_image(map_in.labeled_image),
        resolution=map_in.resolution / 3.0,
    )